"""
JWT issuance and verification
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from moviedb.config.settings import Settings, get_settings
from moviedb.services.exceptions import UnauthorizedError
from moviedb.services.logger_service import get_logger

logger = get_logger("auth")


class AuthService:
    """Signs and verifies HS256 access tokens"""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    @property
    def expires_in(self) -> int:
        return self.settings.jwt_expiration_seconds

    def create_access_token(self, user) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user.id),
            "username": user.username,
            "email": user.email,
            "iat": now,
            "exp": now + timedelta(seconds=self.expires_in),
        }
        return jwt.encode(payload, self.settings.jwt_secret, algorithm=self.settings.jwt_algorithm)

    def decode_token(self, token: str) -> Dict[str, Any]:
        """Decode a token, raising UnauthorizedError when it is expired or invalid"""
        try:
            payload = jwt.decode(token, self.settings.jwt_secret, algorithms=[self.settings.jwt_algorithm])
        except jwt.ExpiredSignatureError:
            logger.info("Rejected expired token")
            raise UnauthorizedError("Token has expired")
        except jwt.InvalidTokenError as e:
            logger.info("Rejected invalid token", error=str(e))
            raise UnauthorizedError("Invalid token")

        subject = payload.get("sub")
        if subject is None or not str(subject).isdigit():
            raise UnauthorizedError("Invalid token")

        payload["sub"] = int(subject)
        return payload


_auth_service: Optional[AuthService] = None


def get_auth_service() -> AuthService:
    """Get global auth service instance"""
    global _auth_service
    if _auth_service is None:
        _auth_service = AuthService()
    return _auth_service
