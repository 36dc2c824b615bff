"""
Pydantic models for user requests and responses
"""

import re
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

USERNAME_PATTERN = r"^[a-zA-Z0-9_-]+$"
PASSWORD_RE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]")
PASSWORD_RULES = (
    "Password must contain at least one lowercase letter, one uppercase letter, "
    "one number and one special character (@$!%*?&)"
)


def check_password(value: str) -> str:
    if not PASSWORD_RE.match(value):
        raise ValueError(PASSWORD_RULES)
    return value


def strip_text(value):
    return value.strip() if isinstance(value, str) else value


class UserCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=30, pattern=USERNAME_PATTERN, description="Login name")
    email: EmailStr = Field(..., description="Email address")
    password: str = Field(..., min_length=8, max_length=128, description="Plain text password")
    first_name: Optional[str] = Field(None, max_length=50)
    last_name: Optional[str] = Field(None, max_length=50)

    @field_validator("username", "email", "first_name", "last_name", mode="before")
    @classmethod
    def strip_whitespace(cls, v):
        return strip_text(v)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v):
        return check_password(v)


class UserUpdate(BaseModel):
    """Partial profile update; username and email may be omitted but not cleared"""

    username: Optional[str] = Field(None, min_length=3, max_length=30, pattern=USERNAME_PATTERN)
    email: Optional[EmailStr] = None
    first_name: Optional[str] = Field(None, max_length=50)
    last_name: Optional[str] = Field(None, max_length=50)

    @field_validator("username", "email", "first_name", "last_name", mode="before")
    @classmethod
    def strip_whitespace(cls, v):
        return strip_text(v)

    @field_validator("username", "email")
    @classmethod
    def reject_null(cls, v, info):
        if v is None:
            raise ValueError(f"{info.field_name} may not be null")
        return v


class LoginRequest(BaseModel):
    username_or_email: str = Field(..., min_length=1, description="Username or email address")
    password: str = Field(..., min_length=1)


class ChangePasswordRequest(BaseModel):
    old_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=128)

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, v):
        return check_password(v)


class UserResponse(BaseModel):
    id: int
    username: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    is_active: bool = True
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class LoginResponse(BaseModel):
    user: UserResponse
    access_token: str
    token_type: str = "bearer"
    expires_in: int = Field(..., description="Token lifetime in seconds")
