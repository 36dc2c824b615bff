"""
Domain exceptions raised by the service layer and mapped to HTTP responses in moviedb.api
"""

from typing import Optional


class ServiceError(Exception):
    """Base class for service-layer errors"""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    status_code = 409


class UnauthorizedError(ServiceError):
    status_code = 401


class ForbiddenError(ServiceError):
    status_code = 403


class ValidationError(ServiceError):
    status_code = 400


class UpstreamError(ServiceError):
    """A dependency outside the application failed"""

    status_code = 502

    def __init__(self, message: str, upstream_status: Optional[int] = None):
        super().__init__(message)
        self.upstream_status = upstream_status
