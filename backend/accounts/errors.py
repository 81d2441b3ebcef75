"""Service error taxonomy.

Every failure raised by the session layer is a ``ServiceError`` carrying the
HTTP status it maps to. ``main`` renders them into the uniform
``{"status", "message", "success"}`` envelope.
"""
from fastapi import status


class ServiceError(Exception):
    """Base class for errors that terminate a request."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Something went wrong"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ServiceError):
    """Missing or malformed input."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class ConflictError(ServiceError):
    """Uniqueness violation on username or email."""

    status_code = status.HTTP_409_CONFLICT
    default_message = "User with this email or username already exists"


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "User not found"


class UnauthorizedError(ServiceError):
    """Bad credentials, or a bad, expired or superseded token."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized request"


class InternalError(ServiceError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Something went wrong"
