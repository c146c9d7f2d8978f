"""
Error taxonomy shared by every router.

Each error is an ``HTTPException`` with a fixed status code, so the global
HTTP handler in :mod:`society.error_handlers` renders all of them the same way.
"""
from fastapi import HTTPException, status


class SocietyError(HTTPException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = "Internal server error"

    def __init__(self, detail: str, headers: dict | None = None):
        super().__init__(status_code=self.status_code, detail=detail, headers=headers)


class Unauthenticated(SocietyError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error = "Unauthenticated"

    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class Forbidden(SocietyError):
    status_code = status.HTTP_403_FORBIDDEN
    error = "Forbidden"


class NotFound(SocietyError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "Not found"


class Conflict(SocietyError):
    """The record's current state does not allow the requested change."""

    status_code = status.HTTP_409_CONFLICT
    error = "Conflict"


class ValidationFailed(SocietyError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "Validation error"


class ServiceUnavailable(SocietyError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error = "Service unavailable"
