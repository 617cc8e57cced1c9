"""Application-specific exceptions for consistent error handling.

Every failure the core reports is one of four kinds:

- ``ValidationError``: bad input shape, empty selection, malformed option keys
- ``NotFoundError``: referenced entity missing or not owned by the caller
- ``StateError``: operation not allowed for the entity's current state
- ``PersistenceError``: the store failed, timed out or rejected a constraint
"""

from typing import Any

from fastapi import HTTPException, status


class AppError(HTTPException):
    """Application error with standardized error code."""

    status_code_default = status.HTTP_500_INTERNAL_SERVER_ERROR
    code_default = "APP_ERROR"

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | list[Any] | None = None,
        *,
        status_code: int | None = None,
        code: str | None = None,
    ):
        """Initialize application error."""
        status_code = status_code or self.status_code_default
        code = code or self.code_default
        super().__init__(
            status_code=status_code,
            detail={
                "code": code,
                "message": message,
                "details": details,
            },
        )
        self.code = code
        self.message = message
        self.details = details

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class ValidationError(AppError):
    """Input does not have the expected shape or references unknown option keys."""

    status_code_default = status.HTTP_422_UNPROCESSABLE_ENTITY
    code_default = "VALIDATION_ERROR"


class NotFoundError(AppError):
    """Referenced test, question or user does not exist or is not owned by the caller."""

    status_code_default = status.HTTP_404_NOT_FOUND
    code_default = "NOT_FOUND"

    def __init__(self, resource: str, resource_id: Any = None, details: dict[str, Any] | None = None):
        message = f"{resource} not found"
        if resource_id is not None:
            message = f"{resource} {resource_id} not found"
        super().__init__(message, details)
        self.resource = resource
        self.resource_id = resource_id


class StateError(AppError):
    """Operation is invalid for the entity's current state."""

    status_code_default = status.HTTP_409_CONFLICT
    code_default = "INVALID_STATE"


class PersistenceError(AppError):
    """Underlying store failed, timed out, or a transactional constraint was violated."""

    status_code_default = status.HTTP_503_SERVICE_UNAVAILABLE
    code_default = "PERSISTENCE_ERROR"


class ConflictError(PersistenceError):
    """A uniqueness constraint rejected the write; callers may retry the whole unit."""

    status_code_default = status.HTTP_409_CONFLICT
    code_default = "PERSISTENCE_CONFLICT"
