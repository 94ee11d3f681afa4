from __future__ import annotations

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


# PUBLIC_INTERFACE
class TodoApiError(Exception):
    """
    Base class for errors that map onto an HTTP response.

    Subclasses set `status_code`; the message is rendered as {"error": message}.
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(TodoApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Validation failed"


class InvalidArgument(TodoApiError):
    """Malformed identifier or argument."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid argument"


class NoChanges(TodoApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "No changes"


class Unauthenticated(TodoApiError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Not authenticated"


class InvalidCredentials(TodoApiError):
    # Same status as Unauthenticated so a failed login leaks nothing extra.
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid credentials"


class Forbidden(TodoApiError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


class NotFound(TodoApiError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class Conflict(TodoApiError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflict"


class InvalidToken(Exception):
    """Raised by the token service when a token is malformed, forged or expired."""


class DuplicateKeyError(Exception):
    """Raised by a repository when a write violates a unique constraint."""

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"duplicate value for unique field '{field}'")


async def todo_api_error_handler(request: Request, exc: TodoApiError) -> JSONResponse:
    """Render domain errors as {"error": message}."""
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message}, headers=headers)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Return a consistent JSON structure for request body/query validation errors.

    Response format:
        {
            "error": "Invalid body",
            "detail": [... pydantic/fastapi error details ...]
        }
    """
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid body", "detail": jsonable_encoder(exc.errors())},
    )
