"""
Cook Journal Backend — Custom Exception Hierarchy
===================================================

What:  Defines application-specific exceptions for different error scenarios.
Why:   Custom exceptions enable targeted error handling with appropriate HTTP
       status codes and user-friendly messages, without leaking internals.
How:   Each exception class carries a message, an optional field name and an
       optional context dict. Global handlers (registered in main.py) turn
       them into the structured `{"errors": [{"field", "message"}]}` body.
Who:   Raised by services and middleware; caught by global handlers.

Exception Hierarchy:
    CookJournalError (base)      → 500
    ├── ValidationError          → 400 Bad Request (client can fix)
    ├── AuthError                → 401 Unauthorized (no/invalid session)
    ├── ForbiddenError           → 403 Forbidden (authenticated, not owner)
    ├── NotFoundError            → 404 Not Found
    ├── ConflictError            → 409 Conflict (duplicate email)
    ├── RateLimitError           → 429 Too Many Requests
    └── InternalError            → 500 Internal Server Error (storage/codec)

Security Note:
    `context` is logged server-side only. It never reaches the response body.
"""

from typing import Any, Dict, List, Optional

from starlette.responses import JSONResponse


class CookJournalError(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        field:    Request field the error refers to, or None for global errors
        context:  Additional debug info (logged but NOT returned to client)
    """

    status_code: int = 500

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.field = field
        self.context = context or {}
        super().__init__(self.message)

    def to_errors(self) -> List[Dict[str, Optional[str]]]:
        return [{"field": self.field, "message": self.message}]


class ValidationError(CookJournalError):
    """
    Raised when client input fails validation.

    When:    Missing/empty required fields, wrong JSON types, bad email shape,
             short passwords, a bestAttemptId from another recipe, oversize
             or non-image uploads.
    HTTP:    400 Bad Request
    """

    status_code = 400

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, field=field, context=context)


class AuthError(CookJournalError):
    """
    Raised when a request needs a session and has none, or credentials are wrong.

    Login failures always use the same generic message so callers cannot tell
    an unknown email apart from a wrong password.
    """

    status_code = 401

    def __init__(
        self,
        message: str = "Authentication required",
        field: Optional[str] = "auth",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, field=field, context=context)


class ForbiddenError(CookJournalError):
    """Raised when an authenticated user mutates a recipe they do not own."""

    status_code = 403

    def __init__(
        self,
        message: str = "You do not have permission to modify this resource",
        field: Optional[str] = "auth",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, field=field, context=context)


class NotFoundError(CookJournalError):
    """
    Raised when a requested resource does not exist.

    Why a custom exception:
        SQLAlchemy returns None for missing records (not an exception).
        We convert None → NotFoundError in the service layer to keep
        HTTP concerns out of the service logic while still enabling
        the correct status code in the response.
    """

    status_code = 404

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=f"{resource} not found", context=ctx)


class ConflictError(CookJournalError):
    """Raised when a unique value (the account email) is already taken."""

    status_code = 409

    def __init__(
        self,
        message: str = "Resource already exists",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, field=field, context=context)


class RateLimitError(CookJournalError):
    """
    Raised when a caller exceeds its fixed-window request budget.

    Response includes a Retry-After header with the seconds until the
    window resets.
    """

    status_code = 429

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Too many requests. Please wait {retry_after} seconds before retrying."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class InternalError(CookJournalError):
    """
    Raised when storage or the image codec fails.

    The message shown to the client is generic; the underlying error is
    carried in `context` and logged server-side.
    """

    status_code = 500

    def __init__(
        self,
        message: str = "An internal error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


def error_response(
    status_code: int,
    errors: List[Dict[str, Optional[str]]],
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """Build the one error body shape every endpoint and middleware returns."""
    return JSONResponse(
        status_code=status_code,
        content={"errors": errors},
        headers=headers,
    )
