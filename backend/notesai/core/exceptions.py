"""
Custom exception classes for unified error handling.

Every error raised by a service derives from AppBaseError and carries the
HTTP status it maps to. The handlers registered in `register_exception_handlers`
render all of them, plus FastAPI's own validation/HTTP errors, in the
`{success, message, data, errors}` envelope.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from postgrest.exceptions import APIError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

# PostgreSQL error code for unique_violation
UNIQUE_VIOLATION = "23505"


class AppBaseError(Exception):
    """Base exception for all application errors."""
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(
        self,
        message: str,
        detail: str | None = None,
        errors: list[dict] | None = None,
    ):
        self.message = message
        self.detail = detail
        self.errors = errors
        super().__init__(message)


class ValidationError(AppBaseError):
    """Raised when input is malformed, missing or out of range."""
    status_code = status.HTTP_400_BAD_REQUEST


class UnauthorizedError(AppBaseError):
    """Raised when the bearer credential is missing or invalid."""
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Invalid or expired token"):
        super().__init__(message=message, detail="Please log in again.")


class NotFoundError(AppBaseError):
    """Raised when a resource is absent or not owned by the caller."""
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(AppBaseError):
    """Raised on uniqueness violations (duplicate bookmark, duplicate email)."""
    status_code = status.HTTP_409_CONFLICT


class UpstreamError(AppBaseError):
    """Raised when the AI provider fails or returns something unusable."""
    status_code = status.HTTP_502_BAD_GATEWAY


class InternalError(AppBaseError):
    """Raised for unexpected failures that are not otherwise classified."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


def is_unique_violation(error: APIError) -> bool:
    """True if a PostgREST error comes from a UNIQUE constraint."""
    return getattr(error, "code", None) == UNIQUE_VIOLATION


# ── Envelope rendering ───────────────────────────────────

def error_envelope(
    message: str,
    status_code: int,
    errors: list[dict] | None = None,
    headers: dict | None = None,
) -> JSONResponse:
    body = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    return JSONResponse(status_code=status_code, content=body, headers=headers)


def app_error_to_response(error: AppBaseError) -> JSONResponse:
    """Convert an AppBaseError to a JSON envelope response."""
    headers = None
    if isinstance(error, UnauthorizedError):
        headers = {"WWW-Authenticate": "Bearer"}
    return error_envelope(error.message, error.status_code, error.errors, headers)


def _field_name(loc: tuple) -> str:
    # ("body", "email") -> "email"; ("query", "page") -> "page"
    parts = [str(p) for p in loc if p not in ("body", "query", "path", "form")]
    return ".".join(parts) or "request"


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the envelope-producing handlers to the application."""

    @app.exception_handler(AppBaseError)
    async def handle_app_error(request: Request, exc: AppBaseError):
        if exc.status_code >= 500:
            logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.message} ({exc.detail})")
        return app_error_to_response(exc)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = [
            {"field": _field_name(tuple(err.get("loc", ()))), "message": err.get("msg", "")}
            for err in exc.errors()
        ]
        return error_envelope("Validation error", status.HTTP_400_BAD_REQUEST, errors)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        if exc.status_code == status.HTTP_404_NOT_FOUND and message == "Not Found":
            message = "Endpoint not found"
        return error_envelope(message, exc.status_code, headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return error_envelope("Internal server error", status.HTTP_500_INTERNAL_SERVER_ERROR)
