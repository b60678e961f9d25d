"""
Custom exception classes and FastAPI exception handlers.

Every error leaves the API as ``{"success": false, "error": <category>,
"message": <detail>}``.
"""

import logging
from typing import Iterable, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

log = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception."""

    error = "InternalFailure"

    def __init__(self, status_code: int, detail: str, headers: Optional[dict] = None):
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail
        self.headers = headers


class DuplicateIdentityException(AppException):
    error = "DuplicateIdentity"

    def __init__(self, detail: str = "A user with this email or username already exists"):
        super().__init__(status_code=400, detail=detail)


class NotFoundException(AppException):
    error = "NotFound"

    def __init__(self, detail: str = "Resource not found"):
        super().__init__(status_code=404, detail=detail)


class ValidationFailedException(AppException):
    """Field-level validation failure; carries every violation, not just the first."""

    error = "ValidationFailed"

    def __init__(self, errors: Iterable[str]):
        self.errors = list(errors)
        super().__init__(status_code=400, detail=", ".join(self.errors))


class UnauthenticatedException(AppException):
    error = "Unauthenticated"

    def __init__(self, detail: str = "No token provided"):
        super().__init__(
            status_code=401,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class InvalidTokenException(AppException):
    error = "InvalidToken"

    def __init__(self, detail: str = "Token verification failed"):
        super().__init__(status_code=403, detail=detail)


class ForbiddenException(AppException):
    error = "Forbidden"

    def __init__(self, detail: str = "You do not have permission to access this resource"):
        super().__init__(status_code=403, detail=detail)


class InternalFailureException(AppException):
    error = "InternalFailure"

    def __init__(self, detail: str = "Internal server error"):
        super().__init__(status_code=500, detail=detail)


def error_response(status_code: int, error: str, message: str, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error, "message": message},
        headers=headers,
    )


def format_validation_errors(errors: Iterable[dict]) -> list[str]:
    """Turn pydantic error dicts into ``"field: message"`` strings."""
    messages = []
    for err in errors:
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        msg = err.get("msg", "Invalid value")
        messages.append(f"{'.'.join(loc)}: {msg}" if loc else msg)
    return messages


def register_exception_handlers(app: FastAPI, debug: bool = False) -> None:
    """Register custom exception handlers on the FastAPI app.

    ``debug`` controls whether unexpected errors expose their message.
    """

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException):
        if exc.status_code >= 500:
            log.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
        return error_response(exc.status_code, exc.error, exc.detail, exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        messages = format_validation_errors(exc.errors())
        return error_response(400, ValidationFailedException.error, ", ".join(messages))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return error_response(404, "NotFound", f"Cannot {request.method} {request.url.path}")
        return error_response(exc.status_code, "HTTPError", str(exc.detail), getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        log.exception("Unhandled error on %s %s", request.method, request.url.path)
        message = str(exc) if debug else "Internal server error"
        return error_response(500, InternalFailureException.error, message)
