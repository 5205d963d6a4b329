"""
Error handling for the recruiting API.

Domain errors (``core.errors``) carry their own status and code. Storage and
lock-service failures are mapped without leaking driver messages, and every
error body is sanitized before it leaves the process.
"""

import logging
import re
import traceback
from typing import Any, Callable, Optional

from fastapi import Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError, ConnectionError as RedisConnectionError
from sqlalchemy.exc import SQLAlchemyError, IntegrityError, OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.errors import RecruitingError

logger = logging.getLogger(__name__)

# Patterns for sensitive data that should never be logged
SENSITIVE_PATTERNS = [
    re.compile(r'password["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'token["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'secret["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'authorization["\s:]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'[A-Za-z][A-Za-z0-9+]*://[^:/\s]+:[^@\s]+@'),  # credentials in URLs
    re.compile(r'[\w.+-]+@[\w-]+\.[\w.-]+'),  # email addresses
]


def sanitize_error_message(message: Any) -> str:
    """
    Remove sensitive information from error messages.

    Args:
        message: Original error message

    Returns:
        Sanitized error message
    """
    sanitized = str(message)
    for pattern in SENSITIVE_PATTERNS:
        sanitized = pattern.sub('[REDACTED]', sanitized)
    return sanitized


def format_validation_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    """Flatten pydantic errors into ``{field, message, type}`` entries."""
    errors = []
    for error in exc.errors():
        errors.append(
            {
                "field": ".".join(str(loc) for loc in error["loc"]),
                "message": sanitize_error_message(error["msg"]),
                "type": error["type"],
            }
        )
    return errors


def error_body(
    code: str,
    message: str,
    path: str,
    method: str,
    details: Optional[Any] = None,
) -> dict[str, Any]:
    body: dict[str, Any] = {
        "error": {
            "code": code,
            "message": message,
            "path": path,
            "method": method,
        }
    }
    if details is not None:
        body["error"]["details"] = details
    return body


def classify_exception(exc: Exception, debug: bool = False) -> tuple[int, str, str, Optional[Any]]:
    """
    Map an exception to ``(status_code, error_code, message, details)``.

    Args:
        exc: The exception to classify
        debug: Whether to attach a traceback to unexpected errors
    """
    if isinstance(exc, RecruitingError):
        return exc.status_code, exc.code, sanitize_error_message(exc.message), exc.details

    if isinstance(exc, StarletteHTTPException):
        return exc.status_code, "HTTP_EXCEPTION", sanitize_error_message(exc.detail), None

    if isinstance(exc, RequestValidationError):
        return (
            status.HTTP_400_BAD_REQUEST,
            "VALIDATION_ERROR",
            "Request validation failed",
            format_validation_errors(exc),
        )

    if isinstance(exc, IntegrityError):
        return status.HTTP_409_CONFLICT, "INTEGRITY_ERROR", "Database integrity constraint violated", None

    if isinstance(exc, OperationalError):
        return (
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "DATABASE_ERROR",
            "Database service temporarily unavailable",
            None,
        )

    if isinstance(exc, SQLAlchemyError):
        return status.HTTP_500_INTERNAL_SERVER_ERROR, "DATABASE_ERROR", "A database error occurred", None

    if isinstance(exc, RedisConnectionError):
        return (
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "LOCK_SERVICE_ERROR",
            "Lock service temporarily unavailable",
            None,
        )

    if isinstance(exc, RedisError):
        return status.HTTP_500_INTERNAL_SERVER_ERROR, "LOCK_SERVICE_ERROR", "A lock service error occurred", None

    details = None
    if debug:
        details = {
            "type": type(exc).__name__,
            "message": sanitize_error_message(str(exc)),
            "traceback": traceback.format_exc(),
        }
    return (
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_SERVER_ERROR",
        "An unexpected error occurred",
        details,
    )


def log_exception(exc: Exception, status_code: int, method: str, path: str) -> None:
    if status_code >= 500:
        logger.error(
            f"Unhandled exception: {method} {path} - "
            f"{type(exc).__name__}: {sanitize_error_message(str(exc))}",
            exc_info=not isinstance(exc, RecruitingError),
        )
    else:
        logger.warning(
            f"{type(exc).__name__}: {method} {path} - "
            f"Status: {status_code}, Message: {sanitize_error_message(str(exc))}"
        )


class ErrorHandlingMiddleware:
    """
    Outermost ASGI safety net.

    Anything that escapes the FastAPI exception handlers (including errors
    raised by other middleware) is rendered in the standard error shape.
    """

    def __init__(self, app: Callable, debug: bool = False):
        """
        Initialize error handling middleware.

        Args:
            app: The ASGI application
            debug: Whether to include detailed error information
        """
        self.app = app
        self.debug = debug

    async def __call__(self, scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        try:
            await self.app(scope, receive, send)
        except Exception as exc:
            response = self._handle_exception(exc, scope)
            await response(scope, receive, send)

    def _handle_exception(self, exc: Exception, scope: dict) -> Response:
        request_path = scope.get("path", "unknown")
        request_method = scope.get("method", "unknown")

        status_code, error_code, message, details = classify_exception(exc, self.debug)
        log_exception(exc, status_code, request_method, request_path)

        content = error_body(error_code, message, request_path, request_method, details)

        # Add request ID if available
        headers = dict(scope.get("headers") or [])
        request_id = headers.get(b"x-request-id")
        if request_id:
            content["error"]["request_id"] = request_id.decode()

        return JSONResponse(status_code=status_code, content=content)


def setup_error_handlers(app, debug: bool = False):
    """
    Set up exception handlers for FastAPI application.

    Args:
        app: FastAPI application instance
        debug: Whether unexpected errors include a traceback
    """

    def render(request: Request, exc: Exception) -> JSONResponse:
        status_code, error_code, message, details = classify_exception(exc, debug)
        log_exception(exc, status_code, request.method, request.url.path)
        return JSONResponse(
            status_code=status_code,
            content=error_body(error_code, message, str(request.url.path), request.method, details),
        )

    @app.exception_handler(RecruitingError)
    async def recruiting_exception_handler(request: Request, exc: RecruitingError):
        """Handle domain errors."""
        return render(request, exc)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions."""
        return render(request, exc)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle validation errors as 400 Bad Request."""
        return render(request, exc)

    @app.exception_handler(SQLAlchemyError)
    async def storage_exception_handler(request: Request, exc: SQLAlchemyError):
        """Handle database errors."""
        return render(request, exc)

    @app.exception_handler(RedisError)
    async def redis_exception_handler(request: Request, exc: RedisError):
        """Handle lock service errors."""
        return render(request, exc)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Handle all other exceptions."""
        return render(request, exc)
