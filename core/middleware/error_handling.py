"""
Error handling with sanitized, uniform error bodies.

Every failure leaves the API as::

    {"error": {"code": ..., "message": ..., "path": ..., "method": ...,
               "retryable": ...}}

Domain errors (``core.errors.AssessmentError``) carry their own status, code
and retry hint. Storage failures that escape the services are mapped here so
a dropped database or lock backend never surfaces as a bare 500 trace.
"""

import logging
import re
import traceback
from typing import Any, Callable, Optional

from fastapi import Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.errors import AssessmentError

logger = logging.getLogger(__name__)

# Patterns for data that must never reach a response body or a log line
SENSITIVE_PATTERNS = [
    re.compile(r'password["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'token["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'secret["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'authorization["\s:]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'bearer\s+[A-Za-z0-9\-_\.]+', re.IGNORECASE),
    re.compile(r'correct_answer["\s:=]+[^,}]+', re.IGNORECASE),
]


def sanitize_error_message(message: Any) -> str:
    """
    Remove sensitive information from an error message.

    Args:
        message: Original error message (``HTTPException.detail`` may be any type)

    Returns:
        Sanitized error message
    """
    sanitized = str(message)
    for pattern in SENSITIVE_PATTERNS:
        sanitized = pattern.sub("[REDACTED]", sanitized)
    return sanitized


def get_safe_error_details(exc: Exception) -> dict[str, Any]:
    """Debug-only details: type, sanitized message and traceback."""
    return {
        "type": type(exc).__name__,
        "message": sanitize_error_message(str(exc)),
        "traceback": traceback.format_exc(),
    }


def format_validation_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    """Flatten pydantic errors to field/message/type triples. Inputs are never echoed."""
    return [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": sanitize_error_message(error["msg"]),
            "type": error["type"],
        }
        for error in exc.errors()
    ]


def error_response(
    status_code: int,
    code: str,
    message: str,
    path: str,
    method: str,
    retryable: bool = False,
    details: Optional[Any] = None,
    request_id: Optional[str] = None,
) -> JSONResponse:
    body: dict[str, Any] = {
        "code": code,
        "message": message,
        "path": path,
        "method": method,
        "retryable": retryable,
    }
    if details is not None:
        body["details"] = details
    if request_id:
        body["request_id"] = request_id
    return JSONResponse(status_code=status_code, content={"error": body})


def classify_exception(
    exc: Exception, path: str, method: str, debug: bool = False
) -> tuple[int, str, str, bool, Optional[Any]]:
    """
    Map an exception to (status, code, message, retryable, details).

    Logs at a severity matching the class of failure.
    """
    details = None

    if isinstance(exc, AssessmentError):
        level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
        logger.log(
            level,
            f"{type(exc).__name__}: {method} {path} - "
            f"{sanitize_error_message(str(exc))}",
        )
        return exc.status_code, exc.code, exc.public_message, exc.retryable, None

    if isinstance(exc, StarletteHTTPException):
        message = sanitize_error_message(exc.detail)
        logger.warning(
            f"HTTP exception: {method} {path} - Status: {exc.status_code}, Message: {message}"
        )
        return exc.status_code, "HTTP_EXCEPTION", message, False, None

    if isinstance(exc, RequestValidationError):
        details = format_validation_errors(exc)
        logger.warning(f"Validation error: {method} {path} - Errors: {details}")
        return (
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "VALIDATION_ERROR",
            "Request validation failed",
            False,
            details,
        )

    if isinstance(exc, IntegrityError):
        logger.error(f"Database integrity error: {method} {path}", exc_info=True)
        return (
            status.HTTP_409_CONFLICT,
            "INTEGRITY_ERROR",
            "Database integrity constraint violated",
            True,
            get_safe_error_details(exc) if debug else None,
        )

    if isinstance(exc, OperationalError):
        logger.error(f"Database operational error: {method} {path}", exc_info=True)
        return (
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "DATABASE_ERROR",
            "Database service temporarily unavailable",
            True,
            None,
        )

    if isinstance(exc, SQLAlchemyError):
        logger.error(f"SQLAlchemy error: {method} {path}", exc_info=True)
        return (
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "DATABASE_ERROR",
            "A database error occurred",
            True,
            get_safe_error_details(exc) if debug else None,
        )

    if isinstance(exc, RedisConnectionError):
        logger.error(f"Redis connection error: {method} {path}", exc_info=True)
        return (
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "LOCK_BACKEND_ERROR",
            "Lock service temporarily unavailable",
            True,
            None,
        )

    if isinstance(exc, RedisError):
        logger.error(f"Redis error: {method} {path}", exc_info=True)
        return (
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "LOCK_BACKEND_ERROR",
            "A lock service error occurred",
            True,
            get_safe_error_details(exc) if debug else None,
        )

    if isinstance(exc, TimeoutError):
        logger.error(f"Timeout error: {method} {path}")
        return status.HTTP_504_GATEWAY_TIMEOUT, "TIMEOUT", "The request timed out", True, None

    logger.error(
        f"Unhandled exception: {method} {path} - "
        f"{type(exc).__name__}: {sanitize_error_message(str(exc))}",
        exc_info=True,
    )
    return (
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_SERVER_ERROR",
        "An unexpected error occurred",
        False,
        get_safe_error_details(exc) if debug else None,
    )


class ErrorHandlingMiddleware:
    """
    Outermost ASGI guard.

    Catches anything that escapes the routers and exception handlers and
    renders it with the same body shape.
    """

    def __init__(self, app: Callable, debug: bool = False):
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
        path = scope.get("path", "unknown")
        method = scope.get("method", "unknown")
        status_code, code, message, retryable, details = classify_exception(
            exc, path, method, debug=self.debug
        )

        request_id = None
        for name, value in scope.get("headers") or []:
            if name == b"x-request-id":
                request_id = value.decode()
                break

        return error_response(
            status_code, code, message, path, method,
            retryable=retryable, details=details, request_id=request_id,
        )


def setup_error_handlers(app, debug: bool = False):
    """
    Register exception handlers on a FastAPI application.

    Args:
        app: FastAPI application instance
        debug: Whether to include tracebacks in error bodies
    """

    async def _render(request: Request, exc: Exception) -> JSONResponse:
        path = str(request.url.path)
        status_code, code, message, retryable, details = classify_exception(
            exc, path, request.method, debug=debug
        )
        return error_response(
            status_code, code, message, path, request.method,
            retryable=retryable, details=details,
            request_id=request.headers.get("x-request-id"),
        )

    app.add_exception_handler(AssessmentError, _render)
    app.add_exception_handler(StarletteHTTPException, _render)
    app.add_exception_handler(RequestValidationError, _render)
    app.add_exception_handler(SQLAlchemyError, _render)
    app.add_exception_handler(RedisError, _render)
    app.add_exception_handler(Exception, _render)
