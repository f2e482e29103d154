"""Exception handlers rendering every failure in one JSON error envelope.

Resolver relays only need to parse a single shape::

    {"error": {"code": ..., "message": ..., "request_id": ..., "details": ...}}

Mapping:
- ValidationAppError and malformed rule-match payloads → 400 / 422
- AuthenticationAppError → 403
- NotificationDeliveryError → 502, the upstream push service failed
- anything else → 500 with a generic message
"""

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from dnsnotify.core.errors import (
    AppError,
    AuthenticationAppError,
    NotificationDeliveryError,
)
from dnsnotify.core.logging import get_request_id

logger = logging.getLogger(__name__)


def _status_for(exc: AppError) -> int:
    if isinstance(exc, AuthenticationAppError):
        return 403
    if isinstance(exc, NotificationDeliveryError):
        return 502
    return 400


def _error_response(status_code: int, code: str, message: str, details=None) -> JSONResponse:
    error_content = {
        "code": code,
        "message": message,
        "request_id": get_request_id(),
    }
    if details:
        error_content["details"] = details
    return JSONResponse(status_code=status_code, content={"error": error_content})


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render an AppError raised while handling a request.

    The queried host is added to the log line when the rule-match route had
    already parsed one, and the upstream status when Pushover answered with
    an error.

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with the mapped status and the error envelope.
    """
    status_code = _status_for(exc)

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "request_path": request.url.path,
            "domain": getattr(request.state, "matched_host", None),
            "upstream_status": (exc.details or {}).get("http_status"),
        },
    )

    return _error_response(status_code, exc.code, exc.message, exc.details)


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render a rejected payload (unknown filtering reason, empty host, ...).

    Args:
        request: FastAPI request object.
        exc: Validation error raised by FastAPI before the route ran.

    Returns:
        422 JSONResponse listing the offending fields under ``details``.
    """
    errors = jsonable_encoder(exc.errors())
    fields = [".".join(str(part) for part in error.get("loc", ())) for error in errors]

    logger.warning(
        "request_validation_failed",
        extra={
            "request_path": request.url.path,
            "invalid_fields": fields,
        },
    )

    return _error_response(
        422,
        "invalid_request",
        "Request payload failed validation",
        {"errors": errors},
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback for unexpected errors; internals stay in the logs.

    Args:
        request: FastAPI request object.
        exc: The unhandled exception.

    Returns:
        500 JSONResponse with a generic message.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    return _error_response(
        500,
        "internal_server_error",
        "An unexpected error occurred. Please try again later.",
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register the handlers on the app.

    Args:
        app: FastAPI application instance.
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(RequestValidationError)(request_validation_handler)
    app.exception_handler(Exception)(general_exception_handler)
