"""Global exception handlers for consistent error responses.

This module provides FastAPI exception handlers that intercept all errors
(domain, request validation and unexpected) and return consistent JSON
responses with proper HTTP status codes and traceability.

Design:
- AppError subclasses → status from ERROR_STATUS_CODES
- RequestValidationError → 400 with a flat list of messages
- Unexpected Exception → generic 500 (safety net)
- All responses include request_id for distributed tracing
- Server-side failure details are hidden unless expose_error_details is on
"""

import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from tiny_faucet.core.config import settings
from tiny_faucet.core.errors import (
    AppError,
    InsufficientFundsError,
    LedgerUnavailableError,
    QuotaStoreUnavailableError,
    RateLimitExceededError,
    TransferRejectedError,
    ValidationAppError,
)
from tiny_faucet.core.logging import get_request_id

logger = logging.getLogger(__name__)

# Ordered: first isinstance match wins
ERROR_STATUS_CODES: tuple[tuple[type[AppError], int], ...] = (
    (ValidationAppError, 400),
    (RateLimitExceededError, 429),
    (TransferRejectedError, 502),
    (InsufficientFundsError, 503),
    (LedgerUnavailableError, 503),
    (QuotaStoreUnavailableError, 503),
)


def status_code_for(exc: AppError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return 500


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    All responses include:
    - error.code: Machine-readable error code
    - error.message: Human-readable message
    - error.request_id: For distributed tracing
    - error.details: Structured context (client errors always, server
      errors only when APP_EXPOSE_ERROR_DETAILS is enabled)

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with appropriate status code and error details.
    """
    status_code = status_code_for(exc)

    log = logger.warning if status_code < 500 else logger.error
    log(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "error_details": exc.details,
            "status_code": status_code,
            "request_path": request.url.path,
            "request_id": get_request_id(),
        },
    )

    error_content = {
        "code": exc.code,
        "message": exc.message,
        "request_id": get_request_id(),
    }

    if exc.details and (status_code < 500 or settings.app.expose_error_details):
        error_content["details"] = exc.details

    headers = getattr(exc, "headers", None) or None

    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error_content},
        headers=headers,
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render body/path validation failures as a 400 with readable messages."""

    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))

    logger.warning(
        "request_validation_failed",
        extra={
            "errors": messages,
            "request_path": request.url.path,
            "request_id": get_request_id(),
        },
    )

    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": {
                "code": "validation_failed",
                "message": "Validation failed",
                "request_id": get_request_id(),
                "details": {"errors": messages},
            },
        },
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs detailed information for debugging while returning a generic message.
    Prevents information leakage (no stack traces to client).
    """
    logger.error(
        "unhandled_exception",
        exc_info=exc,
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
            "request_id": get_request_id(),
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
                "request_id": get_request_id(),
            },
        },
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance.
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(RequestValidationError)(request_validation_handler)
    app.exception_handler(Exception)(general_exception_handler)
