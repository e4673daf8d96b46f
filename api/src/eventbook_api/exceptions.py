"""FastAPI exception handlers for converting BookingError to HTTP responses.

This module provides exception handlers that convert domain errors (BookingError)
to HTTP responses with the ErrorResponse JSON structure.

The ErrorCode-to-HTTP status mapping follows REST conventions:
- 400 Bad Request: Domain validation failures
- 401 Unauthorized: Missing or unknown tenant key
- 404 Not Found: Unknown package or booking
- 409 Conflict: Date already booked, or date locked (retry with Retry-After)
- 422 Unprocessable Entity: Request body validation
- 502 Bad Gateway: Payment provider failure
- 503 Service Unavailable: Calendar provider failure (retry with Retry-After)

The webhook endpoint does not use these handlers; it maps outcomes to bare
status codes itself.

Usage:
    Register handlers in FastAPI app:

    from eventbook_api.exceptions import register_exception_handlers
    register_exception_handlers(app)
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_401_UNAUTHORIZED,
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
    HTTP_422_UNPROCESSABLE_ENTITY,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_502_BAD_GATEWAY,
    HTTP_503_SERVICE_UNAVAILABLE,
)

from eventbook.models.errors import BookingError, ErrorCode
from eventbook_api.models.common import format_validation_errors

logger = logging.getLogger(__name__)

# Map ErrorCode to HTTP status codes
ERROR_CODE_TO_HTTP_STATUS: dict[ErrorCode, int] = {
    ErrorCode.VALIDATION_FAILED: HTTP_400_BAD_REQUEST,
    ErrorCode.NOT_FOUND: HTTP_404_NOT_FOUND,
    ErrorCode.DATE_UNAVAILABLE: HTTP_409_CONFLICT,
    ErrorCode.LOCK_TIMEOUT: HTTP_409_CONFLICT,
    ErrorCode.TENANT_REQUIRED: HTTP_401_UNAUTHORIZED,
    ErrorCode.INVALID_WEBHOOK: HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.WEBHOOK_PROCESSING_FAILED: HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.PAYMENT_PROVIDER_ERROR: HTTP_502_BAD_GATEWAY,
    ErrorCode.CALENDAR_UNAVAILABLE: HTTP_503_SERVICE_UNAVAILABLE,
}

# Seconds a client should wait before retrying a retryable error
RETRY_AFTER_SECONDS = 1


def get_http_status_for_error(code: ErrorCode) -> int:
    """Get HTTP status code for an ErrorCode.

    Args:
        code: The ErrorCode to map

    Returns:
        HTTP status code, defaults to 400 if not explicitly mapped.
    """
    return ERROR_CODE_TO_HTTP_STATUS.get(code, HTTP_400_BAD_REQUEST)


async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    """Handle BookingError exceptions and convert to JSON response.

    Args:
        request: The incoming request (unused but required by FastAPI)
        exc: The BookingError exception

    Returns:
        JSONResponse with error details and appropriate status code.
    """
    status_code = get_http_status_for_error(exc.code)
    headers = None
    if exc.retryable:
        headers = {"Retry-After": str(RETRY_AFTER_SECONDS)}

    if status_code >= HTTP_500_INTERNAL_SERVER_ERROR:
        logger.warning("%s on %s: %s", exc.code.value, request.url.path, exc.message)

    return JSONResponse(
        status_code=status_code,
        content=exc.to_error_response().model_dump(mode="json"),
        headers=headers,
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request body/query validation with the structured 422 body."""
    return JSONResponse(
        status_code=HTTP_422_UNPROCESSABLE_ENTITY,
        content=format_validation_errors(list(exc.errors())).model_dump(mode="json"),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions with a generic error response.

    Args:
        request: The incoming request (unused but required by FastAPI)
        exc: The uncaught exception

    Returns:
        JSONResponse with 500 status and generic error message.
    """
    logger.exception("Unhandled exception: %s", exc)

    # Internal details never reach the client
    error_response = {
        "success": False,
        "error_code": "ERR_INTERNAL",
        "message": "An unexpected error occurred",
        "details": None,
    }

    return JSONResponse(
        status_code=HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_response,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app.

    Args:
        app: The FastAPI application instance.
    """
    app.add_exception_handler(BookingError, booking_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, request_validation_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, generic_exception_handler)
