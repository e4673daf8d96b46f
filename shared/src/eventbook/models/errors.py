"""Standard error codes and exception taxonomy for the booking pipeline.

Every failure raised by the core is a BookingError subclass carrying an
ErrorCode. The HTTP layer maps codes to status codes (see
eventbook_api.exceptions), so the code attached to each class is part of
the public contract.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class ErrorCode(str, Enum):
    """Standard error codes returned to checkout callers."""

    # Booking error codes (ERR_001-ERR_004)
    VALIDATION_FAILED = "ERR_001"
    NOT_FOUND = "ERR_002"
    DATE_UNAVAILABLE = "ERR_003"
    LOCK_TIMEOUT = "ERR_004"

    # Tenant resolution
    TENANT_REQUIRED = "ERR_AUTH_001"

    # Webhook error codes
    INVALID_WEBHOOK = "ERR_WEBHOOK_001"
    WEBHOOK_PROCESSING_FAILED = "ERR_WEBHOOK_002"

    # Collaborator failures
    PAYMENT_PROVIDER_ERROR = "ERR_STRIPE_001"
    CALENDAR_UNAVAILABLE = "ERR_CALENDAR_001"


# Human-readable default messages
ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.VALIDATION_FAILED: "The request is invalid",
    ErrorCode.NOT_FOUND: "The requested resource was not found",
    ErrorCode.DATE_UNAVAILABLE: "The requested date is already booked",
    ErrorCode.LOCK_TIMEOUT: "The date is being reserved by another request, please retry",
    ErrorCode.TENANT_REQUIRED: "A valid X-Tenant-Key header is required",
    ErrorCode.INVALID_WEBHOOK: "Invalid webhook payload or signature",
    ErrorCode.WEBHOOK_PROCESSING_FAILED: "Webhook processing failed",
    ErrorCode.PAYMENT_PROVIDER_ERROR: "Payment provider error occurred",
    ErrorCode.CALENDAR_UNAVAILABLE: "Calendar provider is unavailable",
}

# Codes where the caller is expected to retry the same request
RETRYABLE_ERROR_CODES: frozenset[ErrorCode] = frozenset(
    {
        ErrorCode.LOCK_TIMEOUT,
        ErrorCode.WEBHOOK_PROCESSING_FAILED,
        ErrorCode.CALENDAR_UNAVAILABLE,
    }
)


class ErrorResponse(BaseModel):
    """Structured error body returned to checkout callers."""

    model_config = ConfigDict(strict=True)

    success: bool = False
    error_code: ErrorCode
    message: str
    details: Optional[dict[str, Any]] = None


class BookingError(Exception):
    """Base exception for all booking pipeline failures."""

    default_code: ErrorCode = ErrorCode.VALIDATION_FAILED

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        code: Optional[ErrorCode] = None,
    ):
        self.code = code or self.default_code
        self.message = message or ERROR_MESSAGES[self.code]
        self.details = details
        super().__init__(self.message)

    @property
    def retryable(self) -> bool:
        """Whether repeating the same request may succeed."""
        return self.code in RETRYABLE_ERROR_CODES

    def to_error_response(self) -> ErrorResponse:
        """Convert this exception to the structured error body."""
        return ErrorResponse(
            error_code=self.code,
            message=self.message,
            details=self.details,
        )


class ValidationError(BookingError):
    """Malformed input (bad date, unknown add-on, invalid transition)."""

    default_code = ErrorCode.VALIDATION_FAILED


class NotFoundError(BookingError):
    """Unknown package or booking."""

    default_code = ErrorCode.NOT_FOUND


class ConflictError(BookingError):
    """The event date is already held by another booking."""

    default_code = ErrorCode.DATE_UNAVAILABLE

    def __init__(self, event_date: str, details: Optional[dict[str, Any]] = None):
        self.event_date = event_date
        super().__init__(
            f"Date {event_date} is already booked",
            details={"event_date": event_date, **(details or {})},
        )


class LockTimeoutError(BookingError):
    """Exclusivity on the date could not be acquired within the bound."""

    default_code = ErrorCode.LOCK_TIMEOUT

    def __init__(self, event_date: str, message: Optional[str] = None):
        self.event_date = event_date
        super().__init__(
            message or f"Could not acquire booking lock for {event_date}",
            details={"event_date": event_date},
        )


class TenantRequiredError(BookingError):
    """The request carried no resolvable tenant key."""

    default_code = ErrorCode.TENANT_REQUIRED


class WebhookValidationError(BookingError):
    """Untrusted or malformed webhook. The sender must not retry."""

    default_code = ErrorCode.INVALID_WEBHOOK


class WebhookProcessingError(BookingError):
    """Business failure while handling a webhook. The sender should retry."""

    default_code = ErrorCode.WEBHOOK_PROCESSING_FAILED


class PaymentProviderError(BookingError):
    """The payment processor rejected or failed a request."""

    default_code = ErrorCode.PAYMENT_PROVIDER_ERROR

    def __init__(self, message: str, stripe_error_code: Optional[str] = None):
        self.stripe_error_code = stripe_error_code
        super().__init__(
            message,
            details={"stripe_error_code": stripe_error_code} if stripe_error_code else None,
        )


class CalendarProviderError(BookingError):
    """The external calendar could not be consulted."""

    default_code = ErrorCode.CALENDAR_UNAVAILABLE
