"""Pydantic models for the event booking pipeline."""

from .availability import AvailabilityResult
from .booking import Booking, BookingCreate, BookingLineItem, Customer
from .catalog import AddOn, BlackoutDate, Package, Tenant
from .checkout import CheckoutInput, CheckoutResult, CheckoutSession, PaymentCompletion
from .enums import (
    BOOKING_TRANSITIONS,
    BookingStatus,
    UnavailableReason,
    WebhookEventStatus,
)
from .errors import (
    ERROR_MESSAGES,
    BookingError,
    CalendarProviderError,
    ConflictError,
    ErrorCode,
    ErrorResponse,
    LockTimeoutError,
    NotFoundError,
    PaymentProviderError,
    TenantRequiredError,
    ValidationError,
    WebhookProcessingError,
    WebhookValidationError,
)
from .events import BookingConfirmed, BookingStatusChanged, DomainEvent
from .idempotency import IdempotencyBegin, IdempotencyRecord
from .webhook import CheckoutMetadata, WebhookEvent

__all__ = [
    # Enums
    "BOOKING_TRANSITIONS",
    "BookingStatus",
    "UnavailableReason",
    "WebhookEventStatus",
    # Entities
    "AddOn",
    "AvailabilityResult",
    "BlackoutDate",
    "Booking",
    "BookingCreate",
    "BookingLineItem",
    "CheckoutInput",
    "CheckoutMetadata",
    "CheckoutResult",
    "CheckoutSession",
    "Customer",
    "IdempotencyBegin",
    "IdempotencyRecord",
    "PaymentCompletion",
    "Package",
    "Tenant",
    "WebhookEvent",
    # Events
    "BookingConfirmed",
    "BookingStatusChanged",
    "DomainEvent",
    # Errors
    "ERROR_MESSAGES",
    "BookingError",
    "CalendarProviderError",
    "ConflictError",
    "ErrorCode",
    "ErrorResponse",
    "LockTimeoutError",
    "NotFoundError",
    "PaymentProviderError",
    "TenantRequiredError",
    "ValidationError",
    "WebhookProcessingError",
    "WebhookValidationError",
]
