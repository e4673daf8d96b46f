"""API request/response models."""

from .availability import AvailabilityResponse, UnavailableDatesResponse
from .bookings import BookingListResponse, BookingResponse, CheckoutRequest, CheckoutResponse
from .common import ValidationErrorDetail, ValidationErrorResponse, format_validation_errors

__all__ = [
    "AvailabilityResponse",
    "BookingListResponse",
    "BookingResponse",
    "CheckoutRequest",
    "CheckoutResponse",
    "UnavailableDatesResponse",
    "ValidationErrorDetail",
    "ValidationErrorResponse",
    "format_validation_errors",
]
