"""Enumerations shared by the booking models."""

from enum import Enum


class BookingStatus(str, Enum):
    """Lifecycle of a booking. Only PAID holds its event date."""

    PAID = "PAID"
    REFUNDED = "REFUNDED"
    CANCELED = "CANCELED"


class WebhookEventStatus(str, Enum):
    """Processing state of a recorded payment event."""

    RECEIVED = "RECEIVED"
    PROCESSED = "PROCESSED"
    FAILED = "FAILED"


class UnavailableReason(str, Enum):
    """Why a date cannot be reserved, in order of precedence."""

    BLACKOUT = "blackout"
    BOOKED = "booked"
    CALENDAR = "calendar"


# Allowed booking status transitions
BOOKING_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PAID: frozenset({BookingStatus.REFUNDED, BookingStatus.CANCELED}),
    BookingStatus.REFUNDED: frozenset(),
    BookingStatus.CANCELED: frozenset(),
}
