"""API models for checkout and booking endpoints."""

import datetime as dt

from pydantic import EmailStr, Field

from eventbook.models.booking import Booking
from eventbook.models.checkout import CheckoutInput
from eventbook.models.enums import BookingStatus

from .common import ApiModel


class CheckoutRequest(ApiModel):
    """Body of POST /bookings/checkout."""

    package_id: str = Field(..., min_length=1, examples=["pkg_wedding_full"])
    event_date: dt.date = Field(..., description="Date to reserve (YYYY-MM-DD)", examples=["2025-06-15"])
    customer_name: str = Field(..., min_length=1, max_length=200, examples=["Ana García"])
    email: EmailStr = Field(..., examples=["ana@example.com"])
    phone: str | None = Field(default=None, max_length=40)
    add_on_ids: list[str] = Field(default_factory=list, examples=[["addon_dj"]])

    def to_input(self) -> CheckoutInput:
        return CheckoutInput(
            package_id=self.package_id,
            event_date=self.event_date,
            customer_name=self.customer_name,
            email=self.email,
            phone=self.phone,
            add_on_ids=self.add_on_ids,
        )


class CheckoutResponse(ApiModel):
    """Payment redirect for a created checkout."""

    checkout_url: str = Field(..., examples=["https://checkout.stripe.com/c/pay/cs_test_123"])


class BookingResponse(ApiModel):
    """Booking as returned to the tenant."""

    booking_id: str
    package_id: str
    customer_name: str
    email: str
    phone: str | None = None
    event_date: dt.date
    add_on_ids: list[str] = Field(default_factory=list)
    total_cents: int
    amount_paid_cents: int | None = None
    status: BookingStatus
    created_at: dt.datetime

    @classmethod
    def from_booking(cls, booking: Booking) -> "BookingResponse":
        return cls(
            booking_id=booking.booking_id,
            package_id=booking.package_id,
            customer_name=booking.customer_name,
            email=booking.email,
            phone=booking.phone,
            event_date=booking.event_date,
            add_on_ids=booking.add_on_ids,
            total_cents=booking.total_cents,
            amount_paid_cents=booking.amount_paid_cents,
            status=booking.status,
            created_at=booking.created_at,
        )


class BookingListResponse(ApiModel):
    bookings: list[BookingResponse]
