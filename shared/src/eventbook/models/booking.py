"""Booking and customer models."""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from .enums import BookingStatus


class BookingLineItem(BaseModel):
    """An add-on priced at the moment the booking was written."""

    add_on_id: str = Field(..., description="Add-on ID from the catalog")
    title: str = Field(default="", description="Add-on title at booking time")
    unit_price_cents: int = Field(..., ge=0, description="Catalog price in minor units")
    quantity: int = Field(default=1, ge=1)

    @property
    def total_cents(self) -> int:
        return self.unit_price_cents * self.quantity


class BookingCreate(BaseModel):
    """Data required to reserve a date.

    Amounts are not part of the input: the store prices the package and each
    add-on against the current catalog.
    """

    booking_id: str = Field(..., description="Deterministic booking ID (bk_xxx)")
    package_id: str = Field(..., min_length=1)
    customer_name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    phone: str | None = Field(default=None, max_length=40)
    event_date: date = Field(..., description="Calendar date being reserved")
    add_on_ids: list[str] = Field(default_factory=list)
    checkout_session_id: str | None = Field(
        default=None,
        description="Stripe Checkout Session ID (cs_xxx) that paid for this booking",
        examples=["cs_test_abc123def456"],
    )
    amount_paid_cents: int | None = Field(
        default=None,
        ge=0,
        description="Amount the payment processor reports as captured",
    )


class Booking(BaseModel):
    """A confirmed booking holding one event date for one tenant.

    Never deleted; only the status moves (PAID to REFUNDED or CANCELED).
    """

    model_config = ConfigDict(frozen=True)

    booking_id: str = Field(..., description="Unique booking ID", examples=["bk_3f9a0c..."])
    tenant_id: str = Field(..., description="Owning tenant")
    package_id: str
    customer_id: str = Field(..., description="Customer record resolved by tenant+email")
    customer_name: str
    email: str
    phone: str | None = None
    event_date: date
    add_on_ids: list[str] = Field(default_factory=list)
    line_items: list[BookingLineItem] = Field(default_factory=list)
    package_price_cents: int = Field(..., ge=0)
    total_cents: int = Field(..., ge=0, description="Package plus add-ons, minor units")
    amount_paid_cents: int | None = Field(default=None, ge=0)
    status: BookingStatus = Field(default=BookingStatus.PAID)
    checkout_session_id: str | None = None
    created_at: datetime
    updated_at: datetime | None = None

    @property
    def holds_date(self) -> bool:
        """Whether this booking occupies its event date."""
        return self.status == BookingStatus.PAID


class Customer(BaseModel):
    """Contact record, unique per tenant and email."""

    customer_id: str
    tenant_id: str
    email: str
    name: str
    phone: str | None = None
    created_at: datetime
    updated_at: datetime
