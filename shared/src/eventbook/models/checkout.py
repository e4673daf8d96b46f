"""Checkout initiation models."""

from datetime import date

from pydantic import BaseModel, EmailStr, Field


class CheckoutInput(BaseModel):
    """What a customer submits to start paying for a date."""

    package_id: str = Field(..., min_length=1)
    event_date: date
    customer_name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    phone: str | None = Field(default=None, max_length=40)
    add_on_ids: list[str] = Field(default_factory=list)


class CheckoutSession(BaseModel):
    """Payment processor session created for a checkout."""

    session_id: str
    checkout_url: str


class CheckoutResult(BaseModel):
    """Checkout answer returned to the caller."""

    checkout_url: str


class PaymentCompletion(BaseModel):
    """A captured payment as reported by the processor's webhook."""

    session_id: str = Field(..., min_length=1, description="Checkout Session ID (cs_xxx)")
    package_id: str
    event_date: str = Field(..., description="Date as written in metadata, any ISO form")
    email: EmailStr
    customer_name: str
    phone: str | None = None
    add_on_ids: list[str] = Field(default_factory=list)
    amount_total_cents: int | None = Field(default=None, ge=0)
