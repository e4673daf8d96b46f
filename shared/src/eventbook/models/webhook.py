"""Webhook ledger entry and checkout metadata models."""

import json
from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from .enums import WebhookEventStatus


class WebhookEvent(BaseModel):
    """Ledger entry for a received payment event.

    Used for:
    - Idempotency: an event ID is processed at most once to PROCESSED
    - Auditing: entries are never deleted
    - Debugging: the raw payload and last failure are kept
    """

    tenant_id: str = Field(..., description="Tenant from event metadata, or 'unknown'")
    event_id: str = Field(
        ...,
        description="Stripe event ID (evt_xxx)",
        examples=["evt_1ABC123DEF456"],
    )
    event_type: str = Field(
        ...,
        description="Stripe event type",
        examples=["checkout.session.completed"],
    )
    raw_payload: str = Field(..., description="Verified request body as received")
    payload_hash: str = Field(..., description="SHA-256 of the raw payload")
    status: WebhookEventStatus = WebhookEventStatus.RECEIVED
    attempts: int = Field(default=1, ge=1, description="Processing attempts so far")
    received_at: datetime
    updated_at: datetime
    last_error: str | None = Field(default=None, description="Failure detail if FAILED")
    booking_id: str | None = Field(default=None, description="Booking created by this event")


class CheckoutMetadata(BaseModel):
    """Booking details carried through a Stripe Checkout Session.

    Stripe metadata values are strings, so the add-on list travels as a JSON
    encoded array.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    tenant_id: str = Field(..., alias="tenantId", min_length=1)
    package_id: str = Field(..., alias="packageId", min_length=1)
    event_date: str = Field(..., alias="eventDate", min_length=10)
    email: EmailStr
    customer_name: str = Field(..., alias="customerName", min_length=1)
    phone: str | None = None
    add_on_ids: list[str] = Field(default_factory=list, alias="addOnIds")

    @field_validator("add_on_ids", mode="before")
    @classmethod
    def parse_add_on_ids(cls, value: object) -> object:
        if isinstance(value, str):
            try:
                parsed = json.loads(value) if value else []
            except json.JSONDecodeError as e:
                raise ValueError("addOnIds must be a JSON encoded array") from e
            if not isinstance(parsed, list) or not all(isinstance(i, str) for i in parsed):
                raise ValueError("addOnIds must be a JSON array of strings")
            return parsed
        return value

    def to_stripe_metadata(self) -> dict[str, str]:
        """Serialize to the flat string map Stripe accepts."""
        metadata = {
            "tenantId": self.tenant_id,
            "packageId": self.package_id,
            "eventDate": self.event_date,
            "email": str(self.email),
            "customerName": self.customer_name,
            "addOnIds": json.dumps(self.add_on_ids),
        }
        if self.phone:
            metadata["phone"] = self.phone
        return metadata
