"""Domain events published after state changes commit."""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field


class DomainEvent(BaseModel):
    """Base for events dispatched through the event bus."""

    model_config = ConfigDict(frozen=True)

    occurred_at: datetime


class BookingConfirmed(DomainEvent):
    """A paid booking now holds its date.

    Carries everything a confirmation message needs so subscribers never
    read the store.
    """

    booking_id: str
    tenant_id: str
    email: str
    customer_name: str
    event_date: date
    package_title: str
    add_on_titles: list[str] = Field(default_factory=list)
    total_cents: int


class BookingStatusChanged(DomainEvent):
    """A booking left PAID and released its date."""

    booking_id: str
    tenant_id: str
    event_date: date
    status: str
