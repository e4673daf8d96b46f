"""Availability answer model."""

from datetime import date

from pydantic import BaseModel, Field

from .enums import UnavailableReason


class AvailabilityResult(BaseModel):
    """Whether a single date can be reserved, and why not if it cannot."""

    date: date
    available: bool
    reason: UnavailableReason | None = Field(
        default=None,
        description="First blocking source in order: blackout, booked, calendar",
    )
