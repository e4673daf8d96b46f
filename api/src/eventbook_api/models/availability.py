"""API models for availability endpoints."""

import datetime as dt

from pydantic import Field

from eventbook.models.enums import UnavailableReason

from .common import ApiModel


class AvailabilityResponse(ApiModel):
    """Single date answer; reason is omitted when the date is available."""

    date: dt.date = Field(..., examples=["2025-06-15"])
    available: bool
    reason: UnavailableReason | None = Field(default=None, examples=["booked"])


class UnavailableDatesResponse(ApiModel):
    """Booked or blacked-out dates in a range, ascending."""

    dates: list[dt.date] = Field(default_factory=list, examples=[["2025-06-15", "2025-06-20"]])
