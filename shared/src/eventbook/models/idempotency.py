"""Idempotency ledger models."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class IdempotencyRecord(BaseModel):
    """A key claimed by a request, with its result once completed."""

    key: str
    result: dict[str, Any] | None = Field(default=None, description="Cached result, set by complete()")
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class IdempotencyBegin(BaseModel):
    """Outcome of claiming a key.

    ``is_new`` is True only for the first caller. Later callers get the
    cached result if the first one already completed, or None while it is
    still in progress.
    """

    is_new: bool
    cached_result: dict[str, Any] | None = None
