"""Administrator blackout dates (read-only to the booking pipeline)."""

from datetime import date
from typing import TYPE_CHECKING

from boto3.dynamodb.conditions import Key

from eventbook.models.catalog import BlackoutDate
from eventbook.ports import BlackoutRepository

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService


class InMemoryBlackoutRepository(BlackoutRepository):
    """Blackouts held in a dictionary. One instance per test."""

    def __init__(self, blackouts: list[BlackoutDate] | None = None) -> None:
        self._blackouts: dict[tuple[str, date], BlackoutDate] = {}
        for blackout in blackouts or []:
            self.add(blackout)

    def add(self, blackout: BlackoutDate) -> None:
        self._blackouts[(blackout.tenant_id, blackout.date)] = blackout

    def is_blackout(self, tenant_id: str, day: date) -> bool:
        return (tenant_id, day) in self._blackouts

    def list_in_range(self, tenant_id: str, start: date, end: date) -> list[BlackoutDate]:
        return sorted(
            (b for (t, d), b in self._blackouts.items() if t == tenant_id and start <= d <= end),
            key=lambda b: b.date,
        )


class DynamoDBBlackoutRepository(BlackoutRepository):
    """Blackouts stored with PK tenant_id and SK date (YYYY-MM-DD)."""

    TABLE = "blackouts"

    def __init__(self, db: "DynamoDBService") -> None:
        self.db = db

    def is_blackout(self, tenant_id: str, day: date) -> bool:
        item = self.db.get_item(self.TABLE, {"tenant_id": tenant_id, "date": day.isoformat()})
        return item is not None

    def list_in_range(self, tenant_id: str, start: date, end: date) -> list[BlackoutDate]:
        items = self.db.query(
            self.TABLE,
            Key("tenant_id").eq(tenant_id)
            & Key("date").between(start.isoformat(), end.isoformat()),
        )
        return [
            BlackoutDate(
                tenant_id=item["tenant_id"],
                date=date.fromisoformat(item["date"]),
                reason=item.get("reason"),
            )
            for item in items
        ]
