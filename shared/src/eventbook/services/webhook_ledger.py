"""Payment event ledger used to deduplicate webhook deliveries.

Entries move RECEIVED -> PROCESSED | FAILED and are never deleted. A FAILED
or abandoned RECEIVED entry can be claimed again for a retry, which bumps
its attempt counter; the counter doubles as an optimistic version so two
workers cannot both claim the same retry.
"""

import logging
import threading
from collections.abc import Callable
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from eventbook.models.enums import WebhookEventStatus
from eventbook.models.webhook import WebhookEvent
from eventbook.ports import WebhookEventRepository

from .dynamodb import from_dynamo_number

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService

logger = logging.getLogger(__name__)

# Failure details are truncated before storage
MAX_ERROR_LENGTH = 1000


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryWebhookEventRepository(WebhookEventRepository):
    """Ledger held in a dictionary. One instance per test."""

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._events: dict[tuple[str, str], WebhookEvent] = {}

    def get(self, tenant_id: str, event_id: str) -> WebhookEvent | None:
        return self._events.get((tenant_id, event_id))

    def all(self) -> list[WebhookEvent]:
        """Every recorded entry, for assertions."""
        return list(self._events.values())

    def record_received(self, event: WebhookEvent) -> bool:
        with self._lock:
            key = (event.tenant_id, event.event_id)
            if key in self._events:
                return False
            self._events[key] = event
            return True

    def claim_for_retry(
        self, tenant_id: str, event_id: str, expected_attempts: int, now: datetime
    ) -> WebhookEvent | None:
        with self._lock:
            current = self._events.get((tenant_id, event_id))
            if current is None or current.attempts != expected_attempts:
                return None
            if current.status == WebhookEventStatus.PROCESSED:
                return None
            claimed = current.model_copy(
                update={
                    "status": WebhookEventStatus.RECEIVED,
                    "attempts": current.attempts + 1,
                    "updated_at": now,
                }
            )
            self._events[(tenant_id, event_id)] = claimed
            return claimed

    def mark_processed(self, tenant_id: str, event_id: str, booking_id: str | None = None) -> None:
        self._update(
            tenant_id,
            event_id,
            status=WebhookEventStatus.PROCESSED,
            booking_id=booking_id,
        )

    def mark_failed(self, tenant_id: str, event_id: str, error: str) -> None:
        self._update(
            tenant_id,
            event_id,
            status=WebhookEventStatus.FAILED,
            last_error=error[:MAX_ERROR_LENGTH],
        )

    def _update(self, tenant_id: str, event_id: str, **changes: Any) -> None:
        with self._lock:
            current = self._events[(tenant_id, event_id)]
            self._events[(tenant_id, event_id)] = current.model_copy(
                update={**changes, "updated_at": self._clock()}
            )


class DynamoDBWebhookEventRepository(WebhookEventRepository):
    """Ledger in the webhook-events table (PK tenant_id, SK event_id)."""

    TABLE = "webhook-events"

    def __init__(self, db: "DynamoDBService", clock: Callable[[], datetime] = _utcnow) -> None:
        """Initialize ledger.

        Args:
            db: DynamoDB service instance
            clock: Source of timestamps
        """
        self.db = db
        self._clock = clock

    def get(self, tenant_id: str, event_id: str) -> WebhookEvent | None:
        item = self.db.get_item(self.TABLE, {"tenant_id": tenant_id, "event_id": event_id})
        if not item:
            return None
        return WebhookEvent.model_validate({k: from_dynamo_number(v) for k, v in item.items()})

    def record_received(self, event: WebhookEvent) -> bool:
        """Insert a RECEIVED entry unless the event ID is already known.

        Args:
            event: Entry to insert

        Returns:
            True if inserted, False if another delivery recorded it first
        """
        item = event.model_dump(mode="json", exclude_none=True)
        inserted = self.db.put_item(
            self.TABLE,
            item,
            condition_expression="attribute_not_exists(event_id)",
        )
        if not inserted:
            logger.warning("Webhook %s already recorded (race condition)", event.event_id)
        return inserted

    def claim_for_retry(
        self, tenant_id: str, event_id: str, expected_attempts: int, now: datetime
    ) -> WebhookEvent | None:
        attrs = self.db.update_item(
            self.TABLE,
            {"tenant_id": tenant_id, "event_id": event_id},
            update_expression="SET #status = :received, attempts = :next, updated_at = :now",
            expression_attribute_values={
                ":received": WebhookEventStatus.RECEIVED.value,
                ":processed": WebhookEventStatus.PROCESSED.value,
                ":expected": expected_attempts,
                ":next": expected_attempts + 1,
                ":now": now.isoformat(),
            },
            expression_attribute_names={"#status": "status"},
            condition_expression="attempts = :expected AND #status <> :processed",
        )
        if attrs is None:
            return None
        return WebhookEvent.model_validate({k: from_dynamo_number(v) for k, v in attrs.items()})

    def mark_processed(self, tenant_id: str, event_id: str, booking_id: str | None = None) -> None:
        values: dict[str, Any] = {
            ":status": WebhookEventStatus.PROCESSED.value,
            ":now": self._clock().isoformat(),
        }
        update = "SET #status = :status, updated_at = :now"
        if booking_id:
            update += ", booking_id = :booking_id"
            values[":booking_id"] = booking_id

        self.db.update_item(
            self.TABLE,
            {"tenant_id": tenant_id, "event_id": event_id},
            update_expression=update,
            expression_attribute_values=values,
            expression_attribute_names={"#status": "status"},
        )
        logger.info("Webhook %s marked as processed", event_id)

    def mark_failed(self, tenant_id: str, event_id: str, error: str) -> None:
        self.db.update_item(
            self.TABLE,
            {"tenant_id": tenant_id, "event_id": event_id},
            update_expression="SET #status = :status, last_error = :error, updated_at = :now",
            expression_attribute_values={
                ":status": WebhookEventStatus.FAILED.value,
                ":error": error[:MAX_ERROR_LENGTH],
                ":now": self._clock().isoformat(),
            },
            expression_attribute_names={"#status": "status"},
        )
        logger.error("Webhook %s marked as failed: %s", event_id, error)
