"""Idempotency ledger for client-retried requests.

A key is claimed with ``begin``. The first caller gets ``is_new=True`` and
performs the work, then stores its result with ``complete``. Repeats with the
same key get the stored result back and must not repeat side effects.
Entries expire after a bounded window; expired entries read as absent.
"""

import hashlib
import json
import logging
import threading
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

from boto3.dynamodb.conditions import Attr

from eventbook.models.idempotency import IdempotencyBegin, IdempotencyRecord
from eventbook.ports import IdempotencyLedger

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService

logger = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(hours=24)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_key(prefix: str, *parts: str) -> str:
    """Derive a fixed-length ledger key from its parts.

    Args:
        prefix: Namespace such as "checkout"
        *parts: Values identifying the request (tenant, client key, ...)

    Returns:
        ``{prefix}_`` followed by the first 32 hex chars of SHA-256 of the parts

    Example:
        >>> generate_key("checkout", "tn_1", "client-key-1")  # doctest: +SKIP
        'checkout_5d41402abc4b2a76b9719d911017c592'
    """
    digest = hashlib.sha256(":".join(parts).encode("utf-8")).hexdigest()
    return f"{prefix}_{digest[:32]}"


class InMemoryIdempotencyLedger(IdempotencyLedger):
    """Ledger held in a dictionary. One instance per test."""

    def __init__(
        self,
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._ttl = ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._records: dict[str, IdempotencyRecord] = {}

    def begin(self, key: str) -> IdempotencyBegin:
        now = self._clock()
        with self._lock:
            record = self._records.get(key)
            if record is not None and not record.is_expired(now):
                return IdempotencyBegin(is_new=False, cached_result=record.result)
            self._records[key] = IdempotencyRecord(
                key=key, created_at=now, expires_at=now + self._ttl
            )
            return IdempotencyBegin(is_new=True)

    def complete(self, key: str, result: dict[str, Any]) -> None:
        with self._lock:
            record = self._records.get(key)
            if record is None:
                now = self._clock()
                record = IdempotencyRecord(key=key, created_at=now, expires_at=now + self._ttl)
            self._records[key] = record.model_copy(update={"result": result})

    def release(self, key: str) -> None:
        with self._lock:
            record = self._records.get(key)
            if record is not None and record.result is None:
                del self._records[key]

    def prune_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [k for k, r in self._records.items() if r.is_expired(now)]
            for k in expired:
                del self._records[k]
        return len(expired)


class DynamoDBIdempotencyLedger(IdempotencyLedger):
    """Ledger in the idempotency-keys table (PK key, TTL expires_at)."""

    TABLE = "idempotency-keys"

    def __init__(
        self,
        db: "DynamoDBService",
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize ledger.

        Args:
            db: DynamoDB service instance
            ttl: How long a key is honoured
            clock: Source of timestamps
        """
        self.db = db
        self.ttl = ttl
        self._clock = clock

    def begin(self, key: str) -> IdempotencyBegin:
        """Claim a key, taking over an expired entry if one is present.

        Args:
            key: Ledger key from generate_key()

        Returns:
            is_new=True for the first caller, otherwise the cached result
            (None while the first caller is still working)
        """
        now = self._clock()
        claimed = self.db.put_item(
            self.TABLE,
            {
                "key": key,
                "created_at": now.isoformat(),
                "expires_at": int((now + self.ttl).timestamp()),
            },
            condition_expression="attribute_not_exists(#k) OR expires_at < :now",
            expression_attribute_values={":now": int(now.timestamp())},
            expression_attribute_names={"#k": "key"},
        )
        if claimed:
            return IdempotencyBegin(is_new=True)

        item = self.db.get_item(self.TABLE, {"key": key})
        cached = item.get("cached_result") if item else None
        logger.info("Idempotency key %s already claimed (completed=%s)", key, cached is not None)
        return IdempotencyBegin(
            is_new=False,
            cached_result=json.loads(cached) if cached else None,
        )

    def complete(self, key: str, result: dict[str, Any]) -> None:
        self.db.update_item(
            self.TABLE,
            {"key": key},
            update_expression="SET cached_result = :result, completed_at = :now",
            expression_attribute_values={
                ":result": json.dumps(result),
                ":now": self._clock().isoformat(),
            },
        )

    def release(self, key: str) -> None:
        self.db.delete_item(
            self.TABLE,
            {"key": key},
            condition_expression="attribute_not_exists(cached_result)",
        )

    def prune_expired(self) -> int:
        """Delete expired entries ahead of DynamoDB TTL sweeping.

        Returns:
            Number of entries deleted
        """
        now = int(self._clock().timestamp())
        items = self.db.scan(self.TABLE, filter_expression=Attr("expires_at").lt(now))
        for item in items:
            self.db.delete_item(self.TABLE, {"key": item["key"]})
        if items:
            logger.info("Pruned %d expired idempotency keys", len(items))
        return len(items)
