"""Booking persistence with one-PAID-booking-per-date enforcement.

Both implementations reserve a date the same way:

1. Take a non-blocking lock on (tenant, date); contention fails fast with
   LockTimeoutError instead of queueing.
2. Under the lock, re-check that no PAID booking holds the date.
3. Upsert the customer record by tenant + email.
4. Price the package and each add-on against the current catalog.
5. Write the booking together with a per-date claim. The claim is a unique
   constraint of its own, so a writer that skipped the lock still gets a
   ConflictError instead of a second booking.
"""

import hashlib
import logging
import threading
import time
import uuid
from collections.abc import Callable
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Any

from boto3.dynamodb.conditions import Attr, Key

from eventbook.models.booking import Booking, BookingCreate, BookingLineItem, Customer
from eventbook.models.catalog import Package
from eventbook.models.enums import BOOKING_TRANSITIONS, BookingStatus
from eventbook.models.errors import (
    ConflictError,
    LockTimeoutError,
    NotFoundError,
    ValidationError,
)
from eventbook.ports import BookingStore, CatalogProvider
from eventbook.utils.logging import log_booking_operation

from .dynamodb import TransactionCancelledError, from_dynamo_number

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService

logger = logging.getLogger(__name__)

DEFAULT_TRANSACTION_TIMEOUT_SECONDS = 5.0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def customer_id_for(tenant_id: str, email: str) -> str:
    """Stable customer ID for a tenant and (case-insensitive) email."""
    digest = hashlib.sha256(f"{tenant_id}:{email.lower()}".encode()).hexdigest()
    return f"cus_{digest[:20]}"


def price_booking(
    catalog: CatalogProvider,
    tenant_id: str,
    booking: BookingCreate,
) -> tuple[Package, list[BookingLineItem], int]:
    """Price a booking against the current catalog.

    Add-ons missing from the catalog are kept as zero-priced line items so the
    customer's selection is still recorded.

    Args:
        catalog: Catalog provider
        tenant_id: Owning tenant
        booking: Booking being written

    Returns:
        Tuple of (package, line items, total in minor units)

    Raises:
        NotFoundError: If the package no longer exists
    """
    package = catalog.get_package(tenant_id, booking.package_id)
    if package is None:
        raise NotFoundError(
            f"Package {booking.package_id} not found",
            details={"package_id": booking.package_id},
        )

    priced = {a.add_on_id: a for a in catalog.get_add_ons(tenant_id, booking.add_on_ids)}
    line_items: list[BookingLineItem] = []
    for add_on_id in booking.add_on_ids:
        add_on = priced.get(add_on_id)
        if add_on is None:
            logger.warning(
                "Add-on %s not in catalog for tenant %s, recording at price 0",
                add_on_id,
                tenant_id,
            )
        line_items.append(
            BookingLineItem(
                add_on_id=add_on_id,
                title=add_on.title if add_on else "",
                unit_price_cents=add_on.price_cents if add_on else 0,
            )
        )

    total = package.price_cents + sum(item.total_cents for item in line_items)
    return package, line_items, total


def _check_transition(booking: Booking, status: BookingStatus) -> None:
    if status not in BOOKING_TRANSITIONS[booking.status]:
        raise ValidationError(
            f"Cannot change booking {booking.booking_id} from {booking.status.value} to {status.value}",
            details={"booking_id": booking.booking_id, "status": booking.status.value},
        )


class InMemoryBookingStore(BookingStore):
    """Thread-safe booking store for tests.

    Each instance owns its own state. A (tenant, date) is held only while a
    create() for it is running, so the set of held dates stays bounded by
    the number of concurrent writers. The claims map plays the role of the
    database unique constraint.
    """

    def __init__(
        self,
        catalog: CatalogProvider,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._catalog = catalog
        self._clock = clock
        self._guard = threading.Lock()
        self._held_dates: set[tuple[str, date]] = set()
        self._bookings: dict[tuple[str, str], Booking] = {}
        self._claims: dict[tuple[str, date], str] = {}
        self._customers: dict[tuple[str, str], Customer] = {}

    def _hold_date(self, tenant_id: str, event_date: date) -> bool:
        """Mark the date as being reserved; False if another writer has it."""
        with self._guard:
            if (tenant_id, event_date) in self._held_dates:
                return False
            self._held_dates.add((tenant_id, event_date))
            return True

    def _release_date(self, tenant_id: str, event_date: date) -> None:
        with self._guard:
            self._held_dates.discard((tenant_id, event_date))

    def _upsert_customer(self, tenant_id: str, booking: BookingCreate) -> Customer:
        email = str(booking.email).lower()
        now = self._clock()
        with self._guard:
            existing = self._customers.get((tenant_id, email))
            customer = Customer(
                customer_id=existing.customer_id if existing else customer_id_for(tenant_id, email),
                tenant_id=tenant_id,
                email=email,
                name=booking.customer_name,
                phone=booking.phone,
                created_at=existing.created_at if existing else now,
                updated_at=now,
            )
            self._customers[(tenant_id, email)] = customer
            return customer

    def create(self, tenant_id: str, booking: BookingCreate) -> Booking:
        day = booking.event_date
        if not self._hold_date(tenant_id, day):
            log_booking_operation(
                logger, "create_booking", tenant_id=tenant_id,
                event_date=day.isoformat(), result="lock_timeout",
            )
            raise LockTimeoutError(day.isoformat())

        try:
            if (tenant_id, day) in self._claims:
                raise ConflictError(day.isoformat())

            customer = self._upsert_customer(tenant_id, booking)
            package, line_items, total = price_booking(self._catalog, tenant_id, booking)

            record = Booking(
                booking_id=booking.booking_id,
                tenant_id=tenant_id,
                package_id=package.package_id,
                customer_id=customer.customer_id,
                customer_name=booking.customer_name,
                email=customer.email,
                phone=booking.phone,
                event_date=day,
                add_on_ids=list(booking.add_on_ids),
                line_items=line_items,
                package_price_cents=package.price_cents,
                total_cents=total,
                amount_paid_cents=booking.amount_paid_cents,
                status=BookingStatus.PAID,
                checkout_session_id=booking.checkout_session_id,
                created_at=self._clock(),
            )
            self._insert(record)
        finally:
            self._release_date(tenant_id, day)

        log_booking_operation(
            logger, "create_booking", tenant_id=tenant_id, event_date=day.isoformat(),
            booking_id=record.booking_id, amount_cents=record.total_cents, result="success",
        )
        return record

    def _insert(self, record: Booking) -> None:
        """Commit a booking and its date claim atomically."""
        claim = (record.tenant_id, record.event_date)
        with self._guard:
            if claim in self._claims or (record.tenant_id, record.booking_id) in self._bookings:
                raise ConflictError(record.event_date.isoformat())
            self._claims[claim] = record.booking_id
            self._bookings[(record.tenant_id, record.booking_id)] = record

    def find_by_id(self, tenant_id: str, booking_id: str) -> Booking | None:
        return self._bookings.get((tenant_id, booking_id))

    def find_all(self, tenant_id: str) -> list[Booking]:
        with self._guard:
            bookings = [b for (t, _), b in self._bookings.items() if t == tenant_id]
        return sorted(bookings, key=lambda b: b.created_at, reverse=True)

    def is_date_booked(self, tenant_id: str, event_date: date) -> bool:
        return (tenant_id, event_date) in self._claims

    def get_unavailable_dates(self, tenant_id: str, start: date, end: date) -> list[date]:
        with self._guard:
            return sorted(d for (t, d) in self._claims if t == tenant_id and start <= d <= end)

    def update_status(self, tenant_id: str, booking_id: str, status: BookingStatus) -> Booking:
        with self._guard:
            booking = self._bookings.get((tenant_id, booking_id))
            if booking is None:
                raise NotFoundError(
                    f"Booking {booking_id} not found", details={"booking_id": booking_id}
                )
            _check_transition(booking, status)

            updated = booking.model_copy(update={"status": status, "updated_at": self._clock()})
            self._bookings[(tenant_id, booking_id)] = updated
            if self._claims.get((tenant_id, booking.event_date)) == booking_id:
                del self._claims[(tenant_id, booking.event_date)]

        log_booking_operation(
            logger, "update_booking_status", tenant_id=tenant_id,
            event_date=booking.event_date.isoformat(), booking_id=booking_id,
            result="success", status=status.value,
        )
        return updated


class DynamoDBBookingStore(BookingStore):
    """Booking store backed by DynamoDB.

    Tables:
        bookings     PK tenant_id, SK booking_id, GSI event_date-index
        date-claims  PK claim_key ("tenant#date"), one item per held date
        date-locks   PK lock_key, short-lived exclusivity lease
        customers    PK tenant_id, SK email
    """

    BOOKINGS_TABLE = "bookings"
    CLAIMS_TABLE = "date-claims"
    LOCKS_TABLE = "date-locks"
    CUSTOMERS_TABLE = "customers"
    EVENT_DATE_INDEX = "event_date-index"

    def __init__(
        self,
        db: "DynamoDBService",
        catalog: CatalogProvider,
        transaction_timeout: float = DEFAULT_TRANSACTION_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize booking store.

        Args:
            db: DynamoDB service instance
            catalog: Catalog used to price bookings
            transaction_timeout: Wall-clock bound for one create() in seconds
            clock: Source of timestamps
        """
        self.db = db
        self.catalog = catalog
        self.transaction_timeout = transaction_timeout
        self._clock = clock

    @staticmethod
    def claim_key(tenant_id: str, event_date: date) -> str:
        return f"{tenant_id}#{event_date.isoformat()}"

    # Locking

    def _acquire_lock(self, tenant_id: str, event_date: date) -> str:
        """Take the (tenant, date) lease or fail immediately.

        An expired lease left by a crashed writer can be taken over.

        Returns:
            The lease token needed to release it

        Raises:
            LockTimeoutError: If another writer holds a live lease
        """
        token = uuid.uuid4().hex
        now = int(self._clock().timestamp())
        acquired = self.db.put_item(
            self.LOCKS_TABLE,
            {
                "lock_key": self.claim_key(tenant_id, event_date),
                "lock_token": token,
                "expires_at": now + max(1, int(self.transaction_timeout + 0.999)),
            },
            condition_expression="attribute_not_exists(lock_key) OR expires_at < :now",
            expression_attribute_values={":now": now},
        )
        if not acquired:
            log_booking_operation(
                logger, "create_booking", tenant_id=tenant_id,
                event_date=event_date.isoformat(), result="lock_timeout",
            )
            raise LockTimeoutError(event_date.isoformat())
        return token

    def _release_lock(self, tenant_id: str, event_date: date, token: str) -> None:
        released = self.db.delete_item(
            self.LOCKS_TABLE,
            {"lock_key": self.claim_key(tenant_id, event_date)},
            condition_expression="lock_token = :token",
            expression_attribute_values={":token": token},
        )
        if not released:
            logger.warning(
                "Booking lock for %s on %s expired before release",
                tenant_id,
                event_date,
            )

    # Writes

    def _upsert_customer(self, tenant_id: str, booking: BookingCreate) -> dict[str, Any]:
        email = str(booking.email).lower()
        now = self._clock().isoformat()
        values: dict[str, Any] = {
            ":name": booking.customer_name,
            ":now": now,
            ":cid": customer_id_for(tenant_id, email),
        }
        update = (
            "SET #name = :name, updated_at = :now, "
            "customer_id = if_not_exists(customer_id, :cid), "
            "created_at = if_not_exists(created_at, :now)"
        )
        if booking.phone:
            update += ", phone = :phone"
            values[":phone"] = booking.phone

        attrs = self.db.update_item(
            self.CUSTOMERS_TABLE,
            {"tenant_id": tenant_id, "email": email},
            update_expression=update,
            expression_attribute_values=values,
            expression_attribute_names={"#name": "name"},
        )
        return attrs or {"customer_id": values[":cid"], "email": email}

    def _check_deadline(self, tenant_id: str, day: date, deadline: float) -> None:
        """Abort the reservation once it has run past transaction_timeout.

        Raises:
            LockTimeoutError: The deadline has passed
        """
        if time.monotonic() <= deadline:
            return
        log_booking_operation(
            logger, "create_booking", tenant_id=tenant_id,
            event_date=day.isoformat(), result="lock_timeout",
        )
        raise LockTimeoutError(
            day.isoformat(),
            f"Booking transaction for {day.isoformat()} exceeded {self.transaction_timeout}s",
        )

    def create(self, tenant_id: str, booking: BookingCreate) -> Booking:
        day = booking.event_date
        deadline = time.monotonic() + self.transaction_timeout

        token = self._acquire_lock(tenant_id, day)
        try:
            claim = self.db.get_item(self.CLAIMS_TABLE, {"claim_key": self.claim_key(tenant_id, day)})
            if claim is not None:
                log_booking_operation(
                    logger, "create_booking", tenant_id=tenant_id,
                    event_date=day.isoformat(), result="conflict",
                    held_by=claim.get("booking_id"),
                )
                raise ConflictError(day.isoformat())

            self._check_deadline(tenant_id, day, deadline)
            customer = self._upsert_customer(tenant_id, booking)
            self._check_deadline(tenant_id, day, deadline)
            package, line_items, total = price_booking(self.catalog, tenant_id, booking)
            self._check_deadline(tenant_id, day, deadline)

            record = Booking(
                booking_id=booking.booking_id,
                tenant_id=tenant_id,
                package_id=package.package_id,
                customer_id=customer["customer_id"],
                customer_name=booking.customer_name,
                email=customer["email"],
                phone=booking.phone,
                event_date=day,
                add_on_ids=list(booking.add_on_ids),
                line_items=line_items,
                package_price_cents=package.price_cents,
                total_cents=total,
                amount_paid_cents=booking.amount_paid_cents,
                status=BookingStatus.PAID,
                checkout_session_id=booking.checkout_session_id,
                created_at=self._clock(),
            )

            self._commit(record)
        finally:
            self._release_lock(tenant_id, day, token)

        log_booking_operation(
            logger, "create_booking", tenant_id=tenant_id, event_date=day.isoformat(),
            booking_id=record.booking_id, amount_cents=record.total_cents, result="success",
        )
        return record

    def _commit(self, record: Booking) -> None:
        """Write claim and booking in one transaction.

        Raises:
            ConflictError: The claim (or booking ID) already exists
            LockTimeoutError: DynamoDB reported a conflicting transaction
        """
        day = record.event_date.isoformat()
        try:
            self.db.transact_write(
                [
                    self.db.put_op(
                        self.CLAIMS_TABLE,
                        {
                            "claim_key": self.claim_key(record.tenant_id, record.event_date),
                            "tenant_id": record.tenant_id,
                            "event_date": day,
                            "booking_id": record.booking_id,
                        },
                        condition_expression="attribute_not_exists(claim_key)",
                    ),
                    self.db.put_op(
                        self.BOOKINGS_TABLE,
                        self._booking_to_item(record),
                        condition_expression="attribute_not_exists(booking_id)",
                    ),
                ]
            )
        except TransactionCancelledError as e:
            if e.transaction_conflict:
                raise LockTimeoutError(day) from e
            if e.conditional_check_failed:
                raise ConflictError(day) from e
            raise

    def update_status(self, tenant_id: str, booking_id: str, status: BookingStatus) -> Booking:
        booking = self.find_by_id(tenant_id, booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found", details={"booking_id": booking_id})
        _check_transition(booking, status)

        now = self._clock()
        try:
            self.db.transact_write(
                [
                    self.db.update_op(
                        self.BOOKINGS_TABLE,
                        {"tenant_id": tenant_id, "booking_id": booking_id},
                        update_expression="SET #status = :status, updated_at = :now",
                        expression_attribute_values={
                            ":status": status.value,
                            ":now": now.isoformat(),
                            ":current": booking.status.value,
                        },
                        expression_attribute_names={"#status": "status"},
                        condition_expression="#status = :current",
                    ),
                    self.db.delete_op(
                        self.CLAIMS_TABLE,
                        {"claim_key": self.claim_key(tenant_id, booking.event_date)},
                        condition_expression="attribute_not_exists(claim_key) OR booking_id = :bid",
                        expression_attribute_values={":bid": booking_id},
                    ),
                ]
            )
        except TransactionCancelledError as e:
            raise ValidationError(
                f"Booking {booking_id} changed concurrently, reload and retry",
                details={"booking_id": booking_id},
            ) from e

        log_booking_operation(
            logger, "update_booking_status", tenant_id=tenant_id,
            event_date=booking.event_date.isoformat(), booking_id=booking_id,
            result="success", status=status.value,
        )
        return booking.model_copy(update={"status": status, "updated_at": now})

    # Reads

    def find_by_id(self, tenant_id: str, booking_id: str) -> Booking | None:
        item = self.db.get_item(self.BOOKINGS_TABLE, {"tenant_id": tenant_id, "booking_id": booking_id})
        return self._item_to_booking(item) if item else None

    def find_all(self, tenant_id: str) -> list[Booking]:
        items = self.db.query(self.BOOKINGS_TABLE, Key("tenant_id").eq(tenant_id))
        bookings = [self._item_to_booking(item) for item in items]
        return sorted(bookings, key=lambda b: b.created_at, reverse=True)

    def is_date_booked(self, tenant_id: str, event_date: date) -> bool:
        claim = self.db.get_item(self.CLAIMS_TABLE, {"claim_key": self.claim_key(tenant_id, event_date)})
        return claim is not None

    def get_unavailable_dates(self, tenant_id: str, start: date, end: date) -> list[date]:
        items = self.db.query_by_gsi(
            self.BOOKINGS_TABLE,
            index_name=self.EVENT_DATE_INDEX,
            partition_key_name="tenant_id",
            partition_key_value=tenant_id,
            sort_key_condition=Key("event_date").between(start.isoformat(), end.isoformat()),
            filter_expression=Attr("status").eq(BookingStatus.PAID.value),
        )
        return sorted({date.fromisoformat(item["event_date"]) for item in items})

    # Item conversion

    @staticmethod
    def _booking_to_item(booking: Booking) -> dict[str, Any]:
        item: dict[str, Any] = {
            "tenant_id": booking.tenant_id,
            "booking_id": booking.booking_id,
            "package_id": booking.package_id,
            "customer_id": booking.customer_id,
            "customer_name": booking.customer_name,
            "email": booking.email,
            "event_date": booking.event_date.isoformat(),
            "add_on_ids": list(booking.add_on_ids),
            "line_items": [li.model_dump() for li in booking.line_items],
            "package_price_cents": booking.package_price_cents,
            "total_cents": booking.total_cents,
            "status": booking.status.value,
            "created_at": booking.created_at.isoformat(),
        }
        optional = {
            "phone": booking.phone,
            "amount_paid_cents": booking.amount_paid_cents,
            "checkout_session_id": booking.checkout_session_id,
            "updated_at": booking.updated_at.isoformat() if booking.updated_at else None,
        }
        item.update({k: v for k, v in optional.items() if v is not None})
        return item

    @staticmethod
    def _item_to_booking(item: dict[str, Any]) -> Booking:
        data = {k: from_dynamo_number(v) for k, v in item.items()}
        data["line_items"] = [
            {k: from_dynamo_number(v) for k, v in li.items()} for li in item.get("line_items", [])
        ]
        return Booking.model_validate(data)
