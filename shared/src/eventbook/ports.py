"""Interfaces the booking services depend on.

Each port has an in-memory implementation used by tests and a DynamoDB (or
external API) implementation used in production. Services receive ports
through their constructors and never construct backends themselves.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Any

from eventbook.models.booking import Booking, BookingCreate
from eventbook.models.catalog import AddOn, BlackoutDate, Package
from eventbook.models.checkout import CheckoutSession
from eventbook.models.enums import BookingStatus
from eventbook.models.idempotency import IdempotencyBegin
from eventbook.models.webhook import WebhookEvent


class BookingStore(ABC):
    """Transactional booking repository enforcing one PAID booking per date."""

    @abstractmethod
    def create(self, tenant_id: str, booking: BookingCreate) -> Booking:
        """Atomically reserve ``booking.event_date`` and write the booking.

        Raises:
            ConflictError: The date is already held.
            LockTimeoutError: Exclusivity could not be acquired in time.
        """
        raise NotImplementedError

    @abstractmethod
    def find_by_id(self, tenant_id: str, booking_id: str) -> Booking | None:
        raise NotImplementedError

    @abstractmethod
    def find_all(self, tenant_id: str) -> list[Booking]:
        """All bookings of a tenant, most recent first."""
        raise NotImplementedError

    @abstractmethod
    def is_date_booked(self, tenant_id: str, event_date: date) -> bool:
        raise NotImplementedError

    @abstractmethod
    def get_unavailable_dates(self, tenant_id: str, start: date, end: date) -> list[date]:
        """Dates in [start, end] held by a PAID booking, ascending."""
        raise NotImplementedError

    @abstractmethod
    def update_status(self, tenant_id: str, booking_id: str, status: BookingStatus) -> Booking:
        """Move a PAID booking to REFUNDED or CANCELED, releasing its date.

        Raises:
            NotFoundError: Unknown booking.
            ValidationError: Transition not allowed.
        """
        raise NotImplementedError


class BlackoutRepository(ABC):
    """Read access to administrator blackout dates."""

    @abstractmethod
    def is_blackout(self, tenant_id: str, day: date) -> bool:
        raise NotImplementedError

    @abstractmethod
    def list_in_range(self, tenant_id: str, start: date, end: date) -> list[BlackoutDate]:
        raise NotImplementedError


class CatalogProvider(ABC):
    """Package and add-on lookup."""

    @abstractmethod
    def get_package(self, tenant_id: str, package_id: str) -> Package | None:
        raise NotImplementedError

    @abstractmethod
    def get_add_ons(self, tenant_id: str, add_on_ids: list[str]) -> list[AddOn]:
        """Add-ons found among ``add_on_ids``. Unknown IDs are omitted."""
        raise NotImplementedError


class CalendarProvider(ABC):
    """External calendar consulted last when checking a date."""

    @abstractmethod
    def is_date_available(self, tenant_id: str, day: date) -> bool:
        """Raises CalendarProviderError when the calendar cannot be reached."""
        raise NotImplementedError


class PaymentProvider(ABC):
    """Payment processor session creation and webhook verification."""

    @abstractmethod
    def create_checkout_session(
        self,
        *,
        amount_cents: int,
        description: str,
        customer_email: str,
        metadata: dict[str, str],
        idempotency_key: str | None = None,
    ) -> CheckoutSession:
        raise NotImplementedError

    @abstractmethod
    def verify_webhook(self, payload: bytes, signature: str) -> dict[str, Any]:
        """Return the parsed event. Raises WebhookValidationError if untrusted."""
        raise NotImplementedError


class IdempotencyLedger(ABC):
    """Records one key per request so repeats replay the first result."""

    @abstractmethod
    def begin(self, key: str) -> IdempotencyBegin:
        raise NotImplementedError

    @abstractmethod
    def complete(self, key: str, result: dict[str, Any]) -> None:
        raise NotImplementedError

    @abstractmethod
    def release(self, key: str) -> None:
        """Forget an uncompleted key so the request can be retried."""
        raise NotImplementedError

    @abstractmethod
    def prune_expired(self) -> int:
        """Delete expired entries. Returns how many were removed."""
        raise NotImplementedError


class WebhookEventRepository(ABC):
    """Durable ledger of payment events and their processing state."""

    @abstractmethod
    def get(self, tenant_id: str, event_id: str) -> WebhookEvent | None:
        raise NotImplementedError

    @abstractmethod
    def record_received(self, event: WebhookEvent) -> bool:
        """Insert a RECEIVED entry. False if the event ID is already recorded."""
        raise NotImplementedError

    @abstractmethod
    def claim_for_retry(
        self, tenant_id: str, event_id: str, expected_attempts: int, now: datetime
    ) -> WebhookEvent | None:
        """Move an existing entry back to RECEIVED with attempts + 1.

        Returns None if another worker changed the entry first.
        """
        raise NotImplementedError

    @abstractmethod
    def mark_processed(self, tenant_id: str, event_id: str, booking_id: str | None = None) -> None:
        raise NotImplementedError

    @abstractmethod
    def mark_failed(self, tenant_id: str, event_id: str, error: str) -> None:
        raise NotImplementedError


class TenantResolver(ABC):
    """Maps a request's API key to a tenant ID."""

    @abstractmethod
    def resolve(self, api_key: str) -> str | None:
        raise NotImplementedError
