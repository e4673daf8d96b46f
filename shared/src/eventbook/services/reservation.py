"""Booking reservation orchestration.

Composes catalog lookup, availability, the payment processor, the booking
store and the event bus. Holds no booking state of its own; every read goes
to the store.
"""

import hashlib
import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone

from eventbook.models.booking import Booking, BookingCreate
from eventbook.models.catalog import AddOn, Package
from eventbook.models.checkout import CheckoutInput, CheckoutResult, PaymentCompletion
from eventbook.models.enums import BookingStatus
from eventbook.models.errors import (
    ConflictError,
    LockTimeoutError,
    NotFoundError,
    ValidationError,
)
from eventbook.models.events import BookingConfirmed, BookingStatusChanged
from eventbook.models.webhook import CheckoutMetadata
from eventbook.ports import BookingStore, CatalogProvider, IdempotencyLedger, PaymentProvider
from eventbook.utils.dates import normalize_event_date
from eventbook.utils.logging import log_booking_operation

from .availability import AvailabilityChecker
from .events import InProcessEventBus
from .idempotency import generate_key

logger = logging.getLogger(__name__)

# How long a retried checkout waits for the first attempt's cached result
IDEMPOTENT_WAIT_ATTEMPTS = 3
IDEMPOTENT_WAIT_SECONDS = 0.1


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def booking_id_for(tenant_id: str, session_id: str) -> str:
    """Booking ID derived from the paying checkout session.

    Re-delivery of the same payment maps to the same booking.
    """
    digest = hashlib.sha256(f"{tenant_id}:{session_id}".encode()).hexdigest()
    return f"bk_{digest[:24]}"


class BookingReservationService:
    """Checkout initiation, payment completion and booking lifecycle."""

    def __init__(
        self,
        catalog: CatalogProvider,
        availability: AvailabilityChecker,
        bookings: BookingStore,
        payments: PaymentProvider,
        idempotency: IdempotencyLedger,
        events: InProcessEventBus,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize reservation service.

        Args:
            catalog: Package and add-on lookup
            availability: Availability checker
            bookings: Booking store
            payments: Payment processor
            idempotency: Ledger for client-retried checkouts
            events: Bus receiving BookingConfirmed and BookingStatusChanged
            clock: Source of timestamps
        """
        self.catalog = catalog
        self.availability = availability
        self.bookings = bookings
        self.payments = payments
        self.idempotency = idempotency
        self.events = events
        self._clock = clock

    # Checkout

    def create_checkout(
        self,
        tenant_id: str,
        checkout: CheckoutInput,
        idempotency_key: str | None = None,
    ) -> CheckoutResult:
        """Validate a checkout request and open a payment session.

        Args:
            tenant_id: Tenant taking the booking
            checkout: Package, date, contact details and add-ons
            idempotency_key: Optional client key; repeats return the first result

        Returns:
            CheckoutResult with the payment redirect URL

        Raises:
            NotFoundError: Unknown or inactive package
            ValidationError: Unknown add-on or add-on of another package
            ConflictError: The date is not available
            LockTimeoutError: A checkout with the same key is still running
            PaymentProviderError: The processor rejected the session
        """
        if not idempotency_key:
            return self._create_checkout(tenant_id, checkout, None)

        ledger_key = generate_key("checkout", tenant_id, idempotency_key)
        cached = self._replay(ledger_key, checkout)
        if cached is not None:
            return cached

        try:
            result = self._create_checkout(tenant_id, checkout, ledger_key)
        except Exception:
            self.idempotency.release(ledger_key)
            raise

        self.idempotency.complete(ledger_key, result.model_dump())
        return result

    def _replay(self, ledger_key: str, checkout: CheckoutInput) -> CheckoutResult | None:
        """Claim the key, or return the first attempt's result.

        Returns:
            None if this caller owns the key and must do the work
        """
        for attempt in range(IDEMPOTENT_WAIT_ATTEMPTS + 1):
            begin = self.idempotency.begin(ledger_key)
            if begin.is_new:
                return None
            if begin.cached_result is not None:
                logger.info("Replaying cached checkout for idempotency key %s", ledger_key)
                return CheckoutResult.model_validate(begin.cached_result)
            if attempt < IDEMPOTENT_WAIT_ATTEMPTS:
                time.sleep(IDEMPOTENT_WAIT_SECONDS)

        raise LockTimeoutError(
            checkout.event_date.isoformat(),
            "A checkout with this Idempotency-Key is still in progress",
        )

    def _create_checkout(
        self,
        tenant_id: str,
        checkout: CheckoutInput,
        ledger_key: str | None,
    ) -> CheckoutResult:
        package = self._get_package(tenant_id, checkout.package_id)
        add_ons = self._get_add_ons(tenant_id, package, checkout.add_on_ids)

        availability = self.availability.check_availability(tenant_id, checkout.event_date)
        if not availability.available:
            raise ConflictError(
                checkout.event_date.isoformat(),
                details={"reason": availability.reason.value if availability.reason else None},
            )

        total = package.price_cents + sum(a.price_cents for a in add_ons)
        metadata = CheckoutMetadata(
            tenant_id=tenant_id,
            package_id=package.package_id,
            event_date=checkout.event_date.isoformat(),
            email=checkout.email,
            customer_name=checkout.customer_name,
            phone=checkout.phone,
            add_on_ids=[a.add_on_id for a in add_ons],
        )

        session = self.payments.create_checkout_session(
            amount_cents=total,
            description=f"{package.title} on {checkout.event_date.isoformat()}",
            customer_email=str(checkout.email),
            metadata=metadata.to_stripe_metadata(),
            idempotency_key=ledger_key,
        )

        log_booking_operation(
            logger, "create_checkout", tenant_id=tenant_id,
            event_date=checkout.event_date.isoformat(), amount_cents=total,
            result="success", session_id=session.session_id,
        )
        return CheckoutResult(checkout_url=session.checkout_url)

    def _get_package(self, tenant_id: str, package_id: str) -> Package:
        package = self.catalog.get_package(tenant_id, package_id)
        if package is None or not package.active:
            raise NotFoundError(
                f"Package {package_id} not found", details={"package_id": package_id}
            )
        return package

    def _get_add_ons(self, tenant_id: str, package: Package, add_on_ids: list[str]) -> list[AddOn]:
        requested = list(dict.fromkeys(add_on_ids))
        if not requested:
            return []

        found = {a.add_on_id: a for a in self.catalog.get_add_ons(tenant_id, requested)}
        missing = [i for i in requested if i not in found]
        if missing:
            raise ValidationError(
                f"Unknown add-ons: {', '.join(missing)}", details={"add_on_ids": missing}
            )

        foreign = [i for i in requested if found[i].package_id != package.package_id]
        if foreign:
            raise ValidationError(
                f"Add-ons not offered with package {package.package_id}: {', '.join(foreign)}",
                details={"add_on_ids": foreign},
            )
        return [found[i] for i in requested]

    # Payment completion

    def on_payment_completed(self, tenant_id: str, payment: PaymentCompletion) -> Booking:
        """Reserve the date for a captured payment and announce it.

        A re-delivered payment whose booking already committed returns that
        booking without announcing it again.

        Args:
            tenant_id: Tenant from the checkout metadata
            payment: Captured payment details

        Returns:
            The PAID booking

        Raises:
            ValidationError: Unreadable event date
            ConflictError: Another booking holds the date
            LockTimeoutError: The date could not be locked in time
        """
        event_date = normalize_event_date(payment.event_date)
        booking_id = booking_id_for(tenant_id, payment.session_id)

        create = BookingCreate(
            booking_id=booking_id,
            package_id=payment.package_id,
            customer_name=payment.customer_name,
            email=payment.email,
            phone=payment.phone,
            event_date=event_date,
            add_on_ids=payment.add_on_ids,
            checkout_session_id=payment.session_id,
            amount_paid_cents=payment.amount_total_cents,
        )

        try:
            booking = self.bookings.create(tenant_id, create)
        except ConflictError:
            existing = self.bookings.find_by_id(tenant_id, booking_id)
            if existing is not None and existing.event_date == event_date:
                log_booking_operation(
                    logger, "create_booking", tenant_id=tenant_id,
                    event_date=event_date.isoformat(), booking_id=booking_id, result="duplicate",
                )
                return existing
            raise

        if booking.amount_paid_cents is not None and booking.amount_paid_cents != booking.total_cents:
            logger.warning(
                "Booking %s paid %d but catalog total is %d",
                booking.booking_id,
                booking.amount_paid_cents,
                booking.total_cents,
            )

        package = self.catalog.get_package(tenant_id, booking.package_id)
        self.events.publish(
            BookingConfirmed(
                occurred_at=self._clock(),
                booking_id=booking.booking_id,
                tenant_id=tenant_id,
                email=booking.email,
                customer_name=booking.customer_name,
                event_date=booking.event_date,
                package_title=package.title if package else booking.package_id,
                add_on_titles=[li.title for li in booking.line_items if li.title],
                total_cents=booking.total_cents,
            )
        )
        return booking

    # Booking lifecycle

    def get_booking(self, tenant_id: str, booking_id: str) -> Booking:
        booking = self.bookings.find_by_id(tenant_id, booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found", details={"booking_id": booking_id})
        return booking

    def list_bookings(self, tenant_id: str) -> list[Booking]:
        """All bookings of a tenant, most recent first."""
        return self.bookings.find_all(tenant_id)

    def cancel_booking(self, tenant_id: str, booking_id: str) -> Booking:
        """Cancel a PAID booking. The date becomes bookable again."""
        return self._change_status(tenant_id, booking_id, BookingStatus.CANCELED)

    def mark_refunded(self, tenant_id: str, booking_id: str) -> Booking:
        """Record a refund for a PAID booking. The date becomes bookable again."""
        return self._change_status(tenant_id, booking_id, BookingStatus.REFUNDED)

    def _change_status(self, tenant_id: str, booking_id: str, status: BookingStatus) -> Booking:
        booking = self.bookings.update_status(tenant_id, booking_id, status)
        self.events.publish(
            BookingStatusChanged(
                occurred_at=self._clock(),
                booking_id=booking.booking_id,
                tenant_id=tenant_id,
                event_date=booking.event_date,
                status=status.value,
            )
        )
        return booking
