"""Payment webhook ingestion.

Drives each verified Stripe event through the ledger state machine
(RECEIVED -> PROCESSED | FAILED) and hands captured payments to the
reservation service. Kept separate from HTTP routing so it can be unit
tested without a transport.

Outcomes for the sender:
- Untrusted or malformed payload: WebhookValidationError, do not retry
- Business failure (conflict, lock timeout, store error): WebhookProcessingError, retry
- Duplicate or ignored event: success
"""

import hashlib
import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, NoReturn

from pydantic import ValidationError as PydanticValidationError

from eventbook.models.checkout import PaymentCompletion
from eventbook.models.enums import WebhookEventStatus
from eventbook.models.errors import (
    ValidationError,
    WebhookProcessingError,
    WebhookValidationError,
)
from eventbook.models.webhook import CheckoutMetadata, WebhookEvent
from eventbook.ports import PaymentProvider, WebhookEventRepository
from eventbook.utils.dates import normalize_event_date
from eventbook.utils.logging import log_webhook_event

if TYPE_CHECKING:
    from .reservation import BookingReservationService

logger = logging.getLogger(__name__)

# Event types that mean the payment was captured
PAYMENT_CAPTURED_EVENTS = frozenset(
    {
        "checkout.session.completed",
        "checkout.session.async_payment_succeeded",
    }
)

UNKNOWN_TENANT = "unknown"


class IngestOutcome(str, Enum):
    """What ingest() did with an event."""

    PROCESSED = "processed"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _format_validation_errors(error: PydanticValidationError) -> list[dict[str, str]]:
    return [
        {"field": ".".join(str(p) for p in err["loc"]) or "metadata", "message": err["msg"]}
        for err in error.errors()
    ]


class PaymentEventIngestor:
    """Verifies, deduplicates and processes payment webhooks."""

    def __init__(
        self,
        payments: PaymentProvider,
        ledger: WebhookEventRepository,
        reservations: "BookingReservationService",
        stale_after: timedelta = timedelta(seconds=60),
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize the ingestor.

        Args:
            payments: Verifies webhook signatures
            ledger: Webhook event ledger
            reservations: Service creating the booking on payment
            stale_after: Age after which a RECEIVED entry is considered
                abandoned by a crashed worker and may be taken over
            clock: Source of timestamps
        """
        self.payments = payments
        self.ledger = ledger
        self.reservations = reservations
        self.stale_after = stale_after
        self._clock = clock

    def ingest(self, payload: bytes, signature: str | None) -> IngestOutcome:
        """Process one webhook delivery.

        Args:
            payload: Raw request body, exactly as received
            signature: Stripe-Signature header value

        Returns:
            The outcome for logging and tests

        Raises:
            WebhookValidationError: Bad signature, payload or metadata
            WebhookProcessingError: The booking could not be written; the
                sender should retry
        """
        if not signature:
            raise WebhookValidationError("Missing webhook signature")

        event = self.payments.verify_webhook(payload, signature)

        event_id = event.get("id")
        event_type = event.get("type")
        if not isinstance(event_id, str) or not isinstance(event_type, str):
            raise WebhookValidationError("Webhook event is missing id or type")

        session: dict[str, Any] = (event.get("data") or {}).get("object") or {}
        metadata: dict[str, Any] = session.get("metadata") or {}
        tenant_id = metadata.get("tenantId") or UNKNOWN_TENANT

        entry = self._begin(tenant_id, event_id, event_type, payload)
        if entry is None:
            log_webhook_event(logger, event_type, event_id, tenant_id=tenant_id, result="duplicate")
            return IngestOutcome.DUPLICATE

        if event_type not in PAYMENT_CAPTURED_EVENTS:
            self.ledger.mark_processed(tenant_id, event_id)
            log_webhook_event(logger, event_type, event_id, tenant_id=tenant_id, result="skipped")
            return IngestOutcome.IGNORED

        payment_status = session.get("payment_status")
        if payment_status != "paid":
            # Delayed payment methods report completion later via async_payment_succeeded
            self.ledger.mark_processed(tenant_id, event_id)
            log_webhook_event(
                logger, event_type, event_id, tenant_id=tenant_id,
                result="skipped", payment_status=payment_status,
            )
            return IngestOutcome.IGNORED

        booking_tenant, payment = self._validate(tenant_id, event_id, event_type, session, metadata)

        try:
            booking = self.reservations.on_payment_completed(booking_tenant, payment)
        except Exception as e:
            self.ledger.mark_failed(tenant_id, event_id, f"{type(e).__name__}: {e}")
            log_webhook_event(
                logger, event_type, event_id, tenant_id=tenant_id,
                result="error", error=str(e),
            )
            raise WebhookProcessingError(
                "Failed to process payment event",
                details={"event_id": event_id},
            ) from e

        self.ledger.mark_processed(tenant_id, event_id, booking.booking_id)
        log_webhook_event(
            logger, event_type, event_id, tenant_id=tenant_id,
            booking_id=booking.booking_id, result="success",
        )
        return IngestOutcome.PROCESSED

    def _begin(
        self, tenant_id: str, event_id: str, event_type: str, payload: bytes
    ) -> WebhookEvent | None:
        """Record the event or claim it for a retry.

        Returns:
            The ledger entry to process, or None if already PROCESSED

        Raises:
            WebhookProcessingError: Another worker is processing the event
        """
        now = self._clock()
        existing = self.ledger.get(tenant_id, event_id)

        if existing is None:
            entry = WebhookEvent(
                tenant_id=tenant_id,
                event_id=event_id,
                event_type=event_type,
                raw_payload=payload.decode("utf-8", errors="replace"),
                payload_hash=hashlib.sha256(payload).hexdigest(),
                status=WebhookEventStatus.RECEIVED,
                received_at=now,
                updated_at=now,
            )
            if self.ledger.record_received(entry):
                return entry
            # Lost the insert race; the winner is now processing it
            log_webhook_event(logger, event_type, event_id, tenant_id=tenant_id, result="in_flight")
            raise WebhookProcessingError(
                "Event is already being processed", details={"event_id": event_id}
            )

        if existing.status == WebhookEventStatus.PROCESSED:
            return None

        if existing.status == WebhookEventStatus.RECEIVED and now - existing.updated_at < self.stale_after:
            log_webhook_event(logger, event_type, event_id, tenant_id=tenant_id, result="in_flight")
            raise WebhookProcessingError(
                "Event is already being processed", details={"event_id": event_id}
            )

        claimed = self.ledger.claim_for_retry(tenant_id, event_id, existing.attempts, now)
        if claimed is None:
            log_webhook_event(logger, event_type, event_id, tenant_id=tenant_id, result="in_flight")
            raise WebhookProcessingError(
                "Event is already being processed", details={"event_id": event_id}
            )

        logger.info(
            "Retrying webhook %s (attempt %d, previous status %s)",
            event_id,
            claimed.attempts,
            existing.status.value,
        )
        return claimed

    def _validate(
        self,
        tenant_id: str,
        event_id: str,
        event_type: str,
        session: dict[str, Any],
        metadata: dict[str, Any],
    ) -> tuple[str, PaymentCompletion]:
        """Validate session metadata, marking the entry FAILED on mismatch.

        Raises:
            WebhookValidationError: If the metadata will never parse
        """
        session_id = session.get("id")
        amount_total = session.get("amount_total")
        try:
            if not isinstance(session_id, str) or not session_id:
                raise WebhookValidationError("Checkout session is missing its id")
            parsed = CheckoutMetadata.model_validate(metadata)
            normalize_event_date(parsed.event_date)
            payment = PaymentCompletion(
                session_id=session_id,
                package_id=parsed.package_id,
                event_date=parsed.event_date,
                email=parsed.email,
                customer_name=parsed.customer_name,
                phone=parsed.phone,
                add_on_ids=parsed.add_on_ids,
                amount_total_cents=amount_total,
            )
        except PydanticValidationError as e:
            errors = _format_validation_errors(e)
            self._reject(tenant_id, event_id, event_type, f"Invalid metadata: {errors}", errors)
        except (ValidationError, WebhookValidationError) as e:
            self._reject(tenant_id, event_id, event_type, e.message, None)

        return parsed.tenant_id, payment

    def _reject(
        self,
        tenant_id: str,
        event_id: str,
        event_type: str,
        reason: str,
        errors: list[dict[str, str]] | None,
    ) -> NoReturn:
        self.ledger.mark_failed(tenant_id, event_id, reason)
        log_webhook_event(logger, event_type, event_id, tenant_id=tenant_id, result="error", error=reason)
        raise WebhookValidationError(
            "Invalid webhook metadata",
            details={"event_id": event_id, "errors": errors} if errors else {"event_id": event_id},
        )
