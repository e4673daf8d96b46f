"""Integration tests for the complete booking flow.

Tests the end-to-end flow a customer and the payment processor drive:
1. Check availability for the desired date
2. Start checkout and receive the payment URL
3. The processor delivers checkout.session.completed (possibly twice)
4. The booking holds the date and a confirmation is published

The HTTP flow runs over the in-memory wiring. TestDynamoDBFlow repeats the
payment half against moto-backed DynamoDB tables.
"""

import json
from typing import Any, Generator

import pytest
from fastapi.testclient import TestClient

from eventbook.models.checkout import CheckoutInput
from eventbook.models.enums import BookingStatus, WebhookEventStatus
from eventbook.models.events import BookingConfirmed, BookingStatusChanged
from eventbook.services.availability import AvailabilityChecker
from eventbook.services.blackouts import DynamoDBBlackoutRepository
from eventbook.services.booking_store import DynamoDBBookingStore
from eventbook.services.calendar import NullCalendarProvider
from eventbook.services.catalog import DynamoDBCatalog
from eventbook.services.dynamodb import DynamoDBService
from eventbook.services.events import InProcessEventBus
from eventbook.services.idempotency import DynamoDBIdempotencyLedger
from eventbook.services.reservation import BookingReservationService, booking_id_for
from eventbook.services.webhook_handler import IngestOutcome, PaymentEventIngestor
from eventbook.services.webhook_ledger import DynamoDBWebhookEventRepository
from eventbook_api.dependencies import (
    get_availability_checker,
    get_payment_ingestor,
    get_reservation_service,
)
from eventbook_api.main import app

pytestmark = pytest.mark.integration

# === Test Configuration ===

TENANT_ID = "tn_lakeside"
EVENT_DATE = "2025-06-15"
HEADERS = {"X-Tenant-Key": "key-lakeside"}
VALID_SIGNATURE = "t=1700000000,v1=valid"


def _completed_event(session: dict[str, Any], event_id: str = "evt_flow_1") -> dict[str, Any]:
    """The event Stripe sends once the customer pays the given session."""
    return {
        "id": event_id,
        "object": "event",
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": session["session_id"],
                "object": "checkout.session",
                "amount_total": session["amount_cents"],
                "payment_status": "paid",
                "metadata": session["metadata"],
            }
        },
    }


def _deliver(client: TestClient, event: dict[str, Any]) -> int:
    response = client.post(
        "/webhooks/payment",
        content=json.dumps(event),
        headers={"Stripe-Signature": VALID_SIGNATURE},
    )
    return response.status_code


# === Fixtures ===


@pytest.fixture
def client(
    monkeypatch: pytest.MonkeyPatch,
    reservation_service: BookingReservationService,
    availability: AvailabilityChecker,
    ingestor: PaymentEventIngestor,
) -> Generator[TestClient, None, None]:
    monkeypatch.setenv("TENANT_KEYS", f"key-lakeside={TENANT_ID}")
    app.dependency_overrides[get_reservation_service] = lambda: reservation_service
    app.dependency_overrides[get_availability_checker] = lambda: availability
    app.dependency_overrides[get_payment_ingestor] = lambda: ingestor
    yield TestClient(app)
    app.dependency_overrides.clear()


# === HTTP Flow ===


class TestCheckoutToConfirmation:
    def test_full_flow(self, client: TestClient, payments, published: list) -> None:
        """Availability, checkout, payment and confirmation for one date."""
        availability = client.get("/availability", params={"date": EVENT_DATE}, headers=HEADERS)
        assert availability.json() == {"date": EVENT_DATE, "available": True}

        checkout = client.post(
            "/bookings/checkout",
            json={
                "packageId": "pkg_full_day",
                "eventDate": EVENT_DATE,
                "customerName": "Ana García",
                "email": "Ana@Example.com",
                "addOnIds": ["addon_dj", "addon_photo"],
            },
            headers=HEADERS,
        )
        assert checkout.status_code == 200
        session = payments.sessions[0]
        assert checkout.json()["checkoutUrl"].endswith(session["session_id"])

        # Checkout alone does not hold the date
        still_open = client.get("/availability", params={"date": EVENT_DATE}, headers=HEADERS)
        assert still_open.json()["available"] is True

        assert _deliver(client, _completed_event(session)) == 204

        booked = client.get("/availability", params={"date": EVENT_DATE}, headers=HEADERS)
        assert booked.json() == {"date": EVENT_DATE, "available": False, "reason": "booked"}

        bookings = client.get("/bookings", headers=HEADERS).json()["bookings"]
        assert len(bookings) == 1
        booking = bookings[0]
        assert booking["bookingId"] == booking_id_for(TENANT_ID, session["session_id"])
        assert booking["status"] == "PAID"
        assert booking["email"] == "ana@example.com"
        assert booking["totalCents"] == 330000
        assert booking["amountPaidCents"] == 330000

        confirmations = [e for e in published if isinstance(e, BookingConfirmed)]
        assert len(confirmations) == 1
        assert confirmations[0].add_on_titles == ["DJ", "Photographer"]

        unavailable = client.get(
            "/availability/unavailable",
            params={"startDate": "2025-06-01", "endDate": "2025-06-30"},
            headers=HEADERS,
        )
        assert unavailable.json() == {"dates": [EVENT_DATE]}

    def test_redelivery_confirms_once(self, client: TestClient, payments, published: list) -> None:
        client.post(
            "/bookings/checkout",
            json={
                "packageId": "pkg_full_day",
                "eventDate": EVENT_DATE,
                "customerName": "Ana García",
                "email": "ana@example.com",
            },
            headers=HEADERS,
        )
        event = _completed_event(payments.sessions[0])

        assert [_deliver(client, event) for _ in range(3)] == [204, 204, 204]

        assert len(client.get("/bookings", headers=HEADERS).json()["bookings"]) == 1
        assert len([e for e in published if isinstance(e, BookingConfirmed)]) == 1

    def test_second_customer_loses_the_date(self, client: TestClient, payments) -> None:
        """Two checkouts may open for one date; only the first payment books it."""
        for email in ("ana@example.com", "ben@example.com"):
            response = client.post(
                "/bookings/checkout",
                json={
                    "packageId": "pkg_full_day",
                    "eventDate": EVENT_DATE,
                    "customerName": email.split("@")[0],
                    "email": email,
                },
                headers=HEADERS,
            )
            assert response.status_code == 200

        first, second = payments.sessions
        assert _deliver(client, _completed_event(first, "evt_a")) == 204
        assert _deliver(client, _completed_event(second, "evt_b")) == 500

        bookings = client.get("/bookings", headers=HEADERS).json()["bookings"]
        assert [b["email"] for b in bookings] == ["ana@example.com"]

        late = client.post(
            "/bookings/checkout",
            json={
                "packageId": "pkg_full_day",
                "eventDate": EVENT_DATE,
                "customerName": "Cleo",
                "email": "cleo@example.com",
            },
            headers=HEADERS,
        )
        assert late.status_code == 409

    def test_cancel_reopens_date(
        self,
        client: TestClient,
        payments,
        reservation_service: BookingReservationService,
        published: list,
    ) -> None:
        client.post(
            "/bookings/checkout",
            json={
                "packageId": "pkg_full_day",
                "eventDate": EVENT_DATE,
                "customerName": "Ana García",
                "email": "ana@example.com",
            },
            headers=HEADERS,
        )
        session = payments.sessions[0]
        _deliver(client, _completed_event(session))

        reservation_service.cancel_booking(TENANT_ID, booking_id_for(TENANT_ID, session["session_id"]))

        availability = client.get("/availability", params={"date": EVENT_DATE}, headers=HEADERS)
        assert availability.json()["available"] is True
        booking = client.get("/bookings", headers=HEADERS).json()["bookings"][0]
        assert booking["status"] == "CANCELED"
        assert isinstance(published[-1], BookingStatusChanged)


# === DynamoDB Flow ===


class TestDynamoDBFlow:
    @pytest.fixture
    def wiring(
        self, dynamodb_catalog: DynamoDBService, payments, clock
    ) -> tuple[BookingReservationService, PaymentEventIngestor, DynamoDBWebhookEventRepository, list]:
        catalog = DynamoDBCatalog(db=dynamodb_catalog)
        store = DynamoDBBookingStore(db=dynamodb_catalog, catalog=catalog, clock=clock)
        availability = AvailabilityChecker(
            blackouts=DynamoDBBlackoutRepository(db=dynamodb_catalog),
            bookings=store,
            calendar=NullCalendarProvider(),
        )
        bus = InProcessEventBus()
        published: list = []
        bus.subscribe(BookingConfirmed, published.append)
        service = BookingReservationService(
            catalog=catalog,
            availability=availability,
            bookings=store,
            payments=payments,
            idempotency=DynamoDBIdempotencyLedger(db=dynamodb_catalog, clock=clock),
            events=bus,
            clock=clock,
        )
        ledger = DynamoDBWebhookEventRepository(db=dynamodb_catalog, clock=clock)
        ingestor = PaymentEventIngestor(
            payments=payments, ledger=ledger, reservations=service, clock=clock
        )
        return service, ingestor, ledger, published

    def test_checkout_and_payment(self, wiring, payments) -> None:
        service, ingestor, ledger, published = wiring
        result = service.create_checkout(
            TENANT_ID,
            CheckoutInput(
                package_id="pkg_full_day",
                event_date=EVENT_DATE,
                customer_name="Ana García",
                email="ana@example.com",
                add_on_ids=["addon_dj"],
            ),
            idempotency_key="order-1",
        )
        session = payments.sessions[0]
        assert result.checkout_url.endswith(session["session_id"])

        event = _completed_event(session)
        payload = json.dumps(event).encode()

        assert ingestor.ingest(payload, VALID_SIGNATURE) == IngestOutcome.PROCESSED
        assert ingestor.ingest(payload, VALID_SIGNATURE) == IngestOutcome.DUPLICATE

        booking = service.get_booking(TENANT_ID, booking_id_for(TENANT_ID, session["session_id"]))
        assert booking.status == BookingStatus.PAID
        assert booking.total_cents == 300000
        assert not service.availability.check_availability(TENANT_ID, booking.event_date).available

        entry = ledger.get(TENANT_ID, "evt_flow_1")
        assert entry.status == WebhookEventStatus.PROCESSED
        assert entry.booking_id == booking.booking_id
        assert len(published) == 1

    def test_refund_frees_date(self, wiring, payments, checkout_event) -> None:
        service, ingestor, _, _ = wiring
        ingestor.ingest(json.dumps(checkout_event()).encode(), VALID_SIGNATURE)
        booking_id = booking_id_for(TENANT_ID, "cs_test_abc")

        refunded = service.mark_refunded(TENANT_ID, booking_id)

        assert refunded.status == BookingStatus.REFUNDED
        assert service.availability.check_availability(TENANT_ID, refunded.event_date).available

        rebooked = ingestor.ingest(
            json.dumps(checkout_event(event_id="evt_test_2", session_id="cs_test_new")).encode(),
            VALID_SIGNATURE,
        )
        assert rebooked == IngestOutcome.PROCESSED
