"""Pytest configuration and fixtures for the event booking backend tests.

This module provides reusable fixtures for testing:
- DynamoDB mocking with moto
- An in-memory wiring of every port with a controllable clock
- A sample catalog and Stripe-shaped webhook events
"""

import itertools
import json
import os
from collections.abc import Callable
from datetime import date, datetime, timedelta, timezone
from typing import Any, Generator

import boto3
import pytest
from moto import mock_aws

# === Environment Setup ===

# Set environment variables for testing before imports
os.environ.setdefault("AWS_DEFAULT_REGION", "eu-west-1")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DYNAMODB_TABLE_PREFIX", "test-eventbook")
os.environ.setdefault("STORE_BACKEND", "memory")

# Only set fake credentials for moto if no real credentials are present
if not os.environ.get("AWS_PROFILE") and not os.environ.get("AWS_ACCESS_KEY_ID"):
    os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
    os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")

from eventbook.models.catalog import AddOn, Package  # noqa: E402
from eventbook.models.checkout import CheckoutSession  # noqa: E402
from eventbook.models.errors import WebhookValidationError  # noqa: E402
from eventbook.models.events import DomainEvent  # noqa: E402
from eventbook.ports import PaymentProvider  # noqa: E402
from eventbook.services.availability import AvailabilityChecker  # noqa: E402
from eventbook.services.blackouts import InMemoryBlackoutRepository  # noqa: E402
from eventbook.services.booking_store import InMemoryBookingStore  # noqa: E402
from eventbook.services.calendar import NullCalendarProvider  # noqa: E402
from eventbook.services.catalog import InMemoryCatalog  # noqa: E402
from eventbook.services.dynamodb import DynamoDBService  # noqa: E402
from eventbook.services.events import InProcessEventBus  # noqa: E402
from eventbook.services.idempotency import InMemoryIdempotencyLedger  # noqa: E402
from eventbook.services.reservation import BookingReservationService  # noqa: E402
from eventbook.services.webhook_handler import PaymentEventIngestor  # noqa: E402
from eventbook.services.webhook_ledger import InMemoryWebhookEventRepository  # noqa: E402

# === Test Constants ===

TENANT_ID = "tn_lakeside"
OTHER_TENANT_ID = "tn_harbour"
TEST_TABLE_PREFIX = "test-eventbook"
EVENT_DATE = date(2025, 6, 15)
VALID_SIGNATURE = "t=1700000000,v1=valid"

PACKAGE_ID = "pkg_full_day"
PACKAGE_PRICE = 250000
ADD_ON_DJ = "addon_dj"
ADD_ON_PHOTO = "addon_photo"


# === Singletons ===


@pytest.fixture(autouse=True)
def reset_singletons() -> Generator[None, None, None]:
    """Reset cached config and service singletons around each test.

    This ensures tests using mock_aws get fresh service instances inside the
    mock context rather than reusing one from a previous test.
    """
    from eventbook.config import load_config
    from eventbook.services.ssm_service import reset_ssm_service
    from eventbook.services.stripe_service import get_stripe_service
    from eventbook_api.dependencies import reset_services

    def reset() -> None:
        load_config.cache_clear()
        reset_ssm_service()
        get_stripe_service.cache_clear()
        reset_services()

    reset()
    yield
    reset()


# === Clock and Test Doubles ===


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 1, 10, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FakePaymentProvider(PaymentProvider):
    """Records checkout sessions and accepts a fixed webhook signature."""

    def __init__(self) -> None:
        self.sessions: list[dict[str, Any]] = []
        self._ids = itertools.count(1)

    def create_checkout_session(
        self,
        *,
        amount_cents: int,
        description: str,
        customer_email: str,
        metadata: dict[str, str],
        idempotency_key: str | None = None,
    ) -> CheckoutSession:
        session_id = f"cs_test_{next(self._ids)}"
        self.sessions.append(
            {
                "session_id": session_id,
                "amount_cents": amount_cents,
                "description": description,
                "customer_email": customer_email,
                "metadata": metadata,
                "idempotency_key": idempotency_key,
            }
        )
        return CheckoutSession(
            session_id=session_id,
            checkout_url=f"https://checkout.stripe.com/c/pay/{session_id}",
        )

    def verify_webhook(self, payload: bytes, signature: str) -> dict[str, Any]:
        if signature != VALID_SIGNATURE:
            raise WebhookValidationError("Invalid webhook signature")
        try:
            event: dict[str, Any] = json.loads(payload)
        except ValueError as e:
            raise WebhookValidationError("Invalid webhook payload") from e
        return event


# === In-memory Wiring ===


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def catalog() -> InMemoryCatalog:
    """Catalog with one full-day package, two add-ons and distractors."""
    return InMemoryCatalog(
        packages=[
            Package(
                package_id=PACKAGE_ID,
                tenant_id=TENANT_ID,
                title="Full Day Wedding",
                price_cents=PACKAGE_PRICE,
            ),
            Package(
                package_id="pkg_evening",
                tenant_id=TENANT_ID,
                title="Evening Reception",
                price_cents=120000,
            ),
            Package(
                package_id="pkg_retired",
                tenant_id=TENANT_ID,
                title="Retired Package",
                price_cents=90000,
                active=False,
            ),
            Package(
                package_id=PACKAGE_ID,
                tenant_id=OTHER_TENANT_ID,
                title="Harbour Full Day",
                price_cents=300000,
            ),
        ],
        add_ons=[
            AddOn(
                add_on_id=ADD_ON_DJ,
                tenant_id=TENANT_ID,
                package_id=PACKAGE_ID,
                title="DJ",
                price_cents=50000,
            ),
            AddOn(
                add_on_id=ADD_ON_PHOTO,
                tenant_id=TENANT_ID,
                package_id=PACKAGE_ID,
                title="Photographer",
                price_cents=30000,
            ),
            AddOn(
                add_on_id="addon_candles",
                tenant_id=TENANT_ID,
                package_id="pkg_evening",
                title="Candles",
                price_cents=5000,
            ),
        ],
    )


@pytest.fixture
def blackouts() -> InMemoryBlackoutRepository:
    return InMemoryBlackoutRepository()


@pytest.fixture
def calendar() -> NullCalendarProvider:
    return NullCalendarProvider()


@pytest.fixture
def booking_store(catalog: InMemoryCatalog, clock: FakeClock) -> InMemoryBookingStore:
    return InMemoryBookingStore(catalog=catalog, clock=clock)


@pytest.fixture
def availability(
    blackouts: InMemoryBlackoutRepository,
    booking_store: InMemoryBookingStore,
    calendar: NullCalendarProvider,
) -> AvailabilityChecker:
    return AvailabilityChecker(blackouts=blackouts, bookings=booking_store, calendar=calendar)


@pytest.fixture
def payments() -> FakePaymentProvider:
    return FakePaymentProvider()


@pytest.fixture
def idempotency(clock: FakeClock) -> InMemoryIdempotencyLedger:
    return InMemoryIdempotencyLedger(clock=clock)


@pytest.fixture
def webhook_ledger(clock: FakeClock) -> InMemoryWebhookEventRepository:
    return InMemoryWebhookEventRepository(clock=clock)


@pytest.fixture
def event_bus() -> InProcessEventBus:
    return InProcessEventBus()


@pytest.fixture
def published(event_bus: InProcessEventBus) -> list[DomainEvent]:
    """Every event published on the bus, in order."""
    events: list[DomainEvent] = []
    event_bus.subscribe(DomainEvent, events.append)
    return events


@pytest.fixture
def reservation_service(
    catalog: InMemoryCatalog,
    availability: AvailabilityChecker,
    booking_store: InMemoryBookingStore,
    payments: FakePaymentProvider,
    idempotency: InMemoryIdempotencyLedger,
    event_bus: InProcessEventBus,
    clock: FakeClock,
) -> BookingReservationService:
    return BookingReservationService(
        catalog=catalog,
        availability=availability,
        bookings=booking_store,
        payments=payments,
        idempotency=idempotency,
        events=event_bus,
        clock=clock,
    )


@pytest.fixture
def ingestor(
    payments: FakePaymentProvider,
    webhook_ledger: InMemoryWebhookEventRepository,
    reservation_service: BookingReservationService,
    clock: FakeClock,
) -> PaymentEventIngestor:
    return PaymentEventIngestor(
        payments=payments,
        ledger=webhook_ledger,
        reservations=reservation_service,
        stale_after=timedelta(seconds=60),
        clock=clock,
    )


# === Webhook Payloads ===


def make_checkout_event(
    event_id: str = "evt_test_1",
    session_id: str = "cs_test_abc",
    event_type: str = "checkout.session.completed",
    payment_status: str = "paid",
    tenant_id: str = TENANT_ID,
    event_date: str = EVENT_DATE.isoformat(),
    add_on_ids: list[str] | None = None,
    amount_total: int | None = PACKAGE_PRICE,
    **metadata_overrides: Any,
) -> dict[str, Any]:
    """Build a Stripe checkout.session.* event as Stripe would send it."""
    metadata: dict[str, Any] = {
        "tenantId": tenant_id,
        "packageId": PACKAGE_ID,
        "eventDate": event_date,
        "email": "ana@example.com",
        "customerName": "Ana García",
        "phone": "+34600000000",
        "addOnIds": json.dumps(add_on_ids or []),
    }
    metadata.update(metadata_overrides)
    return {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "created": 1736510400,
        "data": {
            "object": {
                "id": session_id,
                "object": "checkout.session",
                "amount_total": amount_total,
                "currency": "eur",
                "payment_status": payment_status,
                "status": "complete",
                "metadata": metadata,
            }
        },
    }


@pytest.fixture
def checkout_event() -> Callable[..., dict[str, Any]]:
    return make_checkout_event


# === DynamoDB Fixtures ===


TABLE_DEFINITIONS: list[dict[str, Any]] = [
    {
        "TableName": "bookings",
        "KeySchema": [
            {"AttributeName": "tenant_id", "KeyType": "HASH"},
            {"AttributeName": "booking_id", "KeyType": "RANGE"},
        ],
        "AttributeDefinitions": [
            {"AttributeName": "tenant_id", "AttributeType": "S"},
            {"AttributeName": "booking_id", "AttributeType": "S"},
            {"AttributeName": "event_date", "AttributeType": "S"},
        ],
        "GlobalSecondaryIndexes": [
            {
                "IndexName": "event_date-index",
                "KeySchema": [
                    {"AttributeName": "tenant_id", "KeyType": "HASH"},
                    {"AttributeName": "event_date", "KeyType": "RANGE"},
                ],
                "Projection": {"ProjectionType": "ALL"},
            },
        ],
    },
    {"TableName": "date-claims", "Keys": [("claim_key", "HASH")]},
    {"TableName": "date-locks", "Keys": [("lock_key", "HASH")]},
    {"TableName": "customers", "Keys": [("tenant_id", "HASH"), ("email", "RANGE")]},
    {"TableName": "blackouts", "Keys": [("tenant_id", "HASH"), ("date", "RANGE")]},
    {"TableName": "packages", "Keys": [("tenant_id", "HASH"), ("package_id", "RANGE")]},
    {"TableName": "add-ons", "Keys": [("tenant_id", "HASH"), ("add_on_id", "RANGE")]},
    {"TableName": "webhook-events", "Keys": [("tenant_id", "HASH"), ("event_id", "RANGE")]},
    {"TableName": "idempotency-keys", "Keys": [("key", "HASH")]},
    {"TableName": "tenants", "Keys": [("api_key", "HASH")]},
]


def _table_spec(definition: dict[str, Any], prefix: str) -> dict[str, Any]:
    spec = {k: v for k, v in definition.items() if k != "Keys"}
    spec["TableName"] = f"{prefix}-{definition['TableName']}"
    if "Keys" in definition:
        spec["KeySchema"] = [
            {"AttributeName": name, "KeyType": key_type} for name, key_type in definition["Keys"]
        ]
        spec["AttributeDefinitions"] = [
            {"AttributeName": name, "AttributeType": "S"} for name, _ in definition["Keys"]
        ]
    spec["BillingMode"] = "PAY_PER_REQUEST"
    return spec


@pytest.fixture
def aws_credentials() -> None:
    """Mocked AWS Credentials for moto."""
    if not os.environ.get("AWS_PROFILE"):
        os.environ["AWS_ACCESS_KEY_ID"] = "testing"
        os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
        os.environ["AWS_SECURITY_TOKEN"] = "testing"
        os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "eu-west-1"


@pytest.fixture
def dynamodb(aws_credentials: None) -> Generator[DynamoDBService, None, None]:
    """Mocked DynamoDB with every table created, wrapped in the service."""
    with mock_aws():
        client = boto3.client("dynamodb", region_name="eu-west-1")
        for definition in TABLE_DEFINITIONS:
            client.create_table(**_table_spec(definition, TEST_TABLE_PREFIX))
        yield DynamoDBService(table_prefix=TEST_TABLE_PREFIX)


@pytest.fixture
def dynamodb_catalog(dynamodb: DynamoDBService, catalog: InMemoryCatalog) -> DynamoDBService:
    """Seed the packages and add-ons tables from the sample catalog."""
    for tenant in (TENANT_ID, OTHER_TENANT_ID):
        for package_id in (PACKAGE_ID, "pkg_evening", "pkg_retired"):
            package = catalog.get_package(tenant, package_id)
            if package is not None:
                dynamodb.put_item("packages", package.model_dump())
        for add_on in catalog.get_add_ons(tenant, [ADD_ON_DJ, ADD_ON_PHOTO, "addon_candles"]):
            dynamodb.put_item("add-ons", add_on.model_dump())
    return dynamodb
