"""FastAPI dependency injection providers for shared services.

This module provides factory functions for service instances using @lru_cache
to ensure singleton behavior within a process. Services are lazily
instantiated and cached.

Usage in routes:
    from eventbook_api.dependencies import get_reservation_service

    @router.post("/bookings/checkout")
    async def checkout(
        service: BookingReservationService = Depends(get_reservation_service),
    ):
        ...

Service Dependency Graph:
    DynamoDBService (singleton via get_dynamodb_service)
        ├── CatalogProvider
        │       └── BookingStore
        ├── BlackoutRepository ─┐
        │                       ├── AvailabilityChecker
        ├── CalendarProvider ───┘
        ├── IdempotencyLedger
        └── WebhookEventRepository
    BookingReservationService (catalog, availability, store, Stripe, ledger, bus)
        └── PaymentEventIngestor

Setting STORE_BACKEND=memory swaps every DynamoDB-backed port for its
in-memory counterpart, which is useful for local runs without AWS.

Testing:
    Use reset_services() to clear cached instances between tests, or
    app.dependency_overrides for per-test collaborators.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from functools import lru_cache

from fastapi import Header

from eventbook.config import AppConfig, load_config
from eventbook.models.errors import TenantRequiredError
from eventbook.ports import (
    BlackoutRepository,
    BookingStore,
    CalendarProvider,
    CatalogProvider,
    IdempotencyLedger,
    PaymentProvider,
    TenantResolver,
    WebhookEventRepository,
)
from eventbook.services.availability import AvailabilityChecker
from eventbook.services.blackouts import DynamoDBBlackoutRepository, InMemoryBlackoutRepository
from eventbook.services.booking_store import DynamoDBBookingStore, InMemoryBookingStore
from eventbook.services.calendar import GoogleCalendarProvider, NullCalendarProvider
from eventbook.services.catalog import DynamoDBCatalog, InMemoryCatalog
from eventbook.services.dynamodb import get_dynamodb_service
from eventbook.services.events import InProcessEventBus
from eventbook.services.idempotency import DynamoDBIdempotencyLedger, InMemoryIdempotencyLedger
from eventbook.services.notification_service import SesNotificationSink
from eventbook.services.reservation import BookingReservationService
from eventbook.services.ssm_service import get_ssm_service
from eventbook.services.stripe_service import get_stripe_service
from eventbook.services.tenants import DynamoDBTenantResolver, StaticTenantResolver
from eventbook.services.webhook_handler import PaymentEventIngestor
from eventbook.services.webhook_ledger import (
    DynamoDBWebhookEventRepository,
    InMemoryWebhookEventRepository,
)

TENANT_KEY_HEADER = "X-Tenant-Key"

# Worker threads for event subscribers such as the confirmation email
EVENT_WORKERS = 4


@lru_cache
def get_config() -> AppConfig:
    """Get the loaded application config."""
    return load_config()


def _memory_backend() -> bool:
    return get_config().store_backend == "memory"


@lru_cache
def get_catalog() -> CatalogProvider:
    if _memory_backend():
        return InMemoryCatalog()
    return DynamoDBCatalog(db=get_dynamodb_service())


@lru_cache
def get_blackouts() -> BlackoutRepository:
    if _memory_backend():
        return InMemoryBlackoutRepository()
    return DynamoDBBlackoutRepository(db=get_dynamodb_service())


@lru_cache
def get_calendar() -> CalendarProvider:
    """Get the external calendar selected by CALENDAR_PROVIDER."""
    config = get_config()
    if config.calendar_provider == "google":
        return GoogleCalendarProvider(calendar_id=config.google_calendar_id, ssm=get_ssm_service())
    return NullCalendarProvider()


@lru_cache
def get_booking_store() -> BookingStore:
    if _memory_backend():
        return InMemoryBookingStore(catalog=get_catalog())
    return DynamoDBBookingStore(
        db=get_dynamodb_service(),
        catalog=get_catalog(),
        transaction_timeout=get_config().booking_transaction_timeout_seconds,
    )


@lru_cache
def get_availability_checker() -> AvailabilityChecker:
    """Get cached AvailabilityChecker instance.

    Returns:
        AvailabilityChecker over blackouts, bookings and the calendar.
    """
    return AvailabilityChecker(
        blackouts=get_blackouts(),
        bookings=get_booking_store(),
        calendar=get_calendar(),
    )


@lru_cache
def get_payment_provider() -> PaymentProvider:
    return get_stripe_service()


@lru_cache
def get_idempotency_ledger() -> IdempotencyLedger:
    ttl = timedelta(hours=get_config().idempotency_ttl_hours)
    if _memory_backend():
        return InMemoryIdempotencyLedger(ttl=ttl)
    return DynamoDBIdempotencyLedger(db=get_dynamodb_service(), ttl=ttl)


@lru_cache
def get_webhook_ledger() -> WebhookEventRepository:
    if _memory_backend():
        return InMemoryWebhookEventRepository()
    return DynamoDBWebhookEventRepository(db=get_dynamodb_service())


@lru_cache
def get_event_executor() -> ThreadPoolExecutor:
    return ThreadPoolExecutor(max_workers=EVENT_WORKERS, thread_name_prefix="events")


@lru_cache
def get_event_bus() -> InProcessEventBus:
    """Get the event bus with the confirmation email sink subscribed.

    Subscribers run on a background executor so a slow SES call never holds
    up the payment webhook that published the event. The memory backend runs
    without AWS, so no SES sink is attached there.
    """
    bus = InProcessEventBus(executor=get_event_executor())
    config = get_config()
    if not _memory_backend():
        SesNotificationSink(
            from_email=config.ses_from_email,
            region=config.ses_region,
            currency=config.stripe_currency,
        ).subscribe(bus)
    return bus


@lru_cache
def get_reservation_service() -> BookingReservationService:
    """Get cached BookingReservationService instance.

    Returns:
        BookingReservationService configured with all required dependencies.
    """
    return BookingReservationService(
        catalog=get_catalog(),
        availability=get_availability_checker(),
        bookings=get_booking_store(),
        payments=get_payment_provider(),
        idempotency=get_idempotency_ledger(),
        events=get_event_bus(),
    )


@lru_cache
def get_payment_ingestor() -> PaymentEventIngestor:
    return PaymentEventIngestor(
        payments=get_payment_provider(),
        ledger=get_webhook_ledger(),
        reservations=get_reservation_service(),
        stale_after=timedelta(seconds=get_config().webhook_stale_after_seconds),
    )


@lru_cache
def get_tenant_resolver() -> TenantResolver:
    if _memory_backend():
        return StaticTenantResolver(get_config().tenant_keys)
    return DynamoDBTenantResolver(db=get_dynamodb_service())


def get_tenant_id(
    x_tenant_key: str | None = Header(default=None, alias=TENANT_KEY_HEADER),
) -> str:
    """Resolve the calling tenant from the X-Tenant-Key header.

    Raises:
        TenantRequiredError: Header missing or key unknown
    """
    if not x_tenant_key:
        raise TenantRequiredError()
    tenant_id = get_tenant_resolver().resolve(x_tenant_key)
    if tenant_id is None:
        raise TenantRequiredError()
    return tenant_id


def reset_services() -> None:
    """Clear all cached service instances.

    Call this in test fixtures to ensure clean state between tests.
    Also resets the underlying DynamoDB singleton.

    Example:
        @pytest.fixture(autouse=True)
        def reset_state():
            yield
            reset_services()
    """
    from eventbook.services.dynamodb import reset_dynamodb_service

    for provider in (
        get_config,
        get_catalog,
        get_blackouts,
        get_calendar,
        get_booking_store,
        get_availability_checker,
        get_payment_provider,
        get_idempotency_ledger,
        get_webhook_ledger,
        get_event_bus,
        get_reservation_service,
        get_payment_ingestor,
        get_tenant_resolver,
    ):
        provider.cache_clear()

    if get_event_executor.cache_info().currsize:
        get_event_executor().shutdown(wait=False)
    get_event_executor.cache_clear()

    reset_dynamodb_service()
