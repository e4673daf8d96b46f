"""Backend services for event package bookings."""

from .availability import AvailabilityChecker
from .booking_store import DynamoDBBookingStore, InMemoryBookingStore
from .dynamodb import DynamoDBService, TransactionCancelledError, get_dynamodb_service
from .events import InProcessEventBus
from .idempotency import DynamoDBIdempotencyLedger, InMemoryIdempotencyLedger, generate_key
from .reservation import BookingReservationService, booking_id_for
from .ssm_service import SSMService, SSMServiceError, get_ssm_service
from .stripe_service import StripeService, get_stripe_service
from .webhook_handler import IngestOutcome, PaymentEventIngestor
from .webhook_ledger import DynamoDBWebhookEventRepository, InMemoryWebhookEventRepository

__all__ = [
    "AvailabilityChecker",
    "BookingReservationService",
    "DynamoDBBookingStore",
    "DynamoDBIdempotencyLedger",
    "DynamoDBService",
    "DynamoDBWebhookEventRepository",
    "InMemoryBookingStore",
    "InMemoryIdempotencyLedger",
    "InMemoryWebhookEventRepository",
    "InProcessEventBus",
    "IngestOutcome",
    "PaymentEventIngestor",
    "SSMService",
    "SSMServiceError",
    "StripeService",
    "TransactionCancelledError",
    "booking_id_for",
    "generate_key",
    "get_dynamodb_service",
    "get_ssm_service",
    "get_stripe_service",
]
