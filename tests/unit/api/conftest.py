"""Fixtures for API route tests.

The app is wired to the in-memory services from the root conftest through
FastAPI dependency overrides. Tenants resolve through TENANT_KEYS on the
memory backend.
"""

from typing import Generator

import pytest
from fastapi.testclient import TestClient

from eventbook.services.availability import AvailabilityChecker
from eventbook.services.reservation import BookingReservationService
from eventbook.services.webhook_handler import PaymentEventIngestor
from eventbook_api.dependencies import (
    get_availability_checker,
    get_payment_ingestor,
    get_reservation_service,
)
from eventbook_api.main import app

LAKESIDE_KEY = "key-lakeside"
HARBOUR_KEY = "key-harbour"


@pytest.fixture
def api_client(
    monkeypatch: pytest.MonkeyPatch,
    reservation_service: BookingReservationService,
    availability: AvailabilityChecker,
    ingestor: PaymentEventIngestor,
) -> Generator[TestClient, None, None]:
    """TestClient over the in-memory wiring.

    Server exceptions are turned into responses so the generic 500 handler
    can be asserted on.
    """
    monkeypatch.setenv("TENANT_KEYS", f"{LAKESIDE_KEY}=tn_lakeside,{HARBOUR_KEY}=tn_harbour")
    app.dependency_overrides[get_reservation_service] = lambda: reservation_service
    app.dependency_overrides[get_availability_checker] = lambda: availability
    app.dependency_overrides[get_payment_ingestor] = lambda: ingestor

    yield TestClient(app, raise_server_exceptions=False)

    app.dependency_overrides.clear()
