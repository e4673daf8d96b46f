"""Checkout and booking endpoints.

Provides REST endpoints for:
- Starting a Stripe checkout for a package on a date
- Listing and reading the tenant's bookings

Bookings themselves are created by the payment webhook once the payment is
captured. Checkout does not hold the date; it only returns a payment URL.
"""

from fastapi import APIRouter, Depends, Header

from eventbook.services.reservation import BookingReservationService
from eventbook_api.dependencies import get_reservation_service, get_tenant_id
from eventbook_api.models.bookings import (
    BookingListResponse,
    BookingResponse,
    CheckoutRequest,
    CheckoutResponse,
)

router = APIRouter(tags=["bookings"])


@router.post(
    "/bookings/checkout",
    summary="Start checkout",
    description="""
Validate the package, add-ons and date, then create a Stripe Checkout
Session. Redirect the customer to `checkoutUrl` to pay.

Send an `Idempotency-Key` header to make retries safe: a repeated request
with the same key returns the first `checkoutUrl`.
""",
    response_model=CheckoutResponse,
    responses={
        400: {"description": "Unknown add-on, or add-on of another package"},
        401: {"description": "Missing or unknown X-Tenant-Key"},
        404: {"description": "Unknown package"},
        409: {"description": "Date unavailable, or a request with the same key is in progress"},
        422: {"description": "Request body validation failed"},
        502: {"description": "Payment provider error"},
    },
)
def create_checkout(
    request: CheckoutRequest,
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key", max_length=255),
    tenant_id: str = Depends(get_tenant_id),
    service: BookingReservationService = Depends(get_reservation_service),
) -> CheckoutResponse:
    result = service.create_checkout(tenant_id, request.to_input(), idempotency_key=idempotency_key)
    return CheckoutResponse(checkout_url=result.checkout_url)


@router.get(
    "/bookings",
    summary="List bookings",
    response_model=BookingListResponse,
    responses={401: {"description": "Missing or unknown X-Tenant-Key"}},
)
def list_bookings(
    tenant_id: str = Depends(get_tenant_id),
    service: BookingReservationService = Depends(get_reservation_service),
) -> BookingListResponse:
    """All bookings of the calling tenant, most recent first."""
    bookings = service.list_bookings(tenant_id)
    return BookingListResponse(bookings=[BookingResponse.from_booking(b) for b in bookings])


@router.get(
    "/bookings/{booking_id}",
    summary="Get booking",
    response_model=BookingResponse,
    responses={
        401: {"description": "Missing or unknown X-Tenant-Key"},
        404: {"description": "Booking not found"},
    },
)
def get_booking(
    booking_id: str,
    tenant_id: str = Depends(get_tenant_id),
    service: BookingReservationService = Depends(get_reservation_service),
) -> BookingResponse:
    return BookingResponse.from_booking(service.get_booking(tenant_id, booking_id))
