"""Availability endpoints.

Provides REST endpoints for:
- Checking whether a single date can be reserved
- Listing booked and blacked-out dates in a range

All dates are in YYYY-MM-DD format. Both endpoints are tenant-scoped through
the X-Tenant-Key header.
"""

import datetime as dt

from fastapi import APIRouter, Depends, HTTPException, Query
from starlette.status import HTTP_400_BAD_REQUEST

from eventbook.services.availability import AvailabilityChecker
from eventbook_api.dependencies import get_availability_checker, get_tenant_id
from eventbook_api.models.availability import AvailabilityResponse, UnavailableDatesResponse

router = APIRouter(tags=["availability"])

# Longest range a single unavailable-dates query may span
MAX_RANGE_DAYS = 366


@router.get(
    "/availability",
    summary="Check date availability",
    description="""
Check whether a date can be booked.

Sources are consulted in order (blackout dates, existing bookings, external
calendar) and the first one that blocks the date is reported as `reason`.
`reason` is omitted when the date is available.
""",
    response_model=AvailabilityResponse,
    response_model_exclude_none=True,
    responses={
        200: {
            "description": "Availability check completed",
            "content": {
                "application/json": {
                    "example": {"date": "2025-06-15", "available": False, "reason": "booked"}
                }
            },
        },
        401: {"description": "Missing or unknown X-Tenant-Key"},
        503: {"description": "External calendar unavailable"},
    },
)
def check_availability(
    date: dt.date = Query(..., description="Date to check (YYYY-MM-DD)", examples=["2025-06-15"]),
    tenant_id: str = Depends(get_tenant_id),
    checker: AvailabilityChecker = Depends(get_availability_checker),
) -> AvailabilityResponse:
    result = checker.check_availability(tenant_id, date)
    return AvailabilityResponse(date=result.date, available=result.available, reason=result.reason)


@router.get(
    "/availability/unavailable",
    summary="List unavailable dates",
    description="""
List every booked or blacked-out date between `startDate` and `endDate`
(both inclusive), ascending and without duplicates. The external calendar is
not consulted.
""",
    response_model=UnavailableDatesResponse,
    responses={
        400: {"description": "endDate before startDate, or range longer than 366 days"},
        401: {"description": "Missing or unknown X-Tenant-Key"},
    },
)
def get_unavailable_dates(
    start_date: dt.date = Query(..., alias="startDate", examples=["2025-06-01"]),
    end_date: dt.date = Query(..., alias="endDate", examples=["2025-06-30"]),
    tenant_id: str = Depends(get_tenant_id),
    checker: AvailabilityChecker = Depends(get_availability_checker),
) -> UnavailableDatesResponse:
    if end_date < start_date:
        raise HTTPException(
            status_code=HTTP_400_BAD_REQUEST,
            detail="endDate must not be before startDate",
        )
    if (end_date - start_date).days > MAX_RANGE_DAYS:
        raise HTTPException(
            status_code=HTTP_400_BAD_REQUEST,
            detail=f"Date range must not exceed {MAX_RANGE_DAYS} days",
        )

    return UnavailableDatesResponse(dates=checker.get_unavailable_dates(tenant_id, start_date, end_date))
