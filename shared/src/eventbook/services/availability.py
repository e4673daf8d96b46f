"""Availability checking for event dates."""

import logging
from datetime import date

from eventbook.models.availability import AvailabilityResult
from eventbook.models.enums import UnavailableReason
from eventbook.ports import BlackoutRepository, BookingStore, CalendarProvider

logger = logging.getLogger(__name__)


class AvailabilityChecker:
    """Answers whether a date can be reserved.

    Sources are consulted in a fixed order and evaluation stops at the first
    one that blocks the date:

    1. Blackout dates (administrative blocks)
    2. PAID bookings
    3. External calendar

    Read-only; safe to share between concurrent requests.
    """

    def __init__(
        self,
        blackouts: BlackoutRepository,
        bookings: BookingStore,
        calendar: CalendarProvider,
    ) -> None:
        """Initialize availability checker.

        Args:
            blackouts: Blackout date repository
            bookings: Booking store
            calendar: External calendar provider
        """
        self.blackouts = blackouts
        self.bookings = bookings
        self.calendar = calendar

    def check_availability(self, tenant_id: str, day: date) -> AvailabilityResult:
        """Check whether a single date is bookable.

        Args:
            tenant_id: Tenant the date belongs to
            day: Calendar date to check

        Returns:
            AvailabilityResult with the first blocking reason, if any

        Raises:
            CalendarProviderError: If the calendar had to be consulted and failed
        """
        if self.blackouts.is_blackout(tenant_id, day):
            return AvailabilityResult(date=day, available=False, reason=UnavailableReason.BLACKOUT)

        if self.bookings.is_date_booked(tenant_id, day):
            return AvailabilityResult(date=day, available=False, reason=UnavailableReason.BOOKED)

        if not self.calendar.is_date_available(tenant_id, day):
            return AvailabilityResult(date=day, available=False, reason=UnavailableReason.CALENDAR)

        return AvailabilityResult(date=day, available=True)

    def get_unavailable_dates(self, tenant_id: str, start: date, end: date) -> list[date]:
        """Get every booked or blacked-out date in a range.

        Uses one range query per source rather than one lookup per day. The
        external calendar is not consulted.

        Args:
            tenant_id: Tenant to query
            start: First date of the range (inclusive)
            end: Last date of the range (inclusive)

        Returns:
            Sorted, de-duplicated list of dates
        """
        booked = self.bookings.get_unavailable_dates(tenant_id, start, end)
        blacked_out = [b.date for b in self.blackouts.list_in_range(tenant_id, start, end)]

        dates = sorted(set(booked) | set(blacked_out))
        logger.debug(
            "Tenant %s has %d unavailable dates between %s and %s",
            tenant_id,
            len(dates),
            start,
            end,
        )
        return dates
