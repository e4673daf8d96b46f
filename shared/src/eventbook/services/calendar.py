"""External calendar providers consulted last by the availability check."""

import logging
from datetime import date, datetime, time, timedelta, timezone

import httpx

from eventbook.models.errors import CalendarProviderError
from eventbook.ports import CalendarProvider

from .ssm_service import SSMService, SSMServiceError

logger = logging.getLogger(__name__)

FREEBUSY_URL = "https://www.googleapis.com/calendar/v3/freeBusy"
DEFAULT_TIMEOUT_SECONDS = 3.0


class NullCalendarProvider(CalendarProvider):
    """Used when no external calendar is connected. Every date is free."""

    def is_date_available(self, tenant_id: str, day: date) -> bool:
        return True


class GoogleCalendarProvider(CalendarProvider):
    """Google Calendar free/busy lookup.

    A date is unavailable when the calendar has any busy block overlapping
    that whole UTC day. The OAuth access token is read from Parameter Store
    under ``google/calendar_token``.
    """

    def __init__(
        self,
        calendar_id: str,
        ssm: SSMService,
        client: httpx.Client | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize the provider.

        Args:
            calendar_id: Google calendar ID ("primary" or an address)
            ssm: Parameter Store service holding the access token
            client: Optional preconfigured HTTP client
            timeout: Request timeout in seconds
        """
        self._calendar_id = calendar_id
        self._ssm = ssm
        self._client = client or httpx.Client(timeout=timeout)

    def _token(self) -> str:
        try:
            return self._ssm.get_secret("google/calendar_token")
        except SSMServiceError as e:
            raise CalendarProviderError(f"Calendar credentials unavailable: {e}") from e

    def is_date_available(self, tenant_id: str, day: date) -> bool:
        """Query free/busy for one day.

        Args:
            tenant_id: Tenant the lookup is for (logged only)
            day: Calendar date to check

        Returns:
            True when the calendar has no busy blocks that day

        Raises:
            CalendarProviderError: On transport or API failure
        """
        start = datetime.combine(day, time.min, tzinfo=timezone.utc)
        body = {
            "timeMin": start.isoformat(),
            "timeMax": (start + timedelta(days=1)).isoformat(),
            "items": [{"id": self._calendar_id}],
        }

        try:
            response = self._client.post(
                FREEBUSY_URL,
                json=body,
                headers={"Authorization": f"Bearer {self._token()}"},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Calendar lookup failed for tenant %s on %s: %s", tenant_id, day, e)
            raise CalendarProviderError(f"Calendar lookup failed: {e}") from e

        try:
            calendar = response.json().get("calendars", {}).get(self._calendar_id, {})
            errors = calendar.get("errors")
            busy = list(calendar.get("busy") or [])
        except (ValueError, AttributeError, TypeError) as e:
            logger.warning("Unreadable calendar response for tenant %s on %s: %s", tenant_id, day, e)
            raise CalendarProviderError("Calendar returned an unreadable response") from e

        if errors:
            raise CalendarProviderError(f"Calendar returned errors: {errors}")

        logger.debug("Calendar %s has %d busy blocks on %s", self._calendar_id, len(busy), day)
        return not busy
