"""Unit tests for the Google Calendar free/busy provider.

HTTP calls go through httpx.MockTransport; no network access.
"""

import json
from datetime import date
from unittest.mock import MagicMock

import httpx
import pytest

from eventbook.models.errors import CalendarProviderError
from eventbook.services.calendar import FREEBUSY_URL, GoogleCalendarProvider, NullCalendarProvider
from eventbook.services.ssm_service import SSMServiceError

# === Test Configuration ===

CALENDAR_ID = "venue@example.com"
TENANT_ID = "tn_lakeside"
DAY = date(2025, 6, 15)


@pytest.fixture
def ssm() -> MagicMock:
    mock_ssm = MagicMock()
    mock_ssm.get_secret.return_value = "ya29.token"
    return mock_ssm


def _provider(ssm: MagicMock, handler) -> GoogleCalendarProvider:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return GoogleCalendarProvider(calendar_id=CALENDAR_ID, ssm=ssm, client=client)


def test_null_provider_is_always_free() -> None:
    assert NullCalendarProvider().is_date_available(TENANT_ID, DAY) is True


class TestGoogleCalendarProvider:
    def test_free_day(self, ssm: MagicMock) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"calendars": {CALENDAR_ID: {"busy": []}}})

        assert _provider(ssm, handler).is_date_available(TENANT_ID, DAY) is True

        request = requests[0]
        assert str(request.url) == FREEBUSY_URL
        assert request.headers["Authorization"] == "Bearer ya29.token"
        body = json.loads(request.content)
        assert body == {
            "timeMin": "2025-06-15T00:00:00+00:00",
            "timeMax": "2025-06-16T00:00:00+00:00",
            "items": [{"id": CALENDAR_ID}],
        }
        ssm.get_secret.assert_called_with("google/calendar_token")

    def test_busy_day(self, ssm: MagicMock) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            busy = [{"start": "2025-06-15T10:00:00Z", "end": "2025-06-15T12:00:00Z"}]
            return httpx.Response(200, json={"calendars": {CALENDAR_ID: {"busy": busy}}})

        assert _provider(ssm, handler).is_date_available(TENANT_ID, DAY) is False

    def test_http_error(self, ssm: MagicMock) -> None:
        provider = _provider(ssm, lambda request: httpx.Response(503))

        with pytest.raises(CalendarProviderError, match="Calendar lookup failed"):
            provider.is_date_available(TENANT_ID, DAY)

    def test_transport_error(self, ssm: MagicMock) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(CalendarProviderError):
            _provider(ssm, handler).is_date_available(TENANT_ID, DAY)

    def test_calendar_errors_in_body(self, ssm: MagicMock) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            errors = [{"domain": "global", "reason": "notFound"}]
            return httpx.Response(200, json={"calendars": {CALENDAR_ID: {"errors": errors}}})

        with pytest.raises(CalendarProviderError, match="notFound"):
            _provider(ssm, handler).is_date_available(TENANT_ID, DAY)

    def test_missing_token(self, ssm: MagicMock) -> None:
        ssm.get_secret.side_effect = SSMServiceError("SSM parameter not found")
        handler = MagicMock()

        with pytest.raises(CalendarProviderError, match="credentials"):
            _provider(ssm, handler).is_date_available(TENANT_ID, DAY)

        handler.assert_not_called()

    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(200, text="<html>oops</html>"),
            httpx.Response(200, json=["not", "an", "object"]),
            httpx.Response(200, json={"calendars": "unexpected"}),
            httpx.Response(200, json={"calendars": {CALENDAR_ID: {"busy": 3}}}),
        ],
        ids=["html", "list", "calendars-not-object", "busy-not-list"],
    )
    def test_unreadable_body(self, ssm: MagicMock, response: httpx.Response) -> None:
        provider = _provider(ssm, lambda request: response)

        with pytest.raises(CalendarProviderError, match="unreadable"):
            provider.is_date_available(TENANT_ID, DAY)
