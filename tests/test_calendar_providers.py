import json
from datetime import timedelta

import httpx
import pytest

from conftest import HOST_ID, MONDAY, NOW, at, make_booking
from meetslot.core.interval import Interval, day_window
from meetslot.models.calendar_connection import CalendarConnection
from meetslot.services.calendar_providers import (
    GOOGLE_EVENTS_URL,
    GOOGLE_FREEBUSY_URL,
    GOOGLE_TOKEN_URL,
    MICROSOFT_CALENDAR_VIEW_URL,
    CalendarProviderError,
    GoogleCalendarProvider,
    MicrosoftCalendarProvider,
    parse_instant,
    to_rfc3339,
)


class MemoryConnections:
    def __init__(self, *connections):
        self.rows = {(c.host_id, c.provider): c for c in connections}
        self.saved = []

    async def get(self, host_id, provider):
        return self.rows.get((host_id, provider))

    async def save(self, connection):
        self.saved.append(connection)


def _connection(provider, expires_at=NOW + timedelta(hours=1), refresh_token="r1"):
    return CalendarConnection(
        host_id=HOST_ID,
        provider=provider,
        access_token="a1",
        refresh_token=refresh_token,
        expires_at=expires_at,
    )


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_parse_instant_handles_offsets_and_graph_precision():
    assert parse_instant("2026-03-02T10:00:00Z") == at(MONDAY, 10)
    assert parse_instant("2026-03-02T12:00:00+02:00") == at(MONDAY, 10)
    assert parse_instant("2026-03-02T10:00:00.0000000") == at(MONDAY, 10)


def test_to_rfc3339_appends_zulu():
    assert to_rfc3339(at(MONDAY, 9, 30)) == "2026-03-02T09:30:00Z"


@pytest.mark.asyncio
async def test_google_free_busy():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        assert str(request.url) == GOOGLE_FREEBUSY_URL
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "calendars": {
                    "primary": {
                        "busy": [
                            {"start": "2026-03-02T10:00:00Z", "end": "2026-03-02T11:00:00Z"},
                            {"start": "2026-03-02T12:00:00Z", "end": "2026-03-02T12:00:00Z"},
                        ]
                    }
                }
            },
        )

    async with _client(handler) as client:
        provider = GoogleCalendarProvider(client, MemoryConnections(_connection("google")), clock=lambda: NOW)
        busy = await provider.get_busy_intervals(HOST_ID, day_window(MONDAY))

    assert busy == [Interval(at(MONDAY, 10), at(MONDAY, 11))]
    assert seen["auth"] == "Bearer a1"
    assert seen["body"]["timeMin"] == "2026-03-02T00:00:00Z"
    assert seen["body"]["timeMax"] == "2026-03-03T00:00:00Z"


@pytest.mark.asyncio
async def test_google_calendar_errors_raise():
    def handler(request):
        return httpx.Response(200, json={"calendars": {"primary": {"errors": [{"reason": "notFound"}]}}})

    async with _client(handler) as client:
        provider = GoogleCalendarProvider(client, MemoryConnections(_connection("google")), clock=lambda: NOW)
        with pytest.raises(CalendarProviderError):
            await provider.get_busy_intervals(HOST_ID, day_window(MONDAY))


@pytest.mark.asyncio
async def test_google_http_error_raises():
    async with _client(lambda request: httpx.Response(500)) as client:
        provider = GoogleCalendarProvider(client, MemoryConnections(_connection("google")), clock=lambda: NOW)
        with pytest.raises(httpx.HTTPStatusError):
            await provider.get_busy_intervals(HOST_ID, day_window(MONDAY))


@pytest.mark.asyncio
async def test_unconnected_host_has_no_busy_time():
    def handler(request):
        raise AssertionError("no request expected")

    async with _client(handler) as client:
        provider = GoogleCalendarProvider(client, MemoryConnections(), clock=lambda: NOW)
        assert await provider.get_busy_intervals(HOST_ID, day_window(MONDAY)) == []
        assert await provider.create_event(HOST_ID, make_booking(at(MONDAY, 9), at(MONDAY, 10))) is None


@pytest.mark.asyncio
async def test_expired_token_is_refreshed_first():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(str(request.url))
        if str(request.url) == GOOGLE_TOKEN_URL:
            assert b"grant_type=refresh_token" in request.content
            return httpx.Response(200, json={"access_token": "a2", "expires_in": 3600})
        assert request.headers["Authorization"] == "Bearer a2"
        return httpx.Response(200, json={"calendars": {"primary": {"busy": []}}})

    connections = MemoryConnections(_connection("google", expires_at=NOW + timedelta(seconds=30)))
    async with _client(handler) as client:
        provider = GoogleCalendarProvider(client, connections, clock=lambda: NOW)
        assert await provider.get_busy_intervals(HOST_ID, day_window(MONDAY)) == []

    assert calls == [GOOGLE_TOKEN_URL, GOOGLE_FREEBUSY_URL]
    saved = connections.saved[0]
    assert saved.access_token == "a2"
    assert saved.refresh_token == "r1"
    assert saved.expires_at == NOW + timedelta(hours=1)


@pytest.mark.asyncio
async def test_expired_token_without_refresh_token_fails():
    connections = MemoryConnections(_connection("google", expires_at=NOW, refresh_token=None))
    async with _client(lambda request: httpx.Response(200)) as client:
        provider = GoogleCalendarProvider(client, connections, clock=lambda: NOW)
        with pytest.raises(CalendarProviderError):
            await provider.get_busy_intervals(HOST_ID, day_window(MONDAY))


@pytest.mark.asyncio
async def test_google_create_event():
    def handler(request: httpx.Request) -> httpx.Response:
        assert str(request.url) == GOOGLE_EVENTS_URL
        body = json.loads(request.content)
        assert body["start"]["dateTime"] == "2026-03-02T09:00:00Z"
        assert body["attendees"] == [{"email": "ada@example.com"}]
        return httpx.Response(200, json={"id": "evt1"})

    async with _client(handler) as client:
        provider = GoogleCalendarProvider(client, MemoryConnections(_connection("google")), clock=lambda: NOW)
        event_id = await provider.create_event(HOST_ID, make_booking(at(MONDAY, 9), at(MONDAY, 10), booking_id=5))
    assert event_id == "evt1"


@pytest.mark.asyncio
async def test_microsoft_calendar_view_skips_cancelled():
    def handler(request: httpx.Request) -> httpx.Response:
        assert str(request.url).startswith(MICROSOFT_CALENDAR_VIEW_URL + "?")
        assert request.url.params["startDateTime"] == "2026-03-02T00:00:00Z"
        assert "outlook.timezone" in request.headers["Prefer"]
        return httpx.Response(
            200,
            json={
                "value": [
                    {
                        "start": {"dateTime": "2026-03-02T14:00:00.0000000", "timeZone": "UTC"},
                        "end": {"dateTime": "2026-03-02T15:00:00.0000000", "timeZone": "UTC"},
                        "isCancelled": False,
                    },
                    {
                        "start": {"dateTime": "2026-03-02T16:00:00.0000000", "timeZone": "UTC"},
                        "end": {"dateTime": "2026-03-02T17:00:00.0000000", "timeZone": "UTC"},
                        "isCancelled": True,
                    },
                ]
            },
        )

    async with _client(handler) as client:
        provider = MicrosoftCalendarProvider(
            client, MemoryConnections(_connection("microsoft")), clock=lambda: NOW
        )
        busy = await provider.get_busy_intervals(HOST_ID, day_window(MONDAY))
    assert busy == [Interval(at(MONDAY, 14), at(MONDAY, 15))]
