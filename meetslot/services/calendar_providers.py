import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Protocol

import httpx

from meetslot.core.config import settings
from meetslot.core.interval import Interval, naive_utc, utc_now
from meetslot.models.booking import Booking
from meetslot.models.calendar_connection import CalendarConnection, CalendarProviderName

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_FREEBUSY_URL = "https://www.googleapis.com/calendar/v3/freeBusy"
GOOGLE_EVENTS_URL = "https://www.googleapis.com/calendar/v3/calendars/primary/events"

MICROSOFT_TOKEN_URL = "https://login.microsoftonline.com/common/oauth2/v2.0/token"
MICROSOFT_CALENDAR_VIEW_URL = "https://graph.microsoft.com/v1.0/me/calendarView"
MICROSOFT_EVENTS_URL = "https://graph.microsoft.com/v1.0/me/events"

# Refresh a little before the provider would reject the token
TOKEN_REFRESH_MARGIN = timedelta(seconds=60)


class CalendarProviderError(Exception):
    pass


class ConnectionStore(Protocol):
    async def get(self, host_id: int, provider: str) -> CalendarConnection | None: ...

    async def save(self, connection: CalendarConnection) -> None: ...


def parse_instant(value: str) -> datetime:
    """Parse an RFC 3339 / Graph timestamp into naive UTC.

    Graph returns seven fractional digits and no offset when asked for UTC.
    """
    return naive_utc(datetime.fromisoformat(value))


def to_rfc3339(dt: datetime) -> str:
    return naive_utc(dt).isoformat(timespec="seconds") + "Z"


def busy_from_pairs(pairs: list[tuple[str, str]]) -> list[Interval]:
    busy: list[Interval] = []
    for start_raw, end_raw in pairs:
        start, end = parse_instant(start_raw), parse_instant(end_raw)
        if start >= end:
            logger.debug("Dropping empty busy interval %s - %s", start_raw, end_raw)
            continue
        busy.append(Interval(start, end))
    return busy


class OAuthCalendarProvider:
    """Shared token handling; subclasses implement the provider-specific calls."""

    name: str = ""
    token_url: str = ""

    def __init__(
        self,
        client: httpx.AsyncClient,
        connections: ConnectionStore,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.client = client
        self.connections = connections
        self.clock = clock

    def _client_credentials(self) -> dict[str, str]:
        raise NotImplementedError

    async def _access_token(self, host_id: int) -> str | None:
        connection = await self.connections.get(host_id, self.name)
        if connection is None:
            return None
        if connection.expires_at - TOKEN_REFRESH_MARGIN <= self.clock():
            await self._refresh(connection)
        return connection.access_token

    async def _refresh(self, connection: CalendarConnection) -> None:
        if not connection.refresh_token:
            raise CalendarProviderError(f"{self.name} token expired and no refresh token stored")
        resp = await self.client.post(
            self.token_url,
            data={
                **self._client_credentials(),
                "refresh_token": connection.refresh_token,
                "grant_type": "refresh_token",
            },
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        if resp.status_code != 200:
            raise CalendarProviderError(
                f"{self.name} token refresh failed: status={resp.status_code} body={resp.text[:200]}"
            )
        tokens = resp.json()
        connection.access_token = tokens["access_token"]
        connection.refresh_token = tokens.get("refresh_token") or connection.refresh_token
        connection.expires_at = self.clock() + timedelta(seconds=int(tokens.get("expires_in", 3600)))
        await self.connections.save(connection)
        logger.info("Refreshed %s token for host %s", self.name, connection.host_id)

    async def get_busy_intervals(self, host_id: int, window: Interval) -> list[Interval]:
        token = await self._access_token(host_id)
        if token is None:
            return []
        busy = await self._fetch_busy(token, window)
        logger.info("Found %d %s busy interval(s) for host %s", len(busy), self.name, host_id)
        return busy

    async def create_event(self, host_id: int, booking: Booking) -> str | None:
        token = await self._access_token(host_id)
        if token is None:
            logger.debug("No %s calendar connected for host %s", self.name, host_id)
            return None
        event_id = await self._insert_event(token, booking)
        logger.info("Created %s event %s for booking %s", self.name, event_id, booking.id)
        return event_id

    async def _fetch_busy(self, token: str, window: Interval) -> list[Interval]:
        raise NotImplementedError

    async def _insert_event(self, token: str, booking: Booking) -> str | None:
        raise NotImplementedError


class GoogleCalendarProvider(OAuthCalendarProvider):
    name = CalendarProviderName.GOOGLE.value
    token_url = GOOGLE_TOKEN_URL

    def _client_credentials(self) -> dict[str, str]:
        return {"client_id": settings.google_client_id, "client_secret": settings.google_client_secret}

    async def _fetch_busy(self, token: str, window: Interval) -> list[Interval]:
        resp = await self.client.post(
            GOOGLE_FREEBUSY_URL,
            json={
                "timeMin": to_rfc3339(window.start),
                "timeMax": to_rfc3339(window.end),
                "items": [{"id": "primary"}],
            },
            headers={"Authorization": f"Bearer {token}"},
        )
        resp.raise_for_status()
        calendar = resp.json().get("calendars", {}).get("primary", {})
        if calendar.get("errors"):
            raise CalendarProviderError(f"google freeBusy errors: {calendar['errors']}")
        return busy_from_pairs([(b["start"], b["end"]) for b in calendar.get("busy", [])])

    async def _insert_event(self, token: str, booking: Booking) -> str | None:
        resp = await self.client.post(
            GOOGLE_EVENTS_URL,
            json={
                "summary": f"Meeting with {booking.customer_name}",
                "description": booking.notes or f"{settings.site_name} booking",
                "start": {"dateTime": to_rfc3339(booking.start_time), "timeZone": "UTC"},
                "end": {"dateTime": to_rfc3339(booking.end_time), "timeZone": "UTC"},
                "attendees": [{"email": booking.customer_email}],
            },
            headers={"Authorization": f"Bearer {token}"},
        )
        resp.raise_for_status()
        return resp.json().get("id")


class MicrosoftCalendarProvider(OAuthCalendarProvider):
    name = CalendarProviderName.MICROSOFT.value
    token_url = MICROSOFT_TOKEN_URL

    def _client_credentials(self) -> dict[str, str]:
        return {
            "client_id": settings.microsoft_client_id,
            "client_secret": settings.microsoft_client_secret,
            "redirect_uri": settings.microsoft_redirect_uri,
        }

    async def _fetch_busy(self, token: str, window: Interval) -> list[Interval]:
        # calendarView expands recurring events into occurrences
        resp = await self.client.get(
            MICROSOFT_CALENDAR_VIEW_URL,
            params={
                "startDateTime": to_rfc3339(window.start),
                "endDateTime": to_rfc3339(window.end),
                "$select": "start,end,isCancelled,showAs",
                "$orderby": "start/dateTime",
                "$top": "500",
            },
            headers={"Authorization": f"Bearer {token}", "Prefer": 'outlook.timezone="UTC"'},
        )
        resp.raise_for_status()
        events = resp.json().get("value", [])
        # Every non-cancelled event counts; some hosts mark real meetings as "free"
        return busy_from_pairs(
            [
                (e["start"]["dateTime"], e["end"]["dateTime"])
                for e in events
                if e.get("start") and e.get("end") and not e.get("isCancelled")
            ]
        )

    async def _insert_event(self, token: str, booking: Booking) -> str | None:
        resp = await self.client.post(
            MICROSOFT_EVENTS_URL,
            json={
                "subject": f"Meeting with {booking.customer_name}",
                "body": {"contentType": "text", "content": booking.notes or f"{settings.site_name} booking"},
                "start": {"dateTime": booking.start_time.isoformat(), "timeZone": "UTC"},
                "end": {"dateTime": booking.end_time.isoformat(), "timeZone": "UTC"},
                "attendees": [
                    {
                        "emailAddress": {"address": booking.customer_email, "name": booking.customer_name},
                        "type": "required",
                    }
                ],
            },
            headers={"Authorization": f"Bearer {token}"},
        )
        resp.raise_for_status()
        return resp.json().get("id")
