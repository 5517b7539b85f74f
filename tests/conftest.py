import asyncio
import os
from contextlib import asynccontextmanager
from datetime import date, datetime, time
from itertools import count

# Settings are read at import time; point them at throwaway values first.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./meetslot_test.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ENV", "test")
os.environ.setdefault("SMTP_HOST", "")

from meetslot.core.interval import overlaps  # noqa: E402
from meetslot.models.availability_rule import AvailabilityRule  # noqa: E402
from meetslot.models.booking import Booking, BookingStatus  # noqa: E402
from meetslot.models.booking_request import BookingRequest, BookingRequestStatus  # noqa: E402
from meetslot.models.host_settings import HostSettings  # noqa: E402
from meetslot.services.stores import HostLocks, WriteContext  # noqa: E402

HOST_ID = 1
# Sunday noon; the following day is a Monday
NOW = datetime(2026, 3, 1, 12, 0)
MONDAY = date(2026, 3, 2)


def at(day: date, hh: int, mm: int = 0) -> datetime:
    return datetime.combine(day, time(hh, mm))


def make_rule(day_of_week=1, start=time(9), end=time(17), buffer_minutes=0, host_id=HOST_ID, rule_id=None):
    return AvailabilityRule(
        id=rule_id,
        host_id=host_id,
        day_of_week=day_of_week,
        start_time=start,
        end_time=end,
        buffer_minutes=buffer_minutes,
    )


def make_booking(start, end, host_id=HOST_ID, status=BookingStatus.CONFIRMED, booking_id=None):
    return Booking(
        id=booking_id,
        host_id=host_id,
        customer_name="Ada",
        customer_email="ada@example.com",
        start_time=start,
        end_time=end,
        status=status,
    )


def make_request(start, end, expires_at, host_id=HOST_ID, token="tok", status=BookingRequestStatus.PENDING):
    return BookingRequest(
        host_id=host_id,
        customer_name="Grace",
        customer_email="grace@example.com",
        start_time=start,
        end_time=end,
        status=status,
        confirmation_token=token,
        expires_at=expires_at,
    )


class FakeRuleStore:
    def __init__(self, rules=()):
        self.rules = list(rules)

    async def list_rules(self, host_id, day_of_week):
        rows = [r for r in self.rules if r.host_id == host_id and r.day_of_week == day_of_week]
        return sorted(rows, key=lambda r: r.start_time)


class FakeBookingStore:
    def __init__(self, bookings=()):
        self.rows = []
        self._ids = count(1)
        for b in bookings:
            self._insert(b)

    def _insert(self, booking):
        if booking.id is None:
            booking.id = next(self._ids)
        self.rows.append(booking)
        return booking

    def confirmed(self, host_id=HOST_ID):
        return [b for b in self.rows if b.host_id == host_id and b.is_confirmed]

    async def find_overlapping(self, host_id, interval, exclude_id=None):
        # Yield so concurrent writers interleave unless something serializes them
        await asyncio.sleep(0)
        return any(
            b.id != exclude_id and overlaps(b.interval, interval) for b in self.confirmed(host_id)
        )

    async def list_confirmed(self, host_id, window):
        return [b.interval for b in self.confirmed(host_id) if overlaps(b.interval, window)]

    async def get(self, host_id, booking_id):
        return next((b for b in self.rows if b.id == booking_id and b.host_id == host_id), None)

    async def add(self, booking):
        await asyncio.sleep(0)
        return self._insert(booking)

    async def save(self, booking):
        return booking


class FakeRequestStore:
    def __init__(self, requests=()):
        self.rows = []
        self._ids = count(1)
        for r in requests:
            self._insert(r)

    def _insert(self, request):
        if request.id is None:
            request.id = next(self._ids)
        self.rows.append(request)
        return request

    async def list_pending_non_expired(self, host_id, window, now):
        return [
            r.interval
            for r in self.rows
            if r.host_id == host_id and r.is_active(now) and overlaps(r.interval, window)
        ]

    async def get_by_token(self, token):
        return next((r for r in self.rows if r.confirmation_token == token), None)

    async def add(self, request):
        return self._insert(request)

    async def transition(self, request_id, new_status):
        request = next(r for r in self.rows if r.id == request_id)
        request.transition(new_status)
        return request

    async def expire_stale(self, now):
        stale = [r for r in self.rows if r.status == BookingRequestStatus.PENDING and r.expires_at <= now]
        for r in stale:
            r.transition(BookingRequestStatus.EXPIRED)
        return len(stale)


class FakeSettingsStore:
    def __init__(self, **overrides):
        self.overrides = overrides

    async def get_host_settings(self, host_id):
        return HostSettings(host_id=host_id, **self.overrides)


class FailingStore:
    """Every awaited call raises; stands in for any store."""

    def __init__(self, exc=None):
        self.exc = exc or ConnectionError("database is down")

    def __getattr__(self, name):
        async def fail(*args, **kwargs):
            raise self.exc

        return fail


class FakeTransactionManager:
    def __init__(self, bookings=None, requests=None, settings=None):
        self.bookings = bookings or FakeBookingStore()
        self.requests = requests or FakeRequestStore()
        self.settings = settings or FakeSettingsStore()
        self.locks = HostLocks()

    async def find_request_host(self, token):
        request = await self.requests.get_by_token(token)
        return request.host_id if request else None

    @asynccontextmanager
    async def host_transaction(self, host_id):
        async with self.locks.hold(host_id):
            yield WriteContext(bookings=self.bookings, requests=self.requests, settings=self.settings)


class StaticProvider:
    def __init__(self, name, busy=(), delay=0.0, exc=None):
        self.name = name
        self.busy = list(busy)
        self.delay = delay
        self.exc = exc
        self.events = []

    async def get_busy_intervals(self, host_id, window):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.exc is not None:
            raise self.exc
        return [b for b in self.busy if overlaps(b, window)]

    async def create_event(self, host_id, booking):
        if self.exc is not None:
            raise self.exc
        self.events.append(booking.id)
        return f"evt-{booking.id}"


class RecordingNotifier:
    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    async def _record(self, kind, obj):
        if self.fail:
            raise RuntimeError("smtp down")
        self.sent.append((kind, obj.id))

    async def booking_confirmed(self, booking):
        await self._record("confirmed", booking)

    async def booking_cancelled(self, booking):
        await self._record("cancelled", booking)

    async def booking_rescheduled(self, booking):
        await self._record("rescheduled", booking)

    async def request_received(self, request):
        await self._record("request", request)

