"""Contracts between the scheduling core and its persistence / calendar collaborators."""
import asyncio
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from meetslot.core.interval import Interval
from meetslot.models.availability_rule import AvailabilityRule
from meetslot.models.booking import Booking
from meetslot.models.booking_request import BookingRequest
from meetslot.models.host_settings import HostSettings


class RuleStore(Protocol):
    async def list_rules(self, host_id: int, day_of_week: int) -> list[AvailabilityRule]: ...


class BookingStore(Protocol):
    async def find_overlapping(
        self, host_id: int, interval: Interval, exclude_id: int | None = None
    ) -> bool: ...

    async def list_confirmed(self, host_id: int, window: Interval) -> list[Interval]: ...

    async def get(self, host_id: int, booking_id: int) -> Booking | None: ...

    async def add(self, booking: Booking) -> Booking: ...

    async def save(self, booking: Booking) -> Booking: ...


class RequestStore(Protocol):
    async def list_pending_non_expired(
        self, host_id: int, window: Interval, now: datetime
    ) -> list[Interval]: ...

    async def get_by_token(self, token: str) -> BookingRequest | None: ...

    async def add(self, request: BookingRequest) -> BookingRequest: ...

    async def transition(self, request_id: int, new_status: str) -> BookingRequest: ...

    async def expire_stale(self, now: datetime) -> int: ...


class SettingsStore(Protocol):
    async def get_host_settings(self, host_id: int) -> HostSettings: ...


class CalendarProvider(Protocol):
    name: str

    async def get_busy_intervals(self, host_id: int, window: Interval) -> list[Interval]: ...

    async def create_event(self, host_id: int, booking: Booking) -> str | None: ...


@dataclass
class WriteContext:
    """Stores bound to one open per-host atomic unit."""

    bookings: BookingStore
    requests: RequestStore
    settings: SettingsStore


class TransactionManager(Protocol):
    def host_transaction(self, host_id: int) -> AbstractAsyncContextManager[WriteContext]: ...

    async def find_request_host(self, token: str) -> int | None:
        """Host owning the booking request with this confirmation token."""
        ...


class HostLocks:
    """One asyncio.Lock per host; writers to different hosts never wait on each other."""

    def __init__(self) -> None:
        self._locks: dict[int, asyncio.Lock] = {}

    def lock_for(self, host_id: int) -> asyncio.Lock:
        lock = self._locks.get(host_id)
        if lock is None:
            lock = self._locks[host_id] = asyncio.Lock()
        return lock

    @asynccontextmanager
    async def hold(self, host_id: int) -> AsyncIterator[None]:
        async with self.lock_for(host_id):
            yield
