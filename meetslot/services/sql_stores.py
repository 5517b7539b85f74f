"""SQLModel-backed implementations of the store contracts."""
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from meetslot.core.errors import NotFoundError
from meetslot.core.interval import Interval, utc_now
from meetslot.models.availability_rule import AvailabilityRule
from meetslot.models.booking import Booking, BookingStatus
from meetslot.models.booking_request import BookingRequest, BookingRequestStatus
from meetslot.models.calendar_connection import CalendarConnection
from meetslot.models.host import Host
from meetslot.models.host_settings import HostSettings
from meetslot.services.stores import HostLocks, WriteContext

logger = logging.getLogger(__name__)


def _intersecting(model, window: Interval):
    # Same strict half-open predicate as interval.overlaps
    return (model.start_time < window.end, model.end_time > window.start)


class SqlRuleStore:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_rules(self, host_id: int, day_of_week: int) -> list[AvailabilityRule]:
        result = await self.session.execute(
            select(AvailabilityRule)
            .where(AvailabilityRule.host_id == host_id, AvailabilityRule.day_of_week == day_of_week)
            .order_by(AvailabilityRule.start_time, AvailabilityRule.id)
        )
        return list(result.scalars().all())


class SqlBookingStore:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def find_overlapping(
        self, host_id: int, interval: Interval, exclude_id: int | None = None
    ) -> bool:
        q = select(Booking.id).where(
            Booking.host_id == host_id,
            Booking.status == BookingStatus.CONFIRMED,
            *_intersecting(Booking, interval),
        )
        if exclude_id is not None:
            q = q.where(Booking.id != exclude_id)
        result = await self.session.execute(q.limit(1))
        return result.first() is not None

    async def list_confirmed(self, host_id: int, window: Interval) -> list[Interval]:
        result = await self.session.execute(
            select(Booking.start_time, Booking.end_time).where(
                Booking.host_id == host_id,
                Booking.status == BookingStatus.CONFIRMED,
                *_intersecting(Booking, window),
            )
        )
        return [Interval(start, end) for start, end in result.all()]

    async def list_for_host(
        self, host_id: int, from_time: datetime | None = None, status: str | None = None
    ) -> list[Booking]:
        q = select(Booking).where(Booking.host_id == host_id).order_by(Booking.start_time)
        if from_time is not None:
            q = q.where(Booking.end_time > from_time)
        if status:
            q = q.where(Booking.status == status)
        result = await self.session.execute(q)
        return list(result.scalars().all())

    async def get(self, host_id: int, booking_id: int) -> Booking | None:
        result = await self.session.execute(
            select(Booking).where(Booking.id == booking_id, Booking.host_id == host_id)
        )
        return result.scalar_one_or_none()

    async def add(self, booking: Booking) -> Booking:
        self.session.add(booking)
        await self.session.flush()
        await self.session.refresh(booking)
        return booking

    async def save(self, booking: Booking) -> Booking:
        booking.updated_at = utc_now()
        self.session.add(booking)
        await self.session.flush()
        return booking


class SqlRequestStore:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_pending_non_expired(
        self, host_id: int, window: Interval, now: datetime
    ) -> list[Interval]:
        result = await self.session.execute(
            select(BookingRequest.start_time, BookingRequest.end_time).where(
                BookingRequest.host_id == host_id,
                BookingRequest.status == BookingRequestStatus.PENDING,
                BookingRequest.expires_at > now,
                *_intersecting(BookingRequest, window),
            )
        )
        return [Interval(start, end) for start, end in result.all()]

    async def get_by_token(self, token: str) -> BookingRequest | None:
        result = await self.session.execute(
            select(BookingRequest).where(BookingRequest.confirmation_token == token)
        )
        return result.scalar_one_or_none()

    async def add(self, request: BookingRequest) -> BookingRequest:
        self.session.add(request)
        await self.session.flush()
        await self.session.refresh(request)
        return request

    async def transition(self, request_id: int, new_status: str) -> BookingRequest:
        request = await self.session.get(BookingRequest, request_id)
        if request is None:
            raise NotFoundError("Booking request not found")
        request.transition(new_status)
        self.session.add(request)
        await self.session.flush()
        return request

    async def expire_stale(self, now: datetime) -> int:
        result = await self.session.execute(
            update(BookingRequest)
            .where(
                BookingRequest.status == BookingRequestStatus.PENDING,
                BookingRequest.expires_at <= now,
            )
            .values(status=BookingRequestStatus.EXPIRED.value)
        )
        await self.session.flush()
        return result.rowcount or 0


class SqlSettingsStore:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_host_settings(self, host_id: int) -> HostSettings:
        result = await self.session.execute(select(HostSettings).where(HostSettings.host_id == host_id))
        row = result.scalar_one_or_none()
        return row if row is not None else HostSettings(host_id=host_id)


class SqlCalendarConnectionStore:
    """Token lookups for calendar providers; each call uses its own short session
    because providers run concurrently."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self.session_maker = session_maker

    @staticmethod
    def _one(host_id: int, provider: str):
        return select(CalendarConnection).where(
            CalendarConnection.host_id == host_id, CalendarConnection.provider == provider
        )

    async def get(self, host_id: int, provider: str) -> CalendarConnection | None:
        async with self.session_maker() as session:
            result = await session.execute(self._one(host_id, provider))
            return result.scalar_one_or_none()

    async def list_for_host(self, host_id: int) -> list[CalendarConnection]:
        async with self.session_maker() as session:
            result = await session.execute(
                select(CalendarConnection)
                .where(CalendarConnection.host_id == host_id)
                .order_by(CalendarConnection.provider)
            )
            return list(result.scalars().all())

    async def save(self, connection: CalendarConnection) -> None:
        """Insert or update the host's single row for this provider."""
        async with self.session_maker() as session:
            result = await session.execute(self._one(connection.host_id, connection.provider))
            row = result.scalar_one_or_none()
            if row is None:
                session.add(connection)
            else:
                row.email = connection.email or row.email
                row.access_token = connection.access_token
                row.refresh_token = connection.refresh_token or row.refresh_token
                row.expires_at = connection.expires_at
                session.add(row)
            await session.commit()

    async def delete(self, host_id: int, provider: str) -> bool:
        async with self.session_maker() as session:
            result = await session.execute(self._one(host_id, provider))
            row = result.scalar_one_or_none()
            if row is None:
                return False
            await session.delete(row)
            await session.commit()
        logger.info("Disconnected %s calendar for host %s", provider, host_id)
        return True


class SqlTransactionManager:
    """Per-host atomic unit: in-process host lock plus a DB transaction holding a row
    lock on the host, so guard read and write are indivisible across workers too."""

    def __init__(
        self, session_maker: async_sessionmaker[AsyncSession], locks: HostLocks | None = None
    ) -> None:
        self.session_maker = session_maker
        self.locks = locks or HostLocks()

    async def find_request_host(self, token: str) -> int | None:
        async with self.session_maker() as session:
            result = await session.execute(
                select(BookingRequest.host_id).where(BookingRequest.confirmation_token == token)
            )
            return result.scalar_one_or_none()

    @asynccontextmanager
    async def host_transaction(self, host_id: int) -> AsyncIterator[WriteContext]:
        async with self.locks.hold(host_id):
            async with self.session_maker() as session:
                async with session.begin():
                    host = await session.execute(
                        select(Host.id).where(Host.id == host_id).with_for_update()
                    )
                    if host.first() is None:
                        raise NotFoundError("Host not found")
                    yield WriteContext(
                        bookings=SqlBookingStore(session),
                        requests=SqlRequestStore(session),
                        settings=SqlSettingsStore(session),
                    )
