import asyncio
from contextlib import asynccontextmanager
from datetime import time, timedelta

import pytest

from conftest import HOST_ID, MONDAY, NOW, at, make_booking, make_request, make_rule
from meetslot.core.db import build_engine, build_session_maker, init_db
from meetslot.core.errors import ConflictError, NotFoundError
from meetslot.core.interval import Interval, day_window
from meetslot.models.booking import BookingStatus
from meetslot.models.booking_request import BookingRequest, BookingRequestStatus
from meetslot.models.calendar_connection import CalendarConnection
from meetslot.models.host import Host
from meetslot.models.host_settings import HostSettings
from meetslot.services.booking_service import BookingService
from meetslot.services.sql_stores import (
    SqlBookingStore,
    SqlCalendarConnectionStore,
    SqlRequestStore,
    SqlRuleStore,
    SqlSettingsStore,
    SqlTransactionManager,
)


@asynccontextmanager
async def database(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'stores.db'}")
    await init_db(engine)
    session_maker = build_session_maker(engine)
    async with session_maker() as session:
        session.add(Host(id=HOST_ID, email="host@example.com", hashed_password="x"))
        await session.commit()
    try:
        yield session_maker
    finally:
        await engine.dispose()


async def _seed(session_maker, *rows):
    async with session_maker() as session:
        session.add_all(rows)
        await session.commit()


@pytest.mark.asyncio
async def test_rule_store_filters_by_weekday_and_orders(tmp_path):
    async with database(tmp_path) as sm:
        await _seed(
            sm,
            make_rule(start=time(14), end=time(16)),
            make_rule(start=time(9), end=time(12)),
            make_rule(day_of_week=2),
        )
        async with sm() as session:
            rules = await SqlRuleStore(session).list_rules(HOST_ID, 1)
    assert [r.start_time for r in rules] == [time(9), time(14)]


@pytest.mark.asyncio
async def test_booking_store_overlap_query(tmp_path):
    async with database(tmp_path) as sm:
        await _seed(
            sm,
            make_booking(at(MONDAY, 10), at(MONDAY, 11)),
            make_booking(at(MONDAY, 13), at(MONDAY, 14), status=BookingStatus.CANCELLED),
        )
        async with sm() as session:
            store = SqlBookingStore(session)
            assert await store.find_overlapping(HOST_ID, Interval(at(MONDAY, 10, 30), at(MONDAY, 12)))
            # Adjacent on both sides
            assert not await store.find_overlapping(HOST_ID, Interval(at(MONDAY, 11), at(MONDAY, 12)))
            assert not await store.find_overlapping(HOST_ID, Interval(at(MONDAY, 9), at(MONDAY, 10)))
            # Cancelled rows never conflict
            assert not await store.find_overlapping(HOST_ID, Interval(at(MONDAY, 13), at(MONDAY, 14)))
            existing = (await store.list_for_host(HOST_ID))[0]
            assert not await store.find_overlapping(HOST_ID, existing.interval, exclude_id=existing.id)
            assert await store.list_confirmed(HOST_ID, day_window(MONDAY)) == [existing.interval]


@pytest.mark.asyncio
async def test_booking_store_list_for_host_filters(tmp_path):
    async with database(tmp_path) as sm:
        await _seed(
            sm,
            make_booking(at(MONDAY, 10), at(MONDAY, 11)),
            make_booking(at(MONDAY, 8), at(MONDAY, 9), status=BookingStatus.CANCELLED),
        )
        async with sm() as session:
            store = SqlBookingStore(session)
            assert len(await store.list_for_host(HOST_ID)) == 2
            assert len(await store.list_for_host(HOST_ID, from_time=at(MONDAY, 9, 30))) == 1
            cancelled = await store.list_for_host(HOST_ID, status=BookingStatus.CANCELLED)
            assert [b.start_time for b in cancelled] == [at(MONDAY, 8)]


@pytest.mark.asyncio
async def test_request_store_holds_and_expiry(tmp_path):
    async with database(tmp_path) as sm:
        await _seed(
            sm,
            make_request(at(MONDAY, 9), at(MONDAY, 10), NOW + timedelta(minutes=5), token="live"),
            make_request(at(MONDAY, 11), at(MONDAY, 12), NOW - timedelta(minutes=5), token="stale"),
        )
        async with sm() as session:
            store = SqlRequestStore(session)
            held = await store.list_pending_non_expired(HOST_ID, day_window(MONDAY), NOW)
            assert held == [Interval(at(MONDAY, 9), at(MONDAY, 10))]
            assert await store.expire_stale(NOW) == 1
            await session.commit()
        async with sm() as session:
            stale = await SqlRequestStore(session).get_by_token("stale")
            assert stale.status == BookingRequestStatus.EXPIRED


@pytest.mark.asyncio
async def test_request_store_transition(tmp_path):
    async with database(tmp_path) as sm:
        await _seed(sm, make_request(at(MONDAY, 9), at(MONDAY, 10), NOW + timedelta(minutes=5)))
        async with sm() as session:
            store = SqlRequestStore(session)
            request = await store.get_by_token("tok")
            updated = await store.transition(request.id, BookingRequestStatus.CONFIRMED)
            assert updated.status == BookingRequestStatus.CONFIRMED
            assert updated.confirmed_at is not None
            with pytest.raises(NotFoundError):
                await store.transition(999, BookingRequestStatus.CANCELLED)


@pytest.mark.asyncio
async def test_settings_store_defaults_when_missing(tmp_path):
    async with database(tmp_path) as sm:
        async with sm() as session:
            policy = await SqlSettingsStore(session).get_host_settings(HOST_ID)
        assert policy.booking_horizon_days == 30
        await _seed(sm, HostSettings(host_id=HOST_ID, booking_horizon_days=7, buffer_minutes=10))
        async with sm() as session:
            policy = await SqlSettingsStore(session).get_host_settings(HOST_ID)
        assert (policy.booking_horizon_days, policy.buffer_minutes) == (7, 10)


@pytest.mark.asyncio
async def test_calendar_connection_store_round_trip(tmp_path):
    async with database(tmp_path) as sm:
        store = SqlCalendarConnectionStore(sm)
        assert await store.get(HOST_ID, "google") is None
        await store.save(
            CalendarConnection(host_id=HOST_ID, provider="google", access_token="a", expires_at=NOW)
        )
        connection = await store.get(HOST_ID, "google")
        assert connection.access_token == "a"


@pytest.mark.asyncio
async def test_calendar_connection_save_updates_existing_row(tmp_path):
    async with database(tmp_path) as sm:
        store = SqlCalendarConnectionStore(sm)
        await store.save(
            CalendarConnection(
                host_id=HOST_ID,
                provider="google",
                email="h@example.com",
                access_token="a",
                refresh_token="r",
                expires_at=NOW,
            )
        )
        await store.save(
            CalendarConnection(
                host_id=HOST_ID, provider="google", access_token="b", expires_at=NOW + timedelta(hours=1)
            )
        )

        connection = await store.get(HOST_ID, "google")
        assert connection.access_token == "b"
        assert connection.refresh_token == "r"
        assert connection.email == "h@example.com"
        assert connection.expires_at == NOW + timedelta(hours=1)
        assert len(await store.list_for_host(HOST_ID)) == 1

        assert await store.delete(HOST_ID, "google") is True
        assert await store.delete(HOST_ID, "google") is False
        assert await store.get(HOST_ID, "google") is None


@pytest.mark.asyncio
async def test_transaction_rolls_back_on_error(tmp_path):
    async with database(tmp_path) as sm:
        transactions = SqlTransactionManager(sm)
        with pytest.raises(ConflictError):
            async with transactions.host_transaction(HOST_ID) as tx:
                await tx.bookings.add(make_booking(at(MONDAY, 10), at(MONDAY, 11)))
                raise ConflictError("abort")
        async with sm() as session:
            assert await SqlBookingStore(session).list_for_host(HOST_ID) == []


@pytest.mark.asyncio
async def test_transaction_for_unknown_host(tmp_path):
    async with database(tmp_path) as sm:
        with pytest.raises(NotFoundError):
            async with SqlTransactionManager(sm).host_transaction(42):
                pass


@pytest.mark.asyncio
async def test_concurrent_confirms_over_sql(tmp_path):
    async with database(tmp_path) as sm:
        expires = NOW + timedelta(minutes=10)
        await _seed(
            sm,
            make_request(at(MONDAY, 10), at(MONDAY, 11), expires, token="first"),
            make_request(at(MONDAY, 10, 30), at(MONDAY, 11, 30), expires, token="second"),
        )
        transactions = SqlTransactionManager(sm)
        assert await transactions.find_request_host("first") == HOST_ID
        service = BookingService(transactions, clock=lambda: NOW)

        results = await asyncio.gather(
            service.confirm_booking_request("first"),
            service.confirm_booking_request("second"),
            return_exceptions=True,
        )

        assert sum(1 for r in results if isinstance(r, ConflictError)) == 1
        async with sm() as session:
            confirmed = await SqlBookingStore(session).list_for_host(HOST_ID, status=BookingStatus.CONFIRMED)
            statuses = sorted([(await session.get(BookingRequest, i)).status for i in (1, 2)])
        assert len(confirmed) == 1
        assert statuses == [BookingRequestStatus.CANCELLED, BookingRequestStatus.CONFIRMED]
