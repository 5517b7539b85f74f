import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Protocol

from fastapi import BackgroundTasks

from meetslot.core.config import settings
from meetslot.core.errors import (
    ConflictError,
    DependencyError,
    NotFoundError,
    SchedulingError,
    SlotTakenError,
    ValidationError,
)
from meetslot.core.interval import Interval, utc_now
from meetslot.core.outcome import require
from meetslot.core.security import new_confirmation_token
from meetslot.models.booking import Booking, BookingStatus
from meetslot.models.booking_request import BookingRequest, BookingRequestStatus
from meetslot.services.conflict_guard import BookingConflictGuard
from meetslot.services.scheduling_service import validate_booking_date
from meetslot.services.stores import CalendarProvider, TransactionManager, WriteContext

logger = logging.getLogger(__name__)


async def run_logged(label: str, func: Callable[..., Awaitable[Any]], *args: Any) -> None:
    """Background wrapper: a failed e-mail or calendar call is logged, never raised."""
    try:
        await func(*args)
    except Exception as e:
        logger.exception("Side effect %s failed: %s", label, e)


def _schedule(
    tasks: BackgroundTasks | None, label: str, func: Callable[..., Awaitable[Any]], *args: Any
) -> None:
    # Runs after the response is sent; callers without a task queue skip notifications
    if tasks is None:
        logger.debug("No background queue, skipping %s", label)
        return
    tasks.add_task(run_logged, label, func, *args)


class Notifier(Protocol):
    async def booking_confirmed(self, booking: Booking) -> None: ...

    async def booking_cancelled(self, booking: Booking) -> None: ...

    async def booking_rescheduled(self, booking: Booking) -> None: ...

    async def request_received(self, request: BookingRequest) -> None: ...


@dataclass
class BulkCancelResult:
    booking_id: int
    cancelled: bool
    error: str | None = None


class BookingService:
    """Booking mutations. Each one runs guard check and write inside a single
    per-host transaction; notifications and calendar events are queued as background
    tasks once the write has committed."""

    def __init__(
        self,
        transactions: TransactionManager,
        providers: Sequence[CalendarProvider] = (),
        notifier: Notifier | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.transactions = transactions
        self.providers = list(providers)
        self.notifier = notifier
        self.clock = clock

    @asynccontextmanager
    async def _atomic(self, host_id: int) -> AsyncIterator[WriteContext]:
        try:
            async with self.transactions.host_transaction(host_id) as tx:
                yield tx
        except SchedulingError:
            raise
        except Exception as e:
            logger.exception("Booking transaction for host %s failed: %s", host_id, e)
            raise DependencyError("booking store", e) from e

    async def _check_window(self, tx: WriteContext, host_id: int, interval: Interval) -> None:
        now = self.clock()
        if interval.start < now:
            raise ValidationError("Start time is in the past", param="start_time")
        minutes = interval.duration / timedelta(minutes=1)
        if not settings.min_duration_minutes <= minutes <= settings.max_duration_minutes:
            raise ValidationError(
                f"Duration must be between {settings.min_duration_minutes} and "
                f"{settings.max_duration_minutes} minutes",
                param="end_time",
            )
        policy = await tx.settings.get_host_settings(host_id)
        validate_booking_date(interval.start.date(), now.date(), policy.booking_horizon_days)

    async def create_booking(
        self,
        host_id: int,
        customer_name: str,
        customer_email: str,
        start_time: datetime,
        end_time: datetime,
        notes: str | None = None,
        tasks: BackgroundTasks | None = None,
    ) -> Booking:
        interval = Interval.of(start_time, end_time)
        async with self._atomic(host_id) as tx:
            await self._check_window(tx, host_id, interval)
            await BookingConflictGuard(tx.bookings).ensure_free(host_id, interval)
            booking = await tx.bookings.add(
                Booking(
                    host_id=host_id,
                    customer_name=customer_name,
                    customer_email=customer_email,
                    start_time=interval.start,
                    end_time=interval.end,
                    notes=notes,
                    status=BookingStatus.CONFIRMED,
                )
            )
        logger.info("Booking created: %s (host %s)", booking.id, host_id)
        self._announce_booking(tasks, host_id, booking)
        return booking

    async def reschedule_booking(
        self,
        host_id: int,
        booking_id: int,
        start_time: datetime,
        end_time: datetime,
        tasks: BackgroundTasks | None = None,
    ) -> Booking:
        interval = Interval.of(start_time, end_time)
        async with self._atomic(host_id) as tx:
            booking = await tx.bookings.get(host_id, booking_id)
            if booking is None:
                raise NotFoundError("Booking not found")
            if not booking.is_confirmed:
                raise ValidationError("Only confirmed bookings can be rescheduled", param="status")
            await self._check_window(tx, host_id, interval)
            # The booking being moved must not conflict with itself
            await BookingConflictGuard(tx.bookings).ensure_free(
                host_id, interval, exclude_booking_id=booking.id
            )
            booking.start_time, booking.end_time = interval.start, interval.end
            await tx.bookings.save(booking)
        logger.info("Booking rescheduled: %s", booking.id)
        if self.notifier is not None:
            _schedule(
                tasks, f"booking {booking.id} reschedule email", self.notifier.booking_rescheduled, booking
            )
        return booking

    async def cancel_booking(
        self, host_id: int, booking_id: int, tasks: BackgroundTasks | None = None
    ) -> Booking:
        async with self._atomic(host_id) as tx:
            booking = await tx.bookings.get(host_id, booking_id)
            if booking is None:
                raise NotFoundError("Booking not found")
            if booking.status == BookingStatus.CANCELLED:
                raise ValidationError("Booking is already cancelled", param="status")
            booking.status = BookingStatus.CANCELLED
            await tx.bookings.save(booking)
        logger.info("Booking cancelled: %s", booking.id)
        if self.notifier is not None:
            _schedule(
                tasks, f"booking {booking.id} cancellation email", self.notifier.booking_cancelled, booking
            )
        return booking

    async def bulk_cancel(
        self, host_id: int, booking_ids: Sequence[int], tasks: BackgroundTasks | None = None
    ) -> list[BulkCancelResult]:
        """Cancel each booking in its own transaction; report per record."""

        async def cancel_one(booking_id: int) -> BulkCancelResult:
            try:
                await self.cancel_booking(host_id, booking_id, tasks)
            except SchedulingError as e:
                return BulkCancelResult(booking_id, cancelled=False, error=e.message)
            return BulkCancelResult(booking_id, cancelled=True)

        unique_ids = list(dict.fromkeys(booking_ids))
        results = await asyncio.gather(*(cancel_one(i) for i in unique_ids))
        failed = sum(1 for r in results if not r.cancelled)
        if failed:
            logger.warning("Bulk cancel for host %s: %d of %d failed", host_id, failed, len(results))
        return list(results)

    async def create_booking_request(
        self,
        host_id: int,
        customer_name: str,
        customer_email: str,
        start_time: datetime,
        end_time: datetime,
        notes: str | None = None,
        tasks: BackgroundTasks | None = None,
    ) -> BookingRequest:
        """Place a pending hold that blocks the interval until confirmed or expired."""
        interval = Interval.of(start_time, end_time)
        async with self._atomic(host_id) as tx:
            await self._check_window(tx, host_id, interval)
            await BookingConflictGuard(tx.bookings).ensure_free(host_id, interval)
            now = self.clock()
            if await tx.requests.list_pending_non_expired(host_id, interval, now):
                raise ConflictError("Time slot is held by another pending request", param="start_time")
            request = await tx.requests.add(
                BookingRequest(
                    host_id=host_id,
                    customer_name=customer_name,
                    customer_email=customer_email,
                    start_time=interval.start,
                    end_time=interval.end,
                    notes=notes,
                    status=BookingRequestStatus.PENDING,
                    confirmation_token=new_confirmation_token(),
                    expires_at=now + timedelta(minutes=settings.booking_request_ttl_minutes),
                )
            )
        logger.info("Booking request created: %s (host %s)", request.id, host_id)
        if self.notifier is not None:
            _schedule(
                tasks, f"booking request {request.id} email", self.notifier.request_received, request
            )
        return request

    async def confirm_booking_request(
        self, token: str, tasks: BackgroundTasks | None = None
    ) -> Booking:
        """Turn a pending hold into a confirmed booking.

        Only confirmed bookings are checked. When one already covers the interval the
        request is cancelled for good and SlotTakenError is raised; the terminal
        transition is committed before the error leaves this method.
        """
        host_id = await require("request store", self.transactions.find_request_host(token))
        if host_id is None:
            raise NotFoundError("Booking request not found")

        failure: SchedulingError | None = None
        booking: Booking | None = None
        async with self._atomic(host_id) as tx:
            request = await tx.requests.get_by_token(token)
            if request is None:
                raise NotFoundError("Booking request not found")
            if request.status != BookingRequestStatus.PENDING:
                raise ValidationError(f"Booking request is already {request.status}", param="token")
            if request.expires_at <= self.clock():
                await tx.requests.transition(request.id, BookingRequestStatus.EXPIRED)
                failure = ValidationError("Booking request has expired", param="token")
            elif await BookingConflictGuard(tx.bookings).check(host_id, request.interval):
                await tx.requests.transition(request.id, BookingRequestStatus.CANCELLED)
                failure = SlotTakenError(
                    "This time slot was booked by someone else", param="start_time"
                )
            else:
                booking = await tx.bookings.add(
                    Booking(
                        host_id=host_id,
                        customer_name=request.customer_name,
                        customer_email=request.customer_email,
                        start_time=request.start_time,
                        end_time=request.end_time,
                        notes=request.notes,
                        status=BookingStatus.CONFIRMED,
                    )
                )
                await tx.requests.transition(request.id, BookingRequestStatus.CONFIRMED)

        if failure is not None:
            logger.info("Booking request %s not confirmed: %s", request.id, failure.message)
            raise failure
        logger.info("Booking request %s confirmed as booking %s", request.id, booking.id)
        self._announce_booking(tasks, host_id, booking)
        return booking

    def _announce_booking(self, tasks: BackgroundTasks | None, host_id: int, booking: Booking) -> None:
        if self.notifier is not None:
            _schedule(
                tasks, f"booking {booking.id} confirmation email", self.notifier.booking_confirmed, booking
            )
        for provider in self.providers:
            _schedule(
                tasks, f"booking {booking.id} {provider.name} event", provider.create_event, host_id, booking
            )
