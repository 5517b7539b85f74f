from datetime import datetime

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from meetslot.api.deps import get_booking_service, get_current_host
from meetslot.api.schemas.scheduling import (
    BookingCreateRequest,
    BulkCancelItem,
    BulkCancelRequest,
    BulkCancelResponse,
    RescheduleRequest,
)
from meetslot.core.db import get_session
from meetslot.core.errors import NotFoundError
from meetslot.models.booking import Booking, BookingPublic, BookingStatus
from meetslot.models.host import Host
from meetslot.services.booking_service import BookingService
from meetslot.services.sql_stores import SqlBookingStore

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.get("", response_model=list[BookingPublic])
async def list_bookings(
    from_time: datetime | None = Query(None),
    status_filter: BookingStatus | None = Query(None, alias="status"),
    session: AsyncSession = Depends(get_session),
    current_host: Host = Depends(get_current_host),
) -> list[Booking]:
    return await SqlBookingStore(session).list_for_host(current_host.id, from_time, status_filter)


@router.post("", response_model=BookingPublic, status_code=status.HTTP_201_CREATED)
async def create_booking(
    body: BookingCreateRequest,
    background_tasks: BackgroundTasks,
    current_host: Host = Depends(get_current_host),
    bookings: BookingService = Depends(get_booking_service),
) -> Booking:
    return await bookings.create_booking(
        current_host.id,
        customer_name=body.customer_name,
        customer_email=body.customer_email,
        start_time=body.start_time,
        end_time=body.end_time,
        notes=body.notes,
        tasks=background_tasks,
    )


@router.post("/bulk-cancel", response_model=BulkCancelResponse)
async def bulk_cancel(
    body: BulkCancelRequest,
    background_tasks: BackgroundTasks,
    current_host: Host = Depends(get_current_host),
    bookings: BookingService = Depends(get_booking_service),
) -> BulkCancelResponse:
    results = await bookings.bulk_cancel(current_host.id, body.booking_ids, background_tasks)
    items = [BulkCancelItem(booking_id=r.booking_id, cancelled=r.cancelled, error=r.error) for r in results]
    cancelled = sum(1 for r in results if r.cancelled)
    return BulkCancelResponse(results=items, cancelled=cancelled, failed=len(results) - cancelled)


@router.get("/{booking_id}", response_model=BookingPublic)
async def get_booking(
    booking_id: int,
    session: AsyncSession = Depends(get_session),
    current_host: Host = Depends(get_current_host),
) -> Booking:
    booking = await SqlBookingStore(session).get(current_host.id, booking_id)
    if booking is None:
        raise NotFoundError("Booking not found")
    return booking


@router.post("/{booking_id}/cancel", response_model=BookingPublic)
async def cancel_booking(
    booking_id: int,
    background_tasks: BackgroundTasks,
    current_host: Host = Depends(get_current_host),
    bookings: BookingService = Depends(get_booking_service),
) -> Booking:
    return await bookings.cancel_booking(current_host.id, booking_id, background_tasks)


@router.post("/{booking_id}/reschedule", response_model=BookingPublic)
async def reschedule_booking(
    booking_id: int,
    body: RescheduleRequest,
    background_tasks: BackgroundTasks,
    current_host: Host = Depends(get_current_host),
    bookings: BookingService = Depends(get_booking_service),
) -> Booking:
    return await bookings.reschedule_booking(
        current_host.id, booking_id, body.start_time, body.end_time, background_tasks
    )
