from datetime import date

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from meetslot.api.deps import get_booking_service, get_scheduling_service
from meetslot.api.schemas.scheduling import AvailableSlotsResponse, BookingCreateRequest, SlotOut
from meetslot.core.db import get_session
from meetslot.core.errors import NotFoundError
from meetslot.models.booking import Booking, BookingPublic
from meetslot.models.booking_request import BookingRequest, BookingRequestPublic
from meetslot.models.host import Host
from meetslot.services.booking_service import BookingService
from meetslot.services.scheduling_service import SchedulingService

router = APIRouter(prefix="/public", tags=["public"])


async def _require_host(session: AsyncSession, host_id: int) -> Host:
    host = await session.get(Host, host_id)
    if host is None:
        raise NotFoundError("Host not found")
    return host


@router.get("/{host_id}/slots", response_model=AvailableSlotsResponse)
async def public_slots(
    host_id: int,
    date_param: date = Query(..., alias="date"),
    duration: int | None = Query(None),
    session: AsyncSession = Depends(get_session),
    scheduler: SchedulingService = Depends(get_scheduling_service),
) -> AvailableSlotsResponse:
    """Bookable slots for a host on one date (UTC); no authentication."""
    await _require_host(session, host_id)
    slots = await scheduler.get_available_slots(host_id, date_param, duration)
    return AvailableSlotsResponse(
        host_id=host_id,
        date=date_param.isoformat(),
        slots=[SlotOut(start_time=s.start, end_time=s.end) for s in slots],
    )


@router.post(
    "/{host_id}/requests",
    response_model=BookingRequestPublic,
    status_code=status.HTTP_201_CREATED,
)
async def request_booking(
    host_id: int,
    body: BookingCreateRequest,
    background_tasks: BackgroundTasks,
    bookings: BookingService = Depends(get_booking_service),
) -> BookingRequest:
    """Hold a slot and e-mail the customer a confirmation link."""
    return await bookings.create_booking_request(
        host_id,
        customer_name=body.customer_name,
        customer_email=body.customer_email,
        start_time=body.start_time,
        end_time=body.end_time,
        notes=body.notes,
        tasks=background_tasks,
    )


@router.get("/requests/confirm/{token}", response_model=BookingPublic)
async def confirm_booking_request(
    token: str,
    background_tasks: BackgroundTasks,
    bookings: BookingService = Depends(get_booking_service),
) -> Booking:
    return await bookings.confirm_booking_request(token, background_tasks)
