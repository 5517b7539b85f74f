from fastapi import APIRouter, Depends

from meetslot.api.deps import get_calendar_connections, get_current_host
from meetslot.core.errors import NotFoundError
from meetslot.models.calendar_connection import (
    CalendarConnectionPublic,
    CalendarProviderName,
    CalendarStatus,
)
from meetslot.models.host import Host
from meetslot.services.sql_stores import SqlCalendarConnectionStore

router = APIRouter(prefix="/calendar", tags=["calendar"])


@router.get("/status", response_model=CalendarStatus)
async def calendar_status(
    current_host: Host = Depends(get_current_host),
    connections: SqlCalendarConnectionStore = Depends(get_calendar_connections),
) -> CalendarStatus:
    """External calendars connected for the signed-in host."""
    rows = await connections.list_for_host(current_host.id)
    return CalendarStatus(
        connected=bool(rows),
        connections=[
            CalendarConnectionPublic(provider=r.provider, email=r.email, expires_at=r.expires_at)
            for r in rows
        ],
    )


@router.delete("/{provider}")
async def disconnect_calendar(
    provider: CalendarProviderName,
    current_host: Host = Depends(get_current_host),
    connections: SqlCalendarConnectionStore = Depends(get_calendar_connections),
) -> dict:
    if not await connections.delete(current_host.id, provider.value):
        raise NotFoundError(f"No {provider.value} calendar connected")
    return {"message": f"{provider.value} calendar disconnected"}
