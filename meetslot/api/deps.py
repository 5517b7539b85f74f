from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from meetslot.core.db import get_session
from meetslot.core.security import decode_access_token
from meetslot.models.host import Host
from meetslot.services.booking_service import BookingService
from meetslot.services.busy_set import BusySetAggregator
from meetslot.services.scheduling_service import SchedulingService
from meetslot.services.sql_stores import (
    SqlBookingStore,
    SqlCalendarConnectionStore,
    SqlRequestStore,
    SqlRuleStore,
    SqlSettingsStore,
)

security = HTTPBearer(auto_error=False)


def refresh_header(x_refresh_token: str | None = Header(default=None, alias="X-Refresh-Token")) -> str | None:
    """Extract X-Refresh-Token header for logout/refresh endpoints."""
    return x_refresh_token


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_host(
    session: AsyncSession = Depends(get_session),
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> Host:
    if not credentials or credentials.scheme.lower() != "bearer":
        raise _unauthorized("Missing or invalid authorization header")
    host_id = decode_access_token(credentials.credentials)
    if host_id is None:
        raise _unauthorized("Invalid or expired token")
    host = await session.get(Host, host_id)
    if not host:
        raise _unauthorized("Host not found")
    return host


def get_scheduling_service(
    request: Request, session: AsyncSession = Depends(get_session)
) -> SchedulingService:
    """Read path over the request's session; calendar providers come from app state."""
    busy_set = BusySetAggregator(
        SqlBookingStore(session),
        SqlRequestStore(session),
        providers=request.app.state.calendar_providers,
    )
    return SchedulingService(SqlRuleStore(session), SqlSettingsStore(session), busy_set)


def get_booking_service(request: Request) -> BookingService:
    return request.app.state.booking_service


def get_calendar_connections(request: Request) -> SqlCalendarConnectionStore:
    return request.app.state.calendar_connections
