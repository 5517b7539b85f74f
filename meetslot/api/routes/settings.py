from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from meetslot.api.deps import get_current_host
from meetslot.core.db import get_session
from meetslot.core.errors import ValidationError
from meetslot.models.host import Host
from meetslot.models.host_settings import (
    ALLOWED_HORIZONS,
    HostSettings,
    HostSettingsPublic,
    HostSettingsUpdate,
)
from meetslot.services.sql_stores import SqlSettingsStore

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("", response_model=HostSettingsPublic)
async def get_settings(
    session: AsyncSession = Depends(get_session),
    current_host: Host = Depends(get_current_host),
) -> HostSettings:
    return await SqlSettingsStore(session).get_host_settings(current_host.id)


@router.put("", response_model=HostSettingsPublic)
async def update_settings(
    body: HostSettingsUpdate,
    session: AsyncSession = Depends(get_session),
    current_host: Host = Depends(get_current_host),
) -> HostSettings:
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    horizon = changes.get("booking_horizon_days")
    if horizon is not None and horizon not in ALLOWED_HORIZONS:
        raise ValidationError(
            f"Booking horizon must be one of {', '.join(map(str, ALLOWED_HORIZONS))} days",
            param="booking_horizon_days",
        )
    row = await SqlSettingsStore(session).get_host_settings(current_host.id)
    for field, value in changes.items():
        setattr(row, field, value)
    session.add(row)
    await session.flush()
    await session.refresh(row)
    return row
