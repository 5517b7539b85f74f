from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from meetslot.core.config import settings
from meetslot.core.interval import utc_now
from meetslot.core.security import (
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    hash_password,
    verify_password,
)
from meetslot.models.host import Host, HostCreate, HostPublic
from meetslot.models.host_settings import HostSettings
from meetslot.models.refresh_token import RefreshToken

TokenGrant = tuple[Host, str, str, int]


async def get_host_by_email(session: AsyncSession, email: str) -> Host | None:
    result = await session.execute(select(Host).where(Host.email == email))
    return result.scalar_one_or_none()


async def create_host(session: AsyncSession, data: HostCreate) -> Host:
    host = Host(
        email=data.email,
        full_name=data.full_name,
        hashed_password=hash_password(data.password),
    )
    session.add(host)
    await session.flush()
    # Every host starts with the default scheduling policy
    session.add(
        HostSettings(
            host_id=host.id,
            booking_horizon_days=settings.default_booking_horizon_days,
            default_meeting_duration_minutes=settings.default_duration_minutes,
        )
    )
    await session.flush()
    await session.refresh(host)
    return host


def host_to_public(host: Host) -> HostPublic:
    return HostPublic(id=host.id, email=host.email, full_name=host.full_name)


async def _issue_tokens(session: AsyncSession, host: Host) -> TokenGrant:
    access = create_access_token(host.id)
    refresh = create_refresh_token(host.id)
    _, jti = decode_refresh_token(refresh)
    session.add(
        RefreshToken(
            host_id=host.id,
            jti=jti,
            expires_at=utc_now() + timedelta(days=settings.refresh_token_expire_days),
        )
    )
    await session.flush()
    return host, access, refresh, settings.access_token_expire_minutes * 60


async def login_host(session: AsyncSession, email: str, password: str) -> TokenGrant | None:
    host = await get_host_by_email(session, email)
    if not host or not verify_password(password, host.hashed_password):
        return None
    return await _issue_tokens(session, host)


async def signup_host(
    session: AsyncSession, email: str, password: str, full_name: str | None = None
) -> TokenGrant | None:
    if await get_host_by_email(session, email):
        return None
    host = await create_host(session, HostCreate(email=email, password=password, full_name=full_name))
    return await _issue_tokens(session, host)


async def revoke_refresh_token(session: AsyncSession, jti: str) -> None:
    result = await session.execute(select(RefreshToken).where(RefreshToken.jti == jti))
    row = result.scalar_one_or_none()
    if row:
        row.revoked = True
        session.add(row)


async def refresh_tokens(session: AsyncSession, refresh_token: str) -> TokenGrant | None:
    host_id, jti = decode_refresh_token(refresh_token)
    if host_id is None:
        return None
    result = await session.execute(
        select(RefreshToken).where(
            RefreshToken.jti == jti,
            RefreshToken.revoked == False,  # noqa: E712
            RefreshToken.expires_at > utc_now(),
        )
    )
    token_row = result.scalar_one_or_none()
    if not token_row:
        return None
    host = await session.get(Host, host_id)
    if not host:
        return None
    # Rotate: the presented refresh token is single-use
    token_row.revoked = True
    session.add(token_row)
    return await _issue_tokens(session, host)
