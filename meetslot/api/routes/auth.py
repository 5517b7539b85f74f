import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from meetslot.api.deps import get_current_host, refresh_header
from meetslot.api.schemas.auth import LoginRequest, RefreshRequest, SignupRequest, TokenPair
from meetslot.core.db import get_session
from meetslot.core.security import decode_refresh_token
from meetslot.models.host import Host, HostPublic
from meetslot.services.auth_service import (
    host_to_public,
    login_host,
    refresh_tokens,
    revoke_refresh_token,
    signup_host,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _pair(grant) -> TokenPair:
    _, access, refresh, expires_in = grant
    return TokenPair(access_token=access, refresh_token=refresh, expires_in=expires_in)


@router.post("/login", response_model=TokenPair)
async def login(
    body: LoginRequest,
    session: AsyncSession = Depends(get_session),
) -> TokenPair:
    grant = await login_host(session, body.email, body.password)
    if not grant:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    return _pair(grant)


@router.post("/signup", response_model=TokenPair, status_code=status.HTTP_201_CREATED)
async def signup(
    body: SignupRequest,
    session: AsyncSession = Depends(get_session),
) -> TokenPair:
    grant = await signup_host(session, body.email, body.password, body.full_name)
    if not grant:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="An account with this email already exists",
        )
    logger.info("Host signed up: %s", grant[0].id)
    return _pair(grant)


@router.post("/refresh", response_model=TokenPair)
async def refresh(
    session: AsyncSession = Depends(get_session),
    x_refresh_token: str | None = Depends(refresh_header),
    body: RefreshRequest | None = None,
) -> TokenPair:
    token = x_refresh_token or (body.refresh_token if body else None)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Refresh token required (header X-Refresh-Token or body refresh_token)",
        )
    grant = await refresh_tokens(session, token)
    if not grant:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired refresh token",
        )
    return _pair(grant)


@router.post("/logout")
async def logout(
    session: AsyncSession = Depends(get_session),
    x_refresh_token: str | None = Depends(refresh_header),
    body: RefreshRequest | None = None,
) -> dict:
    token = x_refresh_token or (body.refresh_token if body else None)
    if token:
        _, jti = decode_refresh_token(token)
        if jti:
            await revoke_refresh_token(session, jti)
    return {"message": "Logged out"}


@router.get("/me", response_model=HostPublic)
async def me(current_host: Host = Depends(get_current_host)) -> HostPublic:
    return host_to_public(current_host)
