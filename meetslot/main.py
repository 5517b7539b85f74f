import asyncio
import logging
import os
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from meetslot.api.routes import auth, availability, bookings, calendar, public
from meetslot.api.routes import settings as settings_routes
from meetslot.core.config import _ENV_FILE, settings
from meetslot.core.db import async_session_maker
from meetslot.core.errors import (
    ConflictError,
    DependencyError,
    NotFoundError,
    SchedulingError,
    SlotTakenError,
    ValidationError,
)
from meetslot.core.interval import utc_now
from meetslot.services.booking_service import BookingService
from meetslot.services.calendar_providers import GoogleCalendarProvider, MicrosoftCalendarProvider
from meetslot.services.email_service import EmailNotifier
from meetslot.services.sql_stores import (
    SqlCalendarConnectionStore,
    SqlRequestStore,
    SqlTransactionManager,
)

if os.getenv("ENV") != "production":
    logging.basicConfig(level=logging.DEBUG)
else:
    logging.basicConfig(
        level=logging.INFO,
        format='{"time": "%(asctime)s", "level": "%(levelname)s", "message": "%(message)s"}',
    )
logger = logging.getLogger(__name__)


async def expire_stale_requests(session_maker: async_sessionmaker[AsyncSession]) -> int:
    """Mark pending booking requests past their expiry as expired."""
    try:
        async with session_maker() as session:
            try:
                n = await SqlRequestStore(session).expire_stale(utc_now())
                await session.commit()
            except Exception:
                await session.rollback()
                raise
    except Exception as e:
        logger.exception("Booking request expiry sweep failed: %s", e)
        return 0
    if n:
        logger.info("Expired %d stale booking request(s)", n)
    return n


async def _expiry_loop(session_maker: async_sessionmaker[AsyncSession]) -> None:
    while True:
        await asyncio.sleep(settings.request_expiry_interval_seconds)
        await expire_stale_requests(session_maker)


def configure_services(
    app: FastAPI,
    client: httpx.AsyncClient,
    session_maker: async_sessionmaker[AsyncSession],
) -> None:
    """Build long-lived collaborators once and hang them on app.state."""
    connections = SqlCalendarConnectionStore(session_maker)
    providers = [
        GoogleCalendarProvider(client, connections),
        MicrosoftCalendarProvider(client, connections),
    ]
    app.state.calendar_connections = connections
    app.state.calendar_providers = providers
    app.state.booking_service = BookingService(
        SqlTransactionManager(session_maker),
        providers=providers,
        notifier=EmailNotifier(),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Loading .env from: %s (exists: %s)", _ENV_FILE, _ENV_FILE.exists())
    if not settings.email_enabled:
        logger.warning("Email: NOT configured, booking e-mails will be skipped")
    async with httpx.AsyncClient(timeout=settings.calendar_timeout_seconds) as client:
        configure_services(app, client, async_session_maker)
        await expire_stale_requests(async_session_maker)
        task = asyncio.create_task(_expiry_loop(async_session_maker))
        yield
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


app = FastAPI(
    title="meetslot API",
    description="Meeting scheduling: availability rules, slots, bookings, booking requests",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Refresh-Token"],
)

app.include_router(auth.router, prefix="/api/v1")
app.include_router(availability.router, prefix="/api/v1")
app.include_router(settings_routes.router, prefix="/api/v1")
app.include_router(bookings.router, prefix="/api/v1")
app.include_router(calendar.router, prefix="/api/v1")
app.include_router(public.router, prefix="/api/v1")


def _cors_headers(origin: str | None) -> dict[str, str]:
    """Add CORS headers to error responses so the browser doesn't block them."""
    headers = {
        "Access-Control-Allow-Credentials": "true",
        "Access-Control-Allow-Methods": "GET, POST, PUT, PATCH, DELETE, OPTIONS",
        "Access-Control-Allow-Headers": "Authorization, Content-Type, X-Refresh-Token",
    }
    if origin and origin in settings.cors_origins_list:
        headers["Access-Control-Allow-Origin"] = origin
    elif settings.cors_origins_list:
        headers["Access-Control-Allow-Origin"] = settings.cors_origins_list[0]
    return headers


def _error_status(exc: SchedulingError) -> tuple[int, str]:
    if isinstance(exc, SlotTakenError):
        return 409, "time_slot_taken"
    if isinstance(exc, ConflictError):
        return 409, "time_slot_unavailable"
    if isinstance(exc, NotFoundError):
        return 404, "not_found"
    if isinstance(exc, DependencyError):
        return 503, "dependency_unavailable"
    if isinstance(exc, ValidationError):
        return 400, "invalid_request"
    return 400, "scheduling_error"


@app.exception_handler(SchedulingError)
async def scheduling_exception_handler(request: Request, exc: SchedulingError) -> JSONResponse:
    status_code, code = _error_status(exc)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    content = {"detail": exc.message, "code": code}
    if exc.param:
        content["param"] = exc.param
    return JSONResponse(
        status_code=status_code,
        content=content,
        headers=_cors_headers(request.headers.get("origin")),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Return actual error in JSON; include CORS so 500 responses are not blocked by browser."""
    headers = _cors_headers(request.headers.get("origin"))
    if isinstance(exc, HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=headers,
        )
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"detail": f"{type(exc).__name__}: {exc}"},
        headers=headers,
    )


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}
