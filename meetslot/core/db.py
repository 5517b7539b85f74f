from collections.abc import AsyncGenerator
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from meetslot.core.config import settings


def to_async_url(database_url: str) -> str:
    """Map a plain postgresql:// URL onto asyncpg.

    asyncpg does not accept psycopg params like sslmode/channel_binding, so they are
    stripped; SSL is enabled via connect_args instead.
    """
    parsed = urlparse(database_url)
    if parsed.scheme not in ("postgresql", "postgres", "postgresql+asyncpg"):
        return database_url
    query = parse_qs(parsed.query, keep_blank_values=True)
    query.pop("sslmode", None)
    query.pop("channel_binding", None)
    new_query = urlencode(query, doseq=True)
    return urlunparse(
        ("postgresql+asyncpg", parsed.netloc, parsed.path, parsed.params, new_query, parsed.fragment)
    )


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    url = to_async_url(database_url)
    if url.startswith("postgresql+asyncpg"):
        return create_async_engine(
            url,
            echo=echo,
            pool_pre_ping=True,
            pool_size=5,
            max_overflow=10,
            connect_args={"ssl": True} if settings.database_ssl else {},
        )
    return create_async_engine(url, echo=echo)


def build_session_maker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


engine = build_engine(settings.database_url, echo=settings.env == "development")
async_session_maker = build_session_maker(engine)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(bind: AsyncEngine = engine) -> None:
    """Create tables if using create_all; prefer Alembic in production."""
    import meetslot.models  # noqa: F401 - register tables

    async with bind.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
