from datetime import datetime
from enum import StrEnum

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel


class CalendarProviderName(StrEnum):
    GOOGLE = "google"
    MICROSOFT = "microsoft"


class CalendarConnection(SQLModel, table=True):
    """OAuth tokens for one host's external calendar; at most one row per provider."""

    __tablename__ = "calendar_connections"
    __table_args__ = (
        UniqueConstraint("host_id", "provider", name="uq_calendar_connections_host_provider"),
    )
    id: int | None = Field(default=None, primary_key=True)
    host_id: int = Field(foreign_key="users.id", index=True)
    provider: str = Field(max_length=16, index=True)
    email: str | None = None
    access_token: str
    refresh_token: str | None = None
    expires_at: datetime


class CalendarConnectionPublic(SQLModel):
    provider: str
    email: str | None = None
    expires_at: datetime


class CalendarStatus(SQLModel):
    connected: bool
    connections: list[CalendarConnectionPublic]
