from sqlmodel import Field, SQLModel

ALLOWED_HORIZONS = (7, 14, 21, 30, 90, 180, 365)


class HostSettingsBase(SQLModel):
    booking_horizon_days: int = 30
    default_meeting_duration_minutes: int = Field(default=60, ge=15, le=240)
    buffer_minutes: int = Field(default=0, ge=0, le=60)


class HostSettings(HostSettingsBase, table=True):
    """Policy knobs read once per availability query; absent row means defaults."""

    __tablename__ = "host_settings"
    id: int | None = Field(default=None, primary_key=True)
    host_id: int = Field(foreign_key="users.id", unique=True, index=True)


class HostSettingsUpdate(SQLModel):
    booking_horizon_days: int | None = None
    default_meeting_duration_minutes: int | None = Field(default=None, ge=15, le=240)
    buffer_minutes: int | None = Field(default=None, ge=0, le=60)


class HostSettingsPublic(HostSettingsBase):
    host_id: int
