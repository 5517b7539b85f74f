from datetime import time

from sqlmodel import Field, SQLModel


class AvailabilityRuleBase(SQLModel):
    # 0 = Sunday ... 6 = Saturday
    day_of_week: int = Field(ge=0, le=6, index=True)
    start_time: time
    end_time: time
    buffer_minutes: int = Field(default=0, ge=0)
    max_bookings_per_day: int | None = Field(default=None, ge=1)


class AvailabilityRule(AvailabilityRuleBase, table=True):
    __tablename__ = "availability_rules"
    id: int | None = Field(default=None, primary_key=True)
    host_id: int = Field(foreign_key="users.id", index=True)


class AvailabilityRuleCreate(AvailabilityRuleBase):
    pass


class AvailabilityRuleUpdate(SQLModel):
    day_of_week: int | None = Field(default=None, ge=0, le=6)
    start_time: time | None = None
    end_time: time | None = None
    buffer_minutes: int | None = Field(default=None, ge=0)
    max_bookings_per_day: int | None = Field(default=None, ge=1)


class AvailabilityRulePublic(AvailabilityRuleBase):
    id: int
    host_id: int
