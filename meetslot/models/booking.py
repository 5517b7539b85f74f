from datetime import datetime
from enum import StrEnum

from sqlmodel import Field, SQLModel

from meetslot.core.interval import Interval, utc_now


class BookingStatus(StrEnum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class Booking(SQLModel, table=True):
    __tablename__ = "bookings"
    id: int | None = Field(default=None, primary_key=True)
    host_id: int = Field(foreign_key="users.id", index=True)
    customer_name: str = Field(max_length=100)
    customer_email: str = Field(max_length=255)
    start_time: datetime = Field(index=True)
    end_time: datetime = Field(index=True)
    status: str = Field(default=BookingStatus.CONFIRMED, max_length=16, index=True)
    notes: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def interval(self) -> Interval:
        return Interval(self.start_time, self.end_time)

    @property
    def is_confirmed(self) -> bool:
        return self.status == BookingStatus.CONFIRMED


class BookingPublic(SQLModel):
    id: int
    host_id: int
    customer_name: str
    customer_email: str
    start_time: datetime
    end_time: datetime
    status: str
    notes: str | None = None
    created_at: datetime
