from datetime import datetime
from enum import StrEnum

from sqlmodel import Field, SQLModel

from meetslot.core.errors import InvalidTransitionError
from meetslot.core.interval import Interval, utc_now


class BookingRequestStatus(StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


TERMINAL_STATUSES = frozenset(
    {BookingRequestStatus.CONFIRMED, BookingRequestStatus.CANCELLED, BookingRequestStatus.EXPIRED}
)


def check_transition(current: str, new: str) -> None:
    """pending -> {confirmed, cancelled, expired}; terminal states are final."""
    if current != BookingRequestStatus.PENDING or new not in TERMINAL_STATUSES:
        raise InvalidTransitionError(
            f"Booking request cannot move from {current} to {new}", param="status"
        )


class BookingRequest(SQLModel, table=True):
    """A reservation hold awaiting customer e-mail confirmation."""

    __tablename__ = "booking_requests"
    id: int | None = Field(default=None, primary_key=True)
    host_id: int = Field(foreign_key="users.id", index=True)
    customer_name: str = Field(max_length=100)
    customer_email: str = Field(max_length=255)
    start_time: datetime = Field(index=True)
    end_time: datetime = Field(index=True)
    notes: str | None = None
    status: str = Field(default=BookingRequestStatus.PENDING, max_length=16, index=True)
    confirmation_token: str = Field(unique=True, index=True, max_length=255)
    expires_at: datetime = Field(index=True)
    confirmed_at: datetime | None = None
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def interval(self) -> Interval:
        return Interval(self.start_time, self.end_time)

    def is_active(self, now: datetime) -> bool:
        return self.status == BookingRequestStatus.PENDING and self.expires_at > now

    def transition(self, new_status: str) -> None:
        check_transition(self.status, new_status)
        self.status = new_status
        if new_status == BookingRequestStatus.CONFIRMED:
            self.confirmed_at = utc_now()


class BookingRequestPublic(SQLModel):
    id: int
    host_id: int
    customer_name: str
    start_time: datetime
    end_time: datetime
    status: str
    expires_at: datetime
