from datetime import datetime

from pydantic import BaseModel, EmailStr, Field


class SlotOut(BaseModel):
    start_time: datetime
    end_time: datetime


class AvailableSlotsResponse(BaseModel):
    host_id: int
    date: str  # YYYY-MM-DD
    slots: list[SlotOut]


class BookingCreateRequest(BaseModel):
    customer_name: str = Field(min_length=1, max_length=100)
    customer_email: EmailStr
    start_time: datetime
    end_time: datetime
    notes: str | None = None


class RescheduleRequest(BaseModel):
    start_time: datetime
    end_time: datetime


class BulkCancelRequest(BaseModel):
    booking_ids: list[int] = Field(min_length=1, max_length=100)


class BulkCancelItem(BaseModel):
    booking_id: int
    cancelled: bool
    error: str | None = None


class BulkCancelResponse(BaseModel):
    results: list[BulkCancelItem]
    cancelled: int
    failed: int
