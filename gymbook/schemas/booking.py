"""
Booking schemas
"""

from pydantic import Field
from typing import Optional
from uuid import UUID
from datetime import datetime

from gymbook.schemas.base import BaseSchema, IDSchema, TimestampSchema
from gymbook.schemas.waiting_list import WaitingListEntryResponse
from gymbook.models.booking import BookingStatus
from gymbook.models.schedule import ScheduleStatus


class BookingCreate(BaseSchema):
    """Booking creation schema"""
    schedule_id: UUID


class BookingCancel(BaseSchema):
    """Booking cancellation schema"""
    reason: Optional[str] = Field(None, max_length=500)


class BookingRate(BaseSchema):
    """
    Rating schema

    The range is enforced by the booking service so that out-of-range
    values produce the same VALIDATION_ERROR body as other rule violations.
    """
    rating: int
    feedback: Optional[str] = Field(None, max_length=2000)


class AttendanceUpdate(BaseSchema):
    attended: bool


class BookingResponse(IDSchema, TimestampSchema):
    """Booking response schema"""
    user_id: UUID
    schedule_id: UUID
    status: BookingStatus
    booking_date: datetime
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    attended: Optional[bool] = None
    rating: Optional[int] = None
    feedback: Optional[str] = None


class CancellationResponse(BaseSchema):
    booking: BookingResponse
    is_late_cancellation: bool
    promoted_entry: Optional[WaitingListEntryResponse] = None


class MyBookingItem(BaseSchema):
    """Booking with its class and schedule details"""
    id: UUID
    schedule_id: UUID
    status: BookingStatus
    booking_date: datetime
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    attended: Optional[bool] = None
    rating: Optional[int] = None
    class_name: str
    trainer_name: str
    start_time: datetime
    end_time: datetime
    room: Optional[str] = None
    schedule_status: ScheduleStatus
    is_upcoming: bool
    can_cancel: bool
