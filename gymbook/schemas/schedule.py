"""
Schedule schemas
"""

from pydantic import Field
from typing import List, Optional
from uuid import UUID
from datetime import datetime

from gymbook.schemas.base import BaseSchema
from gymbook.models.booking import BookingStatus
from gymbook.models.schedule import ScheduleStatus


class ScheduleCancel(BaseSchema):
    reason: Optional[str] = Field(None, max_length=500)


class ScheduleCancellationResponse(BaseSchema):
    schedule_id: UUID
    status: ScheduleStatus
    affected_count: int
    removed_waiting: int


class AvailabilityResponse(BaseSchema):
    """Seat availability for one schedule"""
    schedule_id: UUID
    status: ScheduleStatus
    capacity: int
    current_bookings: int
    spots_available: int
    waiting_list_length: int
    is_full: bool


class RosterBookingItem(BaseSchema):
    booking_id: UUID
    user_id: UUID
    full_name: str
    email: str
    status: BookingStatus
    booking_date: datetime
    attended: Optional[bool] = None
    rating: Optional[int] = None
    feedback: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None


class RosterWaitingItem(BaseSchema):
    entry_id: UUID
    user_id: UUID
    full_name: str
    email: str
    position: int
    notified: bool
    notified_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    created_at: datetime


class ScheduleRosterResponse(BaseSchema):
    """Bookings and waiting list of one schedule"""
    schedule_id: UUID
    class_name: str
    status: ScheduleStatus
    capacity: int
    current_bookings: int
    bookings: List[RosterBookingItem]
    waiting_list: List[RosterWaitingItem]
