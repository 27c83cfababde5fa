"""
Waiting list schemas
"""

from typing import Optional
from uuid import UUID
from datetime import datetime

from gymbook.schemas.base import BaseSchema, IDSchema


class WaitingListJoin(BaseSchema):
    schedule_id: UUID


class WaitingListEntryResponse(IDSchema):
    """Waiting list entry schema"""
    user_id: UUID
    schedule_id: UUID
    position: int
    notified: bool
    notified_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    created_at: datetime


class MyWaitingListItem(BaseSchema):
    """Waiting list entry with its schedule and confirmation status"""
    id: UUID
    schedule_id: UUID
    position: int
    notified: bool
    notified_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    class_name: str
    start_time: datetime
    end_time: datetime
    spots_available: int
    can_confirm: bool
    hours_to_confirm: Optional[float] = None


class LeaveResponse(BaseSchema):
    renumbered: int
