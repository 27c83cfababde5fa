"""
Schedule model
"""

from sqlalchemy import Column, String, Text, Integer, ForeignKey, Enum, CheckConstraint
from sqlalchemy.dialects.postgresql import UUID
import enum

from gymbook.models.base import BaseModel, UTCDateTime


class ScheduleStatus(str, enum.Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class Schedule(BaseModel):
    """
    One occurrence of a class

    current_bookings is the capacity ledger for the occurrence and is only
    changed while the schedule row is locked.
    """
    __tablename__ = "schedules"
    __table_args__ = (
        CheckConstraint('current_bookings >= 0', name='check_current_bookings_non_negative'),
        CheckConstraint('end_time > start_time', name='check_schedule_time_order'),
    )

    class_id = Column(UUID(as_uuid=True), ForeignKey("classes.id"), nullable=False, index=True)
    trainer_id = Column(UUID(as_uuid=True), ForeignKey("trainers.id"), nullable=False, index=True)
    start_time = Column(UTCDateTime, nullable=False, index=True)
    end_time = Column(UTCDateTime, nullable=False)
    room = Column(String(100))
    notes = Column(Text)
    status = Column(
        Enum(ScheduleStatus, name="schedule_status", values_callable=lambda e: [m.value for m in e]),
        default=ScheduleStatus.ACTIVE,
        nullable=False,
        index=True
    )
    current_bookings = Column(Integer, default=0, nullable=False)
    cancellation_reason = Column(Text)

    @property
    def is_active(self) -> bool:
        return self.status == ScheduleStatus.ACTIVE

    def __repr__(self):
        return f"<Schedule(id={self.id}, start={self.start_time}, status={self.status}, booked={self.current_bookings})>"
