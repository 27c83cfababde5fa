"""
Booking model
"""

from sqlalchemy import (
    Column, Text, Integer, Boolean, ForeignKey, Enum, UniqueConstraint, CheckConstraint
)
from sqlalchemy.dialects.postgresql import UUID
import enum

from gymbook.models.base import BaseModel, UTCDateTime, utc_now


class BookingStatus(str, enum.Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no_show"


class Booking(BaseModel):
    """
    A member's seat in a schedule

    One row per (user, schedule): cancelled rows are reactivated rather than
    duplicated.
    """
    __tablename__ = "bookings"
    __table_args__ = (
        UniqueConstraint('user_id', 'schedule_id', name='uq_booking_user_schedule'),
        CheckConstraint('rating IS NULL OR (rating >= 1 AND rating <= 5)', name='check_booking_rating_range'),
    )

    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    schedule_id = Column(UUID(as_uuid=True), ForeignKey("schedules.id"), nullable=False, index=True)
    status = Column(
        Enum(BookingStatus, name="booking_status", values_callable=lambda e: [m.value for m in e]),
        default=BookingStatus.CONFIRMED,
        nullable=False,
        index=True
    )
    booking_date = Column(UTCDateTime, default=utc_now, nullable=False)
    cancelled_at = Column(UTCDateTime)
    cancellation_reason = Column(Text)
    attended = Column(Boolean)
    rating = Column(Integer)
    feedback = Column(Text)

    def __repr__(self):
        return f"<Booking(id={self.id}, user_id={self.user_id}, schedule_id={self.schedule_id}, status={self.status})>"
