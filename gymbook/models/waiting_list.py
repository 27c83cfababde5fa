"""
Waiting list model
"""

from sqlalchemy import Column, Integer, Boolean, ForeignKey, UniqueConstraint, CheckConstraint
from sqlalchemy.dialects.postgresql import UUID

from gymbook.models.base import BaseModel, UTCDateTime


class WaitingListEntry(BaseModel):
    """
    Queue entry for a full schedule; positions are 1..N per schedule
    """
    __tablename__ = "waiting_list"
    __table_args__ = (
        UniqueConstraint('user_id', 'schedule_id', name='uq_waiting_list_user_schedule'),
        UniqueConstraint('schedule_id', 'position', name='uq_waiting_list_schedule_position'),
        CheckConstraint('position > 0', name='check_waiting_list_position_positive'),
    )

    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    schedule_id = Column(UUID(as_uuid=True), ForeignKey("schedules.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    notified = Column(Boolean, default=False, nullable=False)
    notified_at = Column(UTCDateTime)
    expires_at = Column(UTCDateTime)

    def is_expired(self, now) -> bool:
        return self.expires_at is not None and self.expires_at < now

    def __repr__(self):
        return f"<WaitingListEntry(id={self.id}, schedule_id={self.schedule_id}, position={self.position})>"
