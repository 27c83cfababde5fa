"""
Trainer model
"""

from decimal import Decimal

from sqlalchemy import Column, String, Integer, Numeric, ForeignKey, CheckConstraint
from sqlalchemy.dialects.postgresql import UUID

from gymbook.models.base import BaseModel


class Trainer(BaseModel):
    """
    Trainer profile with a running average rating
    """
    __tablename__ = "trainers"
    __table_args__ = (
        CheckConstraint('rating >= 0 AND rating <= 5', name='check_trainer_rating_range'),
        CheckConstraint('rating_count >= 0', name='check_trainer_rating_count'),
    )

    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), unique=True, nullable=False)
    specialization = Column(String(255))
    rating = Column(Numeric(3, 2), default=Decimal("0.00"), nullable=False)
    rating_count = Column(Integer, default=0, nullable=False)

    def __repr__(self):
        return f"<Trainer(id={self.id}, user_id={self.user_id}, rating={self.rating})>"
