"""
Gym class model
"""

from sqlalchemy import Column, String, Text, Integer, Boolean, CheckConstraint

from gymbook.models.base import BaseModel


class GymClass(BaseModel):
    """
    A class offered by the gym; its schedules draw their capacity from here
    """
    __tablename__ = "classes"
    __table_args__ = (
        CheckConstraint('max_capacity > 0', name='check_class_capacity_positive'),
        CheckConstraint('duration_minutes > 0', name='check_class_duration_positive'),
    )

    name = Column(String(255), nullable=False)
    description = Column(Text)
    category = Column(String(100))
    duration_minutes = Column(Integer, default=60, nullable=False)
    max_capacity = Column(Integer, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    def __repr__(self):
        return f"<GymClass(id={self.id}, name={self.name}, capacity={self.max_capacity})>"
