"""
Database models
"""

from gymbook.models.user import User, UserRole
from gymbook.models.trainer import Trainer
from gymbook.models.gym_class import GymClass
from gymbook.models.schedule import Schedule, ScheduleStatus
from gymbook.models.booking import Booking, BookingStatus
from gymbook.models.waiting_list import WaitingListEntry

__all__ = [
    "User",
    "UserRole",
    "Trainer",
    "GymClass",
    "Schedule",
    "ScheduleStatus",
    "Booking",
    "BookingStatus",
    "WaitingListEntry",
]
