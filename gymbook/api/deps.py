"""
Request dependencies: the calling actor and the booking engine services
"""

from typing import Optional
from uuid import UUID

from fastapi import Depends, Header

from gymbook.core.clock import system_clock
from gymbook.core.database import async_session
from gymbook.core.exceptions import ValidationError
from gymbook.core.locks import build_lock_manager
from gymbook.core.notifier import LoggingNotifier
from gymbook.models.user import UserRole
from gymbook.services.actor import Actor
from gymbook.services.booking_service import BookingService
from gymbook.services.schedule_service import ScheduleService
from gymbook.services.unit_of_work import UnitOfWorkFactory
from gymbook.services.waiting_list_service import WaitingListService

# One lock manager per process so every request shares the same schedule locks
uow_factory = UnitOfWorkFactory(
    session_factory=async_session,
    lock_manager=build_lock_manager(),
    clock=system_clock,
    notifier=LoggingNotifier(),
)


def get_uow_factory() -> UnitOfWorkFactory:
    return uow_factory


async def get_current_actor(
    user_id: UUID = Header(..., alias="X-User-Id"),
    role: Optional[str] = Header(None, alias="X-User-Role"),
) -> Actor:
    """
    Actor asserted by the authenticating gateway in front of this service
    """
    try:
        user_role = UserRole(role.lower()) if role else UserRole.MEMBER
    except ValueError:
        raise ValidationError(f"Unknown role: {role}", field="X-User-Role")
    return Actor(user_id=user_id, role=user_role)


def get_booking_service(factory: UnitOfWorkFactory = Depends(get_uow_factory)) -> BookingService:
    return BookingService(factory)


def get_waiting_list_service(factory: UnitOfWorkFactory = Depends(get_uow_factory)) -> WaitingListService:
    return WaitingListService(factory)


def get_schedule_service(factory: UnitOfWorkFactory = Depends(get_uow_factory)) -> ScheduleService:
    return ScheduleService(factory)
