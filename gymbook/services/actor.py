"""
The caller on whose behalf an operation runs
"""

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gymbook.models.schedule import Schedule
from gymbook.models.trainer import Trainer
from gymbook.models.user import UserRole


@dataclass(frozen=True)
class Actor:
    user_id: UUID
    role: UserRole = UserRole.MEMBER

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_trainer(self) -> bool:
        return self.role == UserRole.TRAINER


async def trains_schedule(session: AsyncSession, actor: Actor, schedule: Schedule) -> bool:
    """
    True when the actor is the trainer assigned to the schedule
    """
    if not actor.is_trainer:
        return False
    result = await session.execute(
        select(Trainer.id).where(
            Trainer.id == schedule.trainer_id,
            Trainer.user_id == actor.user_id
        )
    )
    return result.scalar_one_or_none() is not None


async def can_manage_schedule(session: AsyncSession, actor: Actor, schedule: Schedule) -> bool:
    return actor.is_admin or await trains_schedule(session, actor, schedule)
