"""
Periodic sweep of lapsed waiting list offers

Offers normally expire lazily when the holder tries to confirm. The sweep
removes lapsed offers proactively and, when WAITLIST_REPROMOTE_ON_EXPIRY is
set, offers the seat to the next entry in line.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import select

from gymbook.config import settings as default_settings
from gymbook.core.exceptions import GymBookException
from gymbook.models.waiting_list import WaitingListEntry
from gymbook.services import waiting_list as queue
from gymbook.services.promotion import promote_next
from gymbook.services.unit_of_work import ScheduleUnitOfWork, UnitOfWorkFactory

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    schedules: int = 0
    removed: int = 0
    promoted: int = 0


async def sweep_expired_offers(
    uow_factory: UnitOfWorkFactory,
    config=None,
    now: Optional[datetime] = None
) -> SweepResult:
    config = config or default_settings
    now = now or uow_factory.clock.now()

    async with uow_factory.session_factory() as session:
        result = await session.execute(
            select(WaitingListEntry.schedule_id)
            .where(
                WaitingListEntry.notified.is_(True),
                WaitingListEntry.expires_at < now
            )
            .distinct()
        )
        schedule_ids = list(result.scalars().all())

    outcome = SweepResult()

    async def work(uow: ScheduleUnitOfWork):
        result = await uow.session.execute(
            select(WaitingListEntry)
            .where(
                WaitingListEntry.schedule_id == uow.schedule.id,
                WaitingListEntry.notified.is_(True),
                WaitingListEntry.expires_at < uow.now
            )
            .order_by(WaitingListEntry.position.desc())
        )
        lapsed = list(result.scalars().all())
        for entry in lapsed:
            await queue.remove(uow.session, entry)
        outcome.removed += len(lapsed)

        if lapsed and config.WAITLIST_REPROMOTE_ON_EXPIRY and uow.schedule.is_active:
            promoted = await promote_next(uow, config.confirmation_window, trigger="expiry")
            if promoted is not None:
                outcome.promoted += 1

    for schedule_id in schedule_ids:
        try:
            await uow_factory.run(schedule_id, work, operation="sweep_expired_offers")
            outcome.schedules += 1
        except GymBookException as e:
            logger.warning(
                f"Skipped waiting list sweep for schedule {schedule_id}: {e.message}",
                extra={"schedule_id": schedule_id}
            )

    if outcome.removed:
        logger.info(
            f"Waiting list sweep removed {outcome.removed} lapsed offers "
            f"across {outcome.schedules} schedules, promoted {outcome.promoted}"
        )
    return outcome


async def run_periodic_sweep(uow_factory: UnitOfWorkFactory, config=None):
    """
    Background loop started from the application lifespan
    """
    config = config or default_settings
    while True:
        await asyncio.sleep(config.WAITLIST_SWEEP_INTERVAL_SECONDS)
        try:
            await sweep_expired_offers(uow_factory, config)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error in waiting list sweep: {e}")
