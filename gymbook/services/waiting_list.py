"""
Waiting list queue primitives

Positions are 1-based and dense per schedule. All functions expect the
schedule lock to be held by the caller's unit of work.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from gymbook.core.exceptions import InvariantViolation
from gymbook.models.waiting_list import WaitingListEntry

logger = logging.getLogger(__name__)


async def get_entries(session: AsyncSession, schedule_id: UUID) -> List[WaitingListEntry]:
    result = await session.execute(
        select(WaitingListEntry)
        .where(WaitingListEntry.schedule_id == schedule_id)
        .order_by(WaitingListEntry.position)
    )
    return list(result.scalars().all())


async def get_user_entry(
    session: AsyncSession,
    schedule_id: UUID,
    user_id: UUID
) -> Optional[WaitingListEntry]:
    result = await session.execute(
        select(WaitingListEntry).where(
            WaitingListEntry.schedule_id == schedule_id,
            WaitingListEntry.user_id == user_id
        )
    )
    return result.scalar_one_or_none()


async def queue_length(session: AsyncSession, schedule_id: UUID) -> int:
    result = await session.execute(
        select(func.count(WaitingListEntry.id)).where(WaitingListEntry.schedule_id == schedule_id)
    )
    return result.scalar_one()


async def append(session: AsyncSession, schedule_id: UUID, user_id: UUID) -> WaitingListEntry:
    """
    Add the user at the tail of the queue
    """
    result = await session.execute(
        select(func.max(WaitingListEntry.position)).where(WaitingListEntry.schedule_id == schedule_id)
    )
    last_position = result.scalar_one_or_none() or 0

    entry = WaitingListEntry(
        schedule_id=schedule_id,
        user_id=user_id,
        position=last_position + 1,
        notified=False,
    )
    session.add(entry)
    await session.flush()
    await verify_dense(session, schedule_id)
    return entry


async def remove(session: AsyncSession, entry: WaitingListEntry) -> int:
    """
    Delete an entry and close the gap it leaves

    Entries behind it move up one place, lowest position first, so the
    (schedule_id, position) unique constraint holds after every row update.
    Returns the number of entries renumbered.
    """
    schedule_id = entry.schedule_id
    removed_position = entry.position

    await session.delete(entry)
    await session.flush()

    result = await session.execute(
        select(WaitingListEntry)
        .where(
            WaitingListEntry.schedule_id == schedule_id,
            WaitingListEntry.position > removed_position
        )
        .order_by(WaitingListEntry.position)
    )
    behind = list(result.scalars().all())
    for follower in behind:
        follower.position -= 1
        await session.flush()

    await verify_dense(session, schedule_id)
    logger.debug(
        f"Removed waiting list position {removed_position}, renumbered {len(behind)}",
        extra={"schedule_id": schedule_id}
    )
    return len(behind)


async def clear(session: AsyncSession, schedule_id: UUID) -> int:
    """
    Delete every entry of a schedule without promoting anyone
    """
    entries = await get_entries(session, schedule_id)
    for entry in entries:
        await session.delete(entry)
    await session.flush()
    return len(entries)


async def offer_head(
    session: AsyncSession,
    schedule_id: UUID,
    now: datetime,
    confirmation_window: timedelta
) -> Optional[WaitingListEntry]:
    """
    Notify the entry at the smallest position; the entry stays in the queue
    """
    result = await session.execute(
        select(WaitingListEntry)
        .where(WaitingListEntry.schedule_id == schedule_id)
        .order_by(WaitingListEntry.position)
        .limit(1)
    )
    head = result.scalar_one_or_none()
    if head is None:
        return None

    head.notified = True
    head.notified_at = now
    head.expires_at = now + confirmation_window
    await session.flush()
    return head


async def verify_dense(session: AsyncSession, schedule_id: UUID):
    """
    Raise InvariantViolation unless positions are exactly 1..N
    """
    result = await session.execute(
        select(WaitingListEntry.position)
        .where(WaitingListEntry.schedule_id == schedule_id)
        .order_by(WaitingListEntry.position)
    )
    positions = list(result.scalars().all())
    if positions != list(range(1, len(positions) + 1)):
        raise InvariantViolation(
            f"Waiting list for schedule {schedule_id} is not dense: {positions}"
        )
