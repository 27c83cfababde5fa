"""
Promotion of the waiting list head when a seat frees up
"""

import logging
from datetime import timedelta
from typing import Optional

from gymbook.core.metrics import PROMOTIONS
from gymbook.core.notifier import Notification, NotificationEvent
from gymbook.models.waiting_list import WaitingListEntry
from gymbook.services import capacity
from gymbook.services import waiting_list as queue

logger = logging.getLogger(__name__)


async def promote_next(
    uow,
    confirmation_window: timedelta,
    trigger: str = "cancellation"
) -> Optional[WaitingListEntry]:
    """
    Offer a freed seat to the head of the queue

    Runs inside the unit of work that released the seat. Only one candidate
    is notified; if their offer lapses it is removed lazily on confirm.
    """
    schedule = uow.schedule
    if not schedule.is_active:
        return None
    if not capacity.has_free_slot(schedule, uow.capacity):
        return None

    entry = await queue.offer_head(uow.session, schedule.id, uow.now, confirmation_window)
    if entry is None:
        return None

    PROMOTIONS.labels(trigger=trigger).inc()
    uow.notify(Notification(
        user_id=entry.user_id,
        event=NotificationEvent.WAITLIST_NOTIFIED,
        payload={
            "schedule_id": str(schedule.id),
            "entry_id": str(entry.id),
            "position": entry.position,
            "expires_at": entry.expires_at.isoformat(),
        }
    ))
    logger.info(
        f"Offered freed seat to waiting list position {entry.position}, expires {entry.expires_at.isoformat()}",
        extra={"schedule_id": schedule.id, "user_id": entry.user_id}
    )
    return entry
