"""
Notification hand-off

Delivery (email, push) lives outside the booking engine. The engine only
queues notifications inside a unit of work and dispatches them after commit;
a failing notifier never affects the committed transaction.
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Protocol
from uuid import UUID

logger = logging.getLogger(__name__)


class NotificationEvent(str, enum.Enum):
    BOOKING_CONFIRMED = "booking_confirmed"
    BOOKING_CANCELLED = "booking_cancelled"
    WAITLIST_NOTIFIED = "waitlist_notified"
    SCHEDULE_CANCELLED = "schedule_cancelled"


@dataclass
class Notification:
    user_id: UUID
    event: NotificationEvent
    payload: Dict[str, Any] = field(default_factory=dict)


class Notifier(Protocol):
    async def notify(self, notification: Notification) -> None:
        ...


class LoggingNotifier:
    """Default notifier: records the hand-off in the application log"""

    async def notify(self, notification: Notification) -> None:
        logger.info(
            f"Notification {notification.event.value} for user {notification.user_id}",
            extra={"user_id": notification.user_id},
        )


async def dispatch_notifications(notifier: Notifier, notifications: Iterable[Notification]) -> int:
    """
    Best-effort delivery of queued notifications, returns how many succeeded
    """
    delivered = 0
    for notification in notifications:
        try:
            await notifier.notify(notification)
            delivered += 1
        except Exception as e:
            logger.warning(
                f"Notifier failed for {notification.event.value} to user {notification.user_id}: "
                f"{type(e).__name__}: {e}"
            )
    return delivered
