"""
Injected time source

Every unit of work reads "now" exactly once, so a single operation never sees
time move underneath it.
"""

from datetime import datetime, timezone


class Clock:
    """Wall clock returning timezone-aware UTC datetimes"""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


system_clock = Clock()
