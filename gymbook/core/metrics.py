"""
Prometheus metrics for booking and waiting list operations
"""

import time
import logging
from contextlib import asynccontextmanager

from prometheus_client import Counter, Histogram, REGISTRY

from gymbook.core.exceptions import GymBookException

logger = logging.getLogger(__name__)

SLOW_OPERATION_SECONDS = 5.0


def _counter(name: str, documentation: str, labels):
    try:
        return Counter(name, documentation, labels)
    except ValueError:
        # Already registered (module re-imported under tests)
        return REGISTRY._names_to_collectors[name]


def _histogram(name: str, documentation: str, labels):
    try:
        return Histogram(name, documentation, labels)
    except ValueError:
        return REGISTRY._names_to_collectors[name]


OPERATION_COUNT = _counter(
    "gymbook_operations_total",
    "Booking engine operations by outcome",
    ["operation", "outcome"]
)
OPERATION_DURATION = _histogram(
    "gymbook_operation_duration_seconds",
    "Booking engine operation duration",
    ["operation"]
)
LOCK_WAIT = _histogram(
    "gymbook_lock_wait_seconds",
    "Time spent waiting for a schedule lock",
    ["backend"]
)
LOCK_TIMEOUTS = _counter(
    "gymbook_lock_timeouts_total",
    "Schedule lock acquisitions that timed out",
    ["backend"]
)
PROMOTIONS = _counter(
    "gymbook_waitlist_promotions_total",
    "Waiting list entries offered a freed spot",
    ["trigger"]
)
TRANSIENT_RETRIES = _counter(
    "gymbook_transient_retries_total",
    "Unit of work retries after a transient lock or database error",
    ["operation"]
)


@asynccontextmanager
async def track_operation(operation: str):
    """
    Record outcome and duration of a booking engine operation

    Business-rule rejections are counted under their error code; anything
    else is counted as "error" and logged.
    """
    start_time = time.time()
    try:
        yield
    except GymBookException as e:
        OPERATION_COUNT.labels(operation=operation, outcome=e.code.lower()).inc()
        OPERATION_DURATION.labels(operation=operation).observe(time.time() - start_time)
        raise
    except Exception as e:
        duration = time.time() - start_time
        OPERATION_COUNT.labels(operation=operation, outcome="error").inc()
        OPERATION_DURATION.labels(operation=operation).observe(duration)
        logger.error(f"Failed {operation} operation: {e} (duration: {duration:.2f}s)")
        raise
    else:
        duration = time.time() - start_time
        OPERATION_COUNT.labels(operation=operation, outcome="success").inc()
        OPERATION_DURATION.labels(operation=operation).observe(duration)
        if duration > SLOW_OPERATION_SECONDS:
            logger.warning(f"Slow {operation} operation: {duration:.2f}s")
