"""Wait time estimation from a tenant's served history.

    average = round(total_wait_minutes / total_served)   (bootstrap default when nothing served)
    estimate = round(position * average)

Rounding is half-up so a 2.5 minute average quotes 3 minutes, not 2.
"""

import math

from virtual_queue.models.queue import QueueStats

DEFAULT_SERVICE_MINUTES = 3


def round_half_up(value: float) -> int:
    """Round a non-negative number to the nearest integer, halves going up."""
    return int(math.floor(value + 0.5))


def average_service_minutes(stats: QueueStats, default: int = DEFAULT_SERVICE_MINUTES) -> int:
    """Rolling mean of historical waits, or ``default`` before anyone was served."""
    if stats.total_served > 0:
        return round_half_up(stats.total_wait_minutes / stats.total_served)
    return default


def estimated_wait(position: int, stats: QueueStats, default: int = DEFAULT_SERVICE_MINUTES) -> int:
    """Minutes a customer at ``position`` is expected to wait.

    Args:
        position: 1-based rank among waiting entries.
        stats: the tenant's served history, read before the new entry is added.
        default: bootstrap minutes per customer.
    """
    if position < 1:
        raise ValueError("position must be >= 1")
    return round_half_up(position * average_service_minutes(stats, default))
