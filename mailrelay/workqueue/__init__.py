"""
Work queue module initialization
"""

from .queue import (
    WorkQueue,
    QueueItem,
    QueueItemStatus,
    QueueStats,
    MAX_ATTEMPTS,
)

__all__ = [
    "WorkQueue",
    "QueueItem",
    "QueueItemStatus",
    "QueueStats",
    "MAX_ATTEMPTS",
]
