"""
Priority work queue for deferred sends.

Items are processed one at a time by a background task that exists only
while the queue has work. Failed items are retried with exponential delays
and dropped after MAX_ATTEMPTS.
"""

import asyncio
import itertools
import logging
import time
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..core.types import Message
from ..errors import ProcessorNotRegisteredError

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3

Processor = Callable[[Message], Awaitable[None]]


class QueueItemStatus(Enum):
    """Queue item states."""
    PENDING = "pending"
    SENDING = "sending"
    RETRYING = "retrying"
    FAILED = "failed"


@dataclass(eq=False)
class QueueItem:
    """A message waiting in the queue. Compared by identity."""
    message: Message
    priority: int
    sequence: int
    attempts: int = 0
    last_attempt: Optional[float] = None  # time.monotonic()
    next_attempt: Optional[float] = None  # time.monotonic()
    status: QueueItemStatus = QueueItemStatus.PENDING

    def is_eligible(self, now: float) -> bool:
        if self.status == QueueItemStatus.PENDING:
            return True
        return (
            self.status == QueueItemStatus.RETRYING
            and self.next_attempt is not None
            and self.next_attempt <= now
        )


@dataclass
class QueueStats:
    """Item counts by status."""
    total: int = 0
    pending: int = 0
    sending: int = 0
    retrying: int = 0
    failed: int = 0

    def to_dict(self) -> Dict[str, int]:
        """Convert to dictionary."""
        return {
            'total': self.total,
            'pending': self.pending,
            'sending': self.sending,
            'retrying': self.retrying,
            'failed': self.failed,
        }


class WorkQueue:
    """Priority queue with a self-starting processing loop."""

    def __init__(
        self,
        poll_interval: timedelta = timedelta(seconds=1),
        item_delay: timedelta = timedelta(milliseconds=100),
        retry_base_delay: timedelta = timedelta(seconds=1),
        on_item_dropped: Optional[Callable[[QueueItem, Exception], Any]] = None,
    ):
        self.poll_interval = poll_interval
        self.item_delay = item_delay
        self.retry_base_delay = retry_base_delay
        self.on_item_dropped = on_item_dropped
        self._items: List[QueueItem] = []
        self._sequence = itertools.count()
        self._processor: Optional[Processor] = None
        self._task: Optional[asyncio.Task] = None
        self._idle = asyncio.Event()
        self._idle.set()

    def set_processor(self, processor: Processor) -> None:
        """Register the callback that delivers a message; it raises on failure."""
        self._processor = processor

    @property
    def processing(self) -> bool:
        return self._task is not None

    def enqueue(self, message: Message, priority: int = 0) -> QueueItem:
        """Add a message and make sure the processing loop is running."""
        if self._processor is None:
            raise ProcessorNotRegisteredError()

        item = QueueItem(message=message, priority=priority, sequence=next(self._sequence))

        # Higher priority first, FIFO within a priority
        index = next(
            (i for i, queued in enumerate(self._items) if queued.priority < priority),
            len(self._items),
        )
        self._items.insert(index, item)

        logger.info(f"Enqueued message {message.id} with priority {priority}. Queue size: {len(self._items)}")

        if self._task is None:
            self._idle.clear()
            self._task = asyncio.create_task(self._process_loop())

        return item

    def _next_item(self) -> Optional[QueueItem]:
        now = time.monotonic()
        return next((item for item in self._items if item.is_eligible(now)), None)

    def _contains(self, item: QueueItem) -> bool:
        return any(queued is item for queued in self._items)

    def _remove(self, item: QueueItem) -> None:
        self._items = [queued for queued in self._items if queued is not item]

    async def _process_loop(self) -> None:
        logger.info("Started processing work queue")

        try:
            while self._items:
                item = self._next_item()

                if item is None:
                    await asyncio.sleep(self.poll_interval.total_seconds())
                    continue

                await self._process_item(item)

                if self.item_delay.total_seconds() > 0:
                    await asyncio.sleep(self.item_delay.total_seconds())
        finally:
            self._task = None
            self._idle.set()

        logger.info("Finished processing work queue")

    async def _process_item(self, item: QueueItem) -> None:
        item.status = QueueItemStatus.SENDING
        item.attempts += 1
        item.last_attempt = time.monotonic()

        logger.info(f"Processing message {item.message.id} (attempt {item.attempts})")

        try:
            await self._processor(item.message)
        except Exception as e:
            if not self._contains(item):
                logger.debug(f"Discarding result for cleared message {item.message.id}")
                return

            logger.error(f"Failed to process message {item.message.id}: {e}")

            if item.attempts >= MAX_ATTEMPTS:
                item.status = QueueItemStatus.FAILED
                self._remove(item)
                logger.error(f"Message {item.message.id} dropped after {item.attempts} attempts")
                if self.on_item_dropped:
                    try:
                        self.on_item_dropped(item, e)
                    except Exception as callback_error:
                        logger.error(f"on_item_dropped callback for {item.message.id} raised: {callback_error}")
            else:
                delay = (2 ** item.attempts) * self.retry_base_delay.total_seconds()
                item.status = QueueItemStatus.RETRYING
                item.next_attempt = time.monotonic() + delay
                logger.info(f"Message {item.message.id} scheduled for retry in {delay:.2f}s")
            return

        self._remove(item)
        logger.info(f"Successfully processed message {item.message.id}")

    def stats(self) -> QueueStats:
        """Count queued items by status."""
        stats = QueueStats(total=len(self._items))

        for item in self._items:
            if item.status == QueueItemStatus.PENDING:
                stats.pending += 1
            elif item.status == QueueItemStatus.SENDING:
                stats.sending += 1
            elif item.status == QueueItemStatus.RETRYING:
                stats.retrying += 1
            elif item.status == QueueItemStatus.FAILED:
                stats.failed += 1

        return stats

    def size(self) -> int:
        return len(self._items)

    def clear(self) -> None:
        """Drop every item. A send already in progress finishes but is ignored."""
        self._items = []
        logger.info("Work queue cleared")

    async def wait_until_empty(self) -> None:
        """Resolve once the queue is empty and the processing loop has exited."""
        # The loop only exits with items left behind after close()
        while self._task is not None:
            await self._idle.wait()

    async def close(self) -> None:
        """Cancel the processing loop."""
        task = self._task
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        logger.info("Work queue closed")
