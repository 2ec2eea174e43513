"""
In-memory idempotency cache for logical sends.

Records are keyed by message id and expire after a fixed TTL. Expired
records are treated as absent and evicted when observed; a background task
started by start() also sweeps them periodically until stop().
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Dict, Optional

from ..core.types import SendOutcome


logger = logging.getLogger(__name__)


@dataclass
class IdempotencyRecord:
    """Bookkeeping entry for one message id."""
    message_id: str
    created_at: float  # time.monotonic()
    completed: bool = False
    outcome: Optional[SendOutcome] = None


class IdempotencyCache:
    """
    Deduplicates sends by caller-supplied message id.

    A record exists while a send is in progress and, once completed,
    holds the outcome returned to every duplicate until it expires.
    """

    def __init__(
        self,
        ttl: timedelta = timedelta(hours=24),
        sweep_interval: timedelta = timedelta(minutes=5),
    ):
        """
        Initialize idempotency cache.

        Args:
            ttl: Lifetime of a record from its creation
            sweep_interval: How often the background sweep runs
        """
        self.ttl = ttl
        self.sweep_interval = sweep_interval
        self._records: Dict[str, IdempotencyRecord] = {}
        self._lock = asyncio.Lock()
        self._sweep_task: Optional[asyncio.Task] = None
        self._running = False

    async def start(self) -> None:
        """Start the background sweep."""
        if not self._running:
            self._running = True
            self._sweep_task = asyncio.create_task(self._auto_sweep())
            logger.info("Started idempotency cache sweep")

    async def stop(self) -> None:
        """Stop the background sweep."""
        if self._running:
            self._running = False
            if self._sweep_task:
                self._sweep_task.cancel()
                try:
                    await self._sweep_task
                except asyncio.CancelledError:
                    pass
                self._sweep_task = None
            logger.info("Stopped idempotency cache sweep")

    @property
    def running(self) -> bool:
        return self._running

    async def _auto_sweep(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self.sweep_interval.total_seconds())
                if self._running:
                    await self.cleanup()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in idempotency sweep: {e}")

    def _is_expired(self, record: IdempotencyRecord, now: Optional[float] = None) -> bool:
        now = time.monotonic() if now is None else now
        return now - record.created_at > self.ttl.total_seconds()

    def _live_record(self, message_id: str) -> Optional[IdempotencyRecord]:
        record = self._records.get(message_id)
        if record is None:
            return None
        if self._is_expired(record):
            del self._records[message_id]
            logger.debug(f"Evicted expired idempotency record for {message_id}")
            return None
        return record

    async def is_duplicate(self, message_id: str) -> bool:
        """True if a live record exists, completed or not."""
        async with self._lock:
            return self._live_record(message_id) is not None

    async def get_cached_outcome(self, message_id: str) -> Optional[SendOutcome]:
        """The stored outcome of a completed, live record."""
        async with self._lock:
            record = self._live_record(message_id)
            if record is None or not record.completed:
                return None
            return record.outcome

    async def mark_in_progress(self, message_id: str) -> None:
        """Create a fresh record, replacing any existing one."""
        async with self._lock:
            self._records[message_id] = IdempotencyRecord(
                message_id=message_id,
                created_at=time.monotonic(),
            )

        logger.debug(f"Marked message {message_id} as in progress")

    async def mark_completed(self, message_id: str, outcome: SendOutcome) -> None:
        """Attach the final outcome to a live record; ignored if it is gone."""
        async with self._lock:
            record = self._live_record(message_id)
            if record is None:
                return
            record.completed = True
            record.outcome = outcome

        logger.debug(f"Marked message {message_id} as completed")

    async def remove(self, message_id: str) -> None:
        """Delete the record so the id can be sent again."""
        async with self._lock:
            self._records.pop(message_id, None)

        logger.debug(f"Removed idempotency record for message {message_id}")

    async def cleanup(self) -> int:
        """Evict every expired record. Returns how many were removed."""
        async with self._lock:
            now = time.monotonic()
            expired = [
                message_id for message_id, record in self._records.items()
                if self._is_expired(record, now)
            ]

            for message_id in expired:
                del self._records[message_id]

        if expired:
            logger.debug(f"Cleaned up {len(expired)} expired idempotency records")

        return len(expired)

    def record_count(self) -> int:
        return len(self._records)

    def clear(self) -> None:
        self._records.clear()
        logger.info("Idempotency cache cleared")
