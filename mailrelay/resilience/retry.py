"""
Retry with exponential backoff and jitter.
"""

import asyncio
import logging
import random
from dataclasses import replace
from typing import Any, Awaitable, Callable

from ..core.config import RetryConfig

logger = logging.getLogger(__name__)


class RetryExecutor:
    """Runs one logical operation with bounded retries and backoff."""

    def __init__(self, config: RetryConfig):
        self._config = config

    @property
    def config(self) -> RetryConfig:
        return replace(self._config)

    async def execute_with_retry(
        self,
        operation: Callable[[], Awaitable[Any]],
        label: str = "operation"
    ) -> Any:
        """
        Invoke operation up to max_retries + 1 times.

        Returns the first successful result. When every attempt fails the
        last exception is re-raised as is.
        """
        total_attempts = self._config.max_retries + 1

        for attempt in range(1, total_attempts + 1):
            try:
                logger.debug(f"{label} - Attempt {attempt}/{total_attempts}")
                return await operation()

            except Exception as e:
                if attempt == total_attempts:
                    logger.error(f"{label} - Failed after {attempt} attempts: {e}")
                    raise

                delay = self.calculate_delay(attempt)
                logger.warning(f"{label} - Attempt {attempt} failed: {e}. Retrying in {delay:.2f}s")

                await asyncio.sleep(delay)

    def calculate_delay(self, attempt: int) -> float:
        """Backoff delay in seconds before the attempt following `attempt`."""
        delay_seconds = self._config.base_delay.total_seconds() * (
            self._config.backoff_multiplier ** (attempt - 1)
        )

        # Jitter in [0.5, 1.0)
        delay_seconds *= 0.5 + random.random() * 0.5

        return min(delay_seconds, self._config.max_delay.total_seconds())
