"""
Simulated delivery backends for demos and tests.

They imitate provider behavior with configurable latency and a random
failure rate, without any network access.
"""

import asyncio
import logging
import random
import string
import time
from datetime import timedelta

from .base import DeliveryBackend
from ..core.types import Message, SendOutcome
from ..errors import BackendFailureError

logger = logging.getLogger(__name__)


def _receipt(prefix: str) -> str:
    suffix = ''.join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"


class SimulatedBackend(DeliveryBackend):
    """Backend that sleeps, then succeeds or fails at random."""

    def __init__(
        self,
        name: str,
        failure_rate: float = 0.1,
        latency: timedelta = timedelta(milliseconds=100),
        jitter: timedelta = timedelta(milliseconds=50),
        receipt_prefix: str = "sim",
        failure_message: str = "Backend temporarily unavailable",
        raise_on_failure: bool = True,
    ):
        self._name = name
        self.failure_rate = min(1.0, max(0.0, failure_rate))
        self.latency = latency
        self.jitter = jitter
        self.receipt_prefix = receipt_prefix
        self.failure_message = failure_message
        self.raise_on_failure = raise_on_failure

    @property
    def name(self) -> str:
        return self._name

    async def deliver(self, message: Message) -> SendOutcome:
        start_time = time.monotonic()

        logger.info(f"Attempting to send message {message.id} to {message.recipient} via {self.name}")

        delay = self.latency.total_seconds() + random.random() * self.jitter.total_seconds()
        await asyncio.sleep(delay)

        duration = time.monotonic() - start_time

        if random.random() < self.failure_rate:
            logger.error(f"Failed to send message {message.id}: {self.failure_message}")
            if self.raise_on_failure:
                raise BackendFailureError(self.name, self.failure_message)
            return SendOutcome(success=False, error=self.failure_message, duration=duration)

        receipt = _receipt(self.receipt_prefix)
        logger.info(f"Successfully sent message {message.id} via {self.name} (receipt: {receipt})")

        return SendOutcome(success=True, receipt=receipt, duration=duration, backend=self.name)

    def set_failure_rate(self, rate: float) -> None:
        self.failure_rate = min(1.0, max(0.0, rate))

    def set_latency(self, latency: timedelta) -> None:
        self.latency = max(timedelta(0), latency)


class MockSendGridBackend(SimulatedBackend):
    """SendGrid look-alike; raises on failure."""

    def __init__(self, failure_rate: float = 0.1, latency: timedelta = timedelta(milliseconds=100)):
        super().__init__(
            name="SendGrid",
            failure_rate=failure_rate,
            latency=latency,
            jitter=timedelta(milliseconds=50),
            receipt_prefix="sg",
            failure_message="SendGrid API temporarily unavailable",
            raise_on_failure=True,
        )


class MockMailgunBackend(SimulatedBackend):
    """Mailgun look-alike; reports failure through the outcome."""

    def __init__(self, failure_rate: float = 0.15, latency: timedelta = timedelta(milliseconds=150)):
        super().__init__(
            name="Mailgun",
            failure_rate=failure_rate,
            latency=latency,
            jitter=timedelta(milliseconds=100),
            receipt_prefix="mg",
            failure_message="Mailgun service temporarily overloaded",
            raise_on_failure=False,
        )
