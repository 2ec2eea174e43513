"""
Mail service orchestrating delivery across backends.

A send passes, in order, through the idempotency cache, the global rate
limiter and the retry executor. Each retry attempt walks the backends from
the preferred one onwards, every call gated by that backend's circuit
breaker.
"""

import logging
import time
from dataclasses import dataclass, field, replace
from functools import partial
from typing import Any, Dict, List, Optional, Sequence

from ..circuit import CircuitBreaker, CircuitBreakerOptions, CircuitState
from ..core.config import Config
from ..core.types import DeliveryAttempt, Message, SendOutcome
from ..errors import (
    AllBackendsExhaustedError,
    BackendFailureError,
    BreakerOpenError,
    ConfigurationError,
    DeliveryFailedError,
)
from ..idempotency import IdempotencyCache
from ..metrics import MetricsCollector
from ..providers import DeliveryBackend, MockMailgunBackend, MockSendGridBackend
from ..ratelimit import SlidingWindowRateLimiter
from ..resilience import RetryExecutor
from ..workqueue import QueueItem, QueueStats, WorkQueue

logger = logging.getLogger(__name__)


@dataclass
class BackendStats:
    """Health snapshot of one backend."""
    name: str
    circuit_state: CircuitState
    failure_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'circuit_state': self.circuit_state.value,
            'failure_count': self.failure_count,
        }


@dataclass
class ServiceStats:
    """Service-wide snapshot returned by MailService.get_stats()."""
    backends: List[BackendStats] = field(default_factory=list)
    rate_limiter: Dict[str, int] = field(default_factory=dict)
    idempotency: Dict[str, int] = field(default_factory=dict)
    queue: QueueStats = field(default_factory=QueueStats)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'backends': [backend.to_dict() for backend in self.backends],
            'rate_limiter': dict(self.rate_limiter),
            'idempotency': dict(self.idempotency),
            'queue': self.queue.to_dict(),
        }


class MailService:
    """
    Resilient mail service with retries, backend fallback, rate limiting
    and idempotency.

    Use MailService.new() for a service wired to the simulated backends.
    """

    def __init__(
        self,
        backends: Sequence[DeliveryBackend],
        config: Optional[Config] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        if not backends:
            raise ConfigurationError("At least one delivery backend is required", "backends")

        names = [backend.name for backend in backends]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ConfigurationError(
                f"Backend names must be unique: {', '.join(duplicates)}", "backends"
            )

        self.config = config or Config()
        self.metrics = metrics or MetricsCollector(self.config.metrics)
        self._backends: List[DeliveryBackend] = list(backends)
        self._preferred_index = 0

        self._breakers: Dict[str, CircuitBreaker] = {}
        for backend in self._backends:
            self._breakers[backend.name] = CircuitBreaker(CircuitBreakerOptions(
                name=backend.name,
                failure_threshold=self.config.circuit_breaker.failure_threshold,
                reset_timeout=self.config.circuit_breaker.reset_timeout,
                on_state_change=self.metrics.record_circuit_transition,
            ))
            self.metrics.set_circuit_state(backend.name, CircuitState.CLOSED)

        self._rate_limiter = SlidingWindowRateLimiter(
            max_requests=self.config.rate_limit.max_requests,
            window=self.config.rate_limit.window,
        )
        self._idempotency = IdempotencyCache(
            ttl=self.config.idempotency.ttl,
            sweep_interval=self.config.idempotency.sweep_interval,
        )
        self._retry = RetryExecutor(self.config.retry)
        self._queue = WorkQueue(
            poll_interval=self.config.queue.poll_interval,
            item_delay=self.config.queue.item_delay,
            retry_base_delay=self.config.queue.retry_base_delay,
            on_item_dropped=self._on_queue_drop,
        )
        self._queue.set_processor(self._process_from_queue)
        self._attempts: Dict[str, List[DeliveryAttempt]] = {}

        logger.info(f"Mail service initialized with backends: {', '.join(names)}")

    @classmethod
    def new(
        cls,
        config: Optional[Config] = None,
        backends: Optional[Sequence[DeliveryBackend]] = None,
    ) -> "MailService":
        """Create a service, defaulting to the simulated SendGrid and Mailgun backends."""
        if backends is None:
            backends = [MockSendGridBackend(), MockMailgunBackend()]
        return cls(backends, config)

    @property
    def preferred_backend(self) -> str:
        return self._backends[self._preferred_index].name

    def get_breaker(self, backend_name: str) -> CircuitBreaker:
        return self._breakers[backend_name]

    async def start(self) -> None:
        """Start background maintenance."""
        if self.config.idempotency.enabled:
            await self._idempotency.start()

    async def close(self) -> None:
        """Stop background tasks."""
        await self._idempotency.stop()
        await self._queue.close()
        logger.info("Mail service closed")

    async def __aenter__(self) -> "MailService":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def send(self, message: Message) -> SendOutcome:
        """
        Send a message with full resilience features.

        Always resolves to an outcome; delivery failures are reported through
        SendOutcome.success and SendOutcome.error.
        """
        logger.info(f"Sending message {message.id} to {message.recipient}")
        start_time = time.monotonic()
        idempotent = self.config.idempotency.enabled

        if idempotent and await self._idempotency.is_duplicate(message.id):
            cached = await self._idempotency.get_cached_outcome(message.id)
            if cached is not None:
                logger.info(f"Message {message.id} already sent (idempotent)")
                self.metrics.record_send("duplicate")
                return cached

        if idempotent:
            await self._idempotency.mark_in_progress(message.id)

        try:
            waited = await self._rate_limiter.check_limit()
            self.metrics.record_rate_limit_wait(waited)

            outcome = await self._retry.execute_with_retry(
                partial(self._send_with_fallback, message),
                f"message-{message.id}"
            )
        except Exception as e:
            duration = time.monotonic() - start_time
            logger.error(f"Failed to send message {message.id}: {e}")

            # Leave the id free so the caller can try again
            if idempotent:
                await self._idempotency.remove(message.id)

            self.metrics.record_send("failed", duration)
            return SendOutcome(success=False, error=str(e), duration=duration)

        if idempotent:
            await self._idempotency.mark_completed(message.id, outcome)

        self.metrics.record_send("sent", time.monotonic() - start_time)
        return outcome

    async def send_async(self, message: Message, priority: int = 0) -> None:
        """Queue a message for background delivery and return immediately."""
        logger.info(f"Queuing message {message.id} for asynchronous processing")
        self._queue.enqueue(message, priority)

    async def wait_for_queue(self) -> None:
        """Wait until every queued message has been processed or dropped."""
        await self._queue.wait_until_empty()

    async def _process_from_queue(self, message: Message) -> None:
        outcome = await self.send(message)
        if not outcome.success:
            raise DeliveryFailedError(message.id, outcome.error)

    def _on_queue_drop(self, item: QueueItem, error: Exception) -> None:
        self.metrics.record_queue_drop()

    async def _send_with_fallback(self, message: Message) -> SendOutcome:
        """One pass over the backends, starting at the preferred one."""
        last_error: Optional[Exception] = None
        count = len(self._backends)
        start_index = self._preferred_index

        for offset in range(count):
            index = (start_index + offset) % count
            backend = self._backends[index]
            breaker = self._breakers[backend.name]

            if not breaker.allows_request():
                logger.warning(f"Skipping backend {backend.name} - circuit breaker is OPEN")
                continue

            try:
                outcome = await breaker.execute(partial(self._attempt_delivery, backend, message))
            except BreakerOpenError:
                logger.warning(f"Skipping backend {backend.name} - circuit breaker is OPEN")
                continue
            except Exception as e:
                last_error = e
                logger.warning(f"Backend {backend.name} failed: {e}")
                continue

            if index != self._preferred_index:
                logger.info(f"Switching preferred backend to {backend.name}")
                self._preferred_index = index

            return outcome

        raise AllBackendsExhaustedError(last_error)

    async def _attempt_delivery(self, backend: DeliveryBackend, message: Message) -> SendOutcome:
        """Call one backend, keeping the attempt record and metrics in step."""
        attempt = self._record_attempt(message.id, backend.name)
        start_time = time.monotonic()

        try:
            outcome = await backend.deliver(message)
        except Exception as e:
            if isinstance(e, BackendFailureError):
                error = e
            else:
                error = BackendFailureError(backend.name, str(e) or type(e).__name__, cause=e)
            attempt.fail(error.description, time.monotonic() - start_time)
            self.metrics.record_backend_attempt(backend.name, "failed")
            if error is e:
                raise
            raise error from e

        if not outcome.success:
            description = outcome.error or "Delivery failed"
            attempt.fail(description, outcome.duration or time.monotonic() - start_time)
            self.metrics.record_backend_attempt(backend.name, "failed")
            raise BackendFailureError(backend.name, description)

        attempt.succeed(outcome.duration)
        self.metrics.record_backend_attempt(backend.name, "succeeded")

        if outcome.backend is None:
            outcome = replace(outcome, backend=backend.name)
        return outcome

    def _record_attempt(self, message_id: str, backend_name: str) -> DeliveryAttempt:
        attempts = self._attempts.setdefault(message_id, [])
        sequence = sum(1 for attempt in attempts if attempt.backend == backend_name) + 1

        attempt = DeliveryAttempt(message_id=message_id, backend=backend_name, sequence=sequence)
        attempts.append(attempt)
        return attempt

    def get_attempts(self, message_id: str) -> List[DeliveryAttempt]:
        """Delivery attempts recorded for a message, oldest first."""
        return list(self._attempts.get(message_id, []))

    def get_stats(self) -> ServiceStats:
        """Get service statistics."""
        return ServiceStats(
            backends=[
                BackendStats(
                    name=backend.name,
                    circuit_state=self._breakers[backend.name].state,
                    failure_count=self._breakers[backend.name].failure_count,
                )
                for backend in self._backends
            ],
            rate_limiter={
                'current_requests': self._rate_limiter.current_count(),
                'max_requests': self._rate_limiter.max_requests,
            },
            idempotency={
                'record_count': self._idempotency.record_count(),
            },
            queue=self._queue.stats(),
        )

    def reset_breakers(self) -> None:
        """Reset circuit breakers for all backends"""
        for breaker in self._breakers.values():
            breaker.reset()
        logger.info("All circuit breakers reset")

    def reset_rate_limiter(self) -> None:
        self._rate_limiter.reset()

    def clear_idempotency_cache(self) -> None:
        self._idempotency.clear()

    def clear_queue(self) -> None:
        self._queue.clear()
