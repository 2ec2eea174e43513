"""
Circuit breaker guarding calls to a single delivery backend.

A breaker opens after `failure_threshold` consecutive failures and refuses
calls until `reset_timeout` has passed since the last failure. The first call
after that runs as a trial in HALF_OPEN; one failed trial reopens it and
HALF_OPEN_SUCCESS_THRESHOLD successful trials close it.
"""

import logging
import time
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..errors import BreakerOpenError

logger = logging.getLogger(__name__)

HALF_OPEN_SUCCESS_THRESHOLD = 3

# Bounded history: trimmed to the newest half once it grows past the limit
_HISTORY_LIMIT = 100


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class StateTransition:
    """One change of breaker state, as passed to on_state_change."""
    name: str
    from_state: CircuitState
    to_state: CircuitState
    timestamp: datetime
    reason: str
    failure_count: int = 0
    success_count: int = 0


@dataclass
class CircuitStats:
    """Point-in-time snapshot of a circuit breaker."""
    name: str
    state: CircuitState
    failure_count: int = 0
    half_open_successes: int = 0
    total_requests: int = 0
    rejected_requests: int = 0
    last_failure_time: Optional[datetime] = None
    state_change_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'state': self.state.value,
            'failure_count': self.failure_count,
            'half_open_successes': self.half_open_successes,
            'total_requests': self.total_requests,
            'rejected_requests': self.rejected_requests,
            'last_failure_time': self.last_failure_time.isoformat() if self.last_failure_time else None,
            'state_change_time': self.state_change_time.isoformat(),
        }


@dataclass
class CircuitBreakerOptions:
    name: str
    failure_threshold: int = 5
    reset_timeout: timedelta = field(default_factory=lambda: timedelta(seconds=60))
    on_state_change: Optional[Callable[[StateTransition], None]] = None


class CircuitBreaker:
    """
    Health gate for one backend.

    State lives behind a lock that is never held while the wrapped
    operation runs, so a slow backend does not block other callers.
    """

    def __init__(self, options: CircuitBreakerOptions):
        self.options = options
        self._lock = threading.RLock()

        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._trial_successes = 0
        self._last_failure_at: Optional[float] = None  # time.monotonic()
        self._last_failure_time: Optional[datetime] = None
        self._changed_at = datetime.now(timezone.utc)

        self._requests = 0
        self._rejections = 0
        self._history: List[StateTransition] = []

        logger.debug(
            f"Breaker for backend '{self.name}' ready "
            f"(threshold {options.failure_threshold}, reset after {options.reset_timeout})"
        )

    @property
    def name(self) -> str:
        return self.options.name

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._state

    @property
    def failure_count(self) -> int:
        """Consecutive failures since the last success."""
        with self._lock:
            return self._consecutive_failures

    @property
    def stats(self) -> CircuitStats:
        with self._lock:
            return CircuitStats(
                name=self.name,
                state=self._state,
                failure_count=self._consecutive_failures,
                half_open_successes=self._trial_successes,
                total_requests=self._requests,
                rejected_requests=self._rejections,
                last_failure_time=self._last_failure_time,
                state_change_time=self._changed_at,
            )

    def allows_request(self) -> bool:
        """Whether a call made now would be let through. Never changes state."""
        with self._lock:
            return self._state is not CircuitState.OPEN or self._cooled_down()

    def reset(self) -> None:
        """Force the breaker closed and forget its failure history."""
        with self._lock:
            self._last_failure_at = None
            self._last_failure_time = None
            self._move_to(CircuitState.CLOSED, "Manual reset")

    async def execute(self, operation: Callable[[], Awaitable[Any]]) -> Any:
        """
        Run `operation` if the breaker admits it.

        Raises BreakerOpenError without calling the operation while open.
        Any exception from the operation counts as a failure and is re-raised.
        """
        if not self._admit():
            raise BreakerOpenError(self.name)

        started = time.monotonic()
        try:
            result = await operation()
        except Exception as e:
            self._record_failure(e, time.monotonic() - started)
            raise

        self._record_success(time.monotonic() - started)
        return result

    def _cooled_down(self) -> bool:
        if self._last_failure_at is None:
            return True
        return time.monotonic() - self._last_failure_at >= self.options.reset_timeout.total_seconds()

    def _admit(self) -> bool:
        with self._lock:
            self._requests += 1

            if self._state is not CircuitState.OPEN:
                return True

            if self._cooled_down():
                self._move_to(CircuitState.HALF_OPEN, "Reset timeout elapsed, allowing trial call")
                return True

            self._rejections += 1
            return False

    def _record_success(self, elapsed: float) -> None:
        with self._lock:
            self._consecutive_failures = 0

            if self._state is CircuitState.HALF_OPEN:
                self._trial_successes += 1
                if self._trial_successes >= HALF_OPEN_SUCCESS_THRESHOLD:
                    self._move_to(
                        CircuitState.CLOSED,
                        f"{self._trial_successes} consecutive trial calls succeeded",
                    )

        logger.debug(f"Backend '{self.name}' call succeeded in {elapsed:.3f}s")

    def _record_failure(self, error: Exception, elapsed: float) -> None:
        with self._lock:
            self._consecutive_failures += 1
            self._last_failure_at = time.monotonic()
            self._last_failure_time = datetime.now(timezone.utc)

            if self._state is CircuitState.HALF_OPEN:
                self._move_to(CircuitState.OPEN, "Trial call failed")
            elif (self._state is CircuitState.CLOSED
                  and self._consecutive_failures >= self.options.failure_threshold):
                self._move_to(
                    CircuitState.OPEN,
                    f"{self._consecutive_failures} consecutive failures",
                )

        logger.debug(f"Backend '{self.name}' call failed after {elapsed:.3f}s: {error}")

    def _move_to(self, new_state: CircuitState, reason: str) -> None:
        """Apply a state change. Caller holds the lock."""
        old_state = self._state
        trial_successes = self._trial_successes
        self._state = new_state
        self._trial_successes = 0
        self._changed_at = datetime.now(timezone.utc)
        if new_state is CircuitState.CLOSED:
            self._consecutive_failures = 0

        if new_state is CircuitState.OPEN:
            logger.warning(f"Breaker for backend '{self.name}' opened: {reason}")
        else:
            logger.info(f"Breaker for backend '{self.name}' is now {new_state.value}: {reason}")

        transition = StateTransition(
            name=self.name,
            from_state=old_state,
            to_state=new_state,
            timestamp=self._changed_at,
            reason=reason,
            failure_count=self._consecutive_failures,
            success_count=trial_successes,
        )
        self._history.append(transition)
        if len(self._history) > _HISTORY_LIMIT:
            self._history = self._history[-(_HISTORY_LIMIT // 2):]

        callback = self.options.on_state_change
        if callback is not None:
            try:
                callback(transition)
            except Exception as e:
                logger.error(f"on_state_change callback for '{self.name}' raised: {e}")

    def get_transitions(self) -> List[StateTransition]:
        """State changes, oldest first."""
        with self._lock:
            return list(self._history)
