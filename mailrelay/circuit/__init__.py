"""
Package circuit provides the per-backend circuit breaker.

- Circuit breaker state management (closed, open, half-open)
- Failure threshold monitoring
- Time-based recovery through half-open trials
- State change callbacks and transition history
"""

from .circuit import (
    CircuitBreaker,
    CircuitBreakerOptions,
    CircuitState,
    StateTransition,
    CircuitStats,
    HALF_OPEN_SUCCESS_THRESHOLD,
)
from ..errors import BreakerOpenError

__all__ = [
    'CircuitBreaker',
    'CircuitBreakerOptions',
    'CircuitState',
    'StateTransition',
    'CircuitStats',
    'HALF_OPEN_SUCCESS_THRESHOLD',
    'BreakerOpenError',
]
