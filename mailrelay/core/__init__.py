"""
Core configuration and data types for mailrelay.
"""

from .config import (
    Config,
    RetryConfig,
    RateLimitConfig,
    CircuitBreakerConfig,
    IdempotencyConfig,
    QueueConfig,
    MetricConfig,
)
from .types import (
    Attachment,
    Message,
    SendOutcome,
    AttemptStatus,
    DeliveryAttempt,
)

__all__ = [
    "Config",
    "RetryConfig",
    "RateLimitConfig",
    "CircuitBreakerConfig",
    "IdempotencyConfig",
    "QueueConfig",
    "MetricConfig",
    "Attachment",
    "Message",
    "SendOutcome",
    "AttemptStatus",
    "DeliveryAttempt",
]
