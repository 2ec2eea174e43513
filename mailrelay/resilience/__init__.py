"""
Package resilience provides retry patterns for mailrelay.

- Retry with exponential backoff
- Per-attempt jitter capped at a maximum delay
"""

from .retry import RetryExecutor
from ..core.config import RetryConfig

__all__ = [
    'RetryExecutor',
    'RetryConfig',
]
