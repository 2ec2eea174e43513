"""
Rate limiting module initialization
"""

from .limiter import SlidingWindowRateLimiter

__all__ = [
    "SlidingWindowRateLimiter",
]
