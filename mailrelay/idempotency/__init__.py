"""
Idempotency module initialization
"""

from .cache import IdempotencyCache, IdempotencyRecord

__all__ = [
    "IdempotencyCache",
    "IdempotencyRecord",
]
