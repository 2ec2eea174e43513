"""
Delivery backends module initialization
"""

from .base import DeliveryBackend
from .mock import SimulatedBackend, MockSendGridBackend, MockMailgunBackend

__all__ = [
    "DeliveryBackend",
    "SimulatedBackend",
    "MockSendGridBackend",
    "MockMailgunBackend",
]
