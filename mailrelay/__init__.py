"""
mailrelay Python Package

Resilient email sending over interchangeable delivery backends
"""

__version__ = "0.1.0"

from .service import MailService, ServiceStats
from .core.config import Config
from .core.types import (
    Attachment,
    Message,
    SendOutcome,
    DeliveryAttempt,
    AttemptStatus,
)
from .providers import DeliveryBackend

__all__ = [
    "MailService",
    "ServiceStats",
    "Config",
    "Attachment",
    "Message",
    "SendOutcome",
    "DeliveryAttempt",
    "AttemptStatus",
    "DeliveryBackend",
]
