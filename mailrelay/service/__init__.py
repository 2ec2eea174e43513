"""
Service layer for mailrelay.
"""

from .service import MailService, ServiceStats, BackendStats

__all__ = [
    "MailService",
    "ServiceStats",
    "BackendStats",
]
