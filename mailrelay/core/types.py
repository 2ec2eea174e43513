"""
Core types and data structures for mailrelay.
"""

from datetime import datetime, timezone
from typing import Optional, Dict, Any, Tuple
from dataclasses import dataclass, field
from enum import Enum

from ..errors import AttemptStateError


@dataclass(frozen=True)
class Attachment:
    """File attached to a message"""
    filename: str
    content: str
    content_type: str = "application/octet-stream"


@dataclass(frozen=True)
class Message:
    """Outgoing message. Identity is the caller-assigned id."""
    id: str
    recipient: str
    sender: str
    subject: str
    body: str
    attachments: Tuple[Attachment, ...] = ()


@dataclass(frozen=True)
class SendOutcome:
    """Result of a logical send or of a single backend attempt"""
    success: bool
    receipt: Optional[str] = None  # Opaque backend message id
    error: Optional[str] = None
    duration: float = 0.0  # Seconds
    backend: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'success': self.success,
            'receipt': self.receipt,
            'error': self.error,
            'duration': self.duration,
            'backend': self.backend,
        }


class AttemptStatus(Enum):
    """Delivery attempt states."""
    IN_FLIGHT = "in_flight"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class DeliveryAttempt:
    """
    One call against one backend for a message.

    Records are append-only per message id; the only permitted update is the
    single transition out of IN_FLIGHT.
    """
    message_id: str
    backend: str
    sequence: int  # 1-based, per backend
    status: AttemptStatus = AttemptStatus.IN_FLIGHT
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    error: Optional[str] = None
    duration: Optional[float] = None

    @property
    def id(self) -> str:
        return f"{self.message_id}-{self.backend}-{self.sequence}"

    @property
    def is_terminal(self) -> bool:
        return self.status is not AttemptStatus.IN_FLIGHT

    def succeed(self, duration: Optional[float] = None) -> None:
        self._finish(AttemptStatus.SUCCEEDED, None, duration)

    def fail(self, error: str, duration: Optional[float] = None) -> None:
        self._finish(AttemptStatus.FAILED, error, duration)

    def _finish(self, status: AttemptStatus, error: Optional[str], duration: Optional[float]) -> None:
        if self.is_terminal:
            raise AttemptStateError(self.id, self.status.value)
        self.status = status
        self.error = error
        self.duration = duration

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'id': self.id,
            'message_id': self.message_id,
            'backend': self.backend,
            'sequence': self.sequence,
            'status': self.status.value,
            'timestamp': self.timestamp.isoformat(),
            'error': self.error,
            'duration': self.duration,
        }
