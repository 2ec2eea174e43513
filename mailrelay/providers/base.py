"""
Delivery backend interface.
"""

from abc import ABC, abstractmethod

from ..core.types import Message, SendOutcome


class DeliveryBackend(ABC):
    """Abstract base class for delivery backends"""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique backend name; circuit breakers are keyed by it"""
        pass

    @abstractmethod
    async def deliver(self, message: Message) -> SendOutcome:
        """
        Attempt delivery of a message.

        Implementations either raise or return an outcome with success=False
        on failure. They must be safe to call concurrently.
        """
        pass
