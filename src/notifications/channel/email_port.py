"""Email channel port: the narrow interface to whatever sends mail."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    body: str
    sender: str | None = None
    reply_to: str | None = None


@dataclass(frozen=True)
class DeliveryReceipt:
    """Outcome of one send attempt."""

    status: str  # "sent" or "failed"
    message_id: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "sent"


class EmailPort(ABC):
    """Abstract interface for email adapters."""

    @abstractmethod
    def send(self, message: EmailMessage) -> DeliveryReceipt:
        """Hand ``message`` to the provider. May raise on transport errors."""
        ...
