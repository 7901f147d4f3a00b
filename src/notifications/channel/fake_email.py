"""Recording email adapters for development and testing."""

import threading
from uuid import uuid4

import structlog

from notifications.channel.email_port import DeliveryReceipt, EmailMessage, EmailPort

logger = structlog.get_logger(__name__)


class FakeEmailAdapter(EmailPort):
    """Keeps every accepted message in memory for test assertions.

    ``configure()`` switches it to reporting failures, or to raising, so the
    worker's failure handling can be exercised.
    """

    def __init__(self):
        self.sent: list[EmailMessage] = []
        self.should_succeed = True
        self.raise_error: Exception | None = None
        self.failure_reason = "Email delivery failed"
        self._lock = threading.Lock()

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = "Email delivery failed",
        raise_error: Exception | None = None,
    ):
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.raise_error = raise_error

    def send(self, message: EmailMessage) -> DeliveryReceipt:
        if self.raise_error is not None:
            raise self.raise_error
        if not self.should_succeed:
            return DeliveryReceipt(status="failed", error=self.failure_reason)

        with self._lock:
            self.sent.append(message)
        return DeliveryReceipt(status="sent", message_id=f"email-{uuid4().hex[:12]}")

    def sent_to(self, recipient: str) -> list[EmailMessage]:
        with self._lock:
            return [message for message in self.sent if message.to == recipient]

    def reset(self):
        with self._lock:
            self.sent.clear()
        self.configure()


class LoggingEmailAdapter(EmailPort):
    """Development adapter: writes each message to the log instead of mailing it."""

    def send(self, message: EmailMessage) -> DeliveryReceipt:
        message_id = f"log-{uuid4().hex[:12]}"
        logger.info("Email (not sent)", to=message.to, subject=message.subject, message_id=message_id)
        return DeliveryReceipt(status="sent", message_id=message_id)
