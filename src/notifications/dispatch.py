"""Notification dispatch: transition handlers emit, a worker delivers.

``NotificationDispatcher.send()`` never raises and never waits on the email
provider. In asynchronous mode it only enqueues a ``NotificationRequested``
message; the ``NotificationWorker`` thread renders the template and hands it
to the email port. In synchronous mode (tests, scripts) delivery happens
inline, with the same failure handling.
"""

import queue
import threading

import structlog

from notifications.channel.email_port import EmailMessage, EmailPort
from notifications.message import NotificationRequested
from notifications.templates import get_template
from shared.clock import Clock, system_clock

logger = structlog.get_logger(__name__)

_STOP = object()


def deliver(email: EmailPort, request: NotificationRequested, sender: str | None = None) -> bool:
    """Render and send one notification. Returns True when the provider accepted it.

    Every failure is logged and swallowed: a notification can never fail the
    transition that asked for it.
    """
    try:
        content = get_template(request.template).render(request.payload)
        receipt = email.send(
            EmailMessage(to=request.recipient, subject=content["subject"], body=content["body"], sender=sender)
        )
    except Exception:
        logger.exception(
            "Notification delivery raised",
            template=request.template,
            recipient=request.recipient,
            ref_code=request.payload.get("ref_code"),
        )
        return False

    if not receipt.ok:
        logger.warning(
            "Notification delivery failed",
            template=request.template,
            recipient=request.recipient,
            ref_code=request.payload.get("ref_code"),
            error=receipt.error,
        )
        return False

    logger.info(
        "Notification sent",
        template=request.template,
        recipient=request.recipient,
        message_id=receipt.message_id,
    )
    return True


class NotificationWorker(threading.Thread):
    """Background consumer of ``NotificationRequested`` messages."""

    def __init__(self, requests: queue.Queue, email: EmailPort, sender: str | None = None) -> None:
        super().__init__(name="notification-worker", daemon=True)
        self.requests = requests
        self.email = email
        self.sender = sender
        self.delivered = 0
        self.failed = 0

    def run(self) -> None:
        while True:
            request = self.requests.get()
            try:
                if request is _STOP:
                    return
                if deliver(self.email, request, self.sender):
                    self.delivered += 1
                else:
                    self.failed += 1
            finally:
                self.requests.task_done()


class NotificationDispatcher:
    def __init__(
        self,
        email: EmailPort,
        asynchronous: bool = True,
        sender: str | None = None,
        clock: Clock = system_clock,
        max_queue: int = 1000,
    ) -> None:
        self.email = email
        self.asynchronous = asynchronous
        self.sender = sender
        self.clock = clock
        self._requests: queue.Queue = queue.Queue(maxsize=max_queue)
        self._worker: NotificationWorker | None = None
        self._lock = threading.Lock()

    def start(self) -> None:
        with self._lock:
            if not self.asynchronous or (self._worker is not None and self._worker.is_alive()):
                return
            self._worker = NotificationWorker(self._requests, self.email, self.sender)
            self._worker.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        with self._lock:
            worker, self._worker = self._worker, None
        if worker is not None:
            self._requests.put(_STOP)
            worker.join(timeout)

    def drain(self) -> None:
        """Block until every queued notification has been handled."""
        if self._worker is not None:
            self._requests.join()

    def send(self, template: str, recipient: str | None, payload: dict) -> None:
        """Request a notification. Fire-and-forget."""
        if not recipient:
            logger.warning("Notification skipped, no recipient", template=template, ref_code=payload.get("ref_code"))
            return

        request = NotificationRequested(
            template=template,
            recipient=recipient,
            payload=dict(payload),
            requested_at=self.clock(),
        )

        if not self.asynchronous:
            deliver(self.email, request, self.sender)
            return

        self.start()
        try:
            self._requests.put_nowait(request)
        except queue.Full:
            logger.error("Notification queue full, request dropped", template=template, recipient=recipient)
