"""Real-time fan-out of order-state changes to operator sessions.

Delivery is at-most-once and best effort. ``publish()`` never blocks: each
subscriber owns a bounded queue, and when it is full the event is dropped for
that subscriber only and the subscription is flagged as lagged. A lagged
subscriber must do a full refresh; there is no replay buffer.
"""

import queue
import threading
from dataclasses import asdict, dataclass
from dataclasses import field as dc_field
from itertools import count

import structlog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class OrderEvent:
    entity_type: str  # "order", "custom_order" or "payment_audit"
    ref_code: str
    new_state: str
    field: str = "status"
    snapshot: dict = dc_field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"type": "order_event", **asdict(self)}


class Subscription:
    _ids = count(1)

    def __init__(self, channel: "FanOutChannel", maxsize: int) -> None:
        self.id = next(self._ids)
        self.channel = channel
        self._queue: queue.Queue = queue.Queue(maxsize=maxsize)
        self.lagged = False
        self.closed = False
        self.dropped = 0

    def offer(self, event: OrderEvent) -> bool:
        if self.closed:
            return False
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            self.lagged = True
            self.dropped += 1
            return False
        return True

    def get(self, timeout: float | None = None) -> OrderEvent | None:
        """Next event, or None when nothing arrives within ``timeout``."""
        try:
            return self._queue.get(timeout=timeout) if timeout else self._queue.get_nowait()
        except queue.Empty:
            return None

    def drain(self) -> list[OrderEvent]:
        events = []
        while (event := self.get()) is not None:
            events.append(event)
        return events

    def clear_lag(self) -> bool:
        """Reset the lag flag, returning whether it was set."""
        lagged, self.lagged = self.lagged, False
        return lagged

    def close(self) -> None:
        self.channel.unsubscribe(self)


class FanOutChannel:
    def __init__(self, queue_size: int = 256) -> None:
        self.queue_size = queue_size
        self._subscriptions: dict[int, Subscription] = {}
        self._lock = threading.Lock()

    def subscribe(self) -> Subscription:
        subscription = Subscription(self, self.queue_size)
        with self._lock:
            self._subscriptions[subscription.id] = subscription
        logger.info("Operator subscribed", subscription_id=subscription.id)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscription.closed = True
        with self._lock:
            self._subscriptions.pop(subscription.id, None)
        logger.info("Operator unsubscribed", subscription_id=subscription.id)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def publish(self, event: OrderEvent) -> int:
        """Offer ``event`` to every subscriber. Returns how many accepted it."""
        with self._lock:
            subscriptions = list(self._subscriptions.values())

        delivered = 0
        for subscription in subscriptions:
            if subscription.offer(event):
                delivered += 1
            else:
                logger.warning(
                    "Fan-out delivery dropped",
                    subscription_id=subscription.id,
                    ref_code=event.ref_code,
                    entity_type=event.entity_type,
                )
        return delivered
