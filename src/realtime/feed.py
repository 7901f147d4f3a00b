"""Operator feed: the client-side view of the fan-out channel.

The feed keeps a local view of orders and upserts it from incoming events.
Custom orders are keyed by ref code, purchase orders by ``ref_code/item``
since one cart checkout shares a ref code across items. Because the channel
never replays, every (re)connect is followed by a full refresh from the
loader. Dropped connections are retried with exponential backoff; after
``max_attempts`` consecutive failures the feed gives up and reports
``disconnected``.

``connect`` returns an iterable of messages; iteration ending or raising
``ConnectionError`` means the connection dropped. A dashboard process wires
it to the ``/ws/operators`` socket and refreshes over HTTP::

    client = httpx.Client(base_url=url, cookies={"admin-session": token})
    feed = OperatorFeed.from_settings(connect, http_refresher(client), get_settings())
    feed.run()
"""

import time
from collections.abc import Callable, Iterable
from enum import Enum

import httpx
import structlog

from shared.config import Settings
from shared.errors import TransientError

logger = structlog.get_logger(__name__)

REFRESH_PAGE_SIZE = 100


def view_key(row: dict) -> str:
    return f"{row['ref_code']}/{row['item']}" if row.get("item") else row["ref_code"]


def http_refresher(client: httpx.Client) -> Callable[[], list[dict]]:
    """Refresh callable reading every order through the admin list endpoints.

    ``client`` carries the base URL and the admin session cookie.
    """

    def pages(path: str) -> list[dict]:
        rows, page = [], 1
        while True:
            try:
                response = client.get(path, params={"page": page, "limit": REFRESH_PAGE_SIZE})
            except httpx.TransportError as exc:
                raise TransientError(f"Operator refresh failed: {exc}") from exc
            if response.status_code >= 500:
                raise TransientError(f"Operator refresh endpoint returned {response.status_code}")
            response.raise_for_status()
            data = response.json()
            rows.extend(data["orders"])
            if page * REFRESH_PAGE_SIZE >= data["total"]:
                return rows
            page += 1

    def refresh() -> list[dict]:
        return pages("/admin/orders") + pages("/admin/custom-orders")

    return refresh


class FeedState(Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    DISCONNECTED = "disconnected"


class OperatorFeed:
    def __init__(
        self,
        connect: Callable[[], Iterable[dict]],
        refresh: Callable[[], list[dict]],
        base_delay: float = 1.0,
        max_attempts: int = 5,
        sleep: Callable[[float], None] = time.sleep,
        on_state_change: Callable[[FeedState], None] | None = None,
    ) -> None:
        self._connect = connect
        self._refresh = refresh
        self.base_delay = base_delay
        self.max_attempts = max_attempts
        self.sleep = sleep
        self.on_state_change = on_state_change
        self.state = FeedState.DISCONNECTED
        self.view: dict[str, dict] = {}
        self.refreshes = 0
        self._stopped = False

    @classmethod
    def from_settings(
        cls,
        connect: Callable[[], Iterable[dict]],
        refresh: Callable[[], list[dict]],
        settings: Settings,
        **kwargs,
    ) -> "OperatorFeed":
        return cls(
            connect,
            refresh,
            base_delay=settings.reconnect_base_delay,
            max_attempts=settings.reconnect_max_attempts,
            **kwargs,
        )

    def _set_state(self, state: FeedState) -> None:
        if state != self.state:
            self.state = state
            logger.info("Operator feed state changed", state=state.value)
            if self.on_state_change:
                self.on_state_change(state)

    def backoff(self, attempt: int) -> float:
        return self.base_delay * 2 ** (attempt - 1)

    def stop(self) -> None:
        self._stopped = True

    def full_refresh(self) -> None:
        self.view = {view_key(row): dict(row) for row in self._refresh()}
        self.refreshes += 1

    def handle(self, message: dict) -> None:
        kind = message.get("type")
        if kind == "order_event":
            snapshot = message.get("snapshot") or {}
            key = view_key({"ref_code": message["ref_code"], **snapshot})
            current = self.view.get(key, {"ref_code": message["ref_code"]})
            current.update(snapshot)
            current[message.get("field", "status")] = message["new_state"]
            self.view[key] = current
        elif kind == "resync":
            logger.info("Operator feed asked to resync")
            self.full_refresh()

    def run(self) -> None:
        """Consume the channel until stopped or out of reconnect attempts."""
        attempt = 0
        self._stopped = False
        while not self._stopped:
            self._set_state(FeedState.CONNECTING if attempt == 0 else FeedState.RECONNECTING)
            try:
                messages = self._connect()
                self._set_state(FeedState.CONNECTED)
                attempt = 0
                self.full_refresh()
                for message in messages:
                    self.handle(message)
                    if self._stopped:
                        break
            except ConnectionError as exc:
                logger.warning("Operator feed connection dropped", error=str(exc))

            if self._stopped:
                break

            attempt += 1
            if attempt > self.max_attempts:
                logger.error("Operator feed giving up", attempts=attempt - 1)
                break
            self._set_state(FeedState.RECONNECTING)
            self.sleep(self.backoff(attempt))

        self._set_state(FeedState.DISCONNECTED)
