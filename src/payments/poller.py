"""Bounded polling of a custom order's payment status.

Used by clients waiting on an asynchronous rail (push payment, crypto
invoice). Polling stops at the first terminal state: payment ``paid`` or
``failed``, or order ``completed``/``refunded``. It also stops after
``max_attempts`` fetches, whatever the state. Transient fetch failures use up
an attempt but do not end the poll.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass

import httpx
import structlog

from shared.config import Settings
from shared.errors import NotFoundError, TransientError

logger = structlog.get_logger(__name__)

TERMINAL_PAYMENT_STATES = frozenset({"paid", "failed"})
TERMINAL_ORDER_STATES = frozenset({"completed", "refunded"})


@dataclass(frozen=True)
class PollResult:
    status: dict | None
    attempts: int
    terminal: bool

    @property
    def timed_out(self) -> bool:
        return not self.terminal


def is_terminal(status: dict) -> bool:
    return status.get("payment_status") in TERMINAL_PAYMENT_STATES or status.get("status") in TERMINAL_ORDER_STATES


class PaymentStatusPoller:
    def __init__(
        self,
        fetch: Callable[[str], dict],
        max_attempts: int = 20,
        interval: float = 3.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.fetch = fetch
        self.max_attempts = max_attempts
        self.interval = interval
        self.sleep = sleep

    @classmethod
    def from_settings(cls, fetch: Callable[[str], dict], settings: Settings, **kwargs) -> "PaymentStatusPoller":
        return cls(
            fetch,
            max_attempts=settings.poll_max_attempts,
            interval=settings.poll_interval_seconds,
            **kwargs,
        )

    def poll(self, ref_code: str) -> PollResult:
        last: dict | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                last = self.fetch(ref_code)
            except TransientError as exc:
                logger.warning("Payment status fetch failed", ref_code=ref_code, attempt=attempt, error=exc.message)
            else:
                if is_terminal(last):
                    logger.info("Payment status settled", ref_code=ref_code, attempts=attempt, status=last)
                    return PollResult(status=last, attempts=attempt, terminal=True)
            if attempt < self.max_attempts:
                self.sleep(self.interval)

        logger.info("Payment status polling gave up", ref_code=ref_code, attempts=self.max_attempts)
        return PollResult(status=last, attempts=self.max_attempts, terminal=False)


def http_fetcher(client: httpx.Client) -> Callable[[str], dict]:
    """Fetch callable hitting the public payment-status endpoint through ``client``.

    ``client`` carries the base URL, e.g. ``httpx.Client(base_url=...)``.
    """

    def fetch(ref_code: str) -> dict:
        try:
            response = client.get(f"/custom-orders/{ref_code}/payment-status")
        except httpx.TransportError as exc:
            raise TransientError(f"Payment status request failed: {exc}", ref_code=ref_code) from exc
        if response.status_code == 404:
            raise NotFoundError(f"Custom order {ref_code} not found", ref_code=ref_code)
        if response.status_code >= 500:
            raise TransientError(f"Payment status endpoint returned {response.status_code}", ref_code=ref_code)
        response.raise_for_status()
        return response.json()

    return fetch
