"""Bounded retry for transient store failures.

Only ``TransientError`` is retried. Validation, not-found, invalid-transition
and amount-mismatch errors go straight through. Delays grow exponentially
(``base * 2 ** (retry - 1)``, capped at ``max_delay``) and the whole call is
held to a wall-clock budget so evidence handlers always answer in time.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

import structlog

from shared.clock import Clock, system_clock
from shared.errors import TransientError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass
class RetryPolicy:
    attempts: int = 3  # retries after the first try
    base_delay: float = 0.05
    max_delay: float = 1.0
    budget: float = 10.0
    sleep: Callable[[float], None] = time.sleep
    clock: Clock = system_clock

    def delay(self, retry: int) -> float:
        return min(self.max_delay, self.base_delay * 2 ** (retry - 1))

    def run(self, operation: Callable[[], T], **log_context) -> T:
        deadline = self.clock() + self.budget
        retry = 0
        while True:
            try:
                return operation()
            except TransientError as exc:
                retry += 1
                if retry > self.attempts:
                    logger.error("Transient failure, retries exhausted", retries=self.attempts, **log_context)
                    raise TransientError("Temporary problem, please try again", **log_context) from exc

                delay = self.delay(retry)
                if self.clock() + delay > deadline:
                    logger.error("Transient failure, handler budget spent", retries=retry - 1, **log_context)
                    raise TransientError("Temporary problem, please try again", **log_context) from exc

                logger.warning(
                    "Transient failure, retrying",
                    retry=retry,
                    delay=delay,
                    error=exc.message,
                    **log_context,
                )
                self.sleep(delay)
