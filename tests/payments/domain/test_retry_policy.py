"""Tests for the bounded transient-failure retry policy."""

import pytest

from payments.retry import RetryPolicy
from shared.clock import ManualClock
from shared.errors import NotFoundError, TransientError


class Flaky:
    def __init__(self, failures, result="ok", error=None):
        self.failures = failures
        self.result = result
        self.error = error or TransientError("database is locked")
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return self.result


def _policy(**overrides):
    clock = ManualClock()
    sleeps = []

    def sleep(seconds):
        sleeps.append(seconds)
        clock.advance(seconds)

    values = {"attempts": 3, "base_delay": 0.05, "max_delay": 1.0, "budget": 10.0, "sleep": sleep, "clock": clock}
    values.update(overrides)
    return RetryPolicy(**values), sleeps


class TestRetryPolicy:
    def test_success_without_retry(self):
        policy, sleeps = _policy()
        assert policy.run(Flaky(0)) == "ok"
        assert sleeps == []

    def test_recovers_with_exponential_backoff(self):
        policy, sleeps = _policy()
        operation = Flaky(2)
        assert policy.run(operation) == "ok"
        assert operation.calls == 3
        assert sleeps == [0.05, 0.1]

    def test_delay_is_capped(self):
        policy, _ = _policy(base_delay=0.5, max_delay=1.0)
        assert [policy.delay(n) for n in (1, 2, 3, 4)] == [0.5, 1.0, 1.0, 1.0]

    def test_gives_up_with_generic_message(self):
        policy, sleeps = _policy()
        operation = Flaky(10)
        with pytest.raises(TransientError) as exc:
            policy.run(operation, ref_code="REF1")
        assert exc.value.message == "Temporary problem, please try again"
        assert operation.calls == 4
        assert len(sleeps) == 3

    def test_budget_stops_retries_early(self):
        policy, sleeps = _policy(attempts=10, base_delay=1.0, max_delay=8.0, budget=2.5)
        operation = Flaky(10)
        with pytest.raises(TransientError):
            policy.run(operation)
        assert sleeps == [1.0]
        assert operation.calls == 2

    def test_other_errors_are_not_retried(self):
        policy, sleeps = _policy()
        operation = Flaky(1, error=NotFoundError("gone"))
        with pytest.raises(NotFoundError):
            policy.run(operation)
        assert operation.calls == 1
        assert sleeps == []
