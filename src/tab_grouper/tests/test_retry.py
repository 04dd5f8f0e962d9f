import asyncio

import pytest

from tab_grouper.errors import TabStoreError
from tab_grouper.retry import (
    COLLAPSE_RETRY,
    SINGLE_ATTEMPT,
    Exhausted,
    RetryPolicy,
    Success,
    retry,
)


class Flaky:
    """Fails a fixed number of times, then returns a value."""

    def __init__(self, failures, value="ok", error=TabStoreError):
        self.failures = failures
        self.value = value
        self.error = error
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error(f"failure {self.calls}")
        return self.value


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


def test_collapse_policy_constants():
    assert COLLAPSE_RETRY == RetryPolicy(max_attempts=5, delay_s=0.025)
    assert SINGLE_ATTEMPT.max_attempts == 1


def test_success_first_try():
    sleep = RecordingSleep()
    result = asyncio.run(retry(Flaky(0), COLLAPSE_RETRY, sleep=sleep))
    assert isinstance(result, Success)
    assert result.value == "ok"
    assert result.attempts == 1
    assert sleep.delays == []


def test_fails_four_times_then_succeeds():
    operation = Flaky(4)
    sleep = RecordingSleep()
    result = asyncio.run(retry(operation, COLLAPSE_RETRY, sleep=sleep))
    assert result
    assert result.attempts == 5
    assert operation.calls == 5
    # Fixed delay, no backoff
    assert sleep.delays == [0.025] * 4


def test_fails_every_attempt_is_exhausted():
    operation = Flaky(5)
    sleep = RecordingSleep()
    result = asyncio.run(retry(operation, COLLAPSE_RETRY, sleep=sleep))
    assert isinstance(result, Exhausted)
    assert not result
    assert result.attempts == 5
    assert isinstance(result.error, TabStoreError)
    assert operation.calls == 5
    # No pause after the final attempt
    assert sleep.delays == [0.025] * 4


def test_single_attempt_does_not_retry():
    operation = Flaky(1)
    result = asyncio.run(retry(operation, SINGLE_ATTEMPT, sleep=RecordingSleep()))
    assert not result
    assert operation.calls == 1


def test_non_store_errors_propagate():
    operation = Flaky(1, error=KeyError)
    with pytest.raises(KeyError):
        asyncio.run(retry(operation, COLLAPSE_RETRY, sleep=RecordingSleep()))
    assert operation.calls == 1


def test_real_sleep_is_used_by_default():
    result = asyncio.run(retry(Flaky(1), RetryPolicy(max_attempts=2, delay_s=0.001)))
    assert result.attempts == 2
