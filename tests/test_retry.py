from __future__ import annotations

import asyncio
import logging

import pytest

from aa_pipeline.exceptions import (
    ConfigurationError,
    InsufficientBalanceError,
    SubmissionError,
    VerificationError,
)
from aa_pipeline.retry import backoff_delay, retry_with_backoff


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FlakyAction:
    def __init__(self, failures: int, error_factory=None, result: str = "ok") -> None:
        self.failures = failures
        self.calls = 0
        self.result = result
        self._error_factory = error_factory or (
            lambda attempt: SubmissionError(f"transient {attempt}")
        )
        self.errors: list[Exception] = []

    async def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            error = self._error_factory(self.calls)
            self.errors.append(error)
            raise error
        return self.result


def _run(action, **kwargs):
    return asyncio.run(retry_with_backoff(action, **kwargs))


def test_backoff_delay_doubles_per_attempt() -> None:
    assert [backoff_delay(2.0, i) for i in range(4)] == [2.0, 4.0, 8.0, 16.0]


@pytest.mark.parametrize("failures", [0, 1, 2])
def test_succeeds_after_failures_with_exponential_delays(failures: int) -> None:
    sleep = RecordingSleep()
    action = FlakyAction(failures)

    result = _run(action, max_retries=3, base_delay=1.0, sleep=sleep)

    assert result == "ok"
    assert action.calls == failures + 1
    assert sleep.delays == [1.0 * 2**i for i in range(failures)]


def test_exhaustion_reraises_last_error_unchanged() -> None:
    sleep = RecordingSleep()
    action = FlakyAction(failures=10)

    with pytest.raises(SubmissionError) as excinfo:
        _run(action, max_retries=3, base_delay=2.0, sleep=sleep)

    assert action.calls == 3
    assert excinfo.value is action.errors[-1]
    assert str(excinfo.value) == "transient 3"
    # no delay after the final attempt
    assert sleep.delays == [2.0, 4.0]


@pytest.mark.parametrize("max_retries", [0, 1])
def test_single_attempt_when_max_retries_is_zero_or_one(max_retries: int) -> None:
    sleep = RecordingSleep()
    action = FlakyAction(failures=5)

    with pytest.raises(SubmissionError):
        _run(action, max_retries=max_retries, base_delay=1.0, sleep=sleep)

    assert action.calls == 1
    assert sleep.delays == []


def test_non_retryable_error_is_raised_immediately() -> None:
    sleep = RecordingSleep()
    action = FlakyAction(
        failures=1,
        error_factory=lambda _: InsufficientBalanceError(required=5, available=3),
    )

    with pytest.raises(InsufficientBalanceError):
        _run(action, max_retries=3, base_delay=1.0, sleep=sleep)

    assert action.calls == 1
    assert sleep.delays == []


def test_foreign_errors_are_treated_as_transient() -> None:
    sleep = RecordingSleep()
    action = FlakyAction(failures=1, error_factory=lambda _: ConnectionError("reset"))

    assert _run(action, max_retries=2, base_delay=0.5, sleep=sleep) == "ok"
    assert sleep.delays == [0.5]


def test_pre_delay_precedes_first_attempt() -> None:
    sleep = RecordingSleep()
    action = FlakyAction(failures=1, error_factory=lambda _: VerificationError("pending"))

    _run(action, max_retries=3, base_delay=5.0, pre_delay=5.0, sleep=sleep)

    assert sleep.delays == [5.0, 5.0]


def test_custom_should_retry_overrides_error_kind() -> None:
    sleep = RecordingSleep()
    action = FlakyAction(failures=1, error_factory=lambda _: ConfigurationError("missing"))

    result = _run(
        action,
        max_retries=2,
        base_delay=1.0,
        should_retry=lambda exc: True,
        sleep=sleep,
    )

    assert result == "ok"
    assert action.calls == 2


def test_retry_logs_attempt_and_reason(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING, logger="aa_pipeline.retry")
    action = FlakyAction(failures=1)

    _run(action, max_retries=3, base_delay=1.0, description="send", sleep=RecordingSleep())

    messages = [record.getMessage() for record in caplog.records]
    assert messages == ["send attempt 1/3 failed: transient 1; retrying in 1.0s"]
