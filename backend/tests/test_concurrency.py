"""Retry wrapper tests: transient failures retry with backoff, others propagate."""

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from employee_space.services.concurrency import (
    WRITE_CONFLICT_ERRORS,
    ServiceUnavailableError,
    retrying,
    run_with_retry,
)


def transient():
    return OperationalError("SELECT 1", {}, Exception("database is locked"))


class Flaky:
    def __init__(self, failures: int):
        self.failures = failures
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise transient()
        return "ok"


class TestRunWithRetry:
    def test_succeeds_after_transient_failures(self, app):
        waits = []
        func = Flaky(failures=2)

        result = run_with_retry(func, attempts=3, backoff_base=0.1, timeout=60, sleep=waits.append)

        assert result == "ok"
        assert func.calls == 3
        assert waits == [0.1, 0.2]

    def test_exhaustion_raises_service_unavailable(self, app):
        func = Flaky(failures=10)

        with pytest.raises(ServiceUnavailableError) as excinfo:
            run_with_retry(func, attempts=3, backoff_base=0, timeout=60, sleep=lambda _: None)

        assert func.calls == 3
        assert isinstance(excinfo.value.__cause__, OperationalError)

    def test_deadline_stops_retries_early(self, app):
        func = Flaky(failures=10)

        with pytest.raises(ServiceUnavailableError):
            run_with_retry(func, attempts=5, backoff_base=30, timeout=1, sleep=lambda _: None)

        assert func.calls == 1

    def test_explicit_zero_timeout_is_not_replaced_by_default(self, app):
        func = Flaky(failures=10)

        with pytest.raises(ServiceUnavailableError):
            run_with_retry(func, attempts=5, backoff_base=0.1, timeout=0, sleep=lambda _: None)

        assert func.calls == 1

    def test_explicit_zero_attempts_runs_nothing(self, app):
        func = Flaky(failures=0)

        with pytest.raises(ServiceUnavailableError):
            run_with_retry(func, attempts=0, sleep=lambda _: None)

        assert func.calls == 0

    def test_non_transient_errors_propagate(self, app):
        def broken():
            raise KeyError("nope")

        with pytest.raises(KeyError):
            run_with_retry(broken, attempts=3, sleep=lambda _: None)

    def test_unique_conflicts_retry_only_when_asked(self, app):
        calls = []

        def conflicting_then_ok():
            calls.append(1)
            if len(calls) == 1:
                raise IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))
            return "ok"

        with pytest.raises(IntegrityError):
            run_with_retry(conflicting_then_ok, attempts=3, sleep=lambda _: None)

        calls.clear()
        result = run_with_retry(
            conflicting_then_ok, attempts=3, retry_on=WRITE_CONFLICT_ERRORS, sleep=lambda _: None
        )
        assert result == "ok"
        assert len(calls) == 2

    def test_decorator_forms(self, app):
        calls = []

        @retrying
        def bare(x):
            calls.append(x)
            return x * 2

        @retrying(attempts=2, sleep=lambda _: None)
        def configured():
            raise transient()

        assert bare(21) == 42
        assert calls == [21]
        with pytest.raises(ServiceUnavailableError):
            configured()
