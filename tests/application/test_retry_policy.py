import pytest

from stockengine.application.resilience.retry_policy import (
    ExponentialBackoff,
    NoBackoff,
    RetryPolicy,
    RetryStatus,
)
from stockengine.domain.exceptions import VersionConflict


class Attempts:
    """Callable that conflicts ``conflicts`` times, then returns ``value``."""

    def __init__(self, conflicts: int, value="done"):
        self.conflicts = conflicts
        self.value = value
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.conflicts:
            raise VersionConflict("sku-1", expected=self.calls - 1, actual=self.calls)
        return self.value


class TestRetryPolicy:

    def test_first_attempt_succeeds(self):
        result = RetryPolicy(max_attempts=3).run(Attempts(0))
        assert result.ok
        assert result.status is RetryStatus.OK
        assert result.value == "done"
        assert result.attempts == 1

    def test_succeeds_after_conflicts(self):
        sleeps = []
        policy = RetryPolicy(
            max_attempts=3,
            backoff=ExponentialBackoff(base_delay=0.1, jitter=False),
            sleep=sleeps.append,
        )
        attempt = Attempts(2)

        result = policy.run(attempt)

        assert result.ok
        assert result.attempts == 3
        assert attempt.calls == 3
        assert sleeps == [0.1, 0.2]

    def test_exhausted_after_every_attempt_conflicts(self):
        attempt = Attempts(10)
        result = RetryPolicy(max_attempts=3, backoff=NoBackoff()).run(attempt)

        assert not result.ok
        assert result.status is RetryStatus.EXHAUSTED
        assert result.attempts == 3
        assert attempt.calls == 3
        assert isinstance(result.conflict, VersionConflict)
        assert result.value is None

    def test_single_attempt_reports_conflict(self):
        result = RetryPolicy(max_attempts=1).run(Attempts(1))
        assert result.status is RetryStatus.CONFLICT
        assert result.attempts == 1

    def test_no_backoff_never_sleeps(self):
        sleeps = []
        RetryPolicy(max_attempts=4, backoff=NoBackoff(), sleep=sleeps.append).run(Attempts(3))
        assert sleeps == []

    def test_other_exceptions_propagate_immediately(self):
        calls = []

        def attempt():
            calls.append(1)
            raise ConnectionError("store unavailable")

        with pytest.raises(ConnectionError):
            RetryPolicy(max_attempts=3, backoff=NoBackoff()).run(attempt)
        assert len(calls) == 1

    def test_max_attempts_must_be_positive(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)


class TestExponentialBackoff:

    def test_delays_grow_and_cap(self):
        backoff = ExponentialBackoff(base_delay=0.1, multiplier=2.0, max_delay=0.3, jitter=False)
        assert [backoff.delay(n) for n in (1, 2, 3, 4)] == pytest.approx([0.1, 0.2, 0.3, 0.3])

    def test_jitter_stays_within_bounds(self):
        backoff = ExponentialBackoff(base_delay=0.1, max_delay=1.0, jitter=True)
        for n in range(1, 6):
            assert 0 <= backoff.delay(n) <= min(0.1 * 2 ** (n - 1), 1.0)
