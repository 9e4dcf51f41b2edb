import pytest

from altigrid.backends.base import PermanentBackendError, TransientBackendError
from altigrid.retry import BatchAttempt, BatchState, RetryPolicy


def test_backoff_schedule_doubles_and_caps():
    policy = RetryPolicy(max_attempts=6, base_delay=1.0, factor=2.0, max_delay=10.0)
    assert [policy.delay_for(n) for n in range(1, 6)] == [1.0, 2.0, 4.0, 8.0, 10.0]


def test_retry_after_extends_delay():
    policy = RetryPolicy(base_delay=1.0)
    assert policy.delay_for(1, retry_after=7.5) == 7.5
    assert policy.delay_for(1, retry_after=0.1) == 1.0


def test_jitter_is_added():
    policy = RetryPolicy(base_delay=1.0, jitter=0.5)
    assert policy.delay_for(1, rand=lambda: 1.0) == 1.5


def test_transient_failures_exhaust_at_ceiling():
    attempt = BatchAttempt(points=[], policy=RetryPolicy(max_attempts=3, base_delay=1.0))
    delays = []
    while not attempt.done:
        attempt.start_attempt()
        delays.append(attempt.fail(TransientBackendError("boom", status_code=500)))
    assert delays == [1.0, 2.0, None]
    assert attempt.state is BatchState.EXHAUSTED
    assert attempt.attempts == 3
    assert attempt.history == [BatchState.PENDING, BatchState.RETRYING, BatchState.RETRYING]


def test_permanent_failure_stops_immediately():
    attempt = BatchAttempt(points=[], policy=RetryPolicy(max_attempts=5))
    attempt.start_attempt()
    assert attempt.fail(PermanentBackendError("bad request", status_code=400)) is None
    assert attempt.state is BatchState.FAILED
    assert attempt.attempts == 1


def test_success_after_retry():
    attempt = BatchAttempt(points=[], policy=RetryPolicy(max_attempts=5))
    attempt.start_attempt()
    attempt.fail(TransientBackendError("timeout"))
    attempt.start_attempt()
    attempt.succeed([1.0])
    assert attempt.state is BatchState.SUCCEEDED
    assert attempt.retries == 1
    assert attempt.values == [1.0]


def test_terminal_state_rejects_new_attempts():
    attempt = BatchAttempt(points=[], policy=RetryPolicy())
    attempt.cancel()
    with pytest.raises(RuntimeError):
        attempt.start_attempt()
