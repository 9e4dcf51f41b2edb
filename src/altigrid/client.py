"""Batching, rate-limited, retrying elevation client."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import replace
import logging
import threading
from typing import Iterable, Sequence

from altigrid.backends.base import BackendError, ElevationBackend, PermanentBackendError
from altigrid.config import FetchConfig
from altigrid.errors import FetchError
from altigrid.grid import ElevationSample
from altigrid.projection import SamplePoint
from altigrid.ratelimit import Clock, RateLimiter
from altigrid.retry import BatchAttempt, BatchState, RetryPolicy

LOGGER = logging.getLogger("altigrid.client")

BatchOutcome = tuple[list[ElevationSample], list[FetchError]]


class ElevationClient:
    """Fetch elevations for sample points through an :class:`ElevationBackend`.

    Points are split into batches no larger than the backend allows. Each
    batch runs through a :class:`BatchAttempt` state machine; transient
    failures are retried with backoff, permanent ones turn the batch into
    missing values. Failures are collected in :attr:`errors` instead of being
    raised, so one bad batch never aborts a run.
    """

    def __init__(
        self,
        backend: ElevationBackend,
        config: FetchConfig | None = None,
        *,
        clock: Clock | None = None,
        rate_limiter: RateLimiter | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self.backend = backend
        self.config = config or FetchConfig()
        self.clock = clock or Clock()
        self.rate_limiter = rate_limiter or RateLimiter(self.config.min_interval, self.clock)
        self.policy = RetryPolicy.from_config(self.config)
        self.cancel_event = cancel_event or threading.Event()
        self.errors: list[FetchError] = []
        self.cancelled = False

    @property
    def batch_size(self) -> int:
        return max(1, min(self.config.batch_size, self.backend.max_batch_size))

    def batches(self, points: Sequence[SamplePoint]) -> list[Sequence[SamplePoint]]:
        size = self.batch_size
        return [points[start : start + size] for start in range(0, len(points), size)]

    def cancel(self) -> None:
        """Stop issuing requests; unfetched points come back as missing."""

        self.cancel_event.set()

    def fetch(self, points: Iterable[SamplePoint]) -> list[ElevationSample]:
        """Return exactly one sample per input point, in input order."""

        points = list(points)
        self.errors = []
        batches = self.batches(points)
        outcomes: list[BatchOutcome | None] = [None] * len(batches)
        LOGGER.debug(
            "Fetching %d points in %d batches from %s", len(points), len(batches), self.backend.name
        )
        try:
            if self.config.concurrency == 1 or len(batches) <= 1:
                for idx, batch in enumerate(batches):
                    outcomes[idx] = self._fetch_batch(batch)
                    LOGGER.debug("Batch %d/%d done", idx + 1, len(batches))
            else:
                self._fetch_concurrently(batches, outcomes)
        except KeyboardInterrupt:
            LOGGER.warning("Fetch interrupted; unfetched points will be left empty")
            self.cancel_event.set()

        samples: list[ElevationSample] = []
        for batch, outcome in zip(batches, outcomes):
            if outcome is None:
                outcome = _missing(batch, FetchError(batch, attempts=0, reason="cancelled"))
            batch_samples, batch_errors = outcome
            samples.extend(batch_samples)
            self.errors.extend(batch_errors)
        self.cancelled = self.cancel_event.is_set()
        return samples

    def _fetch_concurrently(
        self,
        batches: Sequence[Sequence[SamplePoint]],
        outcomes: list[BatchOutcome | None],
    ) -> None:
        executor = ThreadPoolExecutor(max_workers=self.config.concurrency, thread_name_prefix="altigrid")
        futures: dict[Future, int] = {
            executor.submit(self._fetch_batch, batch): idx for idx, batch in enumerate(batches)
        }
        try:
            for done, future in enumerate(as_completed(futures), start=1):
                outcomes[futures[future]] = future.result()
                LOGGER.debug("Batch %d/%d done", done, len(batches))
        except KeyboardInterrupt:
            self.cancel_event.set()
            for future in futures:
                future.cancel()
            executor.shutdown(wait=True)
            for future, idx in futures.items():
                if outcomes[idx] is None and not future.cancelled() and future.exception() is None:
                    outcomes[idx] = future.result()
            raise
        finally:
            executor.shutdown(wait=True)

    def _fetch_batch(self, points: Sequence[SamplePoint]) -> BatchOutcome:
        attempt = self._run_attempt(points, self.policy)
        if attempt.state is BatchState.EXHAUSTED and len(points) > 1 and self.config.split_failed_batches:
            LOGGER.info("Batch of %d points exhausted its retries; splitting it", len(points))
            return self._bisect(points, _FailureStreak(self.policy.max_attempts))
        return _outcome(attempt)

    def _bisect(self, points: Sequence[SamplePoint], streak: "_FailureStreak") -> BatchOutcome:
        """Isolate failing points by halving, one attempt per half, no backoff.

        Gives up once ``streak.limit`` multi-point halves fail in a row with no
        success in between, which bounds the request count during an outage.
        """

        mid = len(points) // 2
        samples: list[ElevationSample] = []
        errors: list[FetchError] = []
        for half in (points[:mid], points[mid:]):
            if streak.spent:
                half_samples, half_errors = _missing(
                    half, FetchError(half, attempts=0, reason="not retried: service kept failing")
                )
            else:
                attempt = self._run_attempt(half, self._split_policy)
                if attempt.state is BatchState.SUCCEEDED:
                    streak.reset()
                elif attempt.state is BatchState.EXHAUSTED and len(half) > 1:
                    streak.record_failure()
                if attempt.state is BatchState.EXHAUSTED and len(half) > 1 and not streak.spent:
                    half_samples, half_errors = self._bisect(half, streak)
                else:
                    half_samples, half_errors = _outcome(attempt)
            samples.extend(half_samples)
            errors.extend(half_errors)
        return samples, errors

    @property
    def _split_policy(self) -> RetryPolicy:
        return replace(self.policy, max_attempts=1)

    def _run_attempt(self, points: Sequence[SamplePoint], policy: RetryPolicy) -> BatchAttempt:
        attempt = BatchAttempt(points, policy)
        while not attempt.done:
            if self.cancel_event.is_set():
                attempt.cancel()
                break
            self.rate_limiter.wait()
            attempt.start_attempt()
            try:
                values = self.backend.fetch_batch(points)
            except BackendError as exc:
                delay = attempt.fail(exc)
                if delay is not None:
                    LOGGER.info(
                        "Batch of %d points failed (%s); retry %d in %.1fs",
                        len(points),
                        exc,
                        attempt.attempts,
                        delay,
                    )
                    self.clock.wait(self.cancel_event, delay)
                continue
            if len(values) != len(points):
                attempt.fail(
                    PermanentBackendError(f"{self.backend.name} returned {len(values)} values for {len(points)} points")
                )
                continue
            attempt.succeed(list(values))
        return attempt


class _FailureStreak:
    """Counts consecutive failed sub-batches while bisecting one batch."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        self.failures = 0

    @property
    def spent(self) -> bool:
        return self.failures >= self.limit

    def record_failure(self) -> None:
        self.failures += 1

    def reset(self) -> None:
        self.failures = 0


def _outcome(attempt: BatchAttempt) -> BatchOutcome:
    if attempt.state is BatchState.SUCCEEDED and attempt.values is not None:
        return [ElevationSample(p, v) for p, v in zip(attempt.points, attempt.values)], []
    error = _fetch_error(attempt)
    if attempt.state is not BatchState.CANCELLED:
        LOGGER.warning("%s", error)
    return _missing(attempt.points, error)


def _fetch_error(attempt: BatchAttempt) -> FetchError:
    if attempt.state is BatchState.CANCELLED:
        reason = "cancelled"
    elif attempt.last_error is not None:
        reason = f"{attempt.state.value}: {attempt.last_error}"
    else:
        reason = attempt.state.value
    status = attempt.last_error.status_code if attempt.last_error is not None else None
    return FetchError(attempt.points, attempts=attempt.attempts, reason=reason, status_code=status)


def _missing(points: Sequence[SamplePoint], error: FetchError) -> BatchOutcome:
    return [ElevationSample(p, None) for p in points], [error]
