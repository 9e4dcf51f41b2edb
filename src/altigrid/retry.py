"""Per-batch retry state machine with exponential backoff."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import random
from typing import Callable, Sequence

from altigrid.backends.base import BackendError, TransientBackendError
from altigrid.config import FetchConfig
from altigrid.projection import SamplePoint


class BatchState(str, Enum):
    PENDING = "pending"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset(
    {BatchState.SUCCEEDED, BatchState.EXHAUSTED, BatchState.FAILED, BatchState.CANCELLED}
)


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt ceiling and backoff schedule."""

    max_attempts: int = 5
    base_delay: float = 1.0
    factor: float = 2.0
    max_delay: float = 30.0
    jitter: float = 0.0

    @classmethod
    def from_config(cls, config: FetchConfig) -> "RetryPolicy":
        return cls(
            max_attempts=config.max_attempts,
            base_delay=config.backoff_base,
            factor=config.backoff_factor,
            max_delay=config.backoff_max,
            jitter=config.backoff_jitter,
        )

    def delay_for(
        self,
        retry: int,
        *,
        retry_after: float | None = None,
        rand: Callable[[], float] = random.random,
    ) -> float:
        """Delay before retry number ``retry`` (1-based)."""

        delay = min(self.max_delay, self.base_delay * self.factor ** (retry - 1))
        if self.jitter:
            delay += self.jitter * rand()
        if retry_after is not None:
            delay = max(delay, retry_after)
        return delay


@dataclass
class BatchAttempt:
    """Progress of one batch through PENDING -> RETRYING(n) -> terminal."""

    points: Sequence[SamplePoint]
    policy: RetryPolicy
    state: BatchState = BatchState.PENDING
    attempts: int = 0
    values: list[float | None] | None = None
    last_error: BackendError | None = None
    history: list[BatchState] = field(default_factory=list)

    @property
    def done(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def retries(self) -> int:
        return max(0, self.attempts - 1)

    def _move(self, state: BatchState) -> None:
        self.history.append(self.state)
        self.state = state

    def start_attempt(self) -> None:
        if self.done:
            raise RuntimeError(f"Batch already {self.state.value}")
        self.attempts += 1

    def succeed(self, values: list[float | None]) -> None:
        self.values = values
        self._move(BatchState.SUCCEEDED)

    def fail(self, error: BackendError) -> float | None:
        """Record a failed attempt; return the backoff delay if a retry follows."""

        self.last_error = error
        if not isinstance(error, TransientBackendError):
            self._move(BatchState.FAILED)
            return None
        if self.attempts >= self.policy.max_attempts:
            self._move(BatchState.EXHAUSTED)
            return None
        self._move(BatchState.RETRYING)
        return self.policy.delay_for(self.attempts, retry_after=error.retry_after)

    def cancel(self) -> None:
        self._move(BatchState.CANCELLED)
