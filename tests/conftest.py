import pytest

from altigrid.ratelimit import Clock


class FakeClock(Clock):
    """Clock whose sleeps advance time instantly and are recorded."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def wait(self, event, seconds: float) -> bool:
        self.sleep(seconds)
        return event.is_set()


@pytest.fixture
def clock():
    return FakeClock()
