# tests/conftest.py
import pytest

from echochamber.app.chamber import EchoChamber
from echochamber.app.config import ChamberConfig


class FakeClock:
    """Manually advanced wall clock."""
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def cfg(tmp_path):
    return ChamberConfig(
        log_path=str(tmp_path / "events.bin"),
        fifo_path=str(tmp_path / "wakeup.fifo"),
        backlog_seconds=0.1,
        wait_timeout=0.05,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def chamber(cfg, clock):
    return EchoChamber(cfg, clock=clock)
