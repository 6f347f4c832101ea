"""Shared test fixtures for proctop."""

import logging
from unittest.mock import patch

import pytest
import structlog
from structlog.testing import capture_logs

from proctop.errors import EnumerationError, MalformedRecord, ProcessVanished
from proctop.estimator import UsageEstimator
from proctop.models import RawSample, UsageRecord


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSource:
    """In-memory process table.

    ``processes`` maps pid to (name, state, cpu_ticks). Pids in ``vanished``
    are listed but raise ProcessVanished on read; pids in ``malformed`` raise
    MalformedRecord.
    """

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.processes: dict[int, tuple[str, str, int]] = {}
        self.rss: dict[int, int] = {}
        self.vanished: set[int] = set()
        self.malformed: set[int] = set()
        self.fail_enumeration = False
        self.reads: list[int] = []

    def put(self, pid: int, cpu_ticks: int, name: str = "proc", state: str = "S") -> None:
        self.processes[pid] = (name, state, cpu_ticks)

    def remove(self, pid: int) -> None:
        self.processes.pop(pid, None)

    def list_pids(self) -> set[int]:
        if self.fail_enumeration:
            raise EnumerationError("cannot list /proc: permission denied")
        return set(self.processes)

    def read(self, pid: int) -> RawSample:
        self.reads.append(pid)
        if pid in self.vanished or pid not in self.processes:
            raise ProcessVanished(pid)
        if pid in self.malformed:
            raise MalformedRecord(pid, "non-numeric counter")
        name, state, ticks = self.processes[pid]
        return RawSample(
            pid=pid,
            name=name,
            state=state,
            cpu_ticks=ticks,
            sampled_at=self.clock(),
            rss_bytes=self.rss.get(pid, 0),
        )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def source(clock: FakeClock) -> FakeSource:
    return FakeSource(clock)


@pytest.fixture
def estimator() -> UsageEstimator:
    """Estimator with a 100 Hz tick and a four-core ceiling."""
    return UsageEstimator(tick_rate=100, ceiling=400.0)


def make_sample(
    pid: int = 100,
    cpu_ticks: int = 0,
    sampled_at: float = 0.0,
    name: str = "proc",
    state: str = "S",
    rss_bytes: int = 0,
) -> RawSample:
    """Create a RawSample for testing."""
    return RawSample(
        pid=pid,
        name=name,
        state=state,
        cpu_ticks=cpu_ticks,
        sampled_at=sampled_at,
        rss_bytes=rss_bytes,
    )


def make_record(
    pid: int = 100,
    cpu_percent: float = 0.0,
    name: str = "proc",
    state: str = "S",
    memory_percent: float = 0.0,
) -> UsageRecord:
    """Create a UsageRecord for testing."""
    return UsageRecord(
        pid=pid,
        name=name,
        state=state,
        cpu_percent=cpu_percent,
        memory_percent=memory_percent,
    )


@pytest.fixture
def home(tmp_path, monkeypatch):
    """Point the config and log directories at a temporary home."""
    monkeypatch.setenv("HOME", str(tmp_path))
    return tmp_path


@pytest.fixture
def restore_logging():
    """Undo logging.configure() after the test."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()


@pytest.fixture
def engine_logs():
    """Capture structlog events emitted by proctop.engine."""
    from proctop import engine

    # A fresh proxy, since the module logger may be cached by an earlier configure()
    with patch.object(engine, "log", structlog.get_logger("proctop.engine")), capture_logs() as logs:
        yield logs
