"""Data models for proctop."""

from dataclasses import dataclass, field


@dataclass(slots=True, frozen=True)
class RawSample:
    """One process's raw counters at one point in time."""

    pid: int
    name: str
    state: str  # 'R', 'S', 'Z', 'D', etc.
    cpu_ticks: int  # user + system, in scheduler ticks
    sampled_at: float  # Seconds, from the source's clock
    rss_bytes: int = 0


@dataclass(slots=True, frozen=True)
class UsageRecord:
    """Immutable per-process result of one refresh cycle."""

    pid: int
    name: str
    state: str
    cpu_percent: float  # 0.0 - 100.0 * core_count
    memory_percent: float = 0.0


@dataclass(slots=True, frozen=True)
class Snapshot:
    """Ranked records published by one refresh cycle."""

    records: tuple[UsageRecord, ...] = field(default_factory=tuple)
    process_count: int = 0
    captured_at: float = 0.0

    def top(self, n: int) -> tuple[UsageRecord, ...]:
        """Return at most ``n`` of the highest ranked records."""
        return self.records[: max(n, 0)]
