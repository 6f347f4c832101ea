"""Converts accumulated CPU tick counters into a CPU percentage."""

from collections.abc import Iterable
from typing import NamedTuple

from proctop.models import RawSample


class _PreviousCounters(NamedTuple):
    cpu_ticks: int
    sampled_at: float


class UsageEstimator:
    """
    Derives per-process CPU usage by differencing successive samples.

    Usage is a rate and cannot be observed from a single sample, so the
    estimator keeps the last raw counters seen for every pid and divides the
    tick delta by the elapsed clock time on the next sighting.

    Irregular input never raises: a first sighting, a counter that went
    backwards (pid reuse) or a non-positive elapsed time all report 0.0.
    """

    def __init__(self, tick_rate: float, ceiling: float) -> None:
        """
        Initialize the UsageEstimator.

        Args:
            tick_rate: Scheduler ticks per second.
            ceiling: Upper bound for a reported percentage, usually
                100.0 * logical core count.
        """
        if tick_rate <= 0:
            raise ValueError(f"tick_rate must be positive, got {tick_rate}")
        if ceiling <= 0:
            raise ValueError(f"ceiling must be positive, got {ceiling}")
        self._tick_rate = float(tick_rate)
        self._ceiling = float(ceiling)
        self._previous: dict[int, _PreviousCounters] = {}

    @property
    def tick_rate(self) -> float:
        """Scheduler ticks per second."""
        return self._tick_rate

    @property
    def ceiling(self) -> float:
        """Upper bound for a reported percentage."""
        return self._ceiling

    def __len__(self) -> int:
        """Number of pids with stored counters."""
        return len(self._previous)

    def __contains__(self, pid: object) -> bool:
        """Whether counters are stored for ``pid``."""
        return pid in self._previous

    def update(self, sample: RawSample) -> float:
        """Record ``sample`` and return the CPU percent since the last one."""
        previous = self._previous.get(sample.pid)
        self._previous[sample.pid] = _PreviousCounters(sample.cpu_ticks, sample.sampled_at)

        if previous is None:
            return 0.0

        delta_ticks = sample.cpu_ticks - previous.cpu_ticks
        delta_time = sample.sampled_at - previous.sampled_at
        if delta_ticks < 0 or delta_time <= 0:
            return 0.0

        percent = delta_ticks / self._tick_rate / delta_time * 100.0
        return min(max(percent, 0.0), self._ceiling)

    def prune(self, live_pids: Iterable[int]) -> int:
        """Drop counters for pids not in ``live_pids``. Returns how many were dropped."""
        live = set(live_pids)
        stale = [pid for pid in self._previous if pid not in live]
        for pid in stale:
            del self._previous[pid]
        return len(stale)

    def forget(self, pid: int) -> None:
        """Drop the stored counters for ``pid``, if any."""
        self._previous.pop(pid, None)
