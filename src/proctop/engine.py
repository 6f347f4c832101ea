"""Per-cycle orchestration: enumerate, read, estimate, rank, publish."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from proctop.errors import EnumerationError, MalformedRecord, ProcessVanished
from proctop.estimator import UsageEstimator
from proctop.logging import get_logger
from proctop.models import RawSample, Snapshot, UsageRecord
from proctop.ranker import rank
from proctop.sources import Clock, ProcessSource, core_count, default_source, tick_rate

if TYPE_CHECKING:
    from proctop.config import Config

log = get_logger(__name__)


class SamplingEngine:
    """
    Runs one refresh cycle per call to refresh() and keeps the last snapshot.

    A refresh either publishes a new, internally consistent Snapshot or, when
    the process table cannot be listed, leaves the previous one in place.
    Processes that vanish or cannot be parsed mid-cycle are skipped.
    """

    def __init__(
        self,
        source: ProcessSource,
        estimator: UsageEstimator,
        clock: Clock = time.monotonic,
        memory_total: int = 0,
    ) -> None:
        """
        Initialize the SamplingEngine.

        Args:
            source: Enumerates processes and reads their counters.
            estimator: Owns the previous-counter state across cycles.
            clock: Timestamp for published snapshots.
            memory_total: Physical memory in bytes; 0 leaves memory_percent at 0.0.
        """
        self._source = source
        self._estimator = estimator
        self._clock = clock
        self._memory_total = memory_total
        self._snapshot = Snapshot()
        self._last_error: EnumerationError | None = None
        self._cycles = 0

    @classmethod
    def create(cls, config: Config, clock: Clock = time.monotonic) -> SamplingEngine:
        """Build an engine wired to the live host according to ``config``."""
        import psutil

        ceiling = config.sampling.ceiling or 100.0 * core_count()
        return cls(
            source=default_source(config.sampling.source, clock=clock),
            estimator=UsageEstimator(tick_rate=tick_rate(), ceiling=ceiling),
            clock=clock,
            memory_total=psutil.virtual_memory().total,
        )

    @property
    def snapshot(self) -> Snapshot:
        """The most recently published snapshot."""
        return self._snapshot

    @property
    def last_error(self) -> EnumerationError | None:
        """The enumeration failure of the last cycle, if it failed."""
        return self._last_error

    @property
    def cycles(self) -> int:
        """Number of snapshots published so far."""
        return self._cycles

    @property
    def estimator(self) -> UsageEstimator:
        """The estimator holding the previous counters."""
        return self._estimator

    def top(self, n: int) -> tuple[UsageRecord, ...]:
        """Return at most ``n`` of the highest ranked records of the last snapshot."""
        return self._snapshot.top(n)

    def refresh(self) -> Snapshot:
        """Sample every process once and publish a ranked snapshot."""
        try:
            pids = self._source.list_pids()
        except EnumerationError as e:
            self._last_error = e
            log.warning("enumeration_failed", error=str(e), cycle=self._cycles)
            return self._snapshot

        records: list[UsageRecord] = []
        skipped = 0
        for pid in sorted(pids):
            try:
                sample = self._source.read(pid)
            except ProcessVanished as e:
                skipped += 1
                self._estimator.forget(pid)
                log.debug("process_skipped", pid=pid, reason=str(e))
                continue
            except MalformedRecord as e:
                skipped += 1
                log.debug("process_skipped", pid=pid, reason=str(e))
                continue
            records.append(self._to_record(sample))

        pruned = self._estimator.prune(pids)

        self._snapshot = Snapshot(
            records=rank(records),
            process_count=len(records),
            captured_at=self._clock(),
        )
        self._last_error = None
        self._cycles += 1
        log.debug(
            "snapshot_published",
            cycle=self._cycles,
            processes=len(records),
            skipped=skipped,
            pruned=pruned,
        )
        return self._snapshot

    def _to_record(self, sample: RawSample) -> UsageRecord:
        """Turn a raw sample into a record, updating the estimator."""
        cpu_percent = self._estimator.update(sample)
        memory_percent = 0.0
        if self._memory_total > 0:
            memory_percent = sample.rss_bytes / self._memory_total * 100.0
        return UsageRecord(
            pid=sample.pid,
            name=sample.name,
            state=sample.state,
            cpu_percent=cpu_percent,
            memory_percent=memory_percent,
        )
