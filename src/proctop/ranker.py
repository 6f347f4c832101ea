"""Ordering of usage records."""

from collections.abc import Iterable

from proctop.models import UsageRecord


def _rank_key(record: UsageRecord) -> tuple[float, int]:
    """Sort key: highest CPU first, then lowest pid."""
    return (-record.cpu_percent, record.pid)


def rank(records: Iterable[UsageRecord]) -> tuple[UsageRecord, ...]:
    """Sort by CPU percent descending, breaking ties by ascending pid."""
    return tuple(sorted(records, key=_rank_key))


def top(records: Iterable[UsageRecord], n: int) -> tuple[UsageRecord, ...]:
    """Return the first ``n`` ranked records. Never padded."""
    if n <= 0:
        return ()
    return rank(records)[:n]
