"""Process enumeration and raw counter reads.

Two interchangeable sources are provided:

- ``ProcfsSource`` parses ``/proc/<pid>/stat`` directly (Linux).
- ``PsutilSource`` goes through psutil and works on every platform psutil
  supports.

Both report routine churn as ``ProcessVanished`` / ``MalformedRecord`` and
reserve ``EnumerationError`` for a process table that cannot be listed at all.
"""

import os
import time
from collections.abc import Callable
from pathlib import Path
from typing import Protocol

import psutil

from proctop.errors import EnumerationError, MalformedRecord, ProcessVanished
from proctop.models import RawSample

Clock = Callable[[], float]

DEFAULT_TICK_RATE = 100
DEFAULT_PAGE_SIZE = 4096

# Fields after the ")" that closes the command name, 0-indexed
_STATE_FIELD = 0
_UTIME_FIELD = 11
_STIME_FIELD = 12
_RSS_FIELD = 21

# Status constants vary between psutil releases and platforms
_STATUS_LETTERS = {
    "STATUS_RUNNING": "R",
    "STATUS_SLEEPING": "S",
    "STATUS_DISK_SLEEP": "D",
    "STATUS_STOPPED": "T",
    "STATUS_TRACING_STOP": "t",
    "STATUS_ZOMBIE": "Z",
    "STATUS_DEAD": "X",
    "STATUS_WAKING": "W",
    "STATUS_IDLE": "I",
    "STATUS_LOCKED": "L",
    "STATUS_WAITING": "W",
    "STATUS_PARKED": "P",
}
_STATUS_CODES = {
    getattr(psutil, name): letter for name, letter in _STATUS_LETTERS.items() if hasattr(psutil, name)
}


class ProcessSource(Protocol):
    """Enumerates live processes and reads their raw counters."""

    def list_pids(self) -> set[int]:
        """Return the pids visible right now. Raises EnumerationError."""
        ...

    def read(self, pid: int) -> RawSample:
        """Read one process. Raises ProcessVanished or MalformedRecord."""
        ...


def _sysconf(name: str, default: int) -> int:
    """Read a positive sysconf value, falling back to ``default``."""
    try:
        value = os.sysconf(name)
    except (AttributeError, ValueError, OSError):
        return default
    return value if value > 0 else default


def tick_rate() -> int:
    """Scheduler ticks per second used by the kernel's CPU accounting."""
    return _sysconf("SC_CLK_TCK", DEFAULT_TICK_RATE)


def page_size() -> int:
    """Size of a memory page in bytes."""
    return _sysconf("SC_PAGE_SIZE", DEFAULT_PAGE_SIZE)


def core_count() -> int:
    """Number of logical CPUs, at least 1."""
    return psutil.cpu_count(logical=True) or 1


def parse_stat(pid: int, text: str, sampled_at: float, page_bytes: int = DEFAULT_PAGE_SIZE) -> RawSample:
    """
    Parse the contents of ``/proc/<pid>/stat``.

    The command name is wrapped in parentheses and may itself contain spaces
    and parentheses, so it spans from the first "(" to the last ")".

    Raises:
        MalformedRecord: If the record does not have the expected shape.
    """
    start = text.find("(")
    end = text.rfind(")")
    if start == -1 or end < start:
        raise MalformedRecord(pid, "missing command name")

    name = text[start + 1 : end]
    fields = text[end + 1 :].split()
    if len(fields) <= _RSS_FIELD:
        raise MalformedRecord(pid, f"expected at least {_RSS_FIELD + 1} fields after name, got {len(fields)}")

    try:
        utime = int(fields[_UTIME_FIELD])
        stime = int(fields[_STIME_FIELD])
        rss_pages = int(fields[_RSS_FIELD])
    except ValueError:
        raise MalformedRecord(pid, "non-numeric counter") from None

    return RawSample(
        pid=pid,
        name=name,
        state=fields[_STATE_FIELD],
        cpu_ticks=utime + stime,
        sampled_at=sampled_at,
        rss_bytes=max(rss_pages, 0) * page_bytes,
    )


class ProcfsSource:
    """Reads process counters straight from a procfs mount."""

    def __init__(
        self,
        root: Path | str = "/proc",
        clock: Clock = time.monotonic,
        page_bytes: int | None = None,
    ) -> None:
        """
        Initialize the ProcfsSource.

        Args:
            root: Mount point of procfs.
            clock: Timestamp function for samples.
            page_bytes: Memory page size; read from the system when omitted.
        """
        self._root = Path(root)
        self._clock = clock
        self._page_bytes = page_bytes or page_size()

    def list_pids(self) -> set[int]:
        """Return the numeric entries of the procfs root."""
        try:
            with os.scandir(self._root) as entries:
                return {int(entry.name) for entry in entries if entry.name.isdigit()}
        except OSError as e:
            raise EnumerationError(f"cannot list {self._root}: {e}") from e

    def read(self, pid: int) -> RawSample:
        """Read and parse /proc/<pid>/stat."""
        path = self._root / str(pid) / "stat"
        try:
            text = path.read_text(encoding="utf-8", errors="replace")
        except (FileNotFoundError, ProcessLookupError):
            raise ProcessVanished(pid) from None
        except OSError as e:
            raise MalformedRecord(pid, f"unreadable: {e.strerror or e}") from e
        return parse_stat(pid, text, self._clock(), self._page_bytes)


class PsutilSource:
    """Reads process counters through psutil."""

    def __init__(self, clock: Clock = time.monotonic, ticks_per_second: int | None = None) -> None:
        """Initialize the PsutilSource. CPU seconds are converted to ticks at ``ticks_per_second``."""
        self._clock = clock
        self._tick_rate = ticks_per_second or tick_rate()

    def list_pids(self) -> set[int]:
        """Return the pids psutil reports."""
        try:
            return set(psutil.pids())
        except (OSError, psutil.Error) as e:
            raise EnumerationError(f"cannot list processes: {e}") from e

    def read(self, pid: int) -> RawSample:
        """Read one process through psutil."""
        try:
            proc = psutil.Process(pid)
            # oneshot() caches the underlying reads for the attributes below
            with proc.oneshot():
                name = proc.name()
                status = proc.status()
                times = proc.cpu_times()
                rss = proc.memory_info().rss
        except psutil.NoSuchProcess:
            # ZombieProcess is a subclass: the process has already exited
            raise ProcessVanished(pid) from None
        except psutil.AccessDenied:
            raise MalformedRecord(pid, "access denied") from None

        return RawSample(
            pid=pid,
            name=name or "",
            state=_STATUS_CODES.get(status, "?"),
            cpu_ticks=round((times.user + times.system) * self._tick_rate),
            sampled_at=self._clock(),
            rss_bytes=rss,
        )


def default_source(kind: str = "auto", clock: Clock = time.monotonic) -> ProcessSource:
    """
    Build a process source by name.

    Args:
        kind: "procfs", "psutil" or "auto" (procfs when mounted, else psutil).
        clock: Timestamp function for samples.
    """
    if kind == "auto":
        kind = "procfs" if Path("/proc/self/stat").exists() else "psutil"
    if kind == "procfs":
        return ProcfsSource(clock=clock)
    if kind == "psutil":
        return PsutilSource(clock=clock)
    raise ValueError(f"Unknown process source: {kind!r}")
