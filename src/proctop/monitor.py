"""Host-wide facts for the dashboard header."""

import platform
import socket
import time
from collections import deque
from dataclasses import dataclass

import psutil

from proctop.logging import get_logger

log = get_logger(__name__)


@dataclass(slots=True, frozen=True)
class HostSnapshot:
    """Snapshot of overall host state."""

    hostname: str
    os_name: str
    kernel: str
    arch: str
    core_count: int
    cpu_percent_per_core: tuple[float, ...]
    memory_total: int
    memory_used: int
    memory_available: int
    memory_percent: float
    swap_total: int
    swap_used: int
    swap_percent: float
    load_avg: tuple[float, float, float]
    uptime_seconds: float


class HostMonitor:
    """
    Collects host-wide CPU, memory, load and uptime figures using psutil.

    Every call to collect() is an independent read; the only state kept is a
    short per-core CPU history for sparkline rendering.
    """

    def __init__(self, history_size: int = 60) -> None:
        """Initialize the HostMonitor with room for ``history_size`` CPU readings."""
        self._cpu_history: deque[tuple[float, ...]] = deque(maxlen=history_size)
        self._hostname = socket.gethostname()
        self._os_name = platform.system()
        self._kernel = platform.release()
        self._arch = platform.machine()
        self._core_count = psutil.cpu_count(logical=True) or 1
        # Initialize CPU percent (first call returns 0.0)
        psutil.cpu_percent(percpu=True)

    def collect(self) -> HostSnapshot:
        """Collect a snapshot of the current host state."""
        # Non-blocking, measured against the previous call
        cpu_percents = tuple(psutil.cpu_percent(percpu=True))
        self._cpu_history.append(cpu_percents)

        mem = psutil.virtual_memory()
        swap = psutil.swap_memory()

        try:
            load_avg = psutil.getloadavg()
        except (AttributeError, OSError) as e:
            log.debug("load_average_unavailable", error=str(e))
            load_avg = (0.0, 0.0, 0.0)

        uptime = time.time() - psutil.boot_time()

        return HostSnapshot(
            hostname=self._hostname,
            os_name=self._os_name,
            kernel=self._kernel,
            arch=self._arch,
            core_count=self._core_count,
            cpu_percent_per_core=cpu_percents,
            memory_total=mem.total,
            memory_used=mem.used,
            memory_available=mem.available,
            memory_percent=mem.percent,
            swap_total=swap.total,
            swap_used=swap.used,
            swap_percent=swap.percent,
            load_avg=tuple(load_avg),
            uptime_seconds=uptime,
        )

    def get_cpu_history(self) -> list[tuple[float, ...]]:
        """Get the per-core CPU usage history for sparkline rendering."""
        return list(self._cpu_history)
