"""proctop - Main Textual application."""

from enum import Enum

from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal
from textual.css.query import NoMatches
from textual.widgets import DataTable, Footer, Sparkline, Static

from proctop import logging as plog
from proctop.config import Config
from proctop.engine import SamplingEngine
from proctop.logging import get_logger
from proctop.models import Snapshot, UsageRecord
from proctop.monitor import HostMonitor, HostSnapshot

log = get_logger(__name__)


class SortKey(Enum):
    """Sort keys for the process table."""

    CPU = "cpu"
    MEM = "mem"
    PID = "pid"
    NAME = "name"


def format_uptime(seconds: float) -> str:
    """Format an uptime as 'Nd Nh Nm'."""
    days = int(seconds // 86400)
    hours = int((seconds % 86400) // 3600)
    minutes = int((seconds % 3600) // 60)
    return f"{days}d {hours}h {minutes}m"


def _bar(percent: float, color: str, width: int = 20) -> str:
    filled = min(int(percent / (100 / width)), width)
    return f"[{color}]█[/{color}]" * filled + "[dim]░[/dim]" * (width - filled)


def top_lines(records: tuple[UsageRecord, ...], n: int) -> list[str]:
    """Render the top-N panel, padding with placeholders up to ``n`` rows."""
    lines = [
        f"{i}. {record.name} (PID: {record.pid}) - {record.cpu_percent:.1f}% CPU"
        for i, record in enumerate(records[:n], start=1)
    ]
    while len(lines) < n:
        lines.append(f"{len(lines) + 1}. No process data")
    return lines


class HeaderStats(Static):
    """Header widget showing host, CPU and memory statistics."""

    DEFAULT_CSS = """
    HeaderStats {
        height: auto;
        min-height: 5;
        padding: 1;
        background: $surface;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize HeaderStats."""
        super().__init__(*args, **kwargs)
        self._host: HostSnapshot | None = None

    def compose(self) -> ComposeResult:
        """Create the host, CPU and memory columns."""
        yield Horizontal(
            Static(self._get_sys_info(), id="sys-info"),
            Static(self._get_cpu_info(), id="cpu-info"),
            Static(self._get_mem_info(), id="mem-info"),
        )

    def update_stats(self, host: HostSnapshot) -> None:
        """Update the statistics from a host snapshot."""
        self._host = host
        try:
            self.query_one("#sys-info", Static).update(self._get_sys_info())
            self.query_one("#cpu-info", Static).update(self._get_cpu_info())
            self.query_one("#mem-info", Static).update(self._get_mem_info())
        except NoMatches:
            pass  # Not mounted yet

    def _get_sys_info(self) -> str:
        host = self._host
        if host is None:
            return "Loading host info..."
        return (
            f"Host: {host.hostname}\n"
            f"OS: {host.os_name} {host.kernel}\n"
            f"Arch: {host.arch}\n"
            f"Uptime: {format_uptime(host.uptime_seconds)}"
        )

    def _get_cpu_info(self) -> str:
        host = self._host
        if host is None or not host.cpu_percent_per_core:
            return "Loading CPU info..."
        lines = [
            f"CPU{i:<2} \\[{_bar(usage, 'green')}] {usage:5.1f}%"
            for i, usage in enumerate(host.cpu_percent_per_core)
        ]
        load = host.load_avg
        lines.append(f"Load average: {load[0]:.2f} {load[1]:.2f} {load[2]:.2f} ({host.core_count} cores)")
        return "\n".join(lines)

    def _get_mem_info(self) -> str:
        host = self._host
        if host is None or host.memory_total == 0:
            return "Loading memory info..."

        swap_percent = host.swap_percent if host.swap_total > 0 else 0.0
        gib = 1024**3
        return (
            f"Mem\\[{_bar(host.memory_percent, 'cyan')}] "
            f"{host.memory_used / gib:.1f}G/{host.memory_total / gib:.1f}G\n"
            f"Swp\\[{_bar(swap_percent, 'yellow')}] "
            f"{host.swap_used / gib:.1f}G/{host.swap_total / gib:.1f}G\n"
            f"Available: {host.memory_available / gib:.1f}G"
        )


class TopProcesses(Static):
    """Fixed-height panel with the highest ranked processes."""

    DEFAULT_CSS = """
    TopProcesses {
        height: auto;
        border: solid $warning;
        padding: 0 1;
    }
    """

    def __init__(self, rows: int = 3, **kwargs) -> None:
        """Initialize TopProcesses with a fixed number of rows."""
        super().__init__("\n".join(top_lines((), rows)), **kwargs)
        self._rows = rows

    def on_mount(self) -> None:
        """Set the panel title."""
        self.border_title = "Top Processes"

    def update_records(self, records: tuple[UsageRecord, ...]) -> None:
        """Show the first rows of a ranked record tuple."""
        self.update("\n".join(top_lines(records, self._rows)))


class ProcessTable(Container):
    """Container for the process data table."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, max_rows: int = 200, **kwargs) -> None:
        """Initialize ProcessTable."""
        super().__init__(**kwargs)
        self._max_rows = max_rows
        self._sort_key: SortKey = SortKey.CPU

    @property
    def sort_key(self) -> SortKey:
        """Get current sort key."""
        return self._sort_key

    def cycle_sort(self) -> SortKey:
        """Cycle to the next sort key and return it."""
        keys = list(SortKey)
        self._sort_key = keys[(keys.index(self._sort_key) + 1) % len(keys)]
        return self._sort_key

    def compose(self) -> ComposeResult:
        """Create the data table."""
        yield DataTable(id="process-table")

    def on_mount(self) -> None:
        """Set up the table columns."""
        table = self.query_one("#process-table", DataTable)
        table.cursor_type = "row"

        table.add_column("PID", key="pid", width=8)
        table.add_column("S", key="state", width=3)
        table.add_column("CPU%", key="cpu", width=8)
        table.add_column("MEM%", key="mem", width=8)
        table.add_column("Command", key="name")

    def update_processes(self, records: tuple[UsageRecord, ...]) -> None:
        """
        Update the process table with a snapshot's records.

        Rows are keyed by pid and updated in place with update_cell; the table
        is rebuilt only when the visible order changes.
        """
        table = self.query_one("#process-table", DataTable)
        ordered = self.sort_records(records)[: self._max_rows]
        new_keys = [str(record.pid) for record in ordered]

        if new_keys != [row_key.value for row_key in table.rows]:
            table.clear()
            for record in ordered:
                table.add_row(*self._cells(record), key=str(record.pid))
        else:
            for record in ordered:
                row_key = str(record.pid)
                for column, value in zip(("pid", "state", "cpu", "mem", "name"), self._cells(record)):
                    table.update_cell(row_key, column, value)

    def sort_records(self, records: tuple[UsageRecord, ...]) -> list[UsageRecord]:
        """Order records for display. CPU order is the snapshot's own ranking."""
        if self._sort_key is SortKey.CPU:
            return list(records)
        key_func = {
            SortKey.MEM: lambda r: (-r.memory_percent, r.pid),
            SortKey.PID: lambda r: r.pid,
            SortKey.NAME: lambda r: (r.name.lower(), r.pid),
        }
        return sorted(records, key=key_func[self._sort_key])

    @staticmethod
    def _cells(record: UsageRecord) -> tuple[str, ...]:
        return (
            str(record.pid),
            record.state,
            f"{record.cpu_percent:5.1f}",
            f"{record.memory_percent:5.1f}",
            record.name[:50],
        )


class ProctopApp(App):
    """Main proctop application."""

    TITLE = "proctop"
    SUB_TITLE = "Top processes by CPU"

    CSS = """
    Screen {
        layout: vertical;
    }

    #header-stats {
        dock: top;
        height: auto;
        min-height: 6;
    }

    Horizontal {
        height: auto;
    }

    #sys-info, #cpu-info, #mem-info {
        width: 1fr;
        padding: 0 1;
    }

    #cpu-history {
        height: 2;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("escape", "quit", "Quit"),
        ("r", "refresh", "Refresh"),
        ("f6", "sort", "Sort"),
    ]

    def __init__(
        self,
        config: Config | None = None,
        engine: SamplingEngine | None = None,
        host_monitor: HostMonitor | None = None,
    ) -> None:
        """
        Initialize the application.

        Args:
            config: Application config; defaults are used when omitted.
            engine: Sampling engine; built from the config when omitted.
            host_monitor: Host statistics collector.
        """
        super().__init__()
        self._config = config or Config()
        self._engine = engine or SamplingEngine.create(self._config)
        self._host_monitor = host_monitor or HostMonitor()
        self._drawn: Snapshot | None = None
        self._enumeration_failing = False

    @property
    def engine(self) -> SamplingEngine:
        """The sampling engine driving the dashboard."""
        return self._engine

    def compose(self) -> ComposeResult:
        """Create the main layout."""
        yield HeaderStats(id="header-stats")
        yield Sparkline([], summary_function=max, id="cpu-history")
        yield TopProcesses(rows=self._config.display.top_n, id="top-processes")
        yield ProcessTable(max_rows=self._config.display.max_rows)
        yield Footer()

    def on_mount(self) -> None:
        """Take the first sample and start the refresh and redraw timers."""
        self.refresh_data()
        self.set_interval(self._config.sampling.refresh_interval, self.refresh_data)
        self.set_interval(self._config.display.redraw_interval, self._redraw)

    def refresh_data(self) -> None:
        """Run one sampling cycle. Never raises."""
        try:
            self._engine.refresh()
        except Exception:
            # Keep serving the previous snapshot
            log.exception("refresh_failed")
        else:
            error = self._engine.last_error
            if error is not None and not self._enumeration_failing:
                self.notify(f"Process list unavailable: {error}", severity="warning")
            self._enumeration_failing = error is not None

        try:
            self._update_host(self._host_monitor.collect())
        except NoMatches:
            pass  # Widgets not mounted yet
        except Exception:
            log.exception("host_stats_failed")

    def _update_host(self, host: HostSnapshot) -> None:
        """Push host statistics to the header and the CPU sparkline."""
        self.query_one("#header-stats", HeaderStats).update_stats(host)
        history = self._host_monitor.get_cpu_history()
        self.query_one("#cpu-history", Sparkline).data = [
            sum(cores) / len(cores) for cores in history if cores
        ]

    def _redraw(self) -> None:
        """Repaint from the last published snapshot without sampling."""
        snapshot = self._engine.snapshot
        if snapshot is self._drawn:
            return
        try:
            self.query_one(TopProcesses).update_records(snapshot.records)
            self.query_one(ProcessTable).update_processes(snapshot.records)
        except NoMatches:
            return  # Screen is shutting down
        self._drawn = snapshot

    def action_refresh(self) -> None:
        """Sample immediately instead of waiting for the next tick."""
        self.refresh_data()
        self._redraw()

    def action_sort(self) -> None:
        """Cycle through sort keys."""
        process_table = self.query_one(ProcessTable)
        new_sort_key = process_table.cycle_sort()
        self._drawn = None
        self._redraw()
        self.notify(f"Sort: {new_sort_key.value.upper()}")


def run(config: Config | None = None) -> None:
    """Run the dashboard until the user quits. Logs go to the JSON log file."""
    config = config or Config.load()
    plog.configure(config)
    ProctopApp(config).run()
