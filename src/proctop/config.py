"""Configuration system for proctop."""

from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from pathlib import Path

import tomlkit

MIN_REFRESH_INTERVAL = 0.1  # Seconds
MIN_REDRAW_INTERVAL = 0.02  # Seconds
SOURCES = ("auto", "procfs", "psutil")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass
class SamplingConfig:
    """Sampling engine configuration."""

    refresh_interval: float = 1.0  # Seconds between refresh cycles
    source: str = "auto"  # auto, procfs or psutil
    ceiling: float = 0.0  # Max CPU percent reported; 0 means 100 * logical cores

    def __post_init__(self) -> None:
        if self.source not in SOURCES:
            raise ValueError(f"Unknown source: {self.source!r}. Valid sources: {list(SOURCES)}")
        if self.ceiling < 0:
            raise ValueError(f"ceiling must not be negative, got {self.ceiling}")
        self.refresh_interval = max(MIN_REFRESH_INTERVAL, float(self.refresh_interval))


@dataclass
class DisplayConfig:
    """Dashboard configuration."""

    redraw_interval: float = 0.1  # Seconds between redraws from the last snapshot
    top_n: int = 3  # Rows in the "Top Processes" panel
    max_rows: int = 200  # Rows in the full process table

    def __post_init__(self) -> None:
        self.redraw_interval = max(MIN_REDRAW_INTERVAL, float(self.redraw_interval))
        self.top_n = max(0, int(self.top_n))
        self.max_rows = max(0, int(self.max_rows))


@dataclass
class LoggingConfig:
    """Log file configuration."""

    level: str = "INFO"
    max_bytes: int = 5 * 1024 * 1024  # Max log file size (5MB)
    backup_count: int = 3  # Number of rotated log files to keep

    def __post_init__(self) -> None:
        self.level = str(self.level).upper()
        if self.level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {self.level!r}. Valid levels: {list(LOG_LEVELS)}")


def _section_to_table(obj: object) -> tomlkit.items.Table:
    """Convert a config section to a tomlkit Table."""
    table = tomlkit.table()
    for f in fields(obj):  # type: ignore[arg-type]
        table.add(f.name, getattr(obj, f.name))
    return table


def _load_section(cls: type, name: str, data: object):
    """Build a config section from TOML data, using dataclass defaults for missing keys."""
    if not isinstance(data, Mapping):
        raise ValueError(f"[{name}] must be a table")
    names = {f.name for f in fields(cls)}
    known = {key: _unwrap(value) for key, value in data.items() if key in names}
    return cls(**known)


def _unwrap(value):
    # tomlkit items carry formatting; hand plain values to the dataclasses
    return value.unwrap() if hasattr(value, "unwrap") else value


@dataclass
class Config:
    """Main configuration container."""

    sampling: SamplingConfig = field(default_factory=SamplingConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def config_dir(self) -> Path:
        """Configuration directory."""
        return Path.home() / ".config" / "proctop"

    @property
    def config_path(self) -> Path:
        """Path to config file."""
        return self.config_dir / "config.toml"

    @property
    def state_dir(self) -> Path:
        """State directory for logs."""
        return Path.home() / ".local" / "state" / "proctop"

    @property
    def log_path(self) -> Path:
        """JSON log file path."""
        return self.state_dir / "proctop.log"

    def to_document(self) -> tomlkit.TOMLDocument:
        """Render the config as a TOML document."""
        doc = tomlkit.document()
        for name in ("sampling", "display", "logging"):
            doc.add(name, _section_to_table(getattr(self, name)))
            doc.add(tomlkit.nl())
        return doc

    def save(self, path: Path | None = None) -> Path:
        """Save config to TOML file and return the path written."""
        path = path or self.config_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(tomlkit.dumps(self.to_document()))
        return path

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values.

        Raises:
            ValueError: If the file cannot be parsed or holds invalid values.
        """
        defaults = cls()
        path = path or defaults.config_path
        if not path.exists():
            return defaults

        try:
            with open(path) as f:
                data = tomlkit.load(f)
        except tomlkit.exceptions.TOMLKitError as e:
            raise ValueError(f"Failed to parse config file {path}: {e}") from e

        try:
            return cls(
                sampling=_load_section(SamplingConfig, "sampling", data.get("sampling", {})),
                display=_load_section(DisplayConfig, "display", data.get("display", {})),
                logging=_load_section(LoggingConfig, "logging", data.get("logging", {})),
            )
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid config file {path}: {e}") from e
