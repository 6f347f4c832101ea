"""CLI commands for proctop."""

import dataclasses
from pathlib import Path

import click

from proctop.config import SOURCES, Config


def _apply_overrides(
    config: Config,
    interval: float | None = None,
    top_n: int | None = None,
    source: str | None = None,
) -> Config:
    """Return a copy of ``config`` with the given command-line values applied."""
    sampling = config.sampling
    if interval is not None:
        sampling = dataclasses.replace(sampling, refresh_interval=interval)
    if source is not None:
        sampling = dataclasses.replace(sampling, source=source)
    display = config.display
    if top_n is not None:
        display = dataclasses.replace(display, top_n=top_n)
    return dataclasses.replace(config, sampling=sampling, display=display)


@click.group()
@click.version_option(package_name="proctop")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file (default: ~/.config/proctop/config.toml)",
)
@click.pass_context
def main(ctx: click.Context, config_path: Path | None) -> None:
    """Live terminal dashboard of processes ranked by CPU usage."""
    ctx.ensure_object(dict)
    try:
        ctx.obj["config"] = Config.load(config_path)
    except ValueError as e:
        raise click.ClickException(str(e)) from e
    ctx.obj["config_path"] = config_path


@main.command()
@click.option("--interval", type=float, default=None, help="Seconds between refreshes")
@click.option("--top", "top_n", type=click.IntRange(min=0), default=None, help="Rows in the top panel")
@click.option("--source", type=click.Choice(SOURCES), default=None, help="Process counter source")
@click.pass_context
def tui(ctx: click.Context, interval: float | None, top_n: int | None, source: str | None) -> None:
    """Launch the interactive dashboard."""
    from proctop.app import run

    run(_apply_overrides(ctx.obj["config"], interval=interval, top_n=top_n, source=source))


@main.command()
@click.option("-n", "--limit", type=click.IntRange(min=0), default=10, help="Number of processes to show")
@click.option(
    "--interval",
    type=click.FloatRange(min=0.0),
    default=1.0,
    help="Seconds between the two samples",
)
@click.option("--source", type=click.Choice(SOURCES), default=None, help="Process counter source")
@click.pass_context
def top(ctx: click.Context, limit: int, interval: float, source: str | None) -> None:
    """Sample twice and print the busiest processes."""
    import time

    from rich.console import Console
    from rich.table import Table

    from proctop import logging as plog
    from proctop.engine import SamplingEngine

    config = _apply_overrides(ctx.obj["config"], source=source)
    plog.configure(config)
    engine = SamplingEngine.create(config)

    engine.refresh()
    time.sleep(interval)
    snapshot = engine.refresh()

    if engine.last_error is not None:
        plog.error(f"Process list unavailable: {engine.last_error}")
        ctx.exit(1)

    table = Table(title=f"{snapshot.process_count} processes", title_justify="left")
    table.add_column("#", justify="right", style="dim")
    table.add_column("PID", justify="right")
    table.add_column("S")
    table.add_column("CPU%", justify="right")
    table.add_column("MEM%", justify="right")
    table.add_column("Command")
    for i, record in enumerate(snapshot.top(limit), start=1):
        table.add_row(
            str(i),
            str(record.pid),
            record.state,
            f"{record.cpu_percent:.1f}",
            f"{record.memory_percent:.1f}",
            record.name,
        )
    Console().print(table)


@main.group("config")
def config_group() -> None:
    """Manage the config file."""


@config_group.command("init")
@click.option("--force", is_flag=True, help="Overwrite an existing config file")
@click.pass_context
def config_init(ctx: click.Context, force: bool) -> None:
    """Write the default config file."""
    from proctop import logging as plog

    config = Config()
    path = ctx.obj["config_path"] or config.config_path
    if path.exists() and not force:
        plog.warn(f"Config already exists at [cyan]{path}[/] (use --force to overwrite)")
        ctx.exit(1)
    config.save(path)
    plog.info(f"Created config at [cyan]{path}[/]")


@config_group.command("show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Print the effective configuration."""
    import tomlkit

    click.echo(tomlkit.dumps(ctx.obj["config"].to_document()), nl=False)
