"""Tests for CLI commands."""

from unittest.mock import patch

import pytest
from click.testing import CliRunner

from proctop.cli import main
from proctop.config import Config
from proctop.engine import SamplingEngine
from proctop.estimator import UsageEstimator


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def fake_engine(source, clock) -> SamplingEngine:
    return SamplingEngine(source, UsageEstimator(tick_rate=100, ceiling=400.0), clock=clock)


class TestTopCommand:
    """Tests for the top command."""

    def test_prints_ranked_processes(self, runner, home, restore_logging, fake_engine, source, clock):
        source.put(10, cpu_ticks=0, name="idle")
        source.put(20, cpu_ticks=0, name="busy")

        def advance(seconds):
            clock.advance(1.0)
            source.put(20, cpu_ticks=90, name="busy")

        with (
            patch.object(SamplingEngine, "create", return_value=fake_engine),
            patch("time.sleep", side_effect=advance),
        ):
            result = runner.invoke(main, ["top", "-n", "5"])

        assert result.exit_code == 0, result.output
        assert "2 processes" in result.output
        assert result.output.index("busy") < result.output.index("idle")
        assert "90.0" in result.output

    def test_limit(self, runner, home, restore_logging, fake_engine, source):
        for pid in range(1, 6):
            source.put(pid, cpu_ticks=0, name=f"proc{pid}")

        with patch.object(SamplingEngine, "create", return_value=fake_engine):
            result = runner.invoke(main, ["top", "-n", "2", "--interval", "0"])

        assert result.exit_code == 0, result.output
        assert "proc1" in result.output
        assert "proc2" in result.output
        assert "proc3" not in result.output

    def test_enumeration_failure(self, runner, home, restore_logging, fake_engine, source):
        source.fail_enumeration = True

        with patch.object(SamplingEngine, "create", return_value=fake_engine):
            result = runner.invoke(main, ["top", "--interval", "0"])

        assert result.exit_code == 1
        assert "Process list unavailable" in result.output

    def test_source_override(self, runner, home, restore_logging, fake_engine):
        with patch.object(SamplingEngine, "create", return_value=fake_engine) as mock_create:
            runner.invoke(main, ["top", "--interval", "0", "--source", "psutil"])

        config = mock_create.call_args.args[0]
        assert config.sampling.source == "psutil"

    def test_invalid_source(self, runner, home):
        result = runner.invoke(main, ["top", "--source", "kvm"])
        assert result.exit_code != 0


class TestTuiCommand:
    """Tests for the tui command."""

    def test_overrides_reach_app(self, runner, home):
        with patch("proctop.app.run") as mock_run:
            result = runner.invoke(main, ["tui", "--interval", "2", "--top", "5", "--source", "procfs"])

        assert result.exit_code == 0, result.output
        config = mock_run.call_args.args[0]
        assert config.sampling.refresh_interval == 2.0
        assert config.sampling.source == "procfs"
        assert config.display.top_n == 5

    def test_defaults_from_config_file(self, runner, home, tmp_path):
        path = tmp_path / "custom.toml"
        path.write_text("[display]\ntop_n = 9\n")

        with patch("proctop.app.run") as mock_run:
            result = runner.invoke(main, ["--config", str(path), "tui"])

        assert result.exit_code == 0, result.output
        assert mock_run.call_args.args[0].display.top_n == 9


class TestConfigCommands:
    """Tests for the config command group."""

    def test_init_writes_default(self, runner, home):
        result = runner.invoke(main, ["config", "init"])

        assert result.exit_code == 0, result.output
        assert Config.load(Config().config_path) == Config()
        assert "Created config" in result.output

    def test_init_refuses_overwrite(self, runner, home):
        runner.invoke(main, ["config", "init"])
        result = runner.invoke(main, ["config", "init"])

        assert result.exit_code == 1
        assert "already exists" in result.output

    def test_init_force(self, runner, home, tmp_path):
        path = tmp_path / "c.toml"
        path.write_text("[display]\ntop_n = 9\n")

        result = runner.invoke(main, ["--config", str(path), "config", "init", "--force"])

        assert result.exit_code == 0, result.output
        assert Config.load(path).display.top_n == 3

    def test_show(self, runner, home):
        result = runner.invoke(main, ["config", "show"])

        assert result.exit_code == 0
        assert "[sampling]" in result.output
        assert "refresh_interval = 1.0" in result.output

    def test_invalid_config_file(self, runner, home, tmp_path):
        path = tmp_path / "bad.toml"
        path.write_text("[sampling\n")

        result = runner.invoke(main, ["--config", str(path), "config", "show"])

        assert result.exit_code == 1
        assert "Failed to parse" in result.output

    def test_section_not_a_table(self, runner, home, tmp_path):
        path = tmp_path / "bad.toml"
        path.write_text("sampling = 3\n")

        result = runner.invoke(main, ["--config", str(path), "config", "show"])

        assert result.exit_code == 1
        assert "[sampling] must be a table" in result.output
        assert "Traceback" not in result.output
