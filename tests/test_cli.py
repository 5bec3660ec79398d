"""Tests for the healthcore command-line interface."""
from __future__ import annotations

import json
import sys
import textwrap
from collections.abc import Iterator
from pathlib import Path

import pytest
from click.testing import CliRunner

from healthcore import __version__
from healthcore.cli.main import cli

_PROBE_MODULE = "healthcore_cli_test_probes"

_PROBE_SOURCE = textwrap.dedent(
    """
    from healthcore import CallableProbe, Probe, ProbeResult


    db = CallableProbe("db", "database", lambda: True)


    def _broken():
        raise RuntimeError("connection refused")


    api = CallableProbe("api", "http", _broken)


    class QueueProbe(Probe):
        def component_name(self):
            return "queue"

        def component_type(self):
            return "broker"

        def execute(self):
            return ProbeResult.up("queue", "broker")


    def infrastructure():
        return [
            CallableProbe("cache", "redis", lambda: True),
            CallableProbe("search", "elastic", lambda: True),
        ]


    not_a_probe = 42
    """
)


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def workdir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    (tmp_path / f"{_PROBE_MODULE}.py").write_text(_PROBE_SOURCE, encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(sys, "path", list(sys.path))
    yield tmp_path
    sys.modules.pop(_PROBE_MODULE, None)


def _check(runner: CliRunner, workdir: Path, *args: str):  # noqa: ANN202
    return runner.invoke(cli, ["check", "--app-dir", str(workdir), *args])


# ---------------------------------------------------------------------------
# version / init / config
# ---------------------------------------------------------------------------

class TestVersion:
    def test_version_command(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["version"])
        assert result.exit_code == 0
        assert __version__ in result.output


class TestInit:
    def test_creates_config(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(cli, ["init", "--directory", str(tmp_path)])
        assert result.exit_code == 0
        assert "Created healthcore config" in result.output
        assert (tmp_path / "healthcore.yaml").exists()

    def test_skips_existing_config(self, runner: CliRunner, tmp_path: Path) -> None:
        (tmp_path / "healthcore.yaml").write_text("cache: {}\n", encoding="utf-8")
        result = runner.invoke(cli, ["init", "-d", str(tmp_path)])
        assert result.exit_code == 0
        assert "Skipping" in result.output
        assert (tmp_path / "healthcore.yaml").read_text(encoding="utf-8") == "cache: {}\n"

    def test_force_overwrites(self, runner: CliRunner, tmp_path: Path) -> None:
        (tmp_path / "healthcore.yaml").write_text("cache: {}\n", encoding="utf-8")
        result = runner.invoke(cli, ["init", "-d", str(tmp_path), "--force"])
        assert result.exit_code == 0
        assert "circuit_breaker" in (tmp_path / "healthcore.yaml").read_text(encoding="utf-8")


class TestConfig:
    def test_show_prints_effective_config(self, runner: CliRunner, workdir: Path) -> None:
        config_file = workdir / "custom.yaml"
        config_file.write_text("cache:\n  error_ttl_seconds: 5\n", encoding="utf-8")
        result = runner.invoke(cli, ["config", "--show", "-c", str(config_file)])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["cache"]["error_ttl_seconds"] == 5.0

    def test_validate(self, runner: CliRunner, workdir: Path) -> None:
        result = runner.invoke(cli, ["config", "--validate"])
        assert result.exit_code == 0
        assert "Configuration is valid." in result.output

    def test_invalid_config_file(self, runner: CliRunner, workdir: Path) -> None:
        config_file = workdir / "bad.yaml"
        config_file.write_text(
            "circuit_breaker:\n  failure_rate_threshold: 3\n", encoding="utf-8"
        )
        result = runner.invoke(cli, ["config", "--validate", "-c", str(config_file)])
        assert result.exit_code == 1


# ---------------------------------------------------------------------------
# check
# ---------------------------------------------------------------------------

class TestCheck:
    def test_healthy_instance(self, runner: CliRunner, workdir: Path) -> None:
        result = _check(runner, workdir, "-p", f"{_PROBE_MODULE}:db")
        assert result.exit_code == 0
        assert "Overall status: UP" in result.output
        assert "db" in result.output

    def test_json_output_with_class_and_factory(
        self, runner: CliRunner, workdir: Path
    ) -> None:
        result = _check(
            runner,
            workdir,
            "-p",
            f"{_PROBE_MODULE}:QueueProbe",
            "-p",
            f"{_PROBE_MODULE}:infrastructure",
            "--json",
        )
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["status"] == "UP"
        assert [c["componentName"] for c in data["components"]] == [
            "queue",
            "cache",
            "search",
        ]
        assert data["summary"]["total"] == 3

    def test_failing_probe_exits_non_zero(self, runner: CliRunner, workdir: Path) -> None:
        result = _check(
            runner, workdir, "-p", f"{_PROBE_MODULE}:db", "-p", f"{_PROBE_MODULE}:api"
        )
        assert result.exit_code == 1
        assert "DOWN" in result.output

    def test_bypass_cache_flag(self, runner: CliRunner, workdir: Path) -> None:
        result = _check(runner, workdir, "-p", f"{_PROBE_MODULE}:db", "--bypass-cache")
        assert result.exit_code == 0

    @pytest.mark.parametrize(
        "ref",
        [
            "no_colon",
            f"{_PROBE_MODULE}:missing",
            f"{_PROBE_MODULE}:not_a_probe",
            "healthcore_no_such_module:probe",
        ],
    )
    def test_bad_probe_reference(self, runner: CliRunner, workdir: Path, ref: str) -> None:
        result = _check(runner, workdir, "-p", ref)
        assert result.exit_code == 1
        assert "Could not load probes" in result.output

    def test_probe_option_is_required(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["check"])
        assert result.exit_code == 2
