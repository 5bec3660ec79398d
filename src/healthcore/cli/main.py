"""CLI entry point for healthcore-sdk.

Invoked as::

    healthcore [OPTIONS] COMMAND [ARGS]...

or, during development::

    python -m healthcore.cli.main
"""
from __future__ import annotations

import importlib
import json
import sys
from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING

import click
from rich.console import Console
from rich.table import Table

if TYPE_CHECKING:
    from healthcore.schema.config import HealthCoreConfig

console = Console()
error_console = Console(stderr=True, style="bold red")

_STATUS_COLOUR = {
    "UP": "green",
    "DEGRADED": "yellow",
    "DOWN": "red",
    "UNKNOWN": "magenta",
}


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="healthcore-sdk")
def cli() -> None:
    """Health-check orchestration: probes, circuit breakers, result cache"""


# ---------------------------------------------------------------------------
# version
# ---------------------------------------------------------------------------


@cli.command(name="version")
def version_command() -> None:
    """Show detailed version information."""
    from healthcore import __version__

    console.print(f"[bold]healthcore-sdk[/bold] v{__version__}")
    console.print(f"Python {sys.version}")


# ---------------------------------------------------------------------------
# init
# ---------------------------------------------------------------------------


@cli.command(name="init")
@click.option(
    "--directory",
    "-d",
    default=".",
    show_default=True,
    help="Directory in which to create the config file.",
)
@click.option("--force", is_flag=True, help="Overwrite an existing config file.")
def init_command(directory: str, force: bool) -> None:
    """Initialise a healthcore config file in DIRECTORY."""
    from healthcore.config.defaults import DEFAULT_CONFIG_YAML

    target_dir = Path(directory).resolve()
    config_path = target_dir / "healthcore.yaml"

    if config_path.exists() and not force:
        console.print(
            f"[yellow]Config already exists at {config_path}. Skipping.[/yellow]"
        )
        return

    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        config_path.write_text(DEFAULT_CONFIG_YAML, encoding="utf-8")
        console.print(f"[green]Created healthcore config at {config_path}[/green]")
    except OSError as exc:
        error_console.print(f"Failed to create config: {exc}")
        raise SystemExit(1) from exc


# ---------------------------------------------------------------------------
# config
# ---------------------------------------------------------------------------


@cli.command(name="config")
@click.option("--show", is_flag=True, help="Show the effective configuration.")
@click.option("--validate", is_flag=True, help="Validate the config file.")
@click.option(
    "--config",
    "-c",
    default=None,
    help="Path to a healthcore YAML or JSON config file.",
)
def config_command(show: bool, validate: bool, config: str | None) -> None:
    """Show or validate the healthcore configuration."""
    from healthcore.config.schema import validate_config
    from healthcore.schema.errors import ConfigurationError

    cfg = _load_config(config)

    if show or not validate:
        console.print_json(cfg.model_dump_json(indent=2))

    if validate:
        try:
            validate_config(cfg.model_dump())
            console.print("[green]Configuration is valid.[/green]")
        except ConfigurationError as exc:
            error_console.print(f"Validation failed: {exc}")
            raise SystemExit(1) from exc


# ---------------------------------------------------------------------------
# check
# ---------------------------------------------------------------------------


@cli.command(name="check")
@click.option(
    "--probe",
    "-p",
    "probe_refs",
    multiple=True,
    required=True,
    metavar="MODULE:ATTR",
    help="Probe instance, probe class, or factory returning probe(s). Repeatable.",
)
@click.option(
    "--config",
    "-c",
    default=None,
    help="Path to a healthcore YAML or JSON config file.",
)
@click.option("--bypass-cache", is_flag=True, help="Ignore the result cache.")
@click.option("--json", "as_json", is_flag=True, help="Print the report as JSON.")
@click.option(
    "--app-dir",
    default=".",
    show_default=True,
    help="Directory added to the import path before loading probes.",
)
def check_command(
    probe_refs: tuple[str, ...],
    config: str | None,
    bypass_cache: bool,
    as_json: bool,
    app_dir: str,
) -> None:
    """Run one health check cycle over the given probes."""
    from healthcore.orchestrator.orchestrator import HealthOrchestrator
    from healthcore.registry.registry import ProbeRegistry
    from healthcore.schema.errors import HealthCoreError
    from healthcore.schema.report import HealthReport

    cfg = _load_config(config)

    resolved_dir = str(Path(app_dir).resolve())
    if resolved_dir not in sys.path:
        sys.path.insert(0, resolved_dir)

    registry = ProbeRegistry()
    try:
        for ref in probe_refs:
            for probe in _resolve_probes(ref):
                registry.register(probe)
    except (HealthCoreError, ImportError, AttributeError, TypeError) as exc:
        error_console.print(f"Could not load probes: {exc}")
        raise SystemExit(1) from exc

    with HealthOrchestrator.from_config(registry, cfg) as orchestrator:
        report = HealthReport.from_results(
            orchestrator.execute_all(bypass_cache=bypass_cache)
        )

    if as_json:
        console.print_json(json.dumps(report.to_dict(), default=str))
    else:
        colour = _STATUS_COLOUR.get(report.status.code, "white")
        console.print(f"Overall status: [{colour}]{report.status.code}[/{colour}]")

        table = Table(header_style="bold cyan")
        table.add_column("Component")
        table.add_column("Type", style="dim")
        table.add_column("Status")
        table.add_column("Latency (ms)", justify="right")
        table.add_column("Message")
        for result in report.results:
            c = _STATUS_COLOUR.get(result.status.code, "white")
            table.add_row(
                result.component_name,
                result.component_type,
                f"[{c}]{result.status.code}[/{c}]",
                str(result.latency_ms),
                result.error_message or "",
            )
        console.print(table)

    if report.down_count:
        raise SystemExit(1)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_config(path: str | None) -> HealthCoreConfig:
    from healthcore.config.loader import ConfigLoader
    from healthcore.schema.errors import ConfigurationError

    loader = ConfigLoader()
    try:
        return loader.load_path(path) if path else loader.load_auto()
    except ConfigurationError as exc:
        error_console.print(f"Could not load config: {exc}")
        raise SystemExit(1) from exc


def _resolve_probes(ref: str) -> list[object]:
    """Import ``module:attr`` and turn it into a list of probes.

    *attr* may be a probe instance, a probe class (instantiated without
    arguments), or a zero-argument callable returning a probe or an
    iterable of probes.
    """
    from healthcore.probes.base import Probe
    from healthcore.schema.errors import InvalidProbeError

    module_name, sep, attr = ref.partition(":")
    if not sep or not module_name or not attr:
        raise InvalidProbeError(
            f"Probe reference must look like 'module:attr'; got {ref!r}",
            context={"reference": ref},
        )
    target: object = importlib.import_module(module_name)
    for part in attr.split("."):
        target = getattr(target, part)

    if isinstance(target, Probe):
        return [target]
    if isinstance(target, type) and issubclass(target, Probe):
        return [target()]
    if callable(target):
        produced = target()
        if isinstance(produced, Probe):
            return [produced]
        if isinstance(produced, Iterable):
            return list(produced)
    raise InvalidProbeError(
        f"{ref!r} is not a probe, a probe class, or a probe factory",
        context={"reference": ref},
    )


if __name__ == "__main__":
    cli()
