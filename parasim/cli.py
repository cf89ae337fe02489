"""Command-line entry point for parasim."""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

import typer
from loguru import logger

from parasim.config import DEFAULT_CONFIG_FILE, ConfigError, load_config
from parasim.orchestrator.errors import BuildFailure, InvalidScopeError
from parasim.orchestrator.runner import ParallelTestRun
from parasim.orchestrator.scope import TestScope
from parasim.orchestrator.types import ExecutionOutcome
from parasim.simulator.errors import SimulatorToolError
from parasim.simulator.simctl import SimctlDeviceManager

app = typer.Typer(
    help="Run a test suite in parallel on ephemeral simulator devices.",
    no_args_is_help=True,
)


def configure_logging(verbose: bool) -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level="DEBUG" if verbose else "INFO",
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <7}</level> | {message}",
    )


def _report_unit(outcome: ExecutionOutcome) -> None:
    mark = "PASS" if outcome.success else "FAIL"
    typer.echo(
        f"[{mark}] {outcome.device_name}: exit {outcome.exit_status} "
        f"({outcome.duration_s:.1f}s)"
    )


@app.command()
def run(
    selectors: Optional[List[str]] = typer.Argument(
        None,
        help="Test scope: target, target:class or target:class/method, "
        "trailing * allowed, comma-separated for several.",
    ),
    config_path: Path = typer.Option(
        Path(DEFAULT_CONFIG_FILE), "--config", "-c", help="Run configuration file."
    ),
    output_dir: Optional[Path] = typer.Option(
        None, "--output-dir", "-o", help="Override the per-device artifact directory."
    ),
    summary_json: Optional[Path] = typer.Option(
        None, "--summary-json", help="Write the aggregate result as JSON."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
) -> None:
    """Provision every configured device, build once, and run the tests in parallel."""
    configure_logging(verbose)

    try:
        config = load_config(config_path)
        scope = TestScope.from_selectors(selectors)
    except (ConfigError, InvalidScopeError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=2)

    if output_dir is not None:
        config = config.model_copy(update={"output_dir": output_dir})

    try:
        result = asyncio.run(
            ParallelTestRun(config).run(scope, on_unit_complete=_report_unit)
        )
    except BuildFailure as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    typer.echo(result.summary())
    for path in result.artifacts():
        typer.echo(f"  {path}")

    if summary_json is not None:
        summary_json.parent.mkdir(parents=True, exist_ok=True)
        summary_json.write_text(json.dumps(result.to_dict(), indent=2))

    raise typer.Exit(code=result.exit_status)


@app.command()
def devices(
    xcrun_path: str = typer.Option("xcrun", help="Path to xcrun."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
) -> None:
    """List the simulator devices known to simctl."""
    configure_logging(verbose)

    try:
        listed = asyncio.run(SimctlDeviceManager(xcrun_path=xcrun_path).list())
    except SimulatorToolError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    for device in listed:
        typer.echo(
            f"{device.device_id}  {device.state.value:<13}  {device.name}  "
            f"({device.spec.runtime})"
        )


def main() -> None:
    app()


if __name__ == "__main__":
    main()
