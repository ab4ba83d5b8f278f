"""Run CLI command -- execute the gate and report the verdict."""

import json
from pathlib import Path
from typing import Optional

import typer
from rich.markup import escape

from ..exceptions import ConfigurationError, QualityGateError, RunCancelledError
from ..formatters import FORMAT_NAMES, get_formatter, result_to_dict
from ..history import append_run
from ..logging_config import setup_logging
from ..models import Dimension, DimensionState
from ..orchestrator import Orchestrator
from . import app
from ._common import (
    EXIT_CONFIG_ERROR,
    EXIT_FAILED,
    EXIT_INTERRUPTED,
    err_console,
    exit_code_for,
    resolve_config,
)

_STATE_STYLE = {
    DimensionState.RUNNING: "cyan",
    DimensionState.PASSED: "green",
    DimensionState.FAILED: "red",
    DimensionState.SKIPPED: "dim",
}


def _show_transition(dimension: Dimension, state: DimensionState, reason: Optional[str]) -> None:
    style = _STATE_STYLE.get(state, "white")
    suffix = f" [dim]({escape(reason)})[/dim]" if reason and state != DimensionState.FAILED else ""
    err_console.print(f"  {dimension.value:<14} [{style}]{state.value}[/{style}]{suffix}")


def _check_format(value: str) -> str:
    fmt = value.lower()
    if fmt not in FORMAT_NAMES:
        raise typer.BadParameter(f"{value!r} is not one of {', '.join(FORMAT_NAMES)}")
    return fmt


@app.command()
def run(
    path: Path = typer.Argument(
        Path("."),
        help="Project root to check (default: current directory)",
    ),
    config: Optional[Path] = typer.Option(
        None,
        "-c",
        "--config",
        help="Configuration file (TOML)",
        dir_okay=False,
    ),
    fmt: str = typer.Option(
        "rich",
        "--format",
        "-f",
        help="Output format: rich, json, github or quiet",
        callback=_check_format,
    ),
    out: Optional[Path] = typer.Option(
        None,
        "--out",
        "-o",
        help="Also write the JSON report to this file",
        dir_okay=False,
    ),
    parallelism: Optional[int] = typer.Option(
        None,
        "-j",
        "--parallelism",
        help="Maximum adapters running at once",
        min=1,
        max=64,
    ),
    retry_count: Optional[int] = typer.Option(
        None,
        "--retry-count",
        help="Retries for transient tool failures",
        min=0,
        max=10,
    ),
    abort: Optional[bool] = typer.Option(
        None,
        "--abort-on-failure/--no-abort-on-failure",
        help="Stop at the first failed dimension",
    ),
    fix: Optional[bool] = typer.Option(
        None,
        "--fix/--no-fix",
        help="Run fixers (ruff --fix, pyupgrade, ...) before analysis",
    ),
    max_fix_passes: Optional[int] = typer.Option(
        None,
        "--max-fix-passes",
        help="Upper bound on fix-and-reverify passes",
        min=1,
        max=10,
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Per-adapter timeout in seconds",
        min=1,
    ),
    save: bool = typer.Option(
        False,
        "--save",
        help="Append this run to .quality-gate/history.jsonl for trend tracking",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show debug logging (tool commands, retries)",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Only log errors",
    ),
):
    """
    Run the quality gate on a project.

    Runs every enabled dimension's analyzers in priority order (security,
    coverage, code health, complexity, modernization), aggregates their
    findings and compares the summary metrics to the configured thresholds.

    Exit status: 0 gate passed, 1 gate failed, 2 run aborted,
    3 configuration error, 130 interrupted.

    [bold cyan]Examples:[/bold cyan]

      quality-gate run

      quality-gate run src/ --format json --out report.json

      quality-gate run --fix --max-fix-passes 2

      quality-gate run --format github --abort-on-failure
    """
    logger = setup_logging(verbose=verbose, quiet=quiet)

    try:
        gate_config = resolve_config(
            path,
            config=config,
            parallelism=parallelism,
            retry_count=retry_count,
            abort_on_first_failure=abort,
            apply_fixes=fix,
            max_fix_passes=max_fix_passes,
            timeout=timeout,
        )
        formatter = get_formatter(fmt)

        show_progress = fmt == "rich" and not quiet
        orchestrator = Orchestrator(
            gate_config,
            on_transition=_show_transition if show_progress else None,
        )
        result = orchestrator.run(path)

        formatter.render(result.report, result.verdict, result.state)

        if out is not None:
            out.parent.mkdir(parents=True, exist_ok=True)
            out.write_text(
                json.dumps(result_to_dict(result.report, result.verdict, result.state), indent=2) + "\n",
                encoding="utf-8",
            )
            logger.info("Report written to %s", out)

        if save:
            history_file = append_run(path, result.report, result.verdict, result.state)
            logger.info("Run saved to %s", history_file)

        raise typer.Exit(exit_code_for(result.state))

    except typer.Exit:
        raise

    except ConfigurationError as e:
        logger.error(f"{e.__class__.__name__}: {e}")
        err_console.print(f"[red]Configuration error:[/red] {escape(str(e))}")
        raise typer.Exit(EXIT_CONFIG_ERROR)

    except (KeyboardInterrupt, RunCancelledError):
        logger.info("Run interrupted by user")
        err_console.print("\n[yellow]Run interrupted[/yellow]")
        raise typer.Exit(EXIT_INTERRUPTED)

    except QualityGateError as e:
        logger.error(f"{e.__class__.__name__}: {e}")
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(EXIT_FAILED)

    except Exception as e:
        logger.exception("Unexpected error during the gate run")
        err_console.print(f"[red]Unexpected error:[/red] {escape(str(e))}")
        if verbose:
            err_console.print_exception()
        raise typer.Exit(EXIT_FAILED)
