"""check-config CLI command -- validate and show the effective configuration."""

import json
from pathlib import Path
from typing import Optional

import typer
from rich.table import Table

from ..config import GateConfig
from ..exceptions import ConfigurationError
from . import app
from ._common import EXIT_CONFIG_ERROR, console, err_console, resolve_config


@app.command("check-config")
def check_config(
    path: Path = typer.Argument(
        Path("."),
        help="Project root (where pyproject.toml / quality-gate.toml live)",
        exists=True,
        file_okay=False,
        dir_okay=True,
    ),
    config: Optional[Path] = typer.Option(
        None,
        "-c",
        "--config",
        help="Configuration file (TOML)",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in machine-readable JSON format",
    ),
):
    """
    Validate the configuration without running any tool.

    Merges built-in defaults, pyproject.toml, quality-gate.toml, --config
    and QUALITY_GATE_* variables, then prints the effective settings.
    Exits 3 if the configuration is invalid.

    [bold cyan]Examples:[/bold cyan]

      quality-gate check-config

      quality-gate check-config --config ci.toml --json
    """
    try:
        gate_config = resolve_config(path, config=config)
    except ConfigurationError as e:
        err_console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(EXIT_CONFIG_ERROR)

    if json_output:
        print(json.dumps(_config_to_dict(gate_config), indent=2))
        return

    _output_rich(gate_config)


def _config_to_dict(gate_config: GateConfig) -> dict:
    run = gate_config.run
    return {
        "run": {
            "parallelism": run.parallelism,
            "abort_on_first_failure": run.abort_on_first_failure,
            "retry_count": run.retry_count,
            "unknown_metric_policy": run.unknown_metric_policy,
            "apply_fixes": run.apply_fixes,
            "max_fix_passes": run.max_fix_passes,
            "waived": [d.value for d in run.waived],
            "timeout": run.timeout,
            "output_dir": run.output_dir,
        },
        "dimensions": {
            cfg.dimension.value: {
                "enabled": cfg.enabled,
                "optional": cfg.optional,
                "requires": [d.value for d in cfg.requires],
                "adapters": list(cfg.adapters),
                "fixers": list(cfg.fixers),
                "threshold": {metric: str(t) for metric, t in sorted(cfg.thresholds.items())},
                "options": {name: dict(opts) for name, opts in cfg.options.items()},
            }
            for cfg in gate_config.ordered_dimensions()
            if cfg.dimension in gate_config.dimensions
        },
    }


def _output_rich(gate_config: GateConfig) -> None:
    run = gate_config.run
    console.print("[green]Configuration is valid.[/green]")
    console.print()
    console.print(
        f"[bold]Run:[/bold] parallelism={run.parallelism}  retry_count={run.retry_count}  "
        f"abort_on_first_failure={run.abort_on_first_failure}  "
        f"unknown_metric_policy={run.unknown_metric_policy}  "
        f"apply_fixes={run.apply_fixes}  timeout={run.timeout:g}s"
    )
    console.print()

    table = Table(title="Dimensions", show_lines=False, pad_edge=True)
    table.add_column("Dimension", style="bold")
    table.add_column("Enabled", justify="center")
    table.add_column("Adapters", style="cyan")
    table.add_column("Fixers", style="magenta")
    table.add_column("Requires", style="dim")
    table.add_column("Thresholds", style="yellow")

    for cfg in gate_config.ordered_dimensions():
        if cfg.dimension not in gate_config.dimensions:
            continue
        enabled = "[green]yes[/green]" if cfg.enabled else "[dim]no[/dim]"
        if cfg.optional:
            enabled += " (optional)"
        table.add_row(
            cfg.dimension.value,
            enabled,
            ", ".join(cfg.adapters) or "-",
            ", ".join(cfg.fixers) or "-",
            ", ".join(d.value for d in cfg.requires) or "-",
            ", ".join(f"{m} {t}" for m, t in sorted(cfg.thresholds.items())) or "-",
        )

    console.print(table)
    console.print()
