"""Trend CLI command -- show how a gate metric changes over saved runs."""

import json
from pathlib import Path
from typing import Optional

import typer
from rich.table import Table

from ..history import history_path, load_history, metric_trend
from ..models import Dimension
from . import app
from ._common import console


def _sparkline(values: list) -> str:
    """Generate an ASCII sparkline from a list of numeric values."""
    if not values:
        return ""
    blocks = " ▁▂▃▄▅▆▇█"
    mn, mx = min(values), max(values)
    if mx == mn:
        return blocks[4] * len(values)
    return "".join(blocks[min(8, int((v - mn) / (mx - mn) * 8))] for v in values)


def _parse_dimension(value: str) -> Dimension:
    try:
        return Dimension.parse(value)
    except ValueError:
        choices = ", ".join(d.value for d in Dimension)
        raise typer.BadParameter(f"expected one of {choices}") from None


@app.command()
def trend(
    dimension: str = typer.Argument(..., help="Dimension, e.g. coverage or security"),
    metric: str = typer.Argument(..., help="Metric, e.g. percent or high_count"),
    path: Path = typer.Argument(
        Path("."),
        help="Project root (where .quality-gate/ lives)",
        exists=True,
        file_okay=False,
        dir_okay=True,
    ),
    last_n: int = typer.Option(
        20,
        "--last",
        "-n",
        help="Number of recent runs to include",
        min=2,
        max=500,
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in machine-readable JSON format",
    ),
):
    """
    Show how a gate metric has changed over saved runs.

    Reads .quality-gate/history.jsonl (written by [bold]run --save[/bold])
    and shows a sparkline, the per-run deltas and the least-squares slope.

    [bold cyan]Examples:[/bold cyan]

      quality-gate trend coverage percent

      quality-gate trend security high_count --last 10

      quality-gate trend complexity average_complexity --json
    """
    dim = _parse_dimension(dimension)
    resolved = Path(path).resolve()

    if not history_path(resolved).exists():
        console.print(
            "[yellow]No history found.[/yellow] "
            "Run [bold]quality-gate run --save[/bold] first to record runs."
        )
        raise typer.Exit(0)

    records = load_history(resolved, limit=last_n)
    result = metric_trend(records, dim, metric)

    if not result.points:
        console.print(f"[yellow]No trend data for[/yellow] {dim.value} / {metric}")
        raise typer.Exit(0)

    # ── JSON output ───────────────────────────────────────────────────
    if json_output:
        print(
            json.dumps(
                {
                    "dimension": dim.value,
                    "metric": metric,
                    "slope": result.slope,
                    "points": [
                        {"run_id": p.run_id, "created_at": p.created_at, "value": p.value}
                        for p in result.points
                    ],
                },
                indent=2,
            )
        )
        return

    # ── Rich output ───────────────────────────────────────────────────
    console.print()
    console.print(
        f"[bold cyan]Trend:[/bold cyan] {dim.value}.{metric} "
        f"(last {len(result.points)} runs)"
    )
    console.print(f"  {_sparkline(result.values)}  slope {result.slope:+.3f}/run")
    console.print()

    table = Table(show_header=True, show_lines=False, pad_edge=True)
    table.add_column("Run", style="dim", max_width=12)
    table.add_column("Date")
    table.add_column("Value", justify="right")
    table.add_column("Delta", justify="right")

    prev: Optional[float] = None
    for p in result.points:
        delta_str = ""
        if prev is not None:
            d = p.value - prev
            if abs(d) > 0.001:
                delta_str = f"{d:+.2f}"
        table.add_row(p.run_id[:12], p.created_at[:10], f"{p.value:.2f}", delta_str)
        prev = p.value

    console.print(table)
    console.print()
