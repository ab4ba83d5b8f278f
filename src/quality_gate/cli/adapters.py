"""adapters CLI command -- list known tool adapters and whether they are installed."""

import json
import shutil

import typer
from rich.table import Table

from ..adapters import ADAPTERS
from . import app
from ._common import console


@app.command()
def adapters(
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in machine-readable JSON format",
    ),
):
    """
    List the tool adapters and the executables they need.

    [bold cyan]Examples:[/bold cyan]

      quality-gate adapters

      quality-gate adapters --json
    """
    rows = []
    for name in sorted(ADAPTERS):
        cls = ADAPTERS[name]
        rows.append(
            {
                "name": name,
                "kind": "fixer" if cls.mutates_sources else "analysis",
                "executable": cls.executable,
                "dimensions": [d.value for d in cls.supported_dimensions],
                "path": shutil.which(cls.executable),
            }
        )

    if json_output:
        print(json.dumps(rows, indent=2))
        return

    table = Table(title="Tool Adapters", show_lines=False, pad_edge=True)
    table.add_column("Adapter", style="bold")
    table.add_column("Kind")
    table.add_column("Dimensions", style="cyan")
    table.add_column("Executable")
    table.add_column("Installed")

    for row in rows:
        installed = f"[green]{row['path']}[/green]" if row["path"] else "[red]not found[/red]"
        table.add_row(
            row["name"],
            row["kind"],
            ", ".join(row["dimensions"]),
            row["executable"],
            installed,
        )

    console.print()
    console.print(table)
    console.print()
