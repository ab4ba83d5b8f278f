"""Rich terminal formatter for gate results."""

import io
from typing import List, Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ..models import DimensionState, Finding, Report, RunState, Severity, Verdict
from .base import BaseFormatter, resolve_state

console = Console(stderr=True)

# Findings shown in the detail table; the JSON output always has all of them
MAX_FINDINGS = 50


def _severity_label(severity: Severity) -> str:
    if severity == Severity.CRITICAL:
        return "[red bold]critical[/red bold]"
    elif severity == Severity.HIGH:
        return "[red]high[/red]"
    elif severity == Severity.MEDIUM:
        return "[yellow]medium[/yellow]"
    else:
        return "[dim]low[/dim]"


def _state_label(state: DimensionState) -> str:
    return {
        DimensionState.PASSED: "[green]PASSED[/green]",
        DimensionState.FAILED: "[red]FAILED[/red]",
        DimensionState.SKIPPED: "[dim]SKIPPED[/dim]",
    }.get(state, state.value)


def _run_label(state: RunState) -> str:
    return {
        RunState.GATE_PASSED: "[green bold]GATE PASSED[/green bold]",
        RunState.GATE_FAILED: "[red bold]GATE FAILED[/red bold]",
        RunState.ABORTED: "[red bold]ABORTED[/red bold]",
    }.get(state, state.value)


def _metric_summary(values: dict) -> str:
    parts = []
    for name, value in values.items():
        if name.endswith("_count") and not value:
            continue
        if isinstance(value, float):
            parts.append(f"{name}={value:.2f}")
        else:
            parts.append(f"{name}={value}")
    return ", ".join(parts)


class RichFormatter(BaseFormatter):
    """Rich terminal output: verdict panel, dimension table, findings."""

    def __init__(self, out: Optional[Console] = None, max_findings: int = MAX_FINDINGS):
        self.console = out or console
        self.max_findings = max_findings

    def render(self, report: Report, verdict: Verdict, state: Optional[RunState] = None) -> None:
        self._print(self.console, report, verdict, resolve_state(verdict, state))

    def format(self, report: Report, verdict: Verdict, state: Optional[RunState] = None) -> str:
        recorder = Console(file=io.StringIO(), record=True, width=120)
        self._print(recorder, report, verdict, resolve_state(verdict, state))
        return recorder.export_text()

    # -- private helpers --

    def _print(self, out: Console, report: Report, verdict: Verdict, state: RunState) -> None:
        issues = report.issues()
        summary_text = (
            f"{_run_label(state)}  |  "
            f"Target: [cyan]{escape(report.target)}[/cyan]  |  "
            f"[yellow]{len(issues)}[/yellow] issues  |  "
            f"[red]{len(verdict.violations)}[/red] violations"
        )
        out.print(Panel(summary_text, title="[bold cyan]Quality Gate[/bold cyan]", expand=False))
        out.print()

        self._print_dimensions(out, report, verdict)
        if verdict.violations:
            out.print("[bold]Violations:[/bold]")
            for violation in verdict.violations:
                out.print(f"  [red]x[/red] {escape(violation.describe())}")
            out.print()
        self._print_findings(out, [f for f in report.findings if not f.is_measurement])
        if report.redundancies:
            out.print(
                f"[dim]{len(report.redundancies)} duplicate finding(s) folded "
                "into higher-severity reports.[/dim]"
            )
            out.print()

    def _print_dimensions(self, out: Console, report: Report, verdict: Verdict) -> None:
        if not verdict.statuses:
            return
        table = Table(title="Dimensions", expand=True)
        table.add_column("Dimension", style="bold")
        table.add_column("State", justify="center", width=9)
        table.add_column("Metrics", ratio=3)
        table.add_column("Reason", style="dim", ratio=2)
        for status in verdict.statuses:
            table.add_row(
                status.dimension.value,
                _state_label(status.state),
                escape(_metric_summary(report.metrics.get(status.dimension, {}))),
                escape(status.reason or ""),
            )
        out.print(table)
        out.print()

    def _print_findings(self, out: Console, findings: List[Finding]) -> None:
        if not findings:
            out.print("[green]No findings.[/green]")
            out.print()
            return

        shown = findings[: self.max_findings]
        table = Table(title=f"Findings ({len(shown)} of {len(findings)})", expand=True)
        table.add_column("Severity", justify="center", width=10)
        table.add_column("Dimension", width=13)
        table.add_column("Location", style="yellow", ratio=2)
        table.add_column("Rule", style="cyan")
        table.add_column("Tool", style="dim")
        table.add_column("Message", ratio=3)
        for finding in shown:
            tool = finding.source_tool
            if finding.also_reported_by:
                tool += f" (+{', '.join(finding.also_reported_by)})"
            table.add_row(
                _severity_label(finding.severity),
                finding.dimension.value,
                escape(str(finding.location)),
                escape(finding.rule_id),
                escape(tool),
                escape(finding.message),
            )
        out.print(table)
        out.print()
