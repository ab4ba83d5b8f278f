"""GitHub Actions formatter: annotations plus a Markdown job summary."""

from typing import List, Optional

from ..models import Finding, Report, RunState, Severity, Verdict
from .base import BaseFormatter, resolve_state

_LEVELS = {
    Severity.CRITICAL: "error",
    Severity.HIGH: "error",
    Severity.MEDIUM: "warning",
    Severity.LOW: "notice",
}


def _escape_data(text: str) -> str:
    return text.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def _escape_property(text: str) -> str:
    return _escape_data(text).replace(":", "%3A").replace(",", "%2C")


class GithubFormatter(BaseFormatter):
    """Output GitHub Actions ``::error`` / ``::warning`` / ``::notice`` lines.

    Measurement findings are not annotated. The Markdown summary after
    the annotations is suitable for ``$GITHUB_STEP_SUMMARY``.
    """

    def render(self, report: Report, verdict: Verdict, state: Optional[RunState] = None) -> None:
        print(self.format(report, verdict, state))

    def format(self, report: Report, verdict: Verdict, state: Optional[RunState] = None) -> str:
        lines: List[str] = [self._annotation(f) for f in report.findings if not f.is_measurement]
        lines.append("")
        lines.extend(self._summary(report, verdict, resolve_state(verdict, state)))
        return "\n".join(lines)

    def _annotation(self, finding: Finding) -> str:
        props = [f"file={_escape_property(finding.location.path)}"]
        if finding.location.start_line:
            props.append(f"line={finding.location.start_line}")
            if finding.location.end_line:
                props.append(f"endLine={finding.location.end_line}")
        title = f"{finding.source_tool} {finding.rule_id}"
        props.append(f"title={_escape_property(title)}")
        return f"::{_LEVELS[finding.severity]} {','.join(props)}::{_escape_data(finding.message)}"

    def _summary(self, report: Report, verdict: Verdict, state: RunState) -> List[str]:
        icon = {
            RunState.GATE_PASSED: "PASSED",
            RunState.GATE_FAILED: "FAILED",
            RunState.ABORTED: "ABORTED",
        }.get(state, state.value)
        lines = [
            f"## Quality Gate: {icon}",
            "",
            "| Dimension | State | Issues | Reason |",
            "|-----------|-------|--------|--------|",
        ]
        for status in verdict.statuses:
            issues = report.metric(status.dimension, "findings")
            lines.append(
                f"| {status.dimension.value} | {status.state.value} | "
                f"{'-' if issues is None else issues} | {status.reason or ''} |"
            )
        if verdict.violations:
            lines.append("")
            lines.append("**Violations:**")
            for violation in verdict.violations:
                lines.append(f"- `{violation.describe()}`")
        return lines
