"""JSON formatter: the machine-readable Report + Verdict record."""

import json
from typing import Any, Dict, Optional

from ..models import Finding, Report, RunState, Verdict
from .base import BaseFormatter, resolve_state


def finding_to_dict(finding: Finding) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "dimension": finding.dimension.value,
        "severity": finding.severity.value,
        "path": finding.location.path,
        "start_line": finding.location.start_line,
        "end_line": finding.location.end_line,
        "rule_id": finding.rule_id,
        "source_tool": finding.source_tool,
        "message": finding.message,
    }
    if finding.is_measurement:
        data["metric"] = finding.metric
        data["value"] = finding.value
    if finding.also_reported_by:
        data["also_reported_by"] = list(finding.also_reported_by)
    return data


def result_to_dict(report: Report, verdict: Verdict, state: Optional[RunState] = None) -> Dict[str, Any]:
    """Serialize a run. Key order and list order are stable."""
    return {
        "run_id": report.run_id,
        "created_at": report.created_at,
        "target": report.target,
        "state": resolve_state(verdict, state).value,
        "passed": verdict.passed,
        "violations": [
            {
                "dimension": v.dimension.value,
                "metric": v.metric,
                "actual": v.actual,
                "comparator": v.comparator,
                "limit": v.limit,
            }
            for v in verdict.violations
        ],
        "dimensions": [
            {
                "dimension": s.dimension.value,
                "state": s.state.value,
                "reason": s.reason,
                "metrics": dict(report.metrics.get(s.dimension, {})),
            }
            for s in verdict.statuses
        ],
        "findings": [finding_to_dict(f) for f in report.findings],
        "redundancies": [
            {
                "dimension": r.dimension.value,
                "location": str(r.location),
                "rule_id": r.rule_id,
                "kept_tool": r.kept_tool,
                "dropped_tool": r.dropped_tool,
                "dropped_severity": r.dropped_severity.value,
            }
            for r in report.redundancies
        ],
    }


class JsonFormatter(BaseFormatter):
    """Render the result as JSON."""

    def render(self, report: Report, verdict: Verdict, state: Optional[RunState] = None) -> None:
        print(self.format(report, verdict, state))

    def format(self, report: Report, verdict: Verdict, state: Optional[RunState] = None) -> str:
        return json.dumps(result_to_dict(report, verdict, state), indent=2)
