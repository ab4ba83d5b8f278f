"""bandit adapter (security)."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from ..exceptions import ParseError
from ..logging_config import get_logger
from ..models import Dimension, Finding, RawOutput, Severity
from .base import ToolAdapter

logger = get_logger(__name__)

_LEVELS = ("low", "medium", "high")


class BanditAdapter(ToolAdapter):
    """``bandit -r . -f json -o <report>``.

    Exit codes: 0 = no issues, 1 = issues found (or per-file errors,
    which are listed in the report's ``errors``), 2 = bad arguments.
    """

    name = "bandit"
    executable = "bandit"
    supported_dimensions = (Dimension.SECURITY,)
    report_filename = "bandit.json"
    options_schema = {
        "severity": (str,),
        "confidence": (str,),
        "exclude": (list,),
        "skip": (list,),
    }

    def build_command(self, target: Path, output_path: Optional[Path]) -> List[str]:
        command = [self.executable, "-r", ".", "-f", "json", "-q"]
        if output_path is not None:
            command.extend(["-o", str(output_path)])
        for option, flag in (("severity", "--severity-level"), ("confidence", "--confidence-level")):
            level = self.options.get(option)
            if level:
                command.extend([flag, level])
        if self.options.get("exclude"):
            command.extend(["-x", ",".join(self.options["exclude"])])
        if self.options.get("skip"):
            command.extend(["-s", ",".join(self.options["skip"])])
        return command

    @staticmethod
    def severity_for(severity: str, confidence: str) -> Severity:
        severity = severity.lower()
        if severity not in _LEVELS:
            raise ValueError(severity)
        if severity == "high" and confidence.lower() == "high":
            return Severity.CRITICAL
        return Severity(severity)

    def parse(self, raw: RawOutput) -> List[Finding]:
        text = raw.report_text if raw.report_text is not None else raw.stdout
        payload = self.load_json(text, "bandit report")
        self.require(payload, "results")
        errors = payload.get("errors", [])
        if not isinstance(payload["results"], list) or not isinstance(errors, list):
            raise ParseError(self.name, "bandit report 'results' and 'errors' must be lists")

        for error in errors:
            self.require(error, "filename")
            logger.warning("bandit could not scan %s: %s", error["filename"], error.get("reason"))

        findings = []
        for item in payload["results"]:
            self.require(item, "filename", "line_number", "issue_severity", "issue_confidence", "issue_text", "test_id")
            if not isinstance(item["line_number"], int):
                raise ParseError(self.name, f"line_number is not an integer: {item['line_number']!r}")
            try:
                severity = self.severity_for(item["issue_severity"], item["issue_confidence"])
            except (ValueError, AttributeError):
                raise ParseError(self.name, f"unknown issue_severity {item['issue_severity']!r}") from None
            line_range = item.get("line_range") or [item["line_number"]]
            findings.append(
                self.finding(
                    severity,
                    item["filename"],
                    f"{item['issue_text']} ({item.get('test_name', item['test_id'])})",
                    item["test_id"],
                    line=item["line_number"],
                    end_line=max(line_range),
                    target=raw.target,
                )
            )
        return findings
