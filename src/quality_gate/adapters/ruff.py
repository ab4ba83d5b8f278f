"""ruff adapter (lint, security ``S`` rules, pyupgrade ``UP`` rules)."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional

from ..exceptions import ParseError
from ..models import Dimension, Finding, RawOutput, Severity
from .base import ToolAdapter

# Longest matching prefix wins
DEFAULT_SEVERITIES: Dict[str, Severity] = {
    "E9": Severity.HIGH,  # syntax / io errors
    "F82": Severity.HIGH,  # undefined names
    "F": Severity.MEDIUM,
    "B": Severity.MEDIUM,
    "S": Severity.MEDIUM,
}


class RuffAdapter(ToolAdapter):
    """``ruff check --output-format json``.

    Exit codes: 0 = clean, 1 = violations found, 2 = abnormal termination.
    """

    name = "ruff"
    executable = "ruff"
    supported_dimensions = (Dimension.STYLE, Dimension.SECURITY, Dimension.MODERNIZATION)
    options_schema = {
        "select": (list, str),
        "ignore": (list, str),
        "severity": (dict,),
    }

    @classmethod
    def validate_options(cls, options) -> None:
        super().validate_options(options)
        for prefix, value in options.get("severity", {}).items():
            try:
                Severity(value)
            except ValueError:
                raise ValueError(f"severity for {prefix!r} must be low, medium, high or critical") from None

    def build_command(self, target: Path, output_path: Optional[Path]) -> List[str]:
        command = [self.executable, "check", "--output-format", "json", "--no-cache"]
        for flag in ("select", "ignore"):
            rules = self.options.get(flag)
            if rules:
                if isinstance(rules, str):
                    rules = [rules]
                command.extend([f"--{flag}", ",".join(rules)])
        command.append(".")
        return command

    def severity_for(self, code: Optional[str]) -> Severity:
        if not code:
            return Severity.HIGH
        table = dict(DEFAULT_SEVERITIES)
        for prefix, value in self.options.get("severity", {}).items():
            table[prefix] = Severity(value)
        for length in range(len(code), 0, -1):
            severity = table.get(code[:length])
            if severity is not None:
                return severity
        return Severity.LOW

    def parse(self, raw: RawOutput) -> List[Finding]:
        payload = self.load_json(raw.stdout)
        if not isinstance(payload, list):
            raise ParseError(self.name, "expected a JSON list of diagnostics")

        findings = []
        for item in payload:
            self.require(item, "code", "message", "filename", "location")
            location = item["location"] or {}
            if "row" not in location:
                raise ParseError(self.name, "diagnostic location has no 'row'")
            end = item.get("end_location") or {}
            code = item["code"]
            findings.append(
                self.finding(
                    self.severity_for(code),
                    item["filename"],
                    item["message"],
                    code or "syntax-error",
                    line=location["row"],
                    end_line=end.get("row"),
                    target=raw.target,
                )
            )
        return findings
