"""pylint adapter (style, or duplicate-code detection for duplication)."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from ..exceptions import ParseError
from ..models import Dimension, Finding, RawOutput, Severity
from .base import ToolAdapter

# pylint's exit status is a bit field
FATAL = 1
ERROR = 2
WARNING = 4
REFACTOR = 8
CONVENTION = 16
USAGE_ERROR = 32

TYPE_SEVERITY = {
    "fatal": Severity.CRITICAL,
    "error": Severity.HIGH,
    "warning": Severity.MEDIUM,
    "refactor": Severity.LOW,
    "convention": Severity.LOW,
    "info": Severity.LOW,
}


class PylintAdapter(ToolAdapter):
    """``pylint --output-format json --recursive y .``.

    With ``duplicates = true`` only ``duplicate-code`` (R0801) is enabled,
    which is how the duplication dimension is measured.
    """

    name = "pylint"
    executable = "pylint"
    supported_dimensions = (Dimension.STYLE, Dimension.DUPLICATION)
    findings_exit_codes = frozenset(range(2, 32))
    options_schema = {
        "duplicates": (bool,),
        "disable": (list,),
        "min_similarity_lines": (int,),
        "rcfile": (str,),
    }

    def accepts_exit_code(self, returncode: int) -> bool:
        if returncode < 0:
            return False
        return not returncode & (FATAL | USAGE_ERROR)

    def build_command(self, target: Path, output_path: Optional[Path]) -> List[str]:
        command = [self.executable, "--output-format", "json", "--recursive", "y", "--score", "n"]
        if self.options.get("rcfile"):
            command.extend(["--rcfile", self.options["rcfile"]])
        if self.options.get("duplicates"):
            command.extend(["--disable", "all", "--enable", "duplicate-code"])
            if "min_similarity_lines" in self.options:
                command.extend(["--min-similarity-lines", str(self.options["min_similarity_lines"])])
        else:
            disabled = ["duplicate-code", *self.options.get("disable", [])]
            command.extend(["--disable", ",".join(disabled)])
        command.append(".")
        return command

    def parse(self, raw: RawOutput) -> List[Finding]:
        if not raw.stdout.strip() and raw.returncode == 0:
            return []
        payload = self.load_json(raw.stdout)
        if not isinstance(payload, list):
            raise ParseError(self.name, "expected a JSON list of messages")

        findings = []
        for item in payload:
            self.require(item, "type", "path", "line", "message", "message-id", "symbol")
            severity = TYPE_SEVERITY.get(item["type"])
            if severity is None:
                raise ParseError(self.name, f"unknown message type {item['type']!r}")
            message = item["message"].splitlines()[0] if item["message"] else item["symbol"]
            findings.append(
                self.finding(
                    severity,
                    item["path"],
                    f"{message} ({item['symbol']})",
                    item["message-id"],
                    line=item["line"] or 0,
                    end_line=item.get("endLine"),
                    target=raw.target,
                )
            )
        return findings
