"""vulture adapter (dead code)."""

from __future__ import annotations

import re
from pathlib import Path
from typing import List, Optional

from ..exceptions import ParseError
from ..models import Dimension, Finding, RawOutput, Severity
from .base import ToolAdapter

# src/app.py:12: unused function 'helper' (60% confidence)
# src/app.py:40: unreachable code after 'return' (100% confidence, 3 lines)
_LINE_RE = re.compile(
    r"^(?P<path>.+?):(?P<line>\d+): (?P<message>.+?) "
    r"\((?P<confidence>\d+)% confidence(?:, (?P<size>\d+) lines?)?\)$"
)
_RULE_RE = re.compile(r"^(?P<rule>[a-z ]+?)(?: '|$| after| condition)")


class VultureAdapter(ToolAdapter):
    """``vulture . --min-confidence N``.

    Exit codes: 0 = no dead code, 3 = dead code found, 1 = invalid input,
    2 = bad arguments.
    """

    name = "vulture"
    executable = "vulture"
    supported_dimensions = (Dimension.DEAD_CODE,)
    findings_exit_codes = frozenset({3})
    output_format = "lines"
    options_schema = {
        "min_confidence": (int,),
        "exclude": (list,),
        "whitelist": (list,),
    }

    def build_command(self, target: Path, output_path: Optional[Path]) -> List[str]:
        command = [self.executable, "."]
        command.extend(str(w) for w in self.options.get("whitelist", []))
        command.extend(["--min-confidence", str(self.options.get("min_confidence", 60))])
        if self.options.get("exclude"):
            command.extend(["--exclude", ",".join(self.options["exclude"])])
        return command

    @staticmethod
    def rule_for(message: str) -> str:
        match = _RULE_RE.match(message)
        if match is None:
            return "dead-code"
        return match.group("rule").strip().replace(" ", "-")

    def parse(self, raw: RawOutput) -> List[Finding]:
        findings = []
        for line in raw.stdout.splitlines():
            line = line.strip()
            if not line:
                continue
            match = _LINE_RE.match(line)
            if match is None:
                raise ParseError(self.name, f"unrecognized line: {line[:200]}")
            confidence = int(match.group("confidence"))
            start = int(match.group("line"))
            size = match.group("size")
            findings.append(
                self.finding(
                    Severity.MEDIUM if confidence >= 100 else Severity.LOW,
                    match.group("path"),
                    f"{match.group('message')} ({confidence}% confidence)",
                    self.rule_for(match.group("message")),
                    line=start,
                    end_line=start + int(size) - 1 if size else None,
                    target=raw.target,
                )
            )
        return findings
