"""mutmut adapter: mutation score from a previous ``mutmut run``."""

from __future__ import annotations

import re
from pathlib import Path
from typing import List, Optional

from ..exceptions import ParseError
from ..models import Dimension, Finding, RawOutput, Severity
from .base import ToolAdapter

#     mypkg.core.x_parse__mutmut_3: survived
_LINE_RE = re.compile(r"^\s*(?P<mutant>[\w.\[\]<>-]+__mutmut_\d+): (?P<status>[a-z ]+?)\s*$")

KILLED = frozenset({"killed", "timeout", "segfault", "caught by type check"})
NOT_COUNTED = frozenset({"skipped", "not checked"})


class MutmutAdapter(ToolAdapter):
    """``mutmut results --all true``.

    Reads the results of a mutation run; it does not start one. Mutants
    are identified by name rather than file and line.
    """

    name = "mutmut"
    executable = "mutmut"
    supported_dimensions = (Dimension.COVERAGE,)
    findings_exit_codes = frozenset()
    output_format = "lines"

    def build_command(self, target: Path, output_path: Optional[Path]) -> List[str]:
        return [self.executable, "results", "--all", "true"]

    def parse(self, raw: RawOutput) -> List[Finding]:
        findings: List[Finding] = []
        killed = counted = 0
        unmatched = 0

        for line in raw.stdout.splitlines():
            if not line.strip():
                continue
            match = _LINE_RE.match(line)
            if match is None:
                unmatched += 1
                continue
            mutant, status = match.group("mutant"), match.group("status")
            if status in NOT_COUNTED:
                continue
            counted += 1
            if status in KILLED:
                killed += 1
            elif status == "survived":
                findings.append(self.finding(Severity.MEDIUM, mutant, "mutant survived the test suite", "survived-mutant"))
            elif status == "no tests":
                findings.append(self.finding(Severity.LOW, mutant, "no test covers this mutant", "untested-mutant"))
            elif status == "suspicious":
                findings.append(self.finding(Severity.LOW, mutant, "mutant made the tests suspiciously slow", "suspicious-mutant"))

        if unmatched and not counted:
            raise ParseError(self.name, "no mutant results recognized in output")
        if counted:
            findings.append(self.measurement("mutation_score", round(100.0 * killed / counted, 2)))
        return findings
