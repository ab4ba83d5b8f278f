"""radon adapter: cyclomatic complexity (``cc``) or maintainability index (``mi``)."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from ..exceptions import ParseError
from ..logging_config import get_logger
from ..models import Dimension, Finding, RawOutput, Severity
from .base import ToolAdapter

logger = get_logger(__name__)

RANKS = "ABCDEF"

RANK_SEVERITY = {
    "C": Severity.MEDIUM,
    "D": Severity.HIGH,
    "E": Severity.HIGH,
    "F": Severity.CRITICAL,
}

MI_RANK_SEVERITY = {
    "B": Severity.MEDIUM,
    "C": Severity.HIGH,
}


def cc_rank(complexity: float) -> str:
    """Letter grade for a cyclomatic complexity score, as radon ranks it."""
    if complexity <= 5:
        return "A"
    if complexity <= 10:
        return "B"
    if complexity <= 20:
        return "C"
    if complexity <= 30:
        return "D"
    if complexity <= 40:
        return "E"
    return "F"


class RadonAdapter(ToolAdapter):
    """``radon cc -j -s .`` or ``radon mi -j -s .``.

    radon exits 0 whether or not complex blocks exist.
    """

    name = "radon"
    executable = "radon"
    supported_dimensions = (Dimension.COMPLEXITY, Dimension.STYLE)
    findings_exit_codes = frozenset()
    options_schema = {
        "mode": (str,),
        "min_rank": (str,),
        "exclude": (str,),
    }

    @classmethod
    def validate_options(cls, options) -> None:
        super().validate_options(options)
        if options.get("mode", "cc") not in ("cc", "mi"):
            raise ValueError(f"option 'mode' must be 'cc' or 'mi', got {options['mode']!r}")
        if str(options.get("min_rank", "C")).upper() not in RANKS:
            raise ValueError("option 'min_rank' must be a letter A-F")

    @property
    def mode(self) -> str:
        mode = self.options.get("mode", "cc")
        if mode not in ("cc", "mi"):
            raise ValueError(f"radon mode must be 'cc' or 'mi', got {mode!r}")
        return mode

    def build_command(self, target: Path, output_path: Optional[Path]) -> List[str]:
        command = [self.executable, self.mode, "-j", "-s"]
        if self.options.get("exclude"):
            command.extend(["-e", self.options["exclude"]])
        command.append(".")
        return command

    def parse(self, raw: RawOutput) -> List[Finding]:
        payload = self.load_json(raw.stdout)
        if not isinstance(payload, dict):
            raise ParseError(self.name, "expected a JSON object keyed by file")
        if self.mode == "mi":
            return self._parse_mi(payload, raw.target)
        return self._parse_cc(payload, raw.target)

    def _parse_cc(self, payload: dict, target: str) -> List[Finding]:
        min_rank = self.options.get("min_rank", "C").upper()
        findings: List[Finding] = []
        complexities: List[float] = []

        for path in sorted(payload):
            blocks = payload[path]
            if isinstance(blocks, dict) and "error" in blocks:
                logger.warning("radon could not analyze %s: %s", path, blocks["error"])
                continue
            if not isinstance(blocks, list):
                raise ParseError(self.name, f"expected a list of blocks for {path}")
            for block in blocks:
                self.require(block, "type", "name", "complexity", "rank", "lineno")
                if block["type"] == "class":
                    # Methods are listed as their own blocks
                    continue
                complexities.append(self.number(block["complexity"], f"{path} complexity"))
                rank = block["rank"]
                if not isinstance(rank, str) or len(rank) != 1 or rank not in RANKS:
                    raise ParseError(self.name, f"unknown rank {rank!r}")
                if RANKS.index(rank) < RANKS.index(min_rank):
                    continue
                name = block["name"]
                if block.get("classname"):
                    name = f"{block['classname']}.{name}"
                findings.append(
                    self.finding(
                        RANK_SEVERITY.get(rank, Severity.MEDIUM),
                        path,
                        f"{block['type']} {name} has cyclomatic complexity {block['complexity']} (rank {rank})",
                        f"CC-{rank}",
                        line=block["lineno"],
                        end_line=block.get("endline"),
                        target=target,
                    )
                )

        max_complexity = max(complexities) if complexities else 0.0
        average = round(sum(complexities) / len(complexities), 2) if complexities else 0.0
        findings.append(self.measurement("average_complexity", average))
        findings.append(self.measurement("max_complexity", max_complexity))
        findings.append(self.measurement("max_rank", cc_rank(max_complexity)))
        return findings

    def _parse_mi(self, payload: dict, target: str) -> List[Finding]:
        findings: List[Finding] = []
        scores: List[float] = []

        for path in sorted(payload):
            entry = payload[path]
            if isinstance(entry, dict) and "error" in entry:
                logger.warning("radon could not analyze %s: %s", path, entry["error"])
                continue
            self.require(entry, "mi", "rank")
            score = self.number(entry["mi"], f"{path} mi")
            scores.append(score)
            severity = MI_RANK_SEVERITY.get(entry["rank"])
            if severity is not None:
                findings.append(
                    self.finding(
                        severity,
                        path,
                        f"maintainability index {score:.1f} (rank {entry['rank']})",
                        f"MI-{entry['rank']}",
                        target=target,
                    )
                )

        if scores:
            findings.append(self.measurement("maintainability_index", round(min(scores), 2)))
        return findings
