"""pytest-cov adapter: test outcome and line coverage."""

from __future__ import annotations

import re
import sys
from pathlib import Path
from typing import List, Optional

from ..exceptions import ParseError
from ..models import Dimension, Finding, RawOutput, Severity
from .base import ToolAdapter

TESTS_FAILED = 1
NO_TESTS_COLLECTED = 5

# "2 failed, 10 passed in 0.52s"
_SUMMARY_RE = re.compile(r"(\d+ (?:failed|passed|errors?)[^\n]*?) in [\d.]+s")


class PytestCovAdapter(ToolAdapter):
    """``python -m pytest --cov --cov-report json:<report>``.

    Exit codes: 0 = all passed, 1 = tests failed, 5 = no tests collected;
    2 (interrupted), 3 (internal error) and 4 (usage error) are execution
    errors.
    """

    name = "pytest-cov"
    executable = "pytest"
    supported_dimensions = (Dimension.COVERAGE,)
    findings_exit_codes = frozenset({TESTS_FAILED, NO_TESTS_COLLECTED})
    report_filename = "coverage.json"
    options_schema = {
        "python": (str,),
        "source": (str,),
        "tests": (str,),
        "min_file_percent": (int, float),
    }

    def build_command(self, target: Path, output_path: Optional[Path]) -> List[str]:
        python = self.options.get("python", sys.executable)
        command = [
            python,
            "-m",
            "pytest",
            "-q",
            "-p",
            "no:cacheprovider",
            f"--cov={self.options.get('source', '.')}",
        ]
        if output_path is not None:
            command.append(f"--cov-report=json:{output_path}")
        if self.options.get("tests"):
            command.append(self.options["tests"])
        return command

    def parse(self, raw: RawOutput) -> List[Finding]:
        findings: List[Finding] = []

        if raw.returncode == TESTS_FAILED:
            match = _SUMMARY_RE.search(raw.stdout)
            summary = match.group(1) if match else "see pytest output"
            findings.append(
                self.finding(Severity.HIGH, ".", f"test suite failed: {summary}", "tests-failed")
            )
        elif raw.returncode == NO_TESTS_COLLECTED:
            findings.append(
                self.finding(Severity.HIGH, ".", "no tests were collected", "no-tests-collected")
            )

        if raw.report_text is None:
            if raw.returncode == NO_TESTS_COLLECTED:
                # Coverage is unknown, which fails closed downstream
                return findings
            raise ParseError(self.name, "coverage JSON report was not written")

        payload = self.load_json(raw.report_text, "coverage report")
        self.require(payload, "totals", "files")
        self.require(payload["totals"], "percent_covered")
        if not isinstance(payload["files"], dict):
            raise ParseError(self.name, "coverage report 'files' is not an object")
        total = self.number(payload["totals"]["percent_covered"], "totals.percent_covered")

        min_file_percent = self.options.get("min_file_percent")
        if min_file_percent is not None:
            for path in sorted(payload["files"]):
                entry = payload["files"][path]
                self.require(entry, "summary")
                self.require(entry["summary"], "percent_covered")
                percent = self.number(entry["summary"]["percent_covered"], f"{path} percent_covered")
                if percent < min_file_percent:
                    findings.append(
                        self.finding(
                            Severity.LOW,
                            path,
                            f"line coverage {percent:.1f}% is below {min_file_percent}%",
                            "low-file-coverage",
                            target=raw.target,
                        )
                    )

        findings.append(self.measurement("percent", round(total, 2)))
        return findings
