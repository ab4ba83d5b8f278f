"""Base tool adapter interface.

An adapter wraps one external analyzer behind a stable contract:
an executable, an argument template, the exit codes that mean "clean"
and "findings found", and an output parser. Everything tool-specific
(command-line flags, JSON schemas, line formats) stays inside the
adapter; the rest of the system only ever sees Findings.
"""

from __future__ import annotations

import json
import threading
from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath
from typing import Any, ClassVar, Dict, FrozenSet, List, Mapping, Optional, Tuple

from ..exceptions import ParseError, ToolCrashError
from ..logging_config import get_logger
from ..models import Dimension, Finding, Location, MetricValue, RawOutput, Severity
from ..runner import run_command

logger = get_logger(__name__)

# Options every adapter accepts
COMMON_OPTIONS: Dict[str, Tuple[type, ...]] = {
    "timeout": (int, float),
    "args": (list,),
}

# What a parser raises on output whose shape it does not expect
PARSER_BUGS = (KeyError, IndexError, TypeError, ValueError, AttributeError)


class ToolAdapter(ABC):
    """Abstract base class for tool adapters.

    Subclasses set the class attributes and implement ``build_command``
    and ``parse``. Adapters never raise because findings exist; only exit
    codes outside ``clean_exit_codes | findings_exit_codes``, timeouts and
    missing binaries are execution errors.
    """

    name: ClassVar[str]
    executable: ClassVar[str]
    supported_dimensions: ClassVar[Tuple[Dimension, ...]]
    clean_exit_codes: ClassVar[FrozenSet[int]] = frozenset({0})
    findings_exit_codes: ClassVar[FrozenSet[int]] = frozenset({1})
    output_format: ClassVar[str] = "json"
    # File name the tool writes its report to (inside output_dir)
    report_filename: ClassVar[Optional[str]] = None
    mutates_sources: ClassVar[bool] = False
    options_schema: ClassVar[Dict[str, Tuple[type, ...]]] = {}

    def __init__(
        self,
        dimension: Optional[Dimension] = None,
        options: Optional[Mapping[str, Any]] = None,
        timeout: float = 600.0,
    ):
        self.dimension = dimension or self.supported_dimensions[0]
        self.options: Dict[str, Any] = dict(options or {})
        self.timeout = float(self.options.get("timeout", timeout))

    @classmethod
    def validate_options(cls, options: Mapping[str, Any]) -> None:
        """Check option names and types against ``options_schema``.

        Raises:
            ValueError: Unknown option or wrong type
        """
        schema = {**COMMON_OPTIONS, **cls.options_schema}
        for key, value in options.items():
            expected = schema.get(key)
            if expected is None:
                raise ValueError(f"unknown option {key!r}; expected one of {', '.join(sorted(schema))}")
            if isinstance(value, bool) and bool not in expected:
                raise ValueError(f"option {key!r} must not be a boolean")
            if not isinstance(value, expected):
                names = " or ".join(t.__name__ for t in expected)
                raise ValueError(f"option {key!r} must be {names}")

    def __repr__(self) -> str:
        return f"{type(self).__name__}(dimension={self.dimension.value!r})"

    # -- contract --

    @abstractmethod
    def build_command(self, target: Path, output_path: Optional[Path]) -> List[str]:
        """Return the argv list. The tool runs with ``cwd=target``."""

    @abstractmethod
    def parse(self, raw: RawOutput) -> List[Finding]:
        """Normalize raw tool output into Findings.

        Raises:
            ParseError: If the output does not match the expected schema
        """

    def accepts_exit_code(self, returncode: int) -> bool:
        return returncode in self.clean_exit_codes or returncode in self.findings_exit_codes

    def run(
        self,
        target: Path,
        output_dir: Optional[Path] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> RawOutput:
        """Invoke the tool on ``target``.

        Raises:
            ToolExecutionError: Missing binary, timeout or unexpected exit code
            RunCancelledError: The run was cancelled while the tool ran
        """
        output_path = None
        if self.report_filename and output_dir is not None:
            output_dir.mkdir(parents=True, exist_ok=True)
            output_path = output_dir / f"{self.dimension.value}-{self.report_filename}"
            # A stale report from an earlier run must never be parsed as this one
            output_path.unlink(missing_ok=True)

        command = self.build_command(target, output_path)
        command.extend(str(a) for a in self.options.get("args", []))
        logger.debug("%s: running %s", self.name, " ".join(command))

        completed = run_command(
            self.name,
            command,
            cwd=target,
            timeout=self.timeout,
            cancel_event=cancel_event,
        )
        if not self.accepts_exit_code(completed.returncode):
            raise ToolCrashError(self.name, completed.returncode, completed.stderr or completed.stdout)

        report_text = None
        if output_path is not None and output_path.exists():
            report_text = output_path.read_text(encoding="utf-8", errors="replace")

        return RawOutput(
            tool=self.name,
            command=tuple(command),
            returncode=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
            target=str(target),
            report_text=report_text,
            duration=completed.duration,
        )

    def execute(
        self,
        target: Path,
        output_dir: Optional[Path] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[Finding]:
        """Run the tool and parse its output."""
        return self.parse_output(self.run(target, output_dir=output_dir, cancel_event=cancel_event))

    def parse_output(self, raw: RawOutput) -> List[Finding]:
        """``parse``, with any schema surprise reported as ParseError."""
        try:
            return self.parse(raw)
        except PARSER_BUGS as e:
            logger.debug("%s: parser raised", self.name, exc_info=True)
            raise ParseError(self.name, f"{type(e).__name__}: {e}") from e

    # -- helpers for subclasses --

    def finding(
        self,
        severity: Severity,
        path: str,
        message: str,
        rule_id: str,
        line: int = 0,
        end_line: Optional[int] = None,
        target: str = ".",
    ) -> Finding:
        return Finding(
            dimension=self.dimension,
            severity=severity,
            location=Location(relative_path(path, target), int(line or 0), end_line),
            message=message,
            rule_id=rule_id,
            source_tool=self.name,
        )

    def measurement(self, metric: str, value: MetricValue, path: str = ".") -> Finding:
        return Finding(
            dimension=self.dimension,
            severity=Severity.LOW,
            location=Location(path),
            message=f"{metric} = {value}",
            rule_id=f"{self.name}.{metric}",
            source_tool=self.name,
            metric=metric,
            value=value,
        )

    def load_json(self, text: Optional[str], what: str = "output") -> Any:
        if text is None or not text.strip():
            raise ParseError(self.name, f"empty {what}, expected JSON")
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise ParseError(self.name, f"{what} is not valid JSON: {e}") from e

    def require(self, item: Mapping[str, Any], *keys: str) -> None:
        """Check a JSON record carries the keys this adapter relies on."""
        if not isinstance(item, Mapping):
            raise ParseError(self.name, f"expected an object, got {type(item).__name__}")
        missing = [k for k in keys if k not in item]
        if missing:
            raise ParseError(self.name, f"record missing keys: {', '.join(missing)}")

    def number(self, value: Any, what: str) -> float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ParseError(self.name, f"{what} is not a number: {value!r}")
        return float(value)


class FixerAdapter(ToolAdapter):
    """An adapter that rewrites sources in place.

    Fixers run strictly before analysis adapters and never contribute
    issue findings; ``apply`` reports whether anything changed.
    """

    mutates_sources: ClassVar[bool] = True
    output_format: ClassVar[str] = "text"

    def parse(self, raw: RawOutput) -> List[Finding]:
        return []

    @abstractmethod
    def changed(self, raw: RawOutput) -> bool:
        """Did this invocation modify any file?"""

    def apply(self, target: Path, cancel_event: Optional[threading.Event] = None) -> bool:
        raw = self.run(target, cancel_event=cancel_event)
        changed = self.changed(raw)
        if changed:
            logger.info("%s: rewrote files under %s", self.name, target)
        return changed


def relative_path(path: str, target: str = ".") -> str:
    """Normalize a tool-reported path to a POSIX path relative to ``target``."""
    p = Path(path)
    if p.is_absolute():
        try:
            p = p.resolve().relative_to(Path(target).resolve())
        except ValueError:
            pass
    posix = PurePosixPath(p.as_posix()).as_posix()
    if posix.startswith("./"):
        posix = posix[2:]
    return posix
