"""Data models for the quality gate.

Findings are created by tool adapters, merged into a Report by the
aggregator, and reduced to a Verdict by the evaluator. All three are
immutable once built.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple, Union

# Numeric metrics (coverage percent, counts) or letter grades (radon rank)
MetricValue = Union[float, int, str]

TOOLING_FAILURE_RULE = "tooling-failure"


class Dimension(str, Enum):
    """A quality axis. Every Finding belongs to exactly one."""

    SECURITY = "security"
    COVERAGE = "coverage"
    DEAD_CODE = "dead-code"
    DUPLICATION = "duplication"
    STYLE = "style"
    COMPLEXITY = "complexity"
    MODERNIZATION = "modernization"

    @property
    def priority(self) -> int:
        return DIMENSION_ORDER.index(self)

    @classmethod
    def parse(cls, value: str) -> "Dimension":
        """Accept 'dead-code', 'dead_code' and 'DEAD_CODE' alike."""
        normalized = value.strip().lower().replace("_", "-")
        for member in cls:
            if member.value == normalized:
                return member
        raise ValueError(f"Unknown dimension: {value!r}")


# Sequencer priority: security -> tests -> code-health -> complexity -> modernization
DIMENSION_ORDER: List[Dimension] = [
    Dimension.SECURITY,
    Dimension.COVERAGE,
    Dimension.DEAD_CODE,
    Dimension.DUPLICATION,
    Dimension.STYLE,
    Dimension.COMPLEXITY,
    Dimension.MODERNIZATION,
]

STAGES: Dict[str, Tuple[Dimension, ...]] = {
    "security": (Dimension.SECURITY,),
    "tests": (Dimension.COVERAGE,),
    "code-health": (Dimension.DEAD_CODE, Dimension.DUPLICATION, Dimension.STYLE),
    "complexity": (Dimension.COMPLEXITY,),
    "modernization": (Dimension.MODERNIZATION,),
}


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}


class DimensionState(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    PASSED = "PASSED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"

    @property
    def terminal(self) -> bool:
        return self in (DimensionState.PASSED, DimensionState.FAILED, DimensionState.SKIPPED)


class RunState(str, Enum):
    IN_PROGRESS = "IN_PROGRESS"
    GATE_PASSED = "GATE_PASSED"
    GATE_FAILED = "GATE_FAILED"
    ABORTED = "ABORTED"


@dataclass(frozen=True)
class Location:
    """File path (relative, POSIX) plus an optional line range."""

    path: str
    start_line: int = 0
    end_line: Optional[int] = None

    def sort_key(self) -> Tuple[str, int, int]:
        return (self.path, self.start_line, self.end_line if self.end_line is not None else -1)

    def __str__(self) -> str:
        if not self.start_line:
            return self.path
        if self.end_line and self.end_line != self.start_line:
            return f"{self.path}:{self.start_line}-{self.end_line}"
        return f"{self.path}:{self.start_line}"


@dataclass(frozen=True)
class Finding:
    """One issue (or one measurement) reported by one tool.

    Measurement findings carry ``metric``/``value`` (e.g. the coverage
    adapter's summary line) and feed the Report's summary metrics instead
    of the issue counts.
    """

    dimension: Dimension
    severity: Severity
    location: Location
    message: str
    rule_id: str
    source_tool: str
    metric: Optional[str] = None
    value: Optional[MetricValue] = None
    also_reported_by: Tuple[str, ...] = ()

    @property
    def is_measurement(self) -> bool:
        return self.metric is not None

    @property
    def is_tooling_failure(self) -> bool:
        return self.rule_id == TOOLING_FAILURE_RULE

    @property
    def is_issue(self) -> bool:
        return not self.is_measurement and not self.is_tooling_failure

    @property
    def dedup_key(self) -> Tuple[Dimension, Location, str]:
        return (self.dimension, self.location, self.rule_id)


@dataclass(frozen=True)
class RawOutput:
    """What an adapter collected from one tool invocation."""

    tool: str
    command: Tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str = ""
    target: str = "."
    report_text: Optional[str] = None  # contents of the tool's report file, if any
    duration: float = 0.0


@dataclass(frozen=True)
class AdapterResult:
    """Outcome of one adapter within a run.

    ``error`` is set when the adapter failed after retries; ``findings``
    then holds the synthetic tooling-failure finding.
    """

    adapter_name: str
    dimension: Dimension
    findings: Tuple[Finding, ...] = ()
    error: Optional[str] = None
    error_type: Optional[str] = None
    attempts: int = 1

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class DimensionOutcome:
    """Terminal state of one dimension, recorded by the sequencer."""

    dimension: Dimension
    state: DimensionState
    reason: Optional[str] = None
    cause: Optional[str] = None  # exception class name when an adapter failed


@dataclass(frozen=True)
class Redundancy:
    """A duplicate finding folded into a higher-severity one."""

    dimension: Dimension
    location: Location
    rule_id: str
    kept_tool: str
    dropped_tool: str
    dropped_severity: Severity


@dataclass(frozen=True)
class Report:
    """Findings and summary metrics for one analysis run. Frozen."""

    target: str
    findings: Tuple[Finding, ...]
    metrics: Mapping[Dimension, Mapping[str, MetricValue]]
    outcomes: Tuple[DimensionOutcome, ...] = ()
    redundancies: Tuple[Redundancy, ...] = ()
    run_id: str = ""
    created_at: str = ""

    def __post_init__(self) -> None:
        # Read-only views over copies
        frozen = {d: MappingProxyType(dict(values)) for d, values in self.metrics.items()}
        object.__setattr__(self, "metrics", MappingProxyType(frozen))

    @property
    def dimensions_run(self) -> List[Dimension]:
        return [d for d in DIMENSION_ORDER if d in self.metrics]

    def metric(self, dimension: Dimension, name: str) -> Optional[MetricValue]:
        return self.metrics.get(dimension, {}).get(name)

    def outcome(self, dimension: Dimension) -> Optional[DimensionOutcome]:
        for outcome in self.outcomes:
            if outcome.dimension == dimension:
                return outcome
        return None

    def issues(self) -> List[Finding]:
        return [f for f in self.findings if f.is_issue]

    def finding_set(self) -> frozenset:
        """Findings as a set, for comparing two runs."""
        return frozenset(self.findings)


@dataclass(frozen=True)
class Violation:
    dimension: Dimension
    metric: str
    actual: Optional[MetricValue]  # None = unknown (tool not run)
    limit: MetricValue
    comparator: str = "<="

    def as_tuple(self) -> Tuple[str, str, Optional[MetricValue], MetricValue]:
        return (self.dimension.value, self.metric, self.actual, self.limit)

    def describe(self) -> str:
        actual = "unknown" if self.actual is None else self.actual
        return f"{self.dimension.value}.{self.metric} = {actual} (required {self.comparator} {self.limit})"


@dataclass(frozen=True)
class DimensionStatus:
    """Per-dimension line of a Verdict."""

    dimension: Dimension
    state: DimensionState
    reason: Optional[str] = None
    violations: Tuple[Violation, ...] = ()


@dataclass(frozen=True)
class Verdict:
    passed: bool
    violations: Tuple[Violation, ...] = ()
    statuses: Tuple[DimensionStatus, ...] = field(default_factory=tuple)

    def status(self, dimension: Dimension) -> Optional[DimensionStatus]:
        for status in self.statuses:
            if status.dimension == dimension:
                return status
        return None
