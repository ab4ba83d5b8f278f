"""Finding aggregation: deduplicate, order and summarize adapter output.

The aggregator is the synchronization barrier of a run: it only sees
results after every adapter has finished, so Finding order never depends
on which tool completed first.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .logging_config import get_logger
from .models import (
    DIMENSION_ORDER,
    AdapterResult,
    Dimension,
    DimensionOutcome,
    Finding,
    MetricValue,
    Redundancy,
    Report,
    Severity,
)

logger = get_logger(__name__)


def _mean(values: Sequence[MetricValue]) -> MetricValue:
    return round(sum(float(v) for v in values) / len(values), 2)


def _worst_grade(values: Sequence[MetricValue]) -> MetricValue:
    return max(str(v).upper() for v in values)


# How several measurements of the same metric collapse into one value.
# Percent-like scores keep the most pessimistic reading.
METRIC_REDUCERS: Dict[str, Callable[[Sequence[MetricValue]], MetricValue]] = {
    "percent": min,
    "mutation_score": min,
    "maintainability_index": min,
    "max_complexity": max,
    "average_complexity": _mean,
    "max_rank": _worst_grade,
}


def reduce_metric(name: str, values: Sequence[MetricValue]) -> MetricValue:
    reducer = METRIC_REDUCERS.get(name)
    if reducer is not None:
        return reducer(values)
    if all(isinstance(v, str) for v in values):
        return _worst_grade(values)
    return min(values)


def finding_sort_key(finding: Finding) -> Tuple:
    """Severity desc, dimension priority, location, rule id; then tool and message."""
    return (
        -finding.severity.rank,
        finding.dimension.priority,
        finding.location.sort_key(),
        finding.rule_id,
        finding.source_tool,
        finding.message,
        finding.metric or "",
        str(finding.value),
    )


def sort_findings(findings: Iterable[Finding]) -> List[Finding]:
    return sorted(findings, key=finding_sort_key)


def deduplicate(findings: Iterable[Finding]) -> Tuple[List[Finding], List[Redundancy]]:
    """Collapse issue findings sharing ``(dimension, location, rule_id)``.

    The highest-severity instance is kept (ties go to the alphabetically
    first tool); the other tools are recorded in ``also_reported_by`` and
    returned as Redundancy notes. Measurement and tooling-failure findings
    pass through untouched.
    """
    groups: Dict[Tuple, List[Finding]] = defaultdict(list)
    passthrough: List[Finding] = []
    for finding in findings:
        if finding.is_issue:
            groups[finding.dedup_key].append(finding)
        else:
            passthrough.append(finding)

    kept: List[Finding] = []
    redundancies: List[Redundancy] = []
    for group in groups.values():
        if len(group) == 1:
            kept.append(group[0])
            continue
        group.sort(key=lambda f: (-f.severity.rank, f.source_tool, f.message))
        winner, dropped = group[0], group[1:]
        others = sorted({f.source_tool for f in dropped} - {winner.source_tool})
        if others:
            winner = Finding(
                dimension=winner.dimension,
                severity=winner.severity,
                location=winner.location,
                message=winner.message,
                rule_id=winner.rule_id,
                source_tool=winner.source_tool,
                also_reported_by=tuple(sorted(set(winner.also_reported_by) | set(others))),
            )
        kept.append(winner)
        for finding in dropped:
            redundancies.append(
                Redundancy(
                    dimension=finding.dimension,
                    location=finding.location,
                    rule_id=finding.rule_id,
                    kept_tool=winner.source_tool,
                    dropped_tool=finding.source_tool,
                    dropped_severity=finding.severity,
                )
            )

    redundancies.sort(key=lambda r: (r.dimension.priority, r.location.sort_key(), r.rule_id, r.dropped_tool))
    if redundancies:
        logger.debug("Folded %d duplicate finding(s)", len(redundancies))
    return kept + passthrough, redundancies


def summarize(
    findings: Iterable[Finding],
    attempted: Iterable[Dimension],
    succeeded: Iterable[Dimension],
) -> Dict[Dimension, Dict[str, MetricValue]]:
    """Reduce findings to per-dimension summary metrics.

    Only dimensions in ``attempted`` get metrics. Issue counts are emitted
    only for dimensions in ``succeeded``: a dimension whose tools all
    failed has unknown counts, never zero counts.
    """
    attempted = set(attempted)
    succeeded = set(succeeded) & attempted
    findings = list(findings)

    metrics: Dict[Dimension, Dict[str, MetricValue]] = {}
    for dimension in DIMENSION_ORDER:
        if dimension not in attempted:
            continue
        in_dim = [f for f in findings if f.dimension == dimension]
        values: Dict[str, MetricValue] = {
            "tooling_failures": sum(1 for f in in_dim if f.is_tooling_failure),
        }
        if dimension in succeeded:
            issues = [f for f in in_dim if f.is_issue]
            counts = Counter(f.severity for f in issues)
            values["findings"] = len(issues)
            for severity in Severity:
                values[f"{severity.value}_count"] = counts.get(severity, 0)

            measured: Dict[str, List[MetricValue]] = defaultdict(list)
            for finding in in_dim:
                if finding.is_measurement and finding.value is not None:
                    measured[finding.metric].append(finding.value)
            for name in sorted(measured):
                values[name] = reduce_metric(name, measured[name])
        metrics[dimension] = values
    return metrics


def aggregate(
    results: Sequence[AdapterResult],
    target: str = ".",
    outcomes: Sequence[DimensionOutcome] = (),
    run_id: str = "",
    created_at: str = "",
) -> Report:
    """Merge every adapter's findings into one frozen Report."""
    all_findings = [f for result in results for f in result.findings]
    merged, redundancies = deduplicate(all_findings)

    attempted = {r.dimension for r in results}
    succeeded = {r.dimension for r in results if r.succeeded}

    ordered = sort_findings(merged)
    return Report(
        target=target,
        findings=tuple(ordered),
        metrics=summarize(ordered, attempted, succeeded),
        outcomes=tuple(sorted(outcomes, key=lambda o: o.dimension.priority)),
        redundancies=tuple(redundancies),
        run_id=run_id,
        created_at=created_at,
    )


def succeeded_dimensions(report: Report) -> List[Dimension]:
    """Dimensions whose issue counts are known (at least one tool succeeded)."""
    return [d for d in report.dimensions_run if "findings" in report.metrics[d]]


def severity_totals(report: Report, dimension: Optional[Dimension] = None) -> Dict[str, int]:
    issues = [f for f in report.findings if f.is_issue and (dimension is None or f.dimension == dimension)]
    counts = Counter(f.severity for f in issues)
    return {s.value: counts.get(s, 0) for s in Severity}
