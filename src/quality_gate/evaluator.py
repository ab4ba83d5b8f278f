"""Threshold evaluation: reduce a Report to a pass/fail Verdict.

``evaluate`` is a pure function of ``(Report, ThresholdConfig)``: it
reads no files, no clock and no environment, and its output order is
fixed (dimension priority, then metric name), so the same inputs always
yield the same Verdict.
"""

from __future__ import annotations

from numbers import Real
from typing import List, Mapping, Optional

from .config import Threshold, ThresholdConfig
from .exceptions import ThresholdConfigError
from .models import (
    DIMENSION_ORDER,
    Dimension,
    DimensionState,
    DimensionStatus,
    MetricValue,
    Report,
    Verdict,
    Violation,
)


def _is_number(value: object) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def compare(actual: MetricValue, threshold: Threshold, key: str = "") -> bool:
    """Check ``actual <comparator> limit``. Equality at the boundary passes.

    Letter grades compare alphabetically (``A`` best), so ``max_rank <= B``
    holds for A and B.

    Raises:
        ThresholdConfigError: If the metric and limit types differ
    """
    limit = threshold.limit
    if _is_number(actual) and _is_number(limit):
        left, right = float(actual), float(limit)
    elif isinstance(actual, str) and isinstance(limit, str):
        left, right = actual.strip().upper(), limit.strip().upper()
    else:
        raise ThresholdConfigError(
            key or "threshold",
            limit,
            f"cannot compare {type(actual).__name__} metric value {actual!r} with this limit",
        )

    if threshold.comparator == ">=":
        return left >= right
    if threshold.comparator == "<=":
        return left <= right
    return left == right


def evaluate_dimension(
    dimension: Dimension,
    metrics: Optional[Mapping[str, MetricValue]],
    thresholds: ThresholdConfig,
) -> List[Violation]:
    """Violations for one dimension's metrics, ordered by metric name.

    ``metrics`` is None when the dimension did not run; every configured
    metric is then unknown. Tooling failures in a non-optional dimension
    are a violation of their own.
    """
    metrics = metrics or {}
    optional = thresholds.is_optional(dimension)
    violations: List[Violation] = []

    configured = thresholds.for_dimension(dimension)
    for metric in sorted(configured):
        threshold = configured[metric]
        actual = metrics.get(metric)
        if actual is None:
            if optional or thresholds.unknown_passes:
                continue
            violations.append(Violation(dimension, metric, None, threshold.limit, threshold.comparator))
            continue
        if not compare(actual, threshold, key=f"{dimension.value}.threshold.{metric}"):
            violations.append(Violation(dimension, metric, actual, threshold.limit, threshold.comparator))

    failures = metrics.get("tooling_failures", 0)
    if failures and not optional:
        violations.append(Violation(dimension, "tooling_failures", failures, 0, "<="))

    return violations


def evaluate(report: Report, thresholds: ThresholdConfig) -> Verdict:
    """Decide the gate for ``report``.

    The gate passes iff there are no violations. Statuses cover every
    dimension that has thresholds, ran, or was recorded by the sequencer.
    """
    outcomes = {o.dimension: o for o in report.outcomes}
    relevant = set(thresholds.dimensions) | set(report.metrics) | set(outcomes)

    statuses: List[DimensionStatus] = []
    all_violations: List[Violation] = []

    for dimension in DIMENSION_ORDER:
        if dimension not in relevant:
            continue
        violations = evaluate_dimension(dimension, report.metrics.get(dimension), thresholds)
        all_violations.extend(violations)

        outcome = outcomes.get(dimension)
        if outcome is not None and outcome.state == DimensionState.SKIPPED:
            state, reason = DimensionState.SKIPPED, outcome.reason
        elif outcome is not None and outcome.state == DimensionState.FAILED:
            state, reason = DimensionState.FAILED, outcome.reason
        elif violations:
            state, reason = DimensionState.FAILED, "; ".join(v.describe() for v in violations)
        elif dimension in report.metrics:
            state, reason = DimensionState.PASSED, None
        else:
            # Thresholds for a dimension that never ran and all were waived
            state, reason = DimensionState.SKIPPED, "not run"
        statuses.append(DimensionStatus(dimension, state, reason, tuple(violations)))

    return Verdict(
        passed=not all_violations,
        violations=tuple(all_violations),
        statuses=tuple(statuses),
    )
