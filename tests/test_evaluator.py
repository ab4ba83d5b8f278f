"""Tests for threshold evaluation."""

import pytest

from quality_gate.aggregator import aggregate
from quality_gate.config import Threshold, ThresholdConfig
from quality_gate.evaluator import compare, evaluate, evaluate_dimension
from quality_gate.exceptions import ThresholdConfigError
from quality_gate.models import (
    AdapterResult,
    Dimension,
    DimensionOutcome,
    DimensionState,
    Finding,
    Location,
    Report,
    Severity,
)


def _make_thresholds(unknown_passes=False, optional=()):
    return ThresholdConfig(
        thresholds={
            Dimension.SECURITY: {"critical_count": Threshold("<=", 0), "high_count": Threshold("<=", 0)},
            Dimension.COVERAGE: {"percent": Threshold(">=", 80)},
            Dimension.COMPLEXITY: {"max_rank": Threshold("<=", "B")},
        },
        optional=frozenset(optional),
        unknown_passes=unknown_passes,
    )


def _make_report(metrics, outcomes=()):
    return Report(target=".", findings=(), metrics=metrics, outcomes=tuple(outcomes))


def _clean_metrics(percent=82.0, rank="B"):
    security = {"tooling_failures": 0, "findings": 0, "critical_count": 0, "high_count": 0}
    return {
        Dimension.SECURITY: security,
        Dimension.COVERAGE: {"tooling_failures": 0, "findings": 0, "percent": percent},
        Dimension.COMPLEXITY: {"tooling_failures": 0, "findings": 0, "max_rank": rank},
    }


class TestCompare:
    def test_boundary_passes(self):
        assert compare(80, Threshold(">=", 80))
        assert compare(0, Threshold("<=", 0))
        assert compare(2.5, Threshold("==", 2.5))

    def test_int_and_float_compare(self):
        assert compare(79.99, Threshold(">=", 80)) is False
        assert compare(80.0, Threshold(">=", 80))

    def test_grades(self):
        assert compare("A", Threshold("<=", "B"))
        assert compare("b", Threshold("<=", "B"))
        assert not compare("C", Threshold("<=", "B"))

    def test_type_mismatch(self):
        with pytest.raises(ThresholdConfigError, match="cannot compare"):
            compare("C", Threshold("<=", 10), key="complexity.threshold.max_rank")

    def test_boolean_is_not_a_number(self):
        with pytest.raises(ThresholdConfigError):
            compare(True, Threshold("<=", 0))


class TestEvaluateDimension:
    def test_unknown_metric_fails_closed(self):
        violations = evaluate_dimension(Dimension.COMPLEXITY, None, _make_thresholds())
        assert [v.as_tuple() for v in violations] == [("complexity", "max_rank", None, "B")]

    def test_unknown_metric_passes_with_policy(self):
        assert evaluate_dimension(Dimension.COMPLEXITY, None, _make_thresholds(unknown_passes=True)) == []

    def test_tooling_failures(self):
        metrics = {"tooling_failures": 1, "percent": 85.0}
        violations = evaluate_dimension(Dimension.COVERAGE, metrics, _make_thresholds())
        assert [v.as_tuple() for v in violations] == [("coverage", "tooling_failures", 1, 0)]

    def test_tooling_failures_ignored_when_optional(self):
        metrics = {"tooling_failures": 1, "percent": 85.0}
        thresholds = _make_thresholds(optional=[Dimension.COVERAGE])
        assert evaluate_dimension(Dimension.COVERAGE, metrics, thresholds) == []

    def test_ordered_by_metric_name(self):
        metrics = {"tooling_failures": 0, "critical_count": 2, "high_count": 1}
        violations = evaluate_dimension(Dimension.SECURITY, metrics, _make_thresholds())
        assert [v.metric for v in violations] == ["critical_count", "high_count"]


class TestEvaluate:
    def test_all_thresholds_met(self):
        verdict = evaluate(_make_report(_clean_metrics()), _make_thresholds())
        assert verdict.passed
        assert verdict.violations == ()
        assert [s.state for s in verdict.statuses] == [DimensionState.PASSED] * 3

    def test_critical_security_finding(self, critical_security_finding):
        results = [
            AdapterResult("bandit", Dimension.SECURITY, (critical_security_finding,)),
        ]
        report = aggregate(results)
        verdict = evaluate(report, ThresholdConfig({Dimension.SECURITY: {"critical_count": Threshold("<=", 0)}}))

        assert not verdict.passed
        assert [v.as_tuple() for v in verdict.violations] == [("security", "critical_count", 1, 0)]
        status = verdict.status(Dimension.SECURITY)
        assert status.state == DimensionState.FAILED
        assert "security.critical_count = 1" in status.reason

    def test_missing_dimension_fails_closed(self):
        metrics = _clean_metrics()
        del metrics[Dimension.COMPLEXITY]
        verdict = evaluate(_make_report(metrics), _make_thresholds())

        assert not verdict.passed
        assert [v.as_tuple() for v in verdict.violations] == [("complexity", "max_rank", None, "B")]
        assert "unknown" in verdict.status(Dimension.COMPLEXITY).reason

    def test_missing_optional_dimension_passes(self):
        metrics = _clean_metrics()
        del metrics[Dimension.COMPLEXITY]
        verdict = evaluate(_make_report(metrics), _make_thresholds(optional=[Dimension.COMPLEXITY]))

        assert verdict.passed
        status = verdict.status(Dimension.COMPLEXITY)
        assert status.state == DimensionState.SKIPPED
        assert status.reason == "not run"

    def test_skipped_outcome_keeps_reason(self):
        metrics = _clean_metrics()
        del metrics[Dimension.COMPLEXITY]
        outcome = DimensionOutcome(Dimension.COMPLEXITY, DimensionState.SKIPPED, "prerequisite coverage failed")
        verdict = evaluate(_make_report(metrics, [outcome]), _make_thresholds())

        assert not verdict.passed
        status = verdict.status(Dimension.COMPLEXITY)
        assert status.state == DimensionState.SKIPPED
        assert status.reason == "prerequisite coverage failed"
        assert len(status.violations) == 1

    def test_failed_outcome_overrides_passing_metrics(self):
        outcome = DimensionOutcome(Dimension.SECURITY, DimensionState.FAILED, "bandit failed", "ToolTimeoutError")
        verdict = evaluate(_make_report(_clean_metrics(), [outcome]), _make_thresholds())
        assert verdict.status(Dimension.SECURITY).state == DimensionState.FAILED
        # The outcome alone is not a violation
        assert verdict.passed

    def test_dimension_without_thresholds_is_reported(self):
        metrics = _clean_metrics()
        metrics[Dimension.STYLE] = {"tooling_failures": 0, "findings": 3}
        verdict = evaluate(_make_report(metrics), _make_thresholds())
        assert verdict.status(Dimension.STYLE).state == DimensionState.PASSED

    def test_statuses_in_priority_order(self):
        verdict = evaluate(_make_report({}), _make_thresholds(unknown_passes=True))
        assert [s.dimension for s in verdict.statuses] == [
            Dimension.SECURITY,
            Dimension.COVERAGE,
            Dimension.COMPLEXITY,
        ]

    def test_deterministic(self):
        report = _make_report(_clean_metrics(percent=70.0, rank="D"))
        thresholds = _make_thresholds()
        first = evaluate(report, thresholds)
        assert all(evaluate(report, thresholds) == first for _ in range(5))
        assert [v.metric for v in first.violations] == ["percent", "max_rank"]

    def test_thresholds_are_not_mutated(self):
        thresholds = _make_thresholds()
        before = {d: dict(t) for d, t in thresholds.thresholds.items()}
        evaluate(_make_report({}), thresholds)
        assert {d: dict(t) for d, t in thresholds.thresholds.items()} == before


def test_measurement_findings_do_not_count_as_issues():
    measurement = Finding(
        dimension=Dimension.COVERAGE,
        severity=Severity.LOW,
        location=Location("."),
        message="percent = 79.0",
        rule_id="pytest-cov.percent",
        source_tool="pytest-cov",
        metric="percent",
        value=79.0,
    )
    report = aggregate([AdapterResult("pytest-cov", Dimension.COVERAGE, (measurement,))])
    verdict = evaluate(report, ThresholdConfig({Dimension.COVERAGE: {"percent": Threshold(">=", 80)}}))
    assert [v.as_tuple() for v in verdict.violations] == [("coverage", "percent", 79.0, 80)]
