"""Tests for the core data models."""

import pytest

from quality_gate.models import (
    DIMENSION_ORDER,
    STAGES,
    TOOLING_FAILURE_RULE,
    AdapterResult,
    Dimension,
    DimensionOutcome,
    DimensionState,
    DimensionStatus,
    Finding,
    Location,
    Report,
    Severity,
    Verdict,
    Violation,
)


def _make_finding(**overrides):
    values = dict(
        dimension=Dimension.STYLE,
        severity=Severity.LOW,
        location=Location("src/app.py", 3),
        message="line too long",
        rule_id="E501",
        source_tool="ruff",
    )
    values.update(overrides)
    return Finding(**values)


class TestDimension:
    def test_priority_follows_workflow_order(self):
        assert Dimension.SECURITY.priority == 0
        assert Dimension.COVERAGE.priority == 1
        assert Dimension.MODERNIZATION.priority == len(DIMENSION_ORDER) - 1

    def test_every_dimension_has_a_priority(self):
        assert set(DIMENSION_ORDER) == set(Dimension)

    @pytest.mark.parametrize("text", ["dead-code", "dead_code", "DEAD_CODE", " Dead-Code "])
    def test_parse_accepts_spellings(self, text):
        assert Dimension.parse(text) is Dimension.DEAD_CODE

    def test_parse_rejects_unknown(self):
        with pytest.raises(ValueError, match="Unknown dimension"):
            Dimension.parse("performance")

    def test_stages_cover_every_dimension_once(self):
        covered = [d for dims in STAGES.values() for d in dims]
        assert sorted(covered, key=lambda d: d.priority) == DIMENSION_ORDER
        assert STAGES["code-health"] == (Dimension.DEAD_CODE, Dimension.DUPLICATION, Dimension.STYLE)


class TestSeverity:
    def test_ranks_are_ordered(self):
        ranks = [s.rank for s in (Severity.LOW, Severity.MEDIUM, Severity.HIGH, Severity.CRITICAL)]
        assert ranks == sorted(ranks)
        assert len(set(ranks)) == 4


class TestDimensionState:
    def test_terminal_states(self):
        assert not DimensionState.PENDING.terminal
        assert not DimensionState.RUNNING.terminal
        assert DimensionState.PASSED.terminal
        assert DimensionState.FAILED.terminal
        assert DimensionState.SKIPPED.terminal


class TestLocation:
    def test_str_without_line(self):
        assert str(Location("src/app.py")) == "src/app.py"

    def test_str_with_range(self):
        assert str(Location("src/app.py", 3)) == "src/app.py:3"
        assert str(Location("src/app.py", 3, 3)) == "src/app.py:3"
        assert str(Location("src/app.py", 3, 9)) == "src/app.py:3-9"

    def test_sort_key_handles_missing_end_line(self):
        locations = [Location("b.py", 1), Location("a.py", 2, 5), Location("a.py", 2)]
        ordered = sorted(locations, key=Location.sort_key)
        assert ordered == [Location("a.py", 2), Location("a.py", 2, 5), Location("b.py", 1)]


class TestFinding:
    def test_issue_classification(self):
        issue = _make_finding()
        assert issue.is_issue
        assert not issue.is_measurement
        assert not issue.is_tooling_failure

    def test_measurement_is_not_an_issue(self):
        measurement = _make_finding(metric="percent", value=82.0, rule_id="pytest-cov.percent")
        assert measurement.is_measurement
        assert not measurement.is_issue

    def test_tooling_failure_is_not_an_issue(self):
        failure = _make_finding(rule_id=TOOLING_FAILURE_RULE, severity=Severity.HIGH)
        assert failure.is_tooling_failure
        assert not failure.is_issue

    def test_dedup_key_ignores_tool_and_severity(self):
        a = _make_finding(source_tool="ruff", severity=Severity.LOW)
        b = _make_finding(source_tool="pylint", severity=Severity.HIGH)
        assert a.dedup_key == b.dedup_key

    def test_frozen(self):
        finding = _make_finding()
        with pytest.raises(AttributeError):
            finding.message = "changed"


class TestAdapterResult:
    def test_succeeded_without_error(self):
        assert AdapterResult("ruff", Dimension.STYLE).succeeded
        assert not AdapterResult("ruff", Dimension.STYLE, error="boom").succeeded


class TestReport:
    def test_lookup_helpers(self):
        finding = _make_finding()
        report = Report(
            target=".",
            findings=(finding,),
            metrics={Dimension.STYLE: {"findings": 1}},
            outcomes=(DimensionOutcome(Dimension.STYLE, DimensionState.PASSED),),
        )
        assert report.dimensions_run == [Dimension.STYLE]
        assert report.metric(Dimension.STYLE, "findings") == 1
        assert report.metric(Dimension.SECURITY, "findings") is None
        assert report.outcome(Dimension.STYLE).state == DimensionState.PASSED
        assert report.outcome(Dimension.SECURITY) is None
        assert report.issues() == [finding]
        assert report.finding_set() == frozenset({finding})

    def test_metrics_are_read_only(self):
        values = {"findings": 1}
        report = Report(target=".", findings=(), metrics={Dimension.STYLE: values})

        with pytest.raises(TypeError):
            report.metrics[Dimension.SECURITY] = {}
        with pytest.raises(TypeError):
            report.metrics[Dimension.STYLE]["findings"] = 0
        values["findings"] = 99
        assert report.metric(Dimension.STYLE, "findings") == 1
        assert report.metrics == {Dimension.STYLE: {"findings": 1}}


class TestVerdict:
    def test_violation_tuple_and_description(self):
        violation = Violation(Dimension.COVERAGE, "percent", 72.0, 80, ">=")
        assert violation.as_tuple() == ("coverage", "percent", 72.0, 80)
        assert violation.describe() == "coverage.percent = 72.0 (required >= 80)"

    def test_unknown_violation_description(self):
        violation = Violation(Dimension.COMPLEXITY, "max_rank", None, "B")
        assert "unknown" in violation.describe()

    def test_status_lookup(self):
        status = DimensionStatus(Dimension.SECURITY, DimensionState.PASSED)
        verdict = Verdict(passed=True, statuses=(status,))
        assert verdict.status(Dimension.SECURITY) is status
        assert verdict.status(Dimension.STYLE) is None
