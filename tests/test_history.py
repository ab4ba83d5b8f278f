"""Tests for the run history log and metric trends."""

import json

import pytest

from quality_gate.history import (
    Trend,
    append_run,
    history_path,
    load_history,
    metric_trend,
    run_record,
)
from quality_gate.models import (
    Dimension,
    Report,
    RunState,
    Verdict,
    Violation,
)


def _make_report(run_id, percent, rank="A"):
    return Report(
        target="/repo",
        findings=(),
        metrics={
            Dimension.COVERAGE: {"tooling_failures": 0, "findings": 0, "percent": percent},
            Dimension.COMPLEXITY: {"tooling_failures": 0, "max_rank": rank},
        },
        run_id=run_id,
        created_at=f"2024-05-0{run_id[-1]}T12:00:00+00:00",
    )


def _record(run_id, percent):
    return {"run_id": run_id, "created_at": "", "metrics": {"coverage": {"percent": percent}}}


class TestRunRecord:
    def test_record_fields(self):
        violation = Violation(Dimension.COVERAGE, "percent", 70.0, 80, ">=")
        verdict = Verdict(passed=False, violations=(violation,))
        record = run_record(_make_report("r1", 70.0), verdict, RunState.GATE_FAILED)

        assert record["run_id"] == "r1"
        assert record["state"] == "GATE_FAILED"
        assert record["passed"] is False
        assert record["metrics"]["coverage"]["percent"] == 70.0
        assert record["violations"] == ["coverage.percent = 70.0 (required >= 80)"]


class TestAppendAndLoad:
    def test_round_trip_keeps_order(self, tmp_path):
        for i, percent in enumerate([70.0, 75.0, 82.0], 1):
            append_run(tmp_path, _make_report(f"r{i}", percent), Verdict(passed=True), RunState.GATE_PASSED)

        records = load_history(tmp_path)
        assert [r["run_id"] for r in records] == ["r1", "r2", "r3"]
        assert history_path(tmp_path).parent.name == ".quality-gate"

    def test_limit_keeps_most_recent(self, tmp_path):
        for i in range(1, 6):
            append_run(tmp_path, _make_report(f"r{i}", 80.0), Verdict(passed=True), RunState.GATE_PASSED)
        assert [r["run_id"] for r in load_history(tmp_path, limit=2)] == ["r4", "r5"]

    def test_missing_history(self, tmp_path):
        assert load_history(tmp_path) == []

    def test_corrupt_line_skipped(self, tmp_path):
        path = append_run(tmp_path, _make_report("r1", 80.0), Verdict(passed=True), RunState.GATE_PASSED)
        with open(path, "a", encoding="utf-8") as f:
            f.write('{"run_id": "half\n')
            f.write("\n")
            f.write(json.dumps(_record("r2", 81.0)) + "\n")
        assert [r["run_id"] for r in load_history(tmp_path)] == ["r1", "r2"]


class TestMetricTrend:
    def test_slope_and_delta(self):
        records = [_record("r1", 70.0), _record("r2", 72.0), _record("r3", 74.0)]
        result = metric_trend(records, Dimension.COVERAGE, "percent")

        assert isinstance(result, Trend)
        assert result.values == [70.0, 72.0, 74.0]
        assert result.slope == pytest.approx(2.0)
        assert result.delta == pytest.approx(4.0)

    def test_single_point_has_no_slope(self):
        result = metric_trend([_record("r1", 70.0)], Dimension.COVERAGE, "percent")
        assert result.slope == 0.0
        assert result.delta == 0.0

    def test_skips_missing_and_non_numeric(self):
        records = [
            _record("r1", 70.0),
            {"run_id": "r2", "metrics": {}},
            _record("r3", "B"),
            _record("r4", True),
            _record("r5", 76.0),
        ]
        result = metric_trend(records, Dimension.COVERAGE, "percent")
        assert [p.run_id for p in result.points] == ["r1", "r5"]

    def test_grade_metric_has_no_points(self, tmp_path):
        append_run(tmp_path, _make_report("r1", 80.0, rank="B"), Verdict(passed=True), RunState.GATE_PASSED)
        result = metric_trend(load_history(tmp_path), Dimension.COMPLEXITY, "max_rank")
        assert result.points == []
