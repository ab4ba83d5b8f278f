"""Append-only run history for metric trends.

Each saved run appends one JSON line to ``.quality-gate/history.jsonl``::

    {"run_id": "...", "created_at": "...", "target": "...", "state": "GATE_PASSED",
     "passed": true, "metrics": {"coverage": {"percent": 82.0, ...}, ...}}

Lines are never rewritten. A corrupt line is skipped with a warning so a
half-written entry from an interrupted run cannot break ``trend``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np

from .logging_config import get_logger
from .models import Dimension, Report, RunState, Verdict

logger = get_logger(__name__)

HISTORY_DIR = ".quality-gate"
HISTORY_FILE = "history.jsonl"


@dataclass(frozen=True)
class TrendPoint:
    run_id: str
    created_at: str
    value: float


@dataclass(frozen=True)
class Trend:
    """A numeric metric over the last N saved runs."""

    dimension: Dimension
    metric: str
    points: List[TrendPoint]
    slope: float  # least-squares change per run

    @property
    def values(self) -> List[float]:
        return [p.value for p in self.points]

    @property
    def delta(self) -> float:
        if len(self.points) < 2:
            return 0.0
        return self.points[-1].value - self.points[0].value


def history_path(root: Path) -> Path:
    return Path(root) / HISTORY_DIR / HISTORY_FILE


def run_record(report: Report, verdict: Verdict, state: RunState) -> Dict[str, Any]:
    """Build the JSON-ready history entry for one run."""
    return {
        "run_id": report.run_id,
        "created_at": report.created_at,
        "target": report.target,
        "state": state.value,
        "passed": verdict.passed,
        "metrics": {
            dimension.value: dict(values) for dimension, values in report.metrics.items()
        },
        "violations": [v.describe() for v in verdict.violations],
    }


def append_run(root: Path, report: Report, verdict: Verdict, state: RunState) -> Path:
    """Append one run to the history log under ``root``; returns the log path."""
    path = history_path(root)
    path.parent.mkdir(parents=True, exist_ok=True)
    line = json.dumps(run_record(report, verdict, state), sort_keys=True)
    with open(path, "a", encoding="utf-8") as f:
        f.write(line + "\n")
    logger.debug("Saved run %s to %s", report.run_id, path)
    return path


def load_history(root: Path, limit: Optional[int] = None) -> List[Dict[str, Any]]:
    """Load saved runs, oldest first. ``limit`` keeps only the most recent."""
    path = history_path(root)
    if not path.exists():
        return []

    records: List[Dict[str, Any]] = []
    with open(path, encoding="utf-8") as f:
        for lineno, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError:
                logger.warning("%s:%d: skipping corrupt history entry", path, lineno)
                continue
            if isinstance(record, dict):
                records.append(record)

    if limit is not None:
        records = records[-limit:]
    return records


def metric_trend(
    records: List[Dict[str, Any]],
    dimension: Dimension,
    metric: str,
) -> Trend:
    """Extract one numeric metric from history records and fit its slope.

    Runs where the metric is missing or non-numeric (a letter grade) are
    left out.
    """
    points: List[TrendPoint] = []
    for record in records:
        value = record.get("metrics", {}).get(dimension.value, {}).get(metric)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            continue
        points.append(
            TrendPoint(
                run_id=str(record.get("run_id", "")),
                created_at=str(record.get("created_at", "")),
                value=float(value),
            )
        )

    slope = 0.0
    if len(points) >= 2:
        x = np.arange(len(points), dtype=float)
        y = np.array([p.value for p in points], dtype=float)
        slope = float(np.polyfit(x, y, 1)[0])

    return Trend(dimension=dimension, metric=metric, points=points, slope=slope)
