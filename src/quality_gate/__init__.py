"""
Quality Gate - deterministic pass/fail checks for Python code bases

Runs external analyzers (ruff, bandit, radon, vulture, pylint, pytest-cov,
mutmut) behind typed adapters, merges their output into one Report and
compares its summary metrics against configured thresholds.
"""

__version__ = "0.1.0"

from .aggregator import aggregate
from .config import GateConfig, ThresholdConfig, load_config
from .evaluator import evaluate
from .models import Dimension, Finding, Location, Report, Severity, Verdict, Violation
from .orchestrator import Orchestrator, RunResult

__all__ = [
    "Orchestrator",  # Main entry point
    "RunResult",
    "load_config",
    "GateConfig",
    "ThresholdConfig",
    "aggregate",
    "evaluate",
    "Dimension",
    "Severity",
    "Finding",
    "Location",
    "Report",
    "Verdict",
    "Violation",
]
