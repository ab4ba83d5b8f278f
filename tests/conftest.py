"""Shared test fixtures for quality gate tests."""

import pytest

from quality_gate.models import Dimension, Finding, Location, Severity


def pytest_addoption(parser):
    """Add --run-slow option for slow tests."""
    parser.addoption(
        "--run-slow",
        action="store_true",
        default=False,
        help="run slow tests",
    )


def pytest_configure(config):
    """Configure slow marker."""
    config.addinivalue_line("markers", "slow: mark test as slow to run")


def pytest_collection_modifyitems(config, items):
    """Skip slow tests unless --run-slow is given."""
    if config.getoption("--run-slow"):
        return
    skip_slow = pytest.mark.skip(reason="need --run-slow option to run")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


@pytest.fixture
def project_dir(tmp_path):
    """A tiny project tree to point the gate at."""
    src = tmp_path / "src"
    src.mkdir()
    (src / "app.py").write_text("def add(a, b):\n    return a + b\n")
    return tmp_path


@pytest.fixture
def isolated_env(monkeypatch):
    """Remove QUALITY_GATE_* variables so the host environment cannot leak in."""
    import os

    for key in list(os.environ):
        if key.startswith("QUALITY_GATE_"):
            monkeypatch.delenv(key)
    return monkeypatch


@pytest.fixture
def critical_security_finding():
    """Scenario B: one critical security finding."""
    return Finding(
        dimension=Dimension.SECURITY,
        severity=Severity.CRITICAL,
        location=Location("src/db.py", 12),
        message="Possible SQL injection vector through string-based query construction",
        rule_id="B608",
        source_tool="bandit",
    )
