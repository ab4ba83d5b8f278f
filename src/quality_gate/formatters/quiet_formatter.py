"""Quiet formatter: one status line."""

from typing import Optional

from ..models import Report, RunState, Verdict
from .base import BaseFormatter, resolve_state


class QuietFormatter(BaseFormatter):
    """Render ``PASSED``, ``FAILED (n violations)`` or ``ABORTED``."""

    def render(self, report: Report, verdict: Verdict, state: Optional[RunState] = None) -> None:
        print(self.format(report, verdict, state))

    def format(self, report: Report, verdict: Verdict, state: Optional[RunState] = None) -> str:
        state = resolve_state(verdict, state)
        if state == RunState.ABORTED:
            return "ABORTED"
        if verdict.passed:
            return "PASSED"
        n = len(verdict.violations)
        return f"FAILED ({n} violation{'s' if n != 1 else ''})"
