"""Base formatter interface for gate output rendering."""

from abc import ABC, abstractmethod
from typing import Optional

from ..models import Report, RunState, Verdict


class BaseFormatter(ABC):
    """Abstract base class for output formatters.

    ``state`` distinguishes an aborted run from a plain failure; when it is
    omitted it is derived from the verdict.
    """

    @abstractmethod
    def render(self, report: Report, verdict: Verdict, state: Optional[RunState] = None) -> None:
        """Render the result to stderr/stdout as appropriate."""

    @abstractmethod
    def format(self, report: Report, verdict: Verdict, state: Optional[RunState] = None) -> str:
        """Return formatted string representation of the result."""


def resolve_state(verdict: Verdict, state: Optional[RunState]) -> RunState:
    if state is not None:
        return state
    return RunState.GATE_PASSED if verdict.passed else RunState.GATE_FAILED
