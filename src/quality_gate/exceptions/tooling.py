"""Adapter-level exceptions: tool execution and output parsing."""

from typing import Optional

from .base import QualityGateError


class AdapterError(QualityGateError):
    """Base class for errors raised by a tool adapter."""

    def __init__(self, tool: str, message: str, reason: str = ""):
        details = {"tool": tool}
        if reason:
            details["reason"] = reason
        super().__init__(message, details=details)
        self.tool = tool
        self.reason = reason


class ToolExecutionError(AdapterError):
    """The external tool could not produce a usable result.

    ``transient`` errors (timeouts, crashes) are worth retrying; the rest
    (a missing binary) are not.
    """

    transient = True


class ToolNotFoundError(ToolExecutionError):
    """Raised when the tool's executable is not on PATH."""

    transient = False

    def __init__(self, tool: str, executable: str):
        super().__init__(tool, f"{tool}: executable '{executable}' not found", reason="missing binary")
        self.executable = executable


class ToolTimeoutError(ToolExecutionError):
    """Raised when the tool exceeds its timeout and is killed."""

    def __init__(self, tool: str, timeout: float):
        super().__init__(tool, f"{tool}: timed out after {timeout:g}s", reason="timeout")
        self.timeout = timeout


class ToolCrashError(ToolExecutionError):
    """Raised for an exit code that is neither clean nor 'findings found'."""

    def __init__(self, tool: str, returncode: int, stderr: Optional[str] = None):
        snippet = (stderr or "").strip()
        if len(snippet) > 500:
            snippet = snippet[:500] + "..."
        super().__init__(
            tool,
            f"{tool}: unexpected exit code {returncode}",
            reason=snippet or f"exit code {returncode}",
        )
        self.returncode = returncode
        self.stderr = stderr


class ParseError(AdapterError):
    """The tool's output does not match the expected schema.

    Usually means the installed tool version drifted from the one the
    adapter was written against. Never retried.
    """

    def __init__(self, tool: str, reason: str):
        super().__init__(tool, f"{tool}: unexpected output format", reason=reason)


class RunCancelledError(QualityGateError):
    """Raised when a run is cancelled; partial results are discarded."""

    def __init__(self, reason: str = "cancelled by user"):
        super().__init__(f"Run cancelled: {reason}", details={"reason": reason})
        self.reason = reason
