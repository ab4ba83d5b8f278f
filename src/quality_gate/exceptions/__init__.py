"""Exception hierarchy for the quality gate."""

from .base import QualityGateError
from .config import (
    ConfigurationError,
    InvalidConfigError,
    InvalidPathError,
    ThresholdConfigError,
)
from .tooling import (
    AdapterError,
    ParseError,
    RunCancelledError,
    ToolCrashError,
    ToolExecutionError,
    ToolNotFoundError,
    ToolTimeoutError,
)

__all__ = [
    "QualityGateError",
    "ConfigurationError",
    "InvalidConfigError",
    "InvalidPathError",
    "ThresholdConfigError",
    "AdapterError",
    "ToolExecutionError",
    "ToolNotFoundError",
    "ToolTimeoutError",
    "ToolCrashError",
    "ParseError",
    "RunCancelledError",
]
