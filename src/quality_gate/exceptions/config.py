"""Configuration exceptions: paths, run settings, thresholds."""

from pathlib import Path
from typing import Any, Optional

from .base import QualityGateError


class ConfigurationError(QualityGateError):
    """Base class for configuration-related errors.

    Configuration errors are fatal: they stop the run before any adapter
    executes.
    """

    pass


class InvalidPathError(ConfigurationError):
    """Raised when the target path is missing or not a directory."""

    def __init__(self, path: Path, reason: str):
        super().__init__(f"Invalid path: {path}", details={"path": str(path), "reason": reason})
        self.path = path
        self.reason = reason


class InvalidConfigError(ConfigurationError):
    """Raised when a configuration value is invalid."""

    def __init__(self, key: str, value: Any, reason: str):
        super().__init__(
            f"Invalid configuration for {key}: {value}",
            details={"key": key, "value": str(value), "reason": reason},
        )
        self.key = key
        self.value = value
        self.reason = reason


class ThresholdConfigError(InvalidConfigError):
    """Raised for a malformed threshold (unknown comparator, bad limit, ...)."""

    def __init__(self, key: str, value: Any, reason: str, source: Optional[str] = None):
        super().__init__(key, value, reason)
        self.source = source
        if source:
            self.details["source"] = source
