"""Shared CLI helpers."""

from pathlib import Path
from typing import Optional

from rich.console import Console

from ..config import GateConfig, load_config
from ..models import RunState

console = Console()
# Errors and progress go to stderr so --format json stays parseable
err_console = Console(stderr=True)

EXIT_PASSED = 0
EXIT_FAILED = 1
EXIT_ABORTED = 2
EXIT_CONFIG_ERROR = 3
EXIT_INTERRUPTED = 130

_EXIT_CODES = {
    RunState.GATE_PASSED: EXIT_PASSED,
    RunState.GATE_FAILED: EXIT_FAILED,
    RunState.ABORTED: EXIT_ABORTED,
}


def exit_code_for(state: RunState) -> int:
    return _EXIT_CODES.get(state, EXIT_FAILED)


def resolve_config(
    path: Path,
    config: Optional[Path] = None,
    parallelism: Optional[int] = None,
    retry_count: Optional[int] = None,
    abort_on_first_failure: Optional[bool] = None,
    apply_fixes: Optional[bool] = None,
    max_fix_passes: Optional[int] = None,
    timeout: Optional[float] = None,
) -> GateConfig:
    """Build the gate configuration from CLI options."""
    return load_config(
        config_file=config,
        root=path,
        parallelism=parallelism,
        retry_count=retry_count,
        abort_on_first_failure=abort_on_first_failure,
        apply_fixes=apply_fixes,
        max_fix_passes=max_fix_passes,
        timeout=timeout,
    )
