"""Run external tools as subprocesses with a timeout and cancellation.

This is the only place the orchestrator blocks: every adapter invocation
goes through ``run_command``.
"""

from __future__ import annotations

import os
import signal
import subprocess
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Sequence

from .exceptions import RunCancelledError, ToolNotFoundError, ToolTimeoutError
from .logging_config import get_logger

logger = get_logger(__name__)

# How often a waiting runner checks for cancellation
POLL_INTERVAL = 0.2

# Maximum captured output per stream (50MB) to prevent OOM on runaway tools
_MAX_OUTPUT_CHARS = 50 * 1024 * 1024


@dataclass(frozen=True)
class CompletedCommand:
    returncode: int
    stdout: str
    stderr: str
    duration: float


def run_command(
    tool: str,
    command: Sequence[str],
    cwd: Optional[Path] = None,
    timeout: float = 600.0,
    cancel_event: Optional[threading.Event] = None,
    env: Optional[Mapping[str, str]] = None,
) -> CompletedCommand:
    """Run ``command`` and capture its output.

    Raises:
        ToolNotFoundError: The executable does not exist or is not executable
        ToolTimeoutError: The process outlived ``timeout`` and was killed
        RunCancelledError: ``cancel_event`` was set; the process was killed
    """
    if cancel_event is not None and cancel_event.is_set():
        raise RunCancelledError()

    started = time.monotonic()
    try:
        proc = subprocess.Popen(
            list(command),
            cwd=str(cwd) if cwd is not None else None,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            stdin=subprocess.DEVNULL,
            text=True,
            encoding="utf-8",
            errors="replace",
            env=dict(env) if env is not None else None,
            # Own process group so the whole tree can be killed on timeout
            start_new_session=os.name == "posix",
        )
    except (FileNotFoundError, PermissionError, NotADirectoryError):
        raise ToolNotFoundError(tool, command[0]) from None

    deadline = started + timeout
    while True:
        if cancel_event is not None and cancel_event.is_set():
            logger.info("%s: cancelling (pid %d)", tool, proc.pid)
            _kill(proc)
            raise RunCancelledError()

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            logger.warning("%s: timed out after %gs, killing pid %d", tool, timeout, proc.pid)
            _kill(proc)
            raise ToolTimeoutError(tool, timeout)

        try:
            stdout, stderr = proc.communicate(timeout=min(POLL_INTERVAL, remaining))
            break
        except subprocess.TimeoutExpired:
            # Retrying communicate() after a timeout does not lose output
            continue

    duration = time.monotonic() - started
    if len(stdout) > _MAX_OUTPUT_CHARS:
        logger.warning("%s: output exceeded %dMB limit, truncating", tool, _MAX_OUTPUT_CHARS // (1024 * 1024))
        stdout = stdout[:_MAX_OUTPUT_CHARS]
    logger.debug("%s: exit %d in %.2fs", tool, proc.returncode, duration)
    return CompletedCommand(
        returncode=proc.returncode,
        stdout=stdout,
        stderr=stderr,
        duration=duration,
    )


def _kill(proc: subprocess.Popen) -> None:
    """Kill the process (and its group on POSIX) and reap it."""
    try:
        if os.name == "posix":
            os.killpg(proc.pid, signal.SIGKILL)
        else:
            proc.kill()
    except (ProcessLookupError, PermissionError):
        # Already gone, or the group changed under us
        proc.kill()
    try:
        proc.communicate(timeout=5)
    except subprocess.TimeoutExpired:
        logger.warning("pid %d did not exit after SIGKILL", proc.pid)
