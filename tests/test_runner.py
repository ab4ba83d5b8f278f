"""Tests for the subprocess runner."""

import sys
import threading
import time

import pytest

from quality_gate.exceptions import RunCancelledError, ToolNotFoundError, ToolTimeoutError
from quality_gate.runner import run_command


def _python(code):
    return [sys.executable, "-c", code]


class TestRunCommand:
    def test_captures_output_and_exit_code(self, tmp_path):
        code = "import sys; print('hello'); sys.stderr.write('warn'); sys.exit(3)"
        completed = run_command("probe", _python(code), cwd=tmp_path, timeout=30)
        assert completed.returncode == 3
        assert completed.stdout.strip() == "hello"
        assert completed.stderr == "warn"
        assert completed.duration >= 0

    def test_runs_in_cwd(self, tmp_path):
        completed = run_command("probe", _python("import os; print(os.getcwd())"), cwd=tmp_path, timeout=30)
        assert completed.stdout.strip() == str(tmp_path.resolve())

    def test_missing_executable(self, tmp_path):
        with pytest.raises(ToolNotFoundError) as exc_info:
            run_command("ghost", ["definitely-not-a-real-tool-xyz"], cwd=tmp_path)
        assert exc_info.value.executable == "definitely-not-a-real-tool-xyz"
        assert not exc_info.value.transient

    def test_timeout_kills_process(self, tmp_path):
        started = time.monotonic()
        with pytest.raises(ToolTimeoutError) as exc_info:
            run_command("sleeper", _python("import time; time.sleep(30)"), cwd=tmp_path, timeout=0.5)
        assert time.monotonic() - started < 10
        assert exc_info.value.transient
        assert exc_info.value.timeout == 0.5

    def test_cancel_before_start(self, tmp_path):
        event = threading.Event()
        event.set()
        with pytest.raises(RunCancelledError):
            run_command("probe", _python("print('never')"), cwd=tmp_path, cancel_event=event)

    def test_cancel_while_running(self, tmp_path):
        event = threading.Event()
        timer = threading.Timer(0.3, event.set)
        timer.start()
        started = time.monotonic()
        try:
            with pytest.raises(RunCancelledError):
                run_command(
                    "sleeper",
                    _python("import time; time.sleep(30)"),
                    cwd=tmp_path,
                    timeout=60,
                    cancel_event=event,
                )
        finally:
            timer.cancel()
        assert time.monotonic() - started < 10
