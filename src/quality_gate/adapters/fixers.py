"""Fixer adapters: tools that rewrite sources in place."""

from __future__ import annotations

import re
import threading
from pathlib import Path
from typing import List, Optional

from ..models import Dimension, RawOutput
from .base import FixerAdapter

# Directories never handed to pyupgrade
_SKIP_DIRS = {".git", ".venv", "venv", "build", "dist", "__pycache__", ".tox", ".nox", "node_modules"}

_RUFF_FIXED_RE = re.compile(r"(?:\((\d+) fixed|Fixed (\d+) error)")


class PyupgradeFixer(FixerAdapter):
    """``pyupgrade --pyXX-plus <files>``. Exit 1 means files were rewritten."""

    name = "pyupgrade"
    executable = "pyupgrade"
    supported_dimensions = (Dimension.MODERNIZATION,)
    options_schema = {"min_version": (str,), "exclude": (list,)}

    def python_files(self, target: Path) -> List[str]:
        excluded = _SKIP_DIRS | set(self.options.get("exclude", []))
        files = []
        for path in sorted(target.rglob("*.py")):
            rel = path.relative_to(target)
            if any(part in excluded for part in rel.parts[:-1]):
                continue
            files.append(rel.as_posix())
        return files

    def build_command(self, target: Path, output_path: Optional[Path]) -> List[str]:
        version = self.options.get("min_version", "py38").replace("py", "").replace(".", "")
        return [self.executable, f"--py{version}-plus", *self.python_files(target)]

    def changed(self, raw: RawOutput) -> bool:
        return raw.returncode == 1


class RuffFixFixer(FixerAdapter):
    """``ruff check --fix --exit-zero``; reads the fixed count from the summary."""

    name = "ruff-fix"
    executable = "ruff"
    supported_dimensions = (Dimension.STYLE, Dimension.SECURITY, Dimension.MODERNIZATION)
    options_schema = {"select": (list,)}

    def build_command(self, target: Path, output_path: Optional[Path]) -> List[str]:
        command = [self.executable, "check", "--fix", "--exit-zero", "--no-cache"]
        if self.options.get("select"):
            command.extend(["--select", ",".join(self.options["select"])])
        command.append(".")
        return command

    def changed(self, raw: RawOutput) -> bool:
        for match in _RUFF_FIXED_RE.finditer(raw.stdout + raw.stderr):
            if int(match.group(1) or match.group(2)) > 0:
                return True
        return False


class PreCommitFixer(FixerAdapter):
    """``pre-commit run [hook] --all-files``, once per listed hook.

    Exit codes: 0 = all hooks passed, 1 = a hook failed or modified files,
    3 = unexpected error.
    """

    name = "pre-commit"
    executable = "pre-commit"
    supported_dimensions = (Dimension.STYLE, Dimension.MODERNIZATION)
    options_schema = {"hooks": (list,)}

    @classmethod
    def validate_options(cls, options) -> None:
        super().validate_options(options)
        hooks = options.get("hooks", [])
        if not all(isinstance(hook, str) and hook for hook in hooks):
            raise ValueError("option 'hooks' must be a list of hook ids")

    def build_command(self, target: Path, output_path: Optional[Path]) -> List[str]:
        hooks = self.options.get("hooks") or []
        if hooks:
            return [self.executable, "run", hooks[0], "--all-files"]
        return [self.executable, "run", "--all-files"]

    def apply(self, target: Path, cancel_event: Optional[threading.Event] = None) -> bool:
        hooks = self.options.get("hooks") or []
        if len(hooks) <= 1:
            return super().apply(target, cancel_event=cancel_event)
        changed = False
        for hook in hooks:
            single = type(self)(self.dimension, {**self.options, "hooks": [hook]}, timeout=self.timeout)
            changed = single.apply(target, cancel_event=cancel_event) or changed
        return changed

    def changed(self, raw: RawOutput) -> bool:
        return "files were modified by this hook" in raw.stdout
