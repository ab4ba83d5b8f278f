"""Run sequencing: schedule dimensions, run adapters, build the Verdict.

The Orchestrator owns the per-run state machine. Dimensions become ready
in priority order once their prerequisites have PASSED (or are waived);
their adapters are submitted to a bounded thread pool, and each dimension
is decided as soon as its last adapter completes. Aggregation only
happens after every adapter has finished.

Example:
    >>> orchestrator = Orchestrator(load_config())
    >>> result = orchestrator.run(Path("."))
    >>> result.verdict.passed
    True
"""

from __future__ import annotations

import threading
import uuid
from concurrent.futures import FIRST_COMPLETED, CancelledError, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from .adapters import FixerAdapter, ToolAdapter, create_adapter
from .aggregator import aggregate
from .config import GateConfig
from .evaluator import evaluate, evaluate_dimension
from .exceptions import (
    AdapterError,
    InvalidPathError,
    RunCancelledError,
    ToolExecutionError,
)
from .logging_config import get_logger
from .models import (
    DIMENSION_ORDER,
    TOOLING_FAILURE_RULE,
    AdapterResult,
    Dimension,
    DimensionOutcome,
    DimensionState,
    Finding,
    Location,
    Report,
    RunState,
    Severity,
    Verdict,
)

logger = get_logger(__name__)

AdapterFactory = Callable[..., ToolAdapter]
TransitionCallback = Callable[[Dimension, DimensionState, Optional[str]], None]


@dataclass(frozen=True)
class RunResult:
    """Everything one gate run produced."""

    report: Report
    verdict: Verdict
    state: RunState
    states: Dict[Dimension, DimensionState] = field(default_factory=dict)
    passes: int = 1
    fixes_applied: bool = False

    @property
    def passed(self) -> bool:
        return self.state == RunState.GATE_PASSED


class Orchestrator:
    """Drives one or more gate runs for a fixed configuration.

    ``adapter_factory`` builds adapters by name; it defaults to the
    registry and is replaced in tests. ``on_transition`` is called from
    the scheduling thread for every dimension state change.
    """

    def __init__(
        self,
        config: GateConfig,
        adapter_factory: AdapterFactory = create_adapter,
        on_transition: Optional[TransitionCallback] = None,
    ):
        self.config = config
        self._adapter_factory = adapter_factory
        self._on_transition = on_transition
        self._cancelled = threading.Event()
        # Set on cancel or abort; the runner kills child processes when it is set
        self._stop = threading.Event()
        self._lock = threading.Lock()
        self.states: Dict[Dimension, DimensionState] = {}

    # -- public API --

    def cancel(self) -> None:
        """Request cancellation. In-flight tools are killed and ``run`` raises."""
        logger.warning("Cancellation requested")
        with self._lock:
            self._cancelled.set()
            self._stop.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def run(self, target: Path) -> RunResult:
        """Run the gate on ``target``.

        With ``run.apply_fixes`` the fixers run first and the analysis is
        repeated (up to ``run.max_fix_passes``) until the gate passes or
        the fixers stop changing anything.

        Raises:
            InvalidPathError: If target is not a directory
            RunCancelledError: If ``cancel`` was called; no Report is produced
        """
        target = Path(target)
        if not target.exists():
            raise InvalidPathError(str(target), "Path does not exist")
        if not target.is_dir():
            raise InvalidPathError(str(target), "Not a directory")
        target = target.resolve()

        run_cfg = self.config.run
        with self._lock:
            self._stop = threading.Event()
            if self._cancelled.is_set():
                self._stop.set()

        passes = run_cfg.max_fix_passes if run_cfg.apply_fixes else 1
        result: Optional[RunResult] = None
        any_fixed = False

        for pass_number in range(1, passes + 1):
            fixer_failures: List[AdapterResult] = []
            if run_cfg.apply_fixes:
                changed, fixer_failures = self._apply_fixes(target)
                any_fixed = any_fixed or changed
                if result is not None and not changed:
                    logger.info("Fixers changed nothing on pass %d; keeping previous result", pass_number)
                    break

            result = self._analyze(target, pass_number, fixer_failures, any_fixed)
            if result.state != RunState.GATE_FAILED:
                break
            if pass_number < passes:
                logger.info("Gate failed on pass %d; applying fixes again", pass_number)

        assert result is not None
        return result

    # -- fixers --

    def _apply_fixes(self, target: Path) -> Tuple[bool, List[AdapterResult]]:
        """Run every enabled dimension's fixers, one at a time."""
        changed = False
        failures: List[AdapterResult] = []
        for dim_cfg in self.config.ordered_dimensions():
            if not dim_cfg.enabled:
                continue
            for name in dim_cfg.fixers:
                self._check_cancelled()
                fixer = self._make_adapter(name, dim_cfg.dimension, dim_cfg.adapter_options(name))
                if not isinstance(fixer, FixerAdapter):
                    raise TypeError(f"{name} is not a fixer")
                logger.info("%s: applying %s", dim_cfg.dimension.value, name)
                applied, attempts, error = self._with_retries(
                    fixer, lambda f=fixer: f.apply(target, cancel_event=self._stop)
                )
                if error is not None:
                    failures.append(self._failure(fixer, error, attempts))
                elif applied:
                    changed = True
        self._check_cancelled()
        return changed, failures

    # -- analysis --

    def _analyze(
        self,
        target: Path,
        pass_number: int,
        fixer_failures: List[AdapterResult],
        fixed: bool,
    ) -> RunResult:
        run_cfg = self.config.run
        run_id = uuid.uuid4().hex[:12]
        created_at = datetime.now(timezone.utc).isoformat(timespec="seconds")
        output_dir = target / run_cfg.output_dir
        logger.info("Run %s (pass %d) on %s", run_id, pass_number, target)

        self.states = {d: DimensionState.PENDING for d in DIMENSION_ORDER}
        outcomes: Dict[Dimension, DimensionOutcome] = {}
        results: Dict[Dimension, List[AdapterResult]] = {d: [] for d in DIMENSION_ORDER}
        for failure in fixer_failures:
            results[failure.dimension].append(failure)
        remaining: Dict[Dimension, int] = {}
        in_flight: Dict[Future, Tuple[Dimension, str]] = {}
        aborted_by: Optional[Dimension] = None

        for dim_cfg in self.config.ordered_dimensions():
            if not dim_cfg.enabled:
                self._finish(outcomes, dim_cfg.dimension, DimensionState.SKIPPED, "disabled")
            elif not dim_cfg.adapters:
                self._finish(outcomes, dim_cfg.dimension, DimensionState.SKIPPED, "no adapters configured")

        with ThreadPoolExecutor(
            max_workers=run_cfg.parallelism, thread_name_prefix="quality-gate"
        ) as pool:
            try:
                while not self.cancelled:
                    if aborted_by is None:
                        self._schedule(pool, target, output_dir, outcomes, remaining, in_flight)
                    if not in_flight:
                        break

                    done, _ = wait(list(in_flight), return_when=FIRST_COMPLETED)
                    for future in sorted(done, key=lambda f: in_flight[f][0].priority):
                        dimension, name = in_flight.pop(future)
                        try:
                            result = future.result()
                        except (RunCancelledError, CancelledError):
                            logger.debug("%s: %s stopped", dimension.value, name)
                            continue
                        if aborted_by is not None:
                            logger.debug("%s: discarding %s result after abort", dimension.value, name)
                            continue

                        results[dimension].append(result)
                        remaining[dimension] -= 1
                        if remaining[dimension] == 0:
                            state = self._decide(dimension, results[dimension], outcomes)
                            if state == DimensionState.FAILED and run_cfg.abort_on_first_failure:
                                aborted_by = dimension
                                logger.warning("%s failed; aborting run", dimension.value)
                                self._stop.set()
                                for pending in in_flight:
                                    pending.cancel()
            except KeyboardInterrupt:
                self.cancel()
                raise
            finally:
                if self.cancelled:
                    for pending in in_flight:
                        pending.cancel()

        if self.cancelled:
            raise RunCancelledError()

        if aborted_by is not None:
            reason = f"run aborted after {aborted_by.value} failed"
            for dimension in DIMENSION_ORDER:
                if not self.states[dimension].terminal:
                    # In-flight dimensions lose every result, finished adapters included
                    results[dimension] = []
                    self._finish(outcomes, dimension, DimensionState.SKIPPED, reason)
        else:
            for dimension in DIMENSION_ORDER:
                if not self.states[dimension].terminal:
                    self._finish(outcomes, dimension, DimensionState.SKIPPED, "unresolvable prerequisites")

        flat = [r for d in DIMENSION_ORDER for r in results[d]]
        report = aggregate(
            flat,
            target=str(target),
            outcomes=list(outcomes.values()),
            run_id=run_id,
            created_at=created_at,
        )
        verdict = evaluate(report, self.config.thresholds)

        if aborted_by is not None:
            state = RunState.ABORTED
        elif verdict.passed:
            state = RunState.GATE_PASSED
        else:
            state = RunState.GATE_FAILED
        logger.info("Run %s finished: %s (%d finding(s))", run_id, state.value, len(report.findings))

        return RunResult(
            report=report,
            verdict=verdict,
            state=state,
            states=dict(self.states),
            passes=pass_number,
            fixes_applied=fixed,
        )

    def _schedule(
        self,
        pool: ThreadPoolExecutor,
        target: Path,
        output_dir: Path,
        outcomes: Dict[Dimension, DimensionOutcome],
        remaining: Dict[Dimension, int],
        in_flight: Dict[Future, Tuple[Dimension, str]],
    ) -> None:
        """Submit every PENDING dimension whose prerequisites are settled."""
        for dimension in DIMENSION_ORDER:
            if self.states[dimension] != DimensionState.PENDING:
                continue
            dim_cfg = self.config.dimension(dimension)
            ready, skip_reason = self._prerequisites(dim_cfg.requires)
            if skip_reason is not None:
                self._finish(outcomes, dimension, DimensionState.SKIPPED, skip_reason)
                continue
            if not ready:
                continue

            self._transition(dimension, DimensionState.RUNNING)
            remaining[dimension] = len(dim_cfg.adapters)
            for name in dim_cfg.adapters:
                adapter = self._make_adapter(name, dimension, dim_cfg.adapter_options(name))
                future = pool.submit(self._invoke, adapter, target, output_dir)
                in_flight[future] = (dimension, name)

    def _prerequisites(self, requires: Tuple[Dimension, ...]) -> Tuple[bool, Optional[str]]:
        """Return ``(ready, skip_reason)`` for a dimension's prerequisites."""
        waived = self.config.run.waived
        ready = True
        for required in requires:
            if required in waived:
                continue
            state = self.states[required]
            if state == DimensionState.PASSED:
                continue
            if state.terminal:
                return False, f"prerequisite {required.value} {state.value.lower()}"
            ready = False
        return ready, None

    def _decide(
        self,
        dimension: Dimension,
        results: List[AdapterResult],
        outcomes: Dict[Dimension, DimensionOutcome],
    ) -> DimensionState:
        failed = [r for r in results if not r.succeeded]
        if failed:
            first = failed[0]
            reason = "; ".join(f"{r.adapter_name}: {r.error}" for r in failed)
            self._finish(outcomes, dimension, DimensionState.FAILED, reason, cause=first.error_type)
            return DimensionState.FAILED

        partial = aggregate(results)
        violations = evaluate_dimension(dimension, partial.metrics.get(dimension), self.config.thresholds)
        if violations:
            reason = "; ".join(v.describe() for v in violations)
            self._finish(outcomes, dimension, DimensionState.FAILED, reason)
            return DimensionState.FAILED

        self._finish(outcomes, dimension, DimensionState.PASSED)
        return DimensionState.PASSED

    # -- adapter invocation (worker threads) --

    def _invoke(self, adapter: ToolAdapter, target: Path, output_dir: Path) -> AdapterResult:
        """Run and parse one adapter, converting tool errors into a result.

        Only RunCancelledError propagates.
        """

        def attempt():
            raw = adapter.run(target, output_dir=output_dir, cancel_event=self._stop)
            return adapter.parse_output(raw)

        findings, attempts, error = self._with_retries(adapter, attempt)
        if error is not None:
            return self._failure(adapter, error, attempts)
        logger.info("%s/%s: %d finding(s)", adapter.dimension.value, adapter.name, len(findings))
        return AdapterResult(
            adapter_name=adapter.name,
            dimension=adapter.dimension,
            findings=tuple(findings),
            attempts=attempts,
        )

    def _with_retries(
        self, adapter: ToolAdapter, call: Callable[[], Any]
    ) -> Tuple[Any, int, Optional[AdapterError]]:
        """Call ``call``, retrying transient tool errors.

        Returns ``(value, attempts, error)``; ``error`` is set when the
        adapter failed for good.
        """
        max_attempts = 1 + self.config.run.retry_count
        attempts = 0
        while True:
            attempts += 1
            try:
                return call(), attempts, None
            except ToolExecutionError as e:
                if e.transient and attempts < max_attempts and not self._stop.is_set():
                    logger.warning("%s (attempt %d/%d); retrying", e.message, attempts, max_attempts)
                    continue
                logger.error("%s", e)
                return None, attempts, e
            except AdapterError as e:
                logger.error("%s", e)
                return None, attempts, e
            except OSError as e:
                error = ToolExecutionError(adapter.name, f"{adapter.name}: {e}", reason="os error")
                logger.error("%s", error)
                return None, attempts, error

    def _failure(self, adapter: ToolAdapter, error: AdapterError, attempts: int) -> AdapterResult:
        finding = Finding(
            dimension=adapter.dimension,
            severity=Severity.HIGH,
            location=Location("."),
            message=str(error),
            rule_id=TOOLING_FAILURE_RULE,
            source_tool=adapter.name,
        )
        return AdapterResult(
            adapter_name=adapter.name,
            dimension=adapter.dimension,
            findings=(finding,),
            error=error.message,
            error_type=type(error).__name__,
            attempts=attempts,
        )

    # -- state bookkeeping --

    def _make_adapter(self, name: str, dimension: Dimension, options) -> ToolAdapter:
        return self._adapter_factory(name, dimension, options, timeout=self.config.run.timeout)

    def _check_cancelled(self) -> None:
        if self.cancelled:
            raise RunCancelledError()

    def _finish(
        self,
        outcomes: Dict[Dimension, DimensionOutcome],
        dimension: Dimension,
        state: DimensionState,
        reason: Optional[str] = None,
        cause: Optional[str] = None,
    ) -> None:
        outcomes[dimension] = DimensionOutcome(dimension, state, reason, cause)
        self._transition(dimension, state, reason)

    def _transition(self, dimension: Dimension, state: DimensionState, reason: Optional[str] = None) -> None:
        previous = self.states.get(dimension, DimensionState.PENDING)
        self.states[dimension] = state
        if reason:
            logger.info("%s: %s -> %s (%s)", dimension.value, previous.value, state.value, reason)
        else:
            logger.info("%s: %s -> %s", dimension.value, previous.value, state.value)
        if self._on_transition is not None:
            self._on_transition(dimension, state, reason)
