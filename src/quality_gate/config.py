"""Configuration loading and management for the quality gate.

Configuration sources are merged in priority order (lowest first):
    1. Built-in defaults (DEFAULT_DIMENSIONS, RunConfig defaults)
    2. ``[tool.quality-gate]`` in ./pyproject.toml
    3. Project config (./quality-gate.toml)
    4. Explicit config file (``--config``)
    5. Environment variables (QUALITY_GATE_* prefix, ``[run]`` keys only)
    6. CLI overrides (passed as kwargs)

The result is a frozen GateConfig that is passed explicitly into the
orchestrator, adapters and evaluator. Every validation error is raised
here, before any adapter executes.

Example:
    >>> config = load_config(parallelism=4)
    >>> config.run.parallelism
    4
    >>> config.thresholds.for_dimension(Dimension.COVERAGE)["percent"]
    Threshold(comparator='>=', limit=80)
"""

from __future__ import annotations

import copy
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, Literal, Mapping, Optional, Tuple, get_type_hints

from .adapters import ADAPTERS
from .exceptions import ConfigurationError, InvalidConfigError, ThresholdConfigError
from .models import DIMENSION_ORDER, Dimension, MetricValue

UnknownMetricPolicy = Literal["fail", "pass"]

COMPARATORS = (">=", "<=", "==")

# Letter-grade metrics; every other metric is numeric
GRADE_METRICS = frozenset({"max_rank"})
_GRADES = ("A", "B", "C", "D", "E", "F")

PROJECT_CONFIG_NAME = "quality-gate.toml"
PYPROJECT_SECTION = "quality-gate"
ENV_PREFIX = "QUALITY_GATE_"

_THRESHOLD_RE = re.compile(r"^\s*(>=|<=|==|[<>=!]+)\s*(.+?)\s*$")

_DIMENSION_KEYS = {"enabled", "optional", "requires", "adapters", "fixers", "threshold", "options"}


@dataclass(frozen=True)
class Threshold:
    """One pass condition: ``actual <comparator> limit``."""

    comparator: str
    limit: MetricValue

    def __post_init__(self) -> None:
        if self.comparator not in COMPARATORS:
            raise ThresholdConfigError(
                "comparator", self.comparator, f"expected one of {', '.join(COMPARATORS)}"
            )

    def __str__(self) -> str:
        return f"{self.comparator} {self.limit}"


@dataclass(frozen=True)
class ThresholdConfig:
    """Per-dimension thresholds plus the policy for unknown metrics.

    Loaded once per run and never mutated. A metric that is configured but
    absent from the Report is *unknown*: it fails the gate unless the
    dimension is optional or ``unknown_passes`` is set.
    """

    thresholds: Mapping[Dimension, Mapping[str, Threshold]] = field(default_factory=dict)
    optional: FrozenSet[Dimension] = frozenset()
    unknown_passes: bool = False

    def for_dimension(self, dimension: Dimension) -> Mapping[str, Threshold]:
        return self.thresholds.get(dimension, {})

    def is_optional(self, dimension: Dimension) -> bool:
        return dimension in self.optional

    @property
    def dimensions(self) -> list[Dimension]:
        """Dimensions that have thresholds or are optional, in priority order."""
        return [d for d in DIMENSION_ORDER if d in self.thresholds or d in self.optional]


@dataclass(frozen=True)
class DimensionConfig:
    """Settings for one dimension: which adapters run and what must hold.

    Thresholds stay in force when the dimension is disabled: its metrics
    are then unknown. Mark it ``optional`` or set each metric to ``false``
    to drop them.
    """


    dimension: Dimension
    enabled: bool = True
    optional: bool = False
    requires: Tuple[Dimension, ...] = ()
    adapters: Tuple[str, ...] = ()
    fixers: Tuple[str, ...] = ()
    options: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)
    thresholds: Mapping[str, Threshold] = field(default_factory=dict)

    def adapter_options(self, name: str) -> Mapping[str, Any]:
        return self.options.get(name, {})


@dataclass(frozen=True)
class RunConfig:
    """Run-level settings (the ``[run]`` table).

    Attributes:
        parallelism: Maximum adapters running at once
        abort_on_first_failure: Abort the run when a dimension fails instead
            of collecting a full Report
        retry_count: Retries for transient tool failures (timeouts, crashes)
        unknown_metric_policy: "fail" (fail-closed) or "pass"
        apply_fixes: Run fixer adapters before analysis
        max_fix_passes: Upper bound on fix-and-reverify passes
        waived: Prerequisite dimensions treated as satisfied whatever their
            outcome
        timeout: Default per-adapter timeout in seconds
        output_dir: Where adapters write report files (relative to target)
    """

    parallelism: int = 2
    abort_on_first_failure: bool = False
    retry_count: int = 1
    unknown_metric_policy: UnknownMetricPolicy = "fail"
    apply_fixes: bool = False
    max_fix_passes: int = 1
    waived: Tuple[Dimension, ...] = ()
    timeout: float = 600.0
    output_dir: str = ".quality-gate/reports"

    def __post_init__(self) -> None:
        if not isinstance(self.parallelism, int) or self.parallelism < 1:
            raise InvalidConfigError("run.parallelism", self.parallelism, "must be an integer >= 1")
        if not isinstance(self.retry_count, int) or self.retry_count < 0:
            raise InvalidConfigError("run.retry_count", self.retry_count, "must be an integer >= 0")
        if not isinstance(self.max_fix_passes, int) or self.max_fix_passes < 1:
            raise InvalidConfigError(
                "run.max_fix_passes", self.max_fix_passes, "must be an integer >= 1"
            )
        if self.unknown_metric_policy not in ("fail", "pass"):
            raise InvalidConfigError(
                "run.unknown_metric_policy", self.unknown_metric_policy, "expected 'fail' or 'pass'"
            )
        if self.timeout <= 0:
            raise InvalidConfigError("run.timeout", self.timeout, "must be positive")


@dataclass(frozen=True)
class GateConfig:
    """Complete, validated configuration for one run."""

    run: RunConfig = field(default_factory=RunConfig)
    dimensions: Mapping[Dimension, DimensionConfig] = field(default_factory=dict)

    def dimension(self, dimension: Dimension) -> DimensionConfig:
        return self.dimensions.get(dimension, DimensionConfig(dimension=dimension, enabled=False))

    def ordered_dimensions(self) -> list[DimensionConfig]:
        return [self.dimension(d) for d in DIMENSION_ORDER]

    @property
    def thresholds(self) -> ThresholdConfig:
        return ThresholdConfig(
            thresholds={
                d: dict(cfg.thresholds)
                for d, cfg in self.dimensions.items()
                if cfg.thresholds
            },
            optional=frozenset(d for d, cfg in self.dimensions.items() if cfg.optional),
            unknown_passes=self.run.unknown_metric_policy == "pass",
        )


# Defaults follow the py-refactor workflow: no critical/high security
# findings, 80% coverage, complexity no worse than rank B.
DEFAULT_DIMENSIONS: Dict[str, Dict[str, Any]] = {
    "security": {
        "adapters": ["bandit"],
        "threshold": {"critical_count": "<= 0", "high_count": "<= 0"},
    },
    "coverage": {
        "adapters": ["pytest-cov"],
        "threshold": {"percent": ">= 80"},
    },
    "dead-code": {
        "adapters": ["vulture"],
    },
    "duplication": {
        "enabled": False,
        "adapters": ["pylint"],
        "options": {"pylint": {"duplicates": True}},
    },
    "style": {
        "adapters": ["ruff"],
        "fixers": ["ruff-fix"],
    },
    "complexity": {
        "adapters": ["radon"],
        "requires": ["coverage"],
        "threshold": {"max_rank": "<= B"},
    },
    "modernization": {
        "adapters": ["ruff"],
        "fixers": ["pyupgrade"],
        "options": {"ruff": {"select": ["UP"]}},
    },
}


def parse_threshold(key: str, raw: Any, metric: Optional[str] = None) -> Threshold:
    """Parse ``">= 80"``, ``"<= B"`` or ``{comparator = "<=", limit = 0}``.

    Raises:
        ThresholdConfigError: Unknown comparator or ill-typed limit
    """
    metric = metric or key.rsplit(".", 1)[-1]

    if isinstance(raw, Threshold):
        threshold = raw
    elif isinstance(raw, Mapping):
        if set(raw) != {"comparator", "limit"}:
            raise ThresholdConfigError(key, dict(raw), "expected keys 'comparator' and 'limit'")
        threshold = Threshold(str(raw["comparator"]).strip(), _coerce_limit(key, raw["limit"]))
    elif isinstance(raw, str):
        match = _THRESHOLD_RE.match(raw)
        if match is None:
            raise ThresholdConfigError(key, raw, "expected '<comparator> <limit>', e.g. '>= 80'")
        comparator, limit_text = match.groups()
        if comparator not in COMPARATORS:
            raise ThresholdConfigError(
                key, raw, f"unknown comparator {comparator!r}; expected one of {', '.join(COMPARATORS)}"
            )
        threshold = Threshold(comparator, _coerce_limit(key, limit_text.strip("\"'")))
    else:
        raise ThresholdConfigError(key, raw, "expected a string like '>= 80' or a table")

    _check_limit_type(key, metric, threshold.limit)
    return threshold


def _coerce_limit(key: str, value: Any) -> MetricValue:
    if isinstance(value, bool):
        raise ThresholdConfigError(key, value, "boolean limits are not supported")
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return float(text)
        except ValueError:
            return text
    raise ThresholdConfigError(key, value, "limit must be a number or a letter grade")


def _check_limit_type(key: str, metric: str, limit: MetricValue) -> None:
    if metric in GRADE_METRICS:
        if not isinstance(limit, str) or limit.upper() not in _GRADES:
            raise ThresholdConfigError(key, limit, f"expected a letter grade {'-'.join((_GRADES[0], _GRADES[-1]))}")
    elif isinstance(limit, str):
        raise ThresholdConfigError(key, limit, "expected a numeric limit")


def load_config(
    config_file: Optional[Path] = None,
    root: Optional[Path] = None,
    **overrides: Any,
) -> GateConfig:
    """Load configuration with auto-discovery and merging.

    Args:
        config_file: Optional explicit config file path
        root: Directory searched for pyproject.toml / quality-gate.toml
            (default: current directory)
        **overrides: ``[run]`` overrides, typically from CLI flags. ``None``
            values are ignored.

    Returns:
        Validated GateConfig instance

    Raises:
        ConfigurationError: If a config file is missing or invalid
        ThresholdConfigError: If a threshold is malformed
    """
    root = root or Path.cwd()
    merged: Dict[str, Any] = copy.deepcopy({"run": {}, **DEFAULT_DIMENSIONS})

    pyproject = root / "pyproject.toml"
    if pyproject.exists():
        payload = _load_toml_file(pyproject)
        section = payload.get("tool", {}).get(PYPROJECT_SECTION)
        if section is not None:
            _deep_merge(merged, section)

    project_config = root / PROJECT_CONFIG_NAME
    if project_config.exists():
        _deep_merge(merged, _load_toml_file(project_config))

    if config_file is not None:
        if not config_file.exists():
            raise ConfigurationError(f"Config file not found: {config_file}")
        _deep_merge(merged, _load_toml_file(config_file))

    merged["run"].update(_load_env_vars())
    merged["run"].update({k: v for k, v in overrides.items() if v is not None})

    return build_config(merged)


def build_config(payload: Mapping[str, Any]) -> GateConfig:
    """Validate a merged raw mapping into a GateConfig."""
    payload = dict(payload)
    run_raw = dict(payload.pop("run", {}) or {})

    dimensions: Dict[Dimension, DimensionConfig] = {}
    for name, section in payload.items():
        dimension = _parse_dimension(name, name)
        if not isinstance(section, Mapping):
            raise InvalidConfigError(name, section, "expected a table")
        dimensions[dimension] = _build_dimension(dimension, section)

    run = _build_run(run_raw)
    for waived in run.waived:
        if waived not in dimensions:
            raise InvalidConfigError("run.waived", waived.value, "not a configured dimension")
    _check_prerequisite_cycles(dimensions)

    return GateConfig(run=run, dimensions=dimensions)


def _check_prerequisite_cycles(dimensions: Mapping[Dimension, DimensionConfig]) -> None:
    """Reject ``requires`` graphs that could never be scheduled."""
    visiting: set = set()
    done: set = set()

    def visit(dimension: Dimension, path: Tuple[Dimension, ...]) -> None:
        if dimension in done:
            return
        if dimension in visiting:
            cycle = " -> ".join(d.value for d in path + (dimension,))
            raise InvalidConfigError(f"{path[0].value}.requires", cycle, "prerequisite cycle")
        visiting.add(dimension)
        cfg = dimensions.get(dimension)
        for required in cfg.requires if cfg else ():
            visit(required, path + (dimension,))
        visiting.discard(dimension)
        done.add(dimension)

    for dimension in DIMENSION_ORDER:
        visit(dimension, ())


def _build_run(raw: Mapping[str, Any]) -> RunConfig:
    known = set(RunConfig.__dataclass_fields__)
    unknown = sorted(set(raw) - known)
    if unknown:
        raise InvalidConfigError("run", ", ".join(unknown), "unknown option")
    values = dict(raw)
    if "waived" in values:
        values["waived"] = tuple(_parse_dimension("run.waived", w) for w in _as_list("run.waived", values["waived"]))
    if "timeout" in values:
        values["timeout"] = _as_number("run.timeout", values["timeout"])
    for flag in ("abort_on_first_failure", "apply_fixes"):
        if flag in values and not isinstance(values[flag], bool):
            raise InvalidConfigError(f"run.{flag}", values[flag], "expected true or false")
    return RunConfig(**values)


def _build_dimension(dimension: Dimension, section: Mapping[str, Any]) -> DimensionConfig:
    name = dimension.value
    unknown = sorted(set(section) - _DIMENSION_KEYS)
    if unknown:
        raise InvalidConfigError(name, ", ".join(unknown), "unknown option")

    enabled = section.get("enabled", True)
    optional = section.get("optional", False)
    for key, value in (("enabled", enabled), ("optional", optional)):
        if not isinstance(value, bool):
            raise InvalidConfigError(f"{name}.{key}", value, "expected true or false")

    requires = tuple(_parse_dimension(f"{name}.requires", r) for r in _as_list(f"{name}.requires", section.get("requires", [])))
    if dimension in requires:
        raise InvalidConfigError(f"{name}.requires", name, "a dimension cannot require itself")

    adapters = tuple(str(a) for a in _as_list(f"{name}.adapters", section.get("adapters", [])))
    fixers = tuple(str(a) for a in _as_list(f"{name}.fixers", section.get("fixers", [])))
    for adapter in adapters:
        _check_adapter(f"{name}.adapters", adapter, dimension, fixer=False)
    for fixer in fixers:
        _check_adapter(f"{name}.fixers", fixer, dimension, fixer=True)

    options_raw = section.get("options", {}) or {}
    if not isinstance(options_raw, Mapping):
        raise InvalidConfigError(f"{name}.options", options_raw, "expected a table of adapter tables")
    options: Dict[str, Dict[str, Any]] = {}
    for adapter, opts in options_raw.items():
        if adapter not in ADAPTERS:
            raise InvalidConfigError(f"{name}.options", adapter, "unknown adapter")
        if not isinstance(opts, Mapping):
            raise InvalidConfigError(f"{name}.options.{adapter}", opts, "expected a table")
        try:
            ADAPTERS[adapter].validate_options(opts)
        except ValueError as e:
            raise InvalidConfigError(f"{name}.options.{adapter}", dict(opts), str(e)) from None
        options[adapter] = dict(opts)

    thresholds_raw = section.get("threshold", {}) or {}
    if not isinstance(thresholds_raw, Mapping):
        raise ThresholdConfigError(f"{name}.threshold", thresholds_raw, "expected a table")
    thresholds: Dict[str, Threshold] = {}
    for metric, raw in thresholds_raw.items():
        if raw is False:
            # `metric = false` removes an inherited threshold
            continue
        thresholds[metric] = parse_threshold(f"{name}.threshold.{metric}", raw, metric=metric)

    return DimensionConfig(
        dimension=dimension,
        enabled=enabled,
        optional=optional,
        requires=requires,
        adapters=adapters,
        fixers=fixers,
        options=options,
        thresholds=thresholds,
    )


def _check_adapter(key: str, name: str, dimension: Dimension, fixer: bool) -> None:
    adapter_cls = ADAPTERS.get(name)
    if adapter_cls is None:
        raise InvalidConfigError(key, name, f"unknown adapter; choose from {', '.join(sorted(ADAPTERS))}")
    if adapter_cls.mutates_sources != fixer:
        kind = "an analysis adapter" if fixer else "a fixer"
        raise InvalidConfigError(key, name, f"{name} is {kind}")
    if dimension not in adapter_cls.supported_dimensions:
        supported = ", ".join(d.value for d in adapter_cls.supported_dimensions)
        raise InvalidConfigError(key, name, f"{name} reports on {supported}, not {dimension.value}")


def _parse_dimension(key: str, value: Any) -> Dimension:
    if isinstance(value, Dimension):
        return value
    try:
        return Dimension.parse(str(value))
    except ValueError:
        choices = ", ".join(d.value for d in DIMENSION_ORDER)
        raise InvalidConfigError(key, value, f"unknown dimension; expected one of {choices}") from None


def _as_list(key: str, value: Any) -> list:
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)):
        return list(value)
    raise InvalidConfigError(key, value, "expected a list")


def _as_number(key: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidConfigError(key, value, "expected a number")
    return float(value)


def _deep_merge(base: Dict[str, Any], incoming: Mapping[str, Any]) -> Dict[str, Any]:
    """Merge ``incoming`` into ``base`` in place; tables merge, values replace."""
    for key, value in incoming.items():
        # Dimension sections may be spelled dead_code / dead-code
        if key not in base and key != "run":
            try:
                key = Dimension.parse(key).value
            except ValueError:
                pass
        if isinstance(value, Mapping) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = copy.deepcopy(value)
    return base


def _load_env_vars() -> Dict[str, Any]:
    """Load ``[run]`` settings from QUALITY_GATE_* environment variables.

    Supported environment variables:
        QUALITY_GATE_PARALLELISM: int
        QUALITY_GATE_ABORT_ON_FIRST_FAILURE: bool (true/false/1/0)
        QUALITY_GATE_RETRY_COUNT: int
        QUALITY_GATE_UNKNOWN_METRIC_POLICY: fail/pass
        QUALITY_GATE_APPLY_FIXES: bool
        QUALITY_GATE_MAX_FIX_PASSES: int
        QUALITY_GATE_TIMEOUT: float
        QUALITY_GATE_OUTPUT_DIR: str
    """
    type_hints = get_type_hints(RunConfig)
    result: Dict[str, Any] = {}

    for field_name in RunConfig.__dataclass_fields__:
        env_key = f"{ENV_PREFIX}{field_name.upper()}"
        env_value = os.environ.get(env_key)
        if env_value is None:
            continue

        type_hint = type_hints.get(field_name)
        try:
            parsed = _parse_env_value(env_value, type_hint)
        except ValueError as e:
            raise InvalidConfigError(env_key, env_value, str(e))
        if parsed is not None:
            result[field_name] = parsed

    return result


def _parse_env_value(value: str, type_hint: Any) -> Any:
    """Parse an environment variable string to the field's type.

    Returns None for types that cannot be set from the environment (tuples).
    """
    origin = getattr(type_hint, "__origin__", None)

    if origin is tuple or type_hint is tuple:
        return None

    if type_hint is bool:
        lower = value.lower()
        if lower in ("true", "1", "yes", "on"):
            return True
        if lower in ("false", "0", "no", "off"):
            return False
        raise ValueError(f"expected true/false, got '{value}'")

    if type_hint is int:
        return int(value)

    if type_hint is float:
        return float(value)

    if type_hint is str or origin is Literal:
        return value

    return None


def _load_toml_file(path: Path) -> dict:
    """Load a TOML file.

    Raises:
        ConfigurationError: If the file cannot be parsed
    """
    try:
        import tomllib
    except ModuleNotFoundError:
        import tomli as tomllib  # type: ignore

    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigurationError(f"Invalid config file '{path}': {e}") from e
