"""Tool adapters for the external analyzers."""

from typing import Any, Dict, Mapping, Optional, Type

from ..models import Dimension
from .bandit import BanditAdapter
from .base import FixerAdapter, ToolAdapter
from .fixers import PreCommitFixer, PyupgradeFixer, RuffFixFixer
from .mutmut import MutmutAdapter
from .pylint import PylintAdapter
from .pytest_cov import PytestCovAdapter
from .radon import RadonAdapter
from .ruff import RuffAdapter
from .vulture import VultureAdapter

ADAPTERS: Dict[str, Type[ToolAdapter]] = {
    cls.name: cls
    for cls in (
        RuffAdapter,
        BanditAdapter,
        RadonAdapter,
        VultureAdapter,
        PylintAdapter,
        PytestCovAdapter,
        MutmutAdapter,
        PyupgradeFixer,
        RuffFixFixer,
        PreCommitFixer,
    )
}


def create_adapter(
    name: str,
    dimension: Dimension,
    options: Optional[Mapping[str, Any]] = None,
    timeout: float = 600.0,
) -> ToolAdapter:
    """Get an adapter instance by name.

    Raises:
        ValueError: If name is not recognized
    """
    cls = ADAPTERS.get(name)
    if cls is None:
        raise ValueError(f"Unknown adapter: {name!r}. Choose from: {', '.join(sorted(ADAPTERS))}")
    return cls(dimension=dimension, options=options, timeout=timeout)


__all__ = [
    "ADAPTERS",
    "ToolAdapter",
    "FixerAdapter",
    "RuffAdapter",
    "BanditAdapter",
    "RadonAdapter",
    "VultureAdapter",
    "PylintAdapter",
    "PytestCovAdapter",
    "MutmutAdapter",
    "PyupgradeFixer",
    "RuffFixFixer",
    "PreCommitFixer",
    "create_adapter",
]
