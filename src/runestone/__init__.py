"""
Runestone - Directive resolution for AI coding assistants.

Selects a consistent, priority-ordered set of agents, skills, rules and
workflow steps for a task, based on signals read from the target project.
"""

import importlib.metadata as _metadata

# Version is defined in pyproject.toml - read it and parse into tuple (primary representation)
_raw_version = _metadata.version("runestone")
__version_info__: tuple[int, int, int] = tuple(int(x) for x in _raw_version.split(".")[:3])  # type: ignore[assignment]
__version__: str = ".".join(str(x) for x in __version_info__)
__author__ = "Runestone Contributors"

from runestone.catalog import Catalog, CatalogHandle, DirectiveUnit  # noqa: E402
from runestone.resolution import ResolutionEngine, ResolvedBundle  # noqa: E402
from runestone.signals import ProjectSignals, collect  # noqa: E402

__all__ = [
    "__version__",
    "__version_info__",
    "Catalog",
    "CatalogHandle",
    "DirectiveUnit",
    "ProjectSignals",
    "ResolutionEngine",
    "ResolvedBundle",
    "collect",
]
