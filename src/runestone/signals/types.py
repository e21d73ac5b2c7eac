"""
Signal types produced by the collector.

ProjectSignals is built once per resolution call and never mutated.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import pathlib as _pathlib
import typing as _typing


@_dataclasses.dataclass(frozen=True)
class SignalCollectionWarning:
    """A marker check that failed and was recorded as a negative signal."""

    marker: str
    """Marker (or signal source) that failed."""

    message: str
    """What went wrong."""

    def to_dict(self) -> dict[str, str]:
        return {"marker": self.marker, "message": self.message}


@_dataclasses.dataclass(frozen=True)
class ProjectSignals:
    """
    Facts about one project and one task request.

    `mode` is the explicit mode when the caller gave one, otherwise the
    mode inferred from keywords (if any).
    """

    file_markers: frozenset[str] = frozenset()
    """Names of markers that evaluated true."""

    keywords: frozenset[str] = frozenset()
    """Normalized tokens from the task request."""

    explicit_mode: str | None = None
    """Mode chosen by the caller. Wins over inference."""

    inferred_mode: str | None = None
    """Mode inferred from keywords."""

    warnings: tuple[SignalCollectionWarning, ...] = ()

    project_root: _pathlib.Path | None = None

    def __post_init__(self) -> None:
        # Accept any iterable for convenience; store frozensets
        object.__setattr__(self, "file_markers", frozenset(self.file_markers))
        object.__setattr__(self, "keywords", frozenset(self.keywords))
        object.__setattr__(self, "warnings", tuple(self.warnings))

    @property
    def mode(self) -> str | None:
        """Effective mode."""
        if self.explicit_mode is not None:
            return self.explicit_mode
        return self.inferred_mode

    @property
    def is_empty(self) -> bool:
        """True when there are no markers, keywords or mode."""
        return not (self.file_markers or self.keywords or self.mode)

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert to dictionary for JSON serialization (stable ordering)."""
        return {
            "project_root": str(self.project_root) if self.project_root else None,
            "file_markers": sorted(self.file_markers),
            "keywords": sorted(self.keywords),
            "explicit_mode": self.explicit_mode,
            "inferred_mode": self.inferred_mode,
            "mode": self.mode,
            "warnings": [w.to_dict() for w in self.warnings],
        }
