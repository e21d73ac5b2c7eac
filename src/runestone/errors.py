"""
Exception types for Runestone.

Load-time problems are collected and reported together; resolution-time
problems abort only the call that hit them.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import pathlib as _pathlib
import typing as _typing


class RunestoneError(Exception):
    """Base class for all Runestone errors."""

    pass


@_dataclasses.dataclass(frozen=True)
class ValidationIssue:
    """A single problem found while loading or validating a catalog."""

    code: str
    """Machine-readable issue code (e.g. "broken-reference")."""

    message: str
    """Human-readable description."""

    unit_id: str | None = None
    """Unit the issue belongs to, if any."""

    path: _pathlib.Path | None = None
    """File the unit was loaded from, if known."""

    def __str__(self) -> str:
        location = f" ({self.path})" if self.path else ""
        prefix = f"{self.unit_id}: " if self.unit_id else ""
        return f"[{self.code}] {prefix}{self.message}{location}"

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "code": self.code,
            "unit_id": self.unit_id,
            "message": self.message,
            "path": str(self.path) if self.path else None,
        }


class CatalogValidationError(RunestoneError):
    """Raised when a catalog fails validation. Carries every issue found."""

    def __init__(self, issues: _typing.Sequence[ValidationIssue]) -> None:
        self.issues: tuple[ValidationIssue, ...] = tuple(issues)
        lines = [f"Catalog validation failed with {len(self.issues)} issue(s):"]
        lines.extend(f"  - {issue}" for issue in self.issues)
        super().__init__("\n".join(lines))


class InternalInvariantViolation(RunestoneError):
    """
    Raised when resolution hits a state load-time validation should prevent.

    Distinct from CatalogValidationError so it is never mistaken for a
    user-facing catalog problem or an empty match.
    """

    pass


class InvalidArgumentsError(RunestoneError):
    """Raised for bad call arguments, such as a missing project root."""

    pass


class ResolutionCancelledError(RunestoneError):
    """Raised when a caller's cancel event or deadline trips at the call boundary."""

    pass
