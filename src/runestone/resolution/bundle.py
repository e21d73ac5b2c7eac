"""
Resolution output types.

A ResolvedBundle is the complete, ordered result of one resolution call.
Its dict/JSON form lists unit ids with kind and tier, plus dropped units
with reasons, and is stable for identical inputs.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import json as _json
import typing as _typing

import runestone.catalog.unit as unit_module
import runestone.resolution.resolver as resolver
import runestone.signals.types as signal_types


@_dataclasses.dataclass(frozen=True)
class BundleEntry:
    """One unit in the bundle, with how it got there."""

    unit: unit_module.DirectiveUnit

    overridden_by: str | None = None
    """Authoritative unit that outranks this one on a shared concern."""

    reasons: tuple[str, ...] = ()
    """Why the unit is included (e.g. "keyword:test", "dependency")."""

    @property
    def id(self) -> str:
        return self.unit.id

    @property
    def is_informational(self) -> bool:
        """Overridden units are kept but should be presented as secondary."""
        return self.overridden_by is not None

    def to_dict(self) -> dict[str, _typing.Any]:
        return {
            "id": self.unit.id,
            "kind": self.unit.kind,
            "priority_tier": self.unit.priority_tier,
            "overridden_by": self.overridden_by,
            "reasons": list(self.reasons),
        }


@_dataclasses.dataclass(frozen=True)
class ResolvedBundle:
    """
    Final output of a resolution call.

    `ordered_units` has no duplicates and no deprecated units; every
    dependency appears before its dependent.
    """

    ordered_units: tuple[BundleEntry, ...]
    dropped_units: tuple[resolver.DroppedUnit, ...] = ()
    signals: signal_types.ProjectSignals | None = None

    @property
    def ids(self) -> list[str]:
        return [entry.id for entry in self.ordered_units]

    @property
    def units(self) -> list[unit_module.DirectiveUnit]:
        return [entry.unit for entry in self.ordered_units]

    def get(self, unit_id: str) -> BundleEntry | None:
        """Get the entry for a unit id, if present."""
        for entry in self.ordered_units:
            if entry.id == unit_id:
                return entry
        return None

    def __contains__(self, unit_id: object) -> bool:
        return any(entry.id == unit_id for entry in self.ordered_units)

    def __len__(self) -> int:
        return len(self.ordered_units)

    def to_dict(self, *, include_signals: bool = True) -> dict[str, _typing.Any]:
        """Convert to dictionary for JSON serialization."""
        data: dict[str, _typing.Any] = {
            "units": [entry.to_dict() for entry in self.ordered_units],
            "dropped": [d.to_dict() for d in self.dropped_units],
        }
        if include_signals and self.signals is not None:
            data["signals"] = self.signals.to_dict()
        return data

    def to_json(self, *, indent: int | None = 2, include_signals: bool = True) -> str:
        """Serialize to JSON. Identical bundles give identical strings."""
        return _json.dumps(self.to_dict(include_signals=include_signals), indent=indent)
