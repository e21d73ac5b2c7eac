"""
Trigger matching.

Each unit's triggers are a disjunction: the unit is a candidate when any
predicate holds for the collected signals. Keyword patterns containing
glob characters (* or ?) are matched against every token; everything else
is an exact match.

Matching is a pure function of (catalog, signals).
"""

from __future__ import annotations

import fnmatch as _fnmatch
import typing as _typing

import runestone.catalog.unit as unit_module
import runestone.signals.types as signal_types

if _typing.TYPE_CHECKING:
    import collections.abc as _abc


def _is_glob(pattern: str) -> bool:
    return "*" in pattern or "?" in pattern


class TriggerMatcher:
    """
    Evaluates one unit's trigger predicates against signals.

    Usage:
        matcher = TriggerMatcher(unit.triggers)
        if matcher.matches(signals):
            ...
    """

    def __init__(self, triggers: unit_module.Triggers) -> None:
        self._triggers = triggers
        self._exact_keywords = frozenset(k for k in triggers.keywords if not _is_glob(k))
        self._glob_keywords = tuple(k for k in triggers.keywords if _is_glob(k))

    def reasons(self, signals: signal_types.ProjectSignals) -> tuple[str, ...]:
        """
        List every predicate that holds, as "kind:value" strings.

        Returns:
            Sorted reasons; empty if the unit does not match.
        """
        found: set[str] = set()

        if self._triggers.always_on:
            found.add("always-on")

        for marker in self._triggers.markers:
            if marker in signals.file_markers:
                found.add(f"marker:{marker}")

        for keyword in self._exact_keywords & signals.keywords:
            found.add(f"keyword:{keyword}")
        for pattern in self._glob_keywords:
            if any(_fnmatch.fnmatchcase(token, pattern) for token in signals.keywords):
                found.add(f"keyword:{pattern}")

        mode = signals.mode
        if mode is not None and mode in self._triggers.modes:
            found.add(f"mode:{mode}")

        return tuple(sorted(found))

    def matches(self, signals: signal_types.ProjectSignals) -> bool:
        """Check whether any predicate holds."""
        if self._triggers.always_on:
            return True
        return bool(self.reasons(signals))


def explain(
    catalog: _abc.Mapping[str, unit_module.DirectiveUnit],
    signals: signal_types.ProjectSignals,
) -> dict[str, tuple[str, ...]]:
    """
    Match every unit and report why each candidate matched.

    Returns:
        Dict of candidate id -> reasons, in id order.
    """
    result: dict[str, tuple[str, ...]] = {}
    for unit_id in sorted(catalog):
        reasons = TriggerMatcher(catalog[unit_id].triggers).reasons(signals)
        if reasons:
            result[unit_id] = reasons
    return result


def match(
    catalog: _abc.Mapping[str, unit_module.DirectiveUnit],
    signals: signal_types.ProjectSignals,
) -> frozenset[str]:
    """
    Compute the candidate set for the given signals.

    Always-on units are included regardless of signals.

    Returns:
        Ids of units with at least one satisfied trigger.
    """
    return frozenset(
        unit_id
        for unit_id, unit in catalog.items()
        if TriggerMatcher(unit.triggers).matches(signals)
    )
