"""
Conflict resolution.

Decides bundle membership after expansion:

1. Deprecation redirection - every deprecated unit is replaced by the end
   of its replaced-by chain and recorded as dropped. Replacements are
   expanded again so the result stays dependency-closed.
2. Deduplication - membership is a set, so duplicates cannot occur.
3. Authoritative override - when an included unit is authoritative for a
   concern, every other included unit addressing that concern stays in
   the bundle but is flagged as overridden by it.

Ordering is left to the sequencer.
"""

from __future__ import annotations

import collections as _collections
import dataclasses as _dataclasses
import logging as _logging
import typing as _typing

import runestone.catalog.unit as unit_module
import runestone.errors as errors
import runestone.resolution.expander as expander

if _typing.TYPE_CHECKING:
    import collections.abc as _abc

_logger = _logging.getLogger(__name__)

SUPERSEDED_PREFIX = "superseded-by:"


@_dataclasses.dataclass(frozen=True)
class DroppedUnit:
    """A unit that was selected but removed from the bundle."""

    original_id: str
    reason: str

    def to_dict(self) -> dict[str, str]:
        return {"id": self.original_id, "reason": self.reason}


@_dataclasses.dataclass(frozen=True)
class Resolution:
    """Membership decided by the resolver."""

    ids: frozenset[str]
    """Final unit ids (no deprecated units)."""

    dropped: tuple[DroppedUnit, ...]
    """Redirected-away units, sorted by id."""

    overrides: _abc.Mapping[str, str]
    """Overridden unit id -> id of the authoritative unit."""

    replacements: _abc.Mapping[str, str]
    """Deprecated id -> final replacement id, for every redirect applied."""


def _rank(unit: unit_module.DirectiveUnit) -> tuple[int, str]:
    return (unit.priority_tier, unit.id)


def final_replacement(
    catalog: _abc.Mapping[str, unit_module.DirectiveUnit],
    unit_id: str,
) -> str:
    """
    Follow a replaced-by chain to its active end.

    Returns:
        The id itself if the unit is active, else the final replacement.

    Raises:
        InternalInvariantViolation: If the chain is broken or does not end
            within len(catalog) steps.
    """
    current = unit_id
    for _ in range(len(catalog) + 1):
        unit = catalog.get(current)
        if unit is None:
            raise errors.InternalInvariantViolation(
                f"Replacement chain from '{unit_id}' reaches unknown unit '{current}'"
            )
        if not unit.is_deprecated:
            return current
        if unit.replaced_by is None:
            raise errors.InternalInvariantViolation(
                f"Deprecated unit '{current}' has no replacement"
            )
        current = unit.replaced_by

    raise errors.InternalInvariantViolation(
        f"Replacement chain from '{unit_id}' did not terminate within {len(catalog)} steps"
    )


def effective_dependencies(
    catalog: _abc.Mapping[str, unit_module.DirectiveUnit],
    unit: unit_module.DirectiveUnit,
) -> tuple[str, ...]:
    """
    A unit's depends-on with deprecated targets redirected.

    Returns:
        Sorted, deduplicated dependency ids.
    """
    return tuple(sorted({final_replacement(catalog, dep) for dep in unit.depends_on}))


def redirect(
    catalog: _abc.Mapping[str, unit_module.DirectiveUnit],
    ids: _typing.Iterable[str],
) -> tuple[frozenset[str], dict[str, str]]:
    """
    Replace deprecated units until none remain.

    Each pass redirects every deprecated unit and re-expands the result
    (a replacement may depend on further units, some of them deprecated).

    Returns:
        (final ids, deprecated id -> final replacement id)

    Raises:
        InternalInvariantViolation: If no fixed point is reached within
            len(catalog) passes.
    """
    current = set(ids)
    replacements: dict[str, str] = {}

    for _ in range(len(catalog) + 1):
        deprecated = sorted(u for u in current if catalog[u].is_deprecated)
        if not deprecated:
            return frozenset(current), replacements

        for unit_id in deprecated:
            target = final_replacement(catalog, unit_id)
            replacements[unit_id] = target
            current.discard(unit_id)
            current.add(target)
            _logger.debug("Redirected deprecated unit %s -> %s", unit_id, target)

        current = set(expander.expand(catalog, current))

    raise errors.InternalInvariantViolation(
        f"Deprecation redirection did not settle within {len(catalog)} passes"
    )


def find_overrides(
    catalog: _abc.Mapping[str, unit_module.DirectiveUnit],
    ids: _typing.Iterable[str],
) -> dict[str, str]:
    """
    Apply authoritative override per concern.

    For each concern, the included units authoritative for it are ranked
    by (priority tier, id) and the first becomes the authority. Every other
    included unit addressing the concern is flagged as overridden by it.
    A unit overridden on several concerns records the best-ranked
    authority.

    Returns:
        Overridden id -> authoritative id.
    """
    participants: dict[str, list[unit_module.DirectiveUnit]] = _collections.defaultdict(list)
    for unit_id in sorted(ids):
        unit = catalog[unit_id]
        for concern in unit.all_concerns:
            participants[concern].append(unit)

    overrides: dict[str, str] = {}
    for concern in sorted(participants):
        units = participants[concern]
        authorities = sorted(
            (u for u in units if concern in u.authoritative_for),
            key=_rank,
        )
        if not authorities:
            continue

        authority = authorities[0]
        for unit in units:
            if unit.id == authority.id:
                continue
            existing = overrides.get(unit.id)
            if existing is None or _rank(authority) < _rank(catalog[existing]):
                overrides[unit.id] = authority.id
                _logger.debug(
                    "Unit %s overridden by %s on concern %s",
                    unit.id,
                    authority.id,
                    concern,
                )

    return dict(sorted(overrides.items()))


def resolve(
    catalog: _abc.Mapping[str, unit_module.DirectiveUnit],
    expanded: _typing.Iterable[str],
) -> Resolution:
    """
    Decide final bundle membership.

    Args:
        catalog: Validated catalog.
        expanded: Dependency-closed candidate ids.

    Returns:
        Resolution with final ids, dropped units and overrides.

    Raises:
        InternalInvariantViolation: If redirection does not terminate.
    """
    ids, replacements = redirect(catalog, expanded)

    dropped = tuple(
        DroppedUnit(original_id=old, reason=f"{SUPERSEDED_PREFIX}{new}")
        for old, new in sorted(replacements.items())
    )

    return Resolution(
        ids=ids,
        dropped=dropped,
        overrides=find_overrides(catalog, ids),
        replacements=replacements,
    )
