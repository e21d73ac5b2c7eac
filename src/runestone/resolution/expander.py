"""
Dependency expansion.

Closes a candidate set under depends-on. Enhances edges are advisory and
never followed.
"""

from __future__ import annotations

import typing as _typing

import runestone.catalog.unit as unit_module
import runestone.errors as errors

if _typing.TYPE_CHECKING:
    import collections.abc as _abc


def expand(
    catalog: _abc.Mapping[str, unit_module.DirectiveUnit],
    candidates: _typing.Iterable[str],
) -> frozenset[str]:
    """
    Compute the transitive closure of candidates under depends-on.

    The catalog is validated acyclic, so each round adds at least one new
    unit and the closure completes in at most len(catalog) rounds.

    Args:
        catalog: Validated catalog.
        candidates: Starting unit ids.

    Returns:
        Candidates plus every unit they transitively depend on.

    Raises:
        InternalInvariantViolation: On an unknown id or if the round
            bound is exceeded.
    """
    included: set[str] = set()
    for unit_id in candidates:
        if unit_id not in catalog:
            raise errors.InternalInvariantViolation(f"Unknown unit id in candidates: {unit_id}")
        included.add(unit_id)

    frontier = sorted(included)
    rounds = 0
    while frontier:
        rounds += 1
        if rounds > len(catalog):
            raise errors.InternalInvariantViolation(
                f"Dependency expansion exceeded {len(catalog)} rounds"
            )

        added: set[str] = set()
        for unit_id in frontier:
            for dep in catalog[unit_id].depends_on:
                if dep not in catalog:
                    raise errors.InternalInvariantViolation(
                        f"Unit '{unit_id}' depends on unknown unit '{dep}'"
                    )
                if dep not in included:
                    added.add(dep)

        included |= added
        frontier = sorted(added)

    return frozenset(included)
