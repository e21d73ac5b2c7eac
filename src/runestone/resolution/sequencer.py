"""
Bundle sequencing.

Orders resolved units by priority tier (mandatory first) while never
placing a unit before one of its dependencies. A dependency in a later
tier is pulled forward to the tier of its earliest dependent, and no
further. Ties are broken by own tier and then id, so the order is fully
deterministic.
"""

from __future__ import annotations

import heapq as _heapq
import typing as _typing

import runestone.catalog.unit as unit_module
import runestone.errors as errors
import runestone.resolution.resolver as resolver

if _typing.TYPE_CHECKING:
    import collections.abc as _abc


def effective_tiers(
    catalog: _abc.Mapping[str, unit_module.DirectiveUnit],
    dependencies: _abc.Mapping[str, _abc.Sequence[str]],
) -> dict[str, int]:
    """
    Compute the tier each unit is sequenced in.

    A unit's effective tier is the lowest of its own tier and the effective
    tiers of every unit depending on it, so a dependency is emitted as
    early as its most urgent dependent needs.

    Args:
        catalog: Validated catalog.
        dependencies: Unit id -> dependency ids, restricted to the bundle.

    Returns:
        Unit id -> effective tier.
    """
    tiers = {unit_id: catalog[unit_id].priority_tier for unit_id in dependencies}
    pending = sorted(dependencies)
    while pending:
        unit_id = pending.pop()
        for dep in dependencies[unit_id]:
            if tiers[unit_id] < tiers[dep]:
                tiers[dep] = tiers[unit_id]
                pending.append(dep)
    return tiers


def sequence(
    catalog: _abc.Mapping[str, unit_module.DirectiveUnit],
    ids: _typing.Iterable[str],
) -> list[unit_module.DirectiveUnit]:
    """
    Order units topologically, preferring lower (effective tier, tier, id).

    This is Kahn's algorithm with a heap as the ready queue. Dependencies
    are taken through deprecation redirection and restricted to `ids`.

    Args:
        catalog: Validated catalog.
        ids: Resolved unit ids.

    Returns:
        Units in bundle order.

    Raises:
        InternalInvariantViolation: If the units contain a dependency cycle.
    """
    members = set(ids)
    dependencies: dict[str, list[str]] = {}
    dependents: dict[str, list[str]] = {unit_id: [] for unit_id in members}

    for unit_id in members:
        deps = [
            d
            for d in resolver.effective_dependencies(catalog, catalog[unit_id])
            if d in members and d != unit_id
        ]
        dependencies[unit_id] = deps
        for dep in deps:
            dependents[dep].append(unit_id)

    tiers = effective_tiers(catalog, dependencies)
    remaining = {unit_id: len(deps) for unit_id, deps in dependencies.items()}

    def key(unit_id: str) -> tuple[int, int, str]:
        return (tiers[unit_id], catalog[unit_id].priority_tier, unit_id)

    ready = [key(unit_id) for unit_id, count in remaining.items() if count == 0]
    _heapq.heapify(ready)

    ordered: list[unit_module.DirectiveUnit] = []
    while ready:
        _, _, unit_id = _heapq.heappop(ready)
        ordered.append(catalog[unit_id])
        for dependent in dependents[unit_id]:
            remaining[dependent] -= 1
            if remaining[dependent] == 0:
                _heapq.heappush(ready, key(dependent))

    if len(ordered) != len(members):
        stuck = sorted(members - {u.id for u in ordered})
        raise errors.InternalInvariantViolation(
            f"Dependency cycle among resolved units: {', '.join(stuck)}"
        )
    return ordered
