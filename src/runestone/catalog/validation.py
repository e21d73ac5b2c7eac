"""
Catalog validation.

Runs once at load time and reports every problem found:
- duplicate unit ids
- references (depends-on, enhances, replaced-by) to unknown ids
- deprecated units without a replacement, or whose replacement chain
  never reaches an active unit
- cycles in depends-on
"""

from __future__ import annotations

import collections as _collections
import collections.abc as _abc
import typing as _typing

import runestone.catalog.unit as unit_module
import runestone.errors as errors

UnitsOrMapping = _typing.Union[
    _typing.Iterable[unit_module.DirectiveUnit],
    _abc.Mapping[str, unit_module.DirectiveUnit],
]


def _as_unit_list(units: UnitsOrMapping) -> list[unit_module.DirectiveUnit]:
    if isinstance(units, _abc.Mapping):
        values: _typing.Iterable[unit_module.DirectiveUnit] = units.values()
    else:
        values = units
    return sorted(values, key=lambda u: u.id)


def check_unique_ids(
    units: list[unit_module.DirectiveUnit],
) -> list[errors.ValidationIssue]:
    """Report every id declared more than once."""
    by_id: dict[str, list[unit_module.DirectiveUnit]] = _collections.defaultdict(list)
    for unit in units:
        by_id[unit.id].append(unit)

    issues: list[errors.ValidationIssue] = []
    for unit_id, dupes in sorted(by_id.items()):
        if len(dupes) > 1:
            locations = ", ".join(str(u.path) if u.path else "<memory>" for u in dupes)
            issues.append(
                errors.ValidationIssue(
                    code="duplicate-id",
                    unit_id=unit_id,
                    message=f"id declared {len(dupes)} times: {locations}",
                    path=dupes[1].path,
                )
            )
    return issues


def check_references(
    index: dict[str, unit_module.DirectiveUnit],
) -> list[errors.ValidationIssue]:
    """Report depends-on/enhances/replaced-by targets that do not exist."""
    issues: list[errors.ValidationIssue] = []
    for unit in index.values():
        for relation, target in unit.references():
            if target not in index:
                issues.append(
                    errors.ValidationIssue(
                        code="broken-reference",
                        unit_id=unit.id,
                        message=f"{relation} references unknown unit '{target}'",
                        path=unit.path,
                    )
                )
    return issues


def check_deprecations(
    index: dict[str, unit_module.DirectiveUnit],
) -> list[errors.ValidationIssue]:
    """
    Check that every deprecated unit redirects to an active unit.

    Follows replaced-by chains transitively, detecting cycles in the chain.
    Unknown targets are reported by check_references and not repeated here.
    """
    issues: list[errors.ValidationIssue] = []
    for unit in index.values():
        if not unit.is_deprecated:
            continue

        if unit.replaced_by is None:
            issues.append(
                errors.ValidationIssue(
                    code="missing-replacement",
                    unit_id=unit.id,
                    message="deprecated unit has no replaced-by",
                    path=unit.path,
                )
            )
            continue

        chain = [unit.id]
        current = unit
        while current.is_deprecated and current.replaced_by is not None:
            target_id = current.replaced_by
            if target_id not in index:
                break
            if target_id in chain:
                cycle = " -> ".join([*chain[chain.index(target_id):], target_id])
                issues.append(
                    errors.ValidationIssue(
                        code="replacement-cycle",
                        unit_id=unit.id,
                        message=f"replaced-by chain loops: {cycle}",
                        path=unit.path,
                    )
                )
                break
            chain.append(target_id)
            current = index[target_id]
        else:
            if current.is_deprecated and current is not unit:
                issues.append(
                    errors.ValidationIssue(
                        code="unresolved-replacement",
                        unit_id=unit.id,
                        message=(
                            f"replaced-by chain {' -> '.join(chain)} ends at deprecated "
                            f"unit '{current.id}' with no replacement"
                        ),
                        path=unit.path,
                    )
                )
    return issues


def _replacement_target(
    index: dict[str, unit_module.DirectiveUnit],
    unit_id: str,
) -> str | None:
    """End of the replaced-by chain from unit_id, or None if it never resolves."""
    current = unit_id
    for _ in range(len(index) + 1):
        unit = index.get(current)
        if unit is None:
            return None
        if not unit.is_deprecated:
            return current
        if unit.replaced_by is None:
            return None
        current = unit.replaced_by
    return None


def _dependency_edges(
    index: dict[str, unit_module.DirectiveUnit],
    unit: unit_module.DirectiveUnit,
) -> list[str]:
    """Declared dependencies plus their redirected replacements."""
    edges = set()
    for dep in unit.depends_on:
        if dep not in index:
            continue
        edges.add(dep)
        target = _replacement_target(index, dep)
        if target is not None:
            edges.add(target)
    return sorted(edges)


def check_dependency_cycles(
    index: dict[str, unit_module.DirectiveUnit],
) -> list[errors.ValidationIssue]:
    """
    Report each cycle in the depends-on graph once.

    A dependency on a deprecated unit also counts as a dependency on its
    replacement, since that is what resolution will order by.
    """
    white, grey, black = 0, 1, 2
    color = dict.fromkeys(index, white)
    stack: list[str] = []
    issues: list[errors.ValidationIssue] = []

    def visit(node: str) -> None:
        color[node] = grey
        stack.append(node)
        for dep in _dependency_edges(index, index[node]):
            if color[dep] == grey:
                cycle = [*stack[stack.index(dep):], dep]
                issues.append(
                    errors.ValidationIssue(
                        code="dependency-cycle",
                        unit_id=dep,
                        message=f"depends-on cycle: {' -> '.join(cycle)}",
                        path=index[dep].path,
                    )
                )
            elif color[dep] == white:
                visit(dep)
        stack.pop()
        color[node] = black

    for node in sorted(index):
        if color[node] == white:
            visit(node)
    return issues


def validate(units: UnitsOrMapping) -> list[errors.ValidationIssue]:
    """
    Validate a set of units as a catalog.

    Args:
        units: Units to check, or a mapping of id to unit.

    Returns:
        Every issue found, in a deterministic order. Empty if valid.
    """
    unit_list = _as_unit_list(units)
    issues = check_unique_ids(unit_list)

    # First declaration wins for the remaining checks
    index: dict[str, unit_module.DirectiveUnit] = {}
    for unit in unit_list:
        index.setdefault(unit.id, unit)

    issues.extend(check_references(index))
    issues.extend(check_deprecations(index))
    issues.extend(check_dependency_cycles(index))
    return issues
