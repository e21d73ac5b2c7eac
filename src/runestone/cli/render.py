"""
Human-readable rendering for the CLI using Rich.
"""

import typing as _typing

import rich.console as _rich_console
import rich.markup as _rich_markup
import rich.syntax as _rich_syntax
import rich.table as _rich_table

import runestone.catalog.unit as unit_module
import runestone.errors as errors
import runestone.resolution.bundle as bundle
import runestone.signals.types as signal_types


def _console() -> _rich_console.Console:
    # Created per call so output follows the current sys.stdout
    return _rich_console.Console(highlight=False, soft_wrap=True)


def print_bundle(resolved: bundle.ResolvedBundle) -> None:
    """Print a bundle as an ordered table followed by dropped units."""
    console = _console()

    table = _rich_table.Table(title="Resolved bundle", show_lines=False)
    table.add_column("#", justify="right")
    table.add_column("Unit")
    table.add_column("Kind")
    table.add_column("Tier")
    table.add_column("Why")
    table.add_column("Overridden by")

    for position, entry in enumerate(resolved.ordered_units, start=1):
        table.add_row(
            str(position),
            entry.id,
            entry.unit.kind,
            entry.unit.tier_label,
            ", ".join(entry.reasons),
            entry.overridden_by or "",
            style="dim" if entry.is_informational else None,
        )
    console.print(table)

    if resolved.dropped_units:
        console.print("Dropped:")
        for dropped in resolved.dropped_units:
            console.print(f"  {dropped.original_id}  ({dropped.reason})", markup=False)


def print_units(units: _typing.Iterable[unit_module.DirectiveUnit]) -> None:
    """Print catalog units as a table."""
    table = _rich_table.Table(title="Catalog units")
    table.add_column("Unit")
    table.add_column("Kind")
    table.add_column("Tier")
    table.add_column("Status")
    table.add_column("Description")

    for unit in units:
        status = unit.status
        if unit.replaced_by:
            status = f"{status} -> {unit.replaced_by}"
        table.add_row(
            unit.id,
            unit.kind,
            unit.tier_label,
            status,
            _rich_markup.escape(unit.description),
        )
    _console().print(table)


def print_unit(unit: unit_module.DirectiveUnit, *, show_body: bool = False) -> None:
    """Print one unit's metadata, optionally with its body."""
    console = _console()
    console.print(f"[bold]{unit.id}[/bold] ({unit.kind}, {unit.tier_label})")
    if unit.description:
        console.print(f"  {unit.description}", markup=False)

    rows: list[tuple[str, _typing.Any]] = [
        ("Status", unit.status),
        ("Replaced by", unit.replaced_by),
        ("Depends on", ", ".join(unit.depends_on)),
        ("Enhances", ", ".join(unit.enhances)),
        ("Concerns", ", ".join(unit.concerns)),
        ("Authoritative for", ", ".join(unit.authoritative_for)),
        ("Markers", ", ".join(unit.triggers.markers)),
        ("Keywords", ", ".join(unit.triggers.keywords)),
        ("Modes", ", ".join(unit.triggers.modes)),
        ("Always on", "yes" if unit.triggers.always_on else ""),
        ("Path", unit.path),
    ]
    for label, value in rows:
        if value:
            console.print(f"  {label}: {value}", markup=False)

    if show_body and unit.body:
        console.print()
        console.print(_rich_syntax.Syntax(unit.body, "markdown", background_color="default"))


def print_signals(signals: signal_types.ProjectSignals) -> None:
    """Print collected signals."""
    console = _console()
    console.print(f"Project: {signals.project_root}", markup=False)
    console.print(f"  Markers: {', '.join(sorted(signals.file_markers)) or '(none)'}", markup=False)
    console.print(f"  Keywords: {', '.join(sorted(signals.keywords)) or '(none)'}", markup=False)
    console.print(f"  Mode: {signals.mode or '(none)'}", markup=False)
    for warning in signals.warnings:
        console.print(f"  Warning: {warning.marker}: {warning.message}", markup=False)


def print_issues(issues: _typing.Iterable[errors.ValidationIssue]) -> None:
    """Print validation issues, one per line."""
    console = _console()
    for issue in issues:
        console.print(f"  {issue}", markup=False)


def print_yaml(yaml_text: str) -> None:
    """Print YAML with syntax highlighting when attached to a terminal."""
    _console().print(
        _rich_syntax.Syntax(yaml_text, "yaml", theme="monokai", background_color="default")
    )
