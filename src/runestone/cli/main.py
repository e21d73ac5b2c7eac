"""
Main CLI entry point for Runestone.

Provides the command-line interface using Click.

Exit codes for `runestone resolve`:
    0  success
    1  catalog validation failed (every issue is printed)
    2  invalid arguments (e.g. missing or unreadable project root)
    3  internal invariant violation or cancellation
"""

import json as _json
import logging as _logging
import pathlib as _pathlib
import sys as _sys
import typing as _typing

import click as _click
import pydantic as _pydantic

import runestone
import runestone.audit.logger as audit_logger
import runestone.catalog as catalog
import runestone.catalog.loader as catalog_loader
import runestone.cli.render as render
import runestone.config as config
import runestone.config.sources as config_sources
import runestone.errors as errors
import runestone.resolution as resolution
import runestone.signals as signals
import runestone.signals.collector as signal_collector

EXIT_OK = 0
EXIT_CATALOG_INVALID = 1
EXIT_INVALID_ARGUMENTS = 2
EXIT_INTERNAL_ERROR = 3

# Custom Click context settings for better help formatting
CONTEXT_SETTINGS: dict[str, _typing.Any] = {
    "help_option_names": ["-h", "--help"],
    "max_content_width": 100,
}


def _set_catalog_path(
    ctx: _click.Context, _param: _click.Parameter, value: _pathlib.Path | None
) -> None:
    if value is not None:
        ctx.ensure_object(dict)["catalog_path"] = value


catalog_option = _click.option(
    "--catalog",
    "catalog_path",
    type=_click.Path(file_okay=False, path_type=_pathlib.Path),
    default=None,
    expose_value=False,
    callback=_set_catalog_path,
    help="Catalog directory",
)


def _configure_logging(level: str) -> None:
    """Send runestone log records to stderr at the given level."""
    handler = _logging.StreamHandler(_sys.stderr)
    handler.setFormatter(_logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    logger = _logging.getLogger("runestone")
    logger.handlers[:] = [handler]
    logger.setLevel(level)


def _load_settings(project_root: _pathlib.Path | None = None) -> config.Settings:
    """Load settings, turning config file problems and unknown keys into a CLI error."""
    try:
        if project_root is not None:
            settings = config.Settings(project_root=project_root)
        else:
            settings = config.Settings()
    except (config.ConfigFileError, _pydantic.ValidationError) as e:
        raise _click.ClickException(f"Invalid configuration: {e}") from None

    extras = settings.collect_all_extra_fields()
    if extras:
        raise _click.ClickException(
            "Invalid configuration: unknown key(s): " + ", ".join(sorted(extras))
        )
    return settings


def _settings_for(ctx: _click.Context, project_root: _pathlib.Path | None) -> config.Settings:
    settings = _load_settings(project_root)
    if not ctx.obj.get("verbose"):
        _configure_logging(settings.logging.level)
    return settings


def _catalog_path(ctx: _click.Context, settings: config.Settings) -> _pathlib.Path | None:
    """Explicit --catalog, else settings, else None (discovery decides)."""
    explicit = ctx.obj.get("catalog_path")
    if explicit is not None:
        return _pathlib.Path(explicit)
    if settings.catalog.path:
        return _pathlib.Path(settings.catalog.path)
    return None


def _echo_issues(issues: _typing.Sequence[errors.ValidationIssue], *, as_json: bool) -> None:
    if as_json:
        _click.echo(
            _json.dumps(
                {"valid": False, "issues": [issue.to_dict() for issue in issues]},
                indent=2,
            )
        )
    else:
        _click.echo(f"Catalog validation failed with {len(issues)} issue(s):", err=True)
        render.print_issues(issues)


def _load_catalog(
    ctx: _click.Context,
    settings: config.Settings,
    project_root: _pathlib.Path | None,
    *,
    as_json: bool,
) -> catalog.Catalog:
    """Find and load the catalog, exiting 1 with every issue on failure."""
    source = catalog.find_catalog(
        project_root,
        explicit=_catalog_path(ctx, settings),
        extra_paths=settings.catalog_search_paths,
    )
    if source is None:
        issue = errors.ValidationIssue(
            code="missing-catalog",
            message="No catalog directory found; use --catalog or set catalog.path",
        )
        _echo_issues([issue], as_json=as_json)
        raise SystemExit(EXIT_CATALOG_INVALID)

    try:
        return catalog.load(source)
    except errors.CatalogValidationError as e:
        _echo_issues(e.issues, as_json=as_json)
        raise SystemExit(EXIT_CATALOG_INVALID) from None


@_click.group(context_settings=CONTEXT_SETTINGS)
@_click.version_option(runestone.__version__, "-v", "--version", prog_name="runestone")
@_click.option(
    "--catalog",
    "catalog_path",
    type=_click.Path(file_okay=False, path_type=_pathlib.Path),
    default=None,
    help="Catalog directory (overrides discovery and config)",
)
@_click.option(
    "--verbose",
    is_flag=True,
    help="Enable debug logging on stderr",
)
@_click.pass_context
def cli(ctx: _click.Context, catalog_path: _pathlib.Path | None, verbose: bool) -> None:
    """
    Runestone - Directive resolution for AI coding assistants.

    Selects the agents, skills, rules and workflow steps that apply to a
    task in a project, in the order they should be applied.

    \b
    Examples:
        runestone resolve . "add a login page"      # Resolve a bundle
        runestone resolve . "fix the bug" --json    # Machine-readable output
        runestone catalog validate                  # Check the catalog
        runestone signals . "write tests"           # Show detected signals
    """
    if verbose:
        _configure_logging("DEBUG")

    ctx.ensure_object(dict)
    ctx.obj["catalog_path"] = catalog_path
    ctx.obj["verbose"] = verbose


# =============================================================================
# Resolution
# =============================================================================


@cli.command(name="resolve")
@_click.argument("project_root", type=_click.Path(path_type=_pathlib.Path))
@_click.argument("task_text", nargs=-1)
@_click.option("--mode", type=str, default=None, help="Explicit mode (overrides inference)")
@catalog_option
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.pass_context
def resolve_cmd(
    ctx: _click.Context,
    project_root: _pathlib.Path,
    task_text: tuple[str, ...],
    mode: str | None,
    json_output: bool,
) -> None:
    """Resolve the directive bundle for a task in a project.

    \b
    Examples:
        runestone resolve . "add a login page"
        runestone resolve ~/src/shop "deploy" --mode deployment --json
    """
    try:
        root = signal_collector.check_project_root(project_root)
    except errors.InvalidArgumentsError as e:
        _click.echo(f"Error: {e}", err=True)
        raise SystemExit(EXIT_INVALID_ARGUMENTS) from None

    settings = _settings_for(ctx, root)
    loaded = _load_catalog(ctx, settings, root, as_json=json_output)

    audit = None
    if settings.logging.audit_enabled:
        audit = audit_logger.ResolutionAuditLogger(log_dir=settings.audit_dir)

    engine = resolution.ResolutionEngine(
        loaded,
        mode_keywords=settings.signals.mode_keywords,
        read_declared_stack=settings.signals.read_declared_stack,
        audit=audit,
    )

    try:
        result = engine.resolve(root, " ".join(task_text), mode)
    except errors.InvalidArgumentsError as e:
        _click.echo(f"Error: {e}", err=True)
        raise SystemExit(EXIT_INVALID_ARGUMENTS) from None
    except (errors.InternalInvariantViolation, errors.ResolutionCancelledError) as e:
        _click.echo(f"Error: {e}", err=True)
        raise SystemExit(EXIT_INTERNAL_ERROR) from None

    if json_output or settings.behavior.output_format == "json":
        _click.echo(result.to_json(indent=2))
    else:
        render.print_bundle(result)


@cli.command(name="signals")
@_click.argument("project_root", type=_click.Path(path_type=_pathlib.Path))
@_click.argument("task_text", nargs=-1)
@_click.option("--mode", type=str, default=None, help="Explicit mode")
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.pass_context
def signals_cmd(
    ctx: _click.Context,
    project_root: _pathlib.Path,
    task_text: tuple[str, ...],
    mode: str | None,
    json_output: bool,
) -> None:
    """Show the signals collected for a project and task.

    Uses the built-in markers plus any markers.yaml of the catalog, when
    one can be found.
    """
    try:
        root = signal_collector.check_project_root(project_root)
    except errors.InvalidArgumentsError as e:
        _click.echo(f"Error: {e}", err=True)
        raise SystemExit(EXIT_INVALID_ARGUMENTS) from None

    settings = _settings_for(ctx, root)

    marker_checks: _typing.Iterable[signals.MarkerCheck] = signals.BUILTIN_MARKERS
    source = catalog.find_catalog(
        root,
        explicit=_catalog_path(ctx, settings),
        extra_paths=settings.catalog_search_paths,
    )
    if source is not None and source.is_dir():
        marker_file = source / catalog_loader.MARKERS_FILE
        if marker_file.is_file():
            try:
                extra = signals.load_marker_file(marker_file)
            except (OSError, ValueError) as e:
                raise _click.ClickException(f"Invalid marker file {marker_file}: {e}") from None
            marker_checks = signals.merge_markers(signals.BUILTIN_MARKERS, extra)

    collector = signals.SignalCollector(
        marker_checks,
        mode_keywords=settings.signals.mode_keywords,
        read_declared_stack=settings.signals.read_declared_stack,
    )
    collected = collector.collect(root, " ".join(task_text), mode)

    if json_output:
        _click.echo(_json.dumps(collected.to_dict(), indent=2))
    else:
        render.print_signals(collected)


# =============================================================================
# Catalog Commands
# =============================================================================


@cli.group(name="catalog")
@_click.option(
    "--project",
    "project_root",
    type=_click.Path(exists=True, file_okay=False, path_type=_pathlib.Path),
    default=".",
    help="Project whose catalog locations and config are used",
)
@_click.pass_context
def catalog_cmd(ctx: _click.Context, project_root: _pathlib.Path) -> None:
    """Catalog inspection commands."""
    ctx.obj["project_root"] = project_root.resolve()


@catalog_cmd.command(name="validate")
@catalog_option
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.pass_context
def catalog_validate(ctx: _click.Context, json_output: bool) -> None:
    """Validate the catalog and report every issue.

    Exits 1 when the catalog has any issue.
    """
    project_root = ctx.obj["project_root"]
    settings = _settings_for(ctx, project_root)
    loaded = _load_catalog(ctx, settings, project_root, as_json=json_output)

    if json_output:
        _click.echo(
            _json.dumps(
                {
                    "valid": True,
                    "root": str(loaded.root) if loaded.root else None,
                    "units": len(loaded),
                    "issues": [],
                },
                indent=2,
            )
        )
    else:
        _click.echo(f"Catalog OK: {len(loaded)} units ({loaded.root})")


@catalog_cmd.command(name="list")
@catalog_option
@_click.option(
    "--kind",
    type=_click.Choice(list(catalog.UNIT_KINDS)),
    default=None,
    help="Only list units of this kind",
)
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.pass_context
def catalog_list(ctx: _click.Context, kind: str | None, json_output: bool) -> None:
    """List catalog units."""
    project_root = ctx.obj["project_root"]
    settings = _settings_for(ctx, project_root)
    loaded = _load_catalog(ctx, settings, project_root, as_json=json_output)
    units = loaded.units(kind)

    if json_output:
        _click.echo(_json.dumps([u.to_dict() for u in units], indent=2))
    elif not units:
        _click.echo("No units found.")
    else:
        render.print_units(units)


@catalog_cmd.command(name="show")
@catalog_option
@_click.argument("unit_id")
@_click.option("--body", "show_body", is_flag=True, help="Include the unit body")
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.pass_context
def catalog_show(ctx: _click.Context, unit_id: str, show_body: bool, json_output: bool) -> None:
    """Show one unit."""
    project_root = ctx.obj["project_root"]
    settings = _settings_for(ctx, project_root)
    loaded = _load_catalog(ctx, settings, project_root, as_json=json_output)

    unit = loaded.get(unit_id)
    if unit is None:
        if json_output:
            _click.echo(_json.dumps({"error": f"Unit not found: {unit_id}"}, indent=2))
        else:
            _click.echo(f"Error: Unit not found: {unit_id}", err=True)
        raise SystemExit(1)

    if json_output:
        data = unit.to_dict()
        if show_body:
            data["body"] = unit.body
        _click.echo(_json.dumps(data, indent=2))
    else:
        render.print_unit(unit, show_body=show_body)


# =============================================================================
# Config Commands
# =============================================================================


@cli.group(name="config")
def config_cmd() -> None:
    """Configuration commands."""
    pass


@config_cmd.command(name="show")
@_click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@_click.option("--section", type=str, default=None, help="Show specific section only")
@_click.pass_context
def config_show(ctx: _click.Context, as_json: bool, section: str | None) -> None:
    """Show effective configuration from all sources.

    Displays the merged configuration from built-in defaults, user config,
    project config (.runestone/config.yaml in the current directory) and
    RUNESTONE_* environment variables.
    """
    import yaml as _yaml

    settings = _settings_for(ctx, _pathlib.Path.cwd())
    full_config = settings.to_dict()

    if section:
        if section not in full_config:
            raise _click.ClickException(f"Unknown section: {section}")
        full_config = {section: full_config[section]}

    if as_json:
        _click.echo(_json.dumps(full_config, indent=2))
    else:
        render.print_yaml(_yaml.safe_dump(full_config, default_flow_style=False, sort_keys=False))


@config_cmd.command(name="path")
@_click.option("--all", "show_all", is_flag=True, help="Show all paths even if not found")
def config_path(show_all: bool) -> None:
    """Show configuration file paths and their status."""
    paths = [
        ("Built-in defaults", config_sources.get_builtin_defaults_path()),
        ("User config", config_sources.get_user_config_path()),
        ("Project config", config_sources.get_project_config_path(_pathlib.Path.cwd())),
    ]
    for name, path in paths:
        exists = path.exists()
        if exists or show_all:
            status = "✓" if exists else "✗"
            _click.echo(f"{status} {name}: {path}")


def main() -> None:
    """Main entry point with correct program name."""
    cli(prog_name="runestone")


if __name__ == "__main__":
    main()
