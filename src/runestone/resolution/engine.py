"""
Resolution engine facade.

Runs the full pipeline for one request:

    signals + catalog -> match -> expand -> resolve -> sequence -> bundle

The engine reads the catalog handle once per call and keeps that
reference for the whole call, so a concurrent reload never mixes two
catalogs inside one resolution.
"""

from __future__ import annotations

import logging as _logging
import pathlib as _pathlib
import threading as _threading
import time as _time
import typing as _typing

import runestone.audit.logger as audit_logger
import runestone.catalog.catalog as catalog_module
import runestone.catalog.discovery as discovery
import runestone.errors as errors
import runestone.resolution.bundle as bundle
import runestone.resolution.expander as expander
import runestone.resolution.matcher as matcher
import runestone.resolution.resolver as resolver
import runestone.resolution.sequencer as sequencer
import runestone.signals.collector as collector
import runestone.signals.markers as signal_markers
import runestone.signals.types as signal_types

if _typing.TYPE_CHECKING:
    import runestone.config.settings as settings_module

_logger = _logging.getLogger(__name__)

DEPENDENCY_REASON = "dependency"
REPLACES_PREFIX = "replaces:"


def run_pipeline(
    catalog: catalog_module.Catalog,
    signals: signal_types.ProjectSignals,
) -> bundle.ResolvedBundle:
    """
    Resolve a validated catalog against collected signals.

    Pure: no I/O, no shared state. Identical inputs give identical bundles.

    Args:
        catalog: Validated catalog.
        signals: Collected project signals.

    Returns:
        The ordered bundle.

    Raises:
        InternalInvariantViolation: If a pipeline stage breaks an invariant
            the catalog validation should have ruled out.
    """
    matched = matcher.explain(catalog, signals)
    expanded = expander.expand(catalog, matched)
    resolution = resolver.resolve(catalog, expanded)
    ordered = sequencer.sequence(catalog, resolution.ids)

    replaced: dict[str, list[str]] = {}
    for old, new in resolution.replacements.items():
        replaced.setdefault(new, []).append(old)

    entries = []
    for unit in ordered:
        if unit.is_deprecated:
            raise errors.InternalInvariantViolation(
                f"Deprecated unit '{unit.id}' survived resolution"
            )
        if unit.id in matched:
            reasons = matched[unit.id]
        elif unit.id in replaced:
            reasons = tuple(f"{REPLACES_PREFIX}{old}" for old in sorted(replaced[unit.id]))
        else:
            reasons = (DEPENDENCY_REASON,)
        entries.append(
            bundle.BundleEntry(
                unit=unit,
                overridden_by=resolution.overrides.get(unit.id),
                reasons=reasons,
            )
        )

    return bundle.ResolvedBundle(
        ordered_units=tuple(entries),
        dropped_units=resolution.dropped,
        signals=signals,
    )


class ResolutionEngine:
    """
    Resolves directive bundles for projects against a catalog.

    One engine can serve concurrent calls: it keeps no per-call state and
    the catalog it reads is immutable.

    Usage:
        engine = ResolutionEngine(CatalogHandle("/path/to/catalog"))
        bundle = engine.resolve("/path/to/project", "add a login page")
        for entry in bundle.ordered_units:
            print(entry.id)
    """

    def __init__(
        self,
        catalog: catalog_module.CatalogHandle | catalog_module.Catalog,
        *,
        mode_keywords: _typing.Mapping[str, _typing.Iterable[str]] | None = None,
        read_declared_stack: bool = True,
        audit: audit_logger.ResolutionAuditLogger | None = None,
    ) -> None:
        """
        Initialize the engine.

        Args:
            catalog: Handle to resolve against, or a loaded catalog to wrap.
            mode_keywords: Mode -> keywords table for mode inference.
            read_declared_stack: Whether to read .agent/project.json.
            audit: Audit logger for completed resolutions.
        """
        if isinstance(catalog, catalog_module.Catalog):
            catalog = catalog_module.CatalogHandle.from_catalog(catalog)
        self._handle = catalog
        self._mode_keywords = mode_keywords
        self._read_declared_stack = read_declared_stack
        self._audit = audit

    @classmethod
    def from_settings(
        cls,
        settings: settings_module.Settings,
        *,
        project_root: _pathlib.Path | str | None = None,
        catalog_path: _pathlib.Path | str | None = None,
    ) -> ResolutionEngine:
        """
        Build an engine from settings.

        The catalog location is the explicit `catalog_path`, else
        settings.catalog.path, else the first existing search location.

        Raises:
            CatalogValidationError: If no catalog directory can be found.
        """
        root = _pathlib.Path(project_root) if project_root else None
        source = discovery.find_catalog(
            root,
            explicit=catalog_path or settings.catalog.path,
            extra_paths=settings.catalog_search_paths,
        )
        if source is None:
            searched = discovery.get_catalog_search_paths(
                root, extra_paths=settings.catalog_search_paths
            )
            raise errors.CatalogValidationError(
                [
                    errors.ValidationIssue(
                        code="missing-catalog",
                        message="No catalog directory found (searched: "
                        + ", ".join(str(p) for p in searched)
                        + ")",
                    )
                ]
            )

        audit = None
        if settings.logging.audit_enabled:
            audit = audit_logger.ResolutionAuditLogger(log_dir=settings.audit_dir)

        return cls(
            catalog_module.CatalogHandle(source),
            mode_keywords=settings.signals.mode_keywords,
            read_declared_stack=settings.signals.read_declared_stack,
            audit=audit,
        )

    @property
    def handle(self) -> catalog_module.CatalogHandle:
        return self._handle

    @property
    def catalog(self) -> catalog_module.Catalog:
        """The catalog currently in service."""
        return self._handle.current

    def collector_for(self, catalog: catalog_module.Catalog) -> collector.SignalCollector:
        """Signal collector using the built-in markers plus the catalog's own."""
        return collector.SignalCollector(
            signal_markers.merge_markers(signal_markers.BUILTIN_MARKERS, catalog.markers),
            mode_keywords=self._mode_keywords,
            read_declared_stack=self._read_declared_stack,
        )

    def collect_signals(
        self,
        project_root: _pathlib.Path | str,
        task_text: str,
        explicit_mode: str | None = None,
    ) -> signal_types.ProjectSignals:
        """Collect signals against the catalog currently in service."""
        return self.collector_for(self.catalog).collect(project_root, task_text, explicit_mode)

    def resolve(
        self,
        project_root: _pathlib.Path | str,
        task_text: str,
        explicit_mode: str | None = None,
        *,
        cancel_event: _threading.Event | None = None,
        deadline: float | None = None,
    ) -> bundle.ResolvedBundle:
        """
        Resolve the bundle for a project and task.

        Args:
            project_root: Target project directory.
            task_text: Free-text task request.
            explicit_mode: Caller-chosen mode.
            cancel_event: Checked before and after the pipeline runs.
            deadline: time.monotonic() value; checked at the same points.

        Returns:
            The complete, ordered bundle.

        Raises:
            CatalogValidationError: If the catalog fails to load.
            InvalidArgumentsError: If project_root is missing or unreadable.
            InternalInvariantViolation: If a pipeline invariant breaks.
            ResolutionCancelledError: If cancelled or past the deadline.
        """
        _check_cancelled(cancel_event, deadline)

        catalog = self._handle.current
        try:
            signals = self.collector_for(catalog).collect(
                project_root, task_text, explicit_mode
            )
            result = run_pipeline(catalog, signals)
        except errors.InternalInvariantViolation as e:
            _logger.error("Resolution failed for %s: %s", project_root, e)
            if self._audit is not None:
                self._audit.log_error(e, task_text=task_text, project_root=project_root)
            raise

        _check_cancelled(cancel_event, deadline)

        _logger.info(
            "Resolved %d units (%d dropped) for %s",
            len(result),
            len(result.dropped_units),
            signals.project_root,
        )
        if self._audit is not None:
            self._audit.log_resolution(result, task_text=task_text, catalog_root=catalog.root)
        return result


def _check_cancelled(
    cancel_event: _threading.Event | None,
    deadline: float | None,
) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise errors.ResolutionCancelledError("Resolution cancelled")
    if deadline is not None and _time.monotonic() > deadline:
        raise errors.ResolutionCancelledError("Resolution deadline exceeded")
