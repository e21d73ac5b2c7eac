"""
The immutable catalog and the handle that serves it.

A Catalog is built once from a validated set of units and never changes.
Reloading produces a new Catalog; CatalogHandle swaps its reference so
resolution calls already holding the old catalog are unaffected.
"""

from __future__ import annotations

import collections.abc as _abc
import logging as _logging
import pathlib as _pathlib
import threading as _threading
import types as _types
import typing as _typing

import runestone.catalog.loader as loader
import runestone.catalog.unit as unit_module
import runestone.catalog.validation as validation
import runestone.errors as errors
import runestone.signals.markers as signal_markers

_logger = _logging.getLogger(__name__)


class Catalog(_abc.Mapping[str, unit_module.DirectiveUnit]):
    """
    Read-only mapping of unit id to DirectiveUnit.

    Construct with Catalog.from_units() or load(); both validate and
    refuse to build a catalog with any issue.
    """

    __slots__ = ("_units", "_markers", "_root", "_fingerprint")

    def __init__(
        self,
        units: _abc.Mapping[str, unit_module.DirectiveUnit],
        *,
        markers: _typing.Iterable[signal_markers.MarkerCheck] = (),
        root: _pathlib.Path | None = None,
        fingerprint: str | None = None,
    ) -> None:
        # Private: callers go through from_units()/load() so validation always runs
        self._units = _types.MappingProxyType(dict(sorted(units.items())))
        self._markers = tuple(markers)
        self._root = root
        self._fingerprint = fingerprint

    @classmethod
    def from_units(
        cls,
        units: _typing.Iterable[unit_module.DirectiveUnit],
        *,
        markers: _typing.Iterable[signal_markers.MarkerCheck] = (),
        root: _pathlib.Path | None = None,
        fingerprint: str | None = None,
    ) -> Catalog:
        """
        Validate units and build a catalog.

        Raises:
            CatalogValidationError: With every issue found.
        """
        unit_list = list(units)
        issues = validation.validate(unit_list)
        if issues:
            raise errors.CatalogValidationError(issues)
        return cls(
            {u.id: u for u in unit_list},
            markers=markers,
            root=root,
            fingerprint=fingerprint,
        )

    # Mapping interface
    def __getitem__(self, unit_id: str) -> unit_module.DirectiveUnit:
        return self._units[unit_id]

    def __iter__(self) -> _typing.Iterator[str]:
        return iter(self._units)

    def __len__(self) -> int:
        return len(self._units)

    def __repr__(self) -> str:
        return f"Catalog(units={len(self)}, root={self._root!s})"

    @property
    def root(self) -> _pathlib.Path | None:
        """Directory the catalog was loaded from, if any."""
        return self._root

    @property
    def markers(self) -> tuple[signal_markers.MarkerCheck, ...]:
        """Extra marker checks declared by the catalog."""
        return self._markers

    @property
    def fingerprint(self) -> str | None:
        return self._fingerprint

    def units(self, kind: str | None = None) -> list[unit_module.DirectiveUnit]:
        """List units sorted by id, optionally filtered by kind."""
        return [u for u in self._units.values() if kind is None or u.kind == kind]

    def always_on(self) -> list[unit_module.DirectiveUnit]:
        return [u for u in self._units.values() if u.is_always_on]

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "root": str(self._root) if self._root else None,
            "unit_count": len(self),
            "units": [u.to_dict() for u in self._units.values()],
            "markers": [m.name for m in self._markers],
        }


def load(catalog_source: _pathlib.Path | str) -> Catalog:
    """
    Load and validate a catalog directory.

    Args:
        catalog_source: Catalog directory.

    Returns:
        A validated, immutable Catalog.

    Raises:
        CatalogValidationError: With all parse and validation issues.
    """
    source = _pathlib.Path(catalog_source).expanduser()
    root = source.resolve() if source.exists() else source
    result = loader.CatalogLoader(root).load()

    issues = list(result.issues)
    issues.extend(validation.validate(result.units))
    if issues:
        _logger.warning("Catalog %s has %d validation issue(s)", root, len(issues))
        raise errors.CatalogValidationError(issues)

    return Catalog(
        {u.id: u for u in result.units},
        markers=result.markers,
        root=root,
        fingerprint=loader.fingerprint(root),
    )


class CatalogHandle:
    """
    Holds the current catalog for a process and swaps it on reload.

    Readers call `current` once per resolution and keep that reference for
    the whole call. Reloads are serialised by a lock and replace the
    reference only after the new catalog validated, so a bad on-disk edit
    never takes down the catalog in service.
    """

    def __init__(
        self,
        source: _pathlib.Path | str | None,
        *,
        catalog: Catalog | None = None,
    ) -> None:
        """
        Initialize the handle.

        Args:
            source: Catalog directory to (re)load from. None for an
                in-memory catalog that cannot be reloaded.
            catalog: Already-loaded catalog to serve initially. If None,
                the catalog is loaded on first access.

        Raises:
            InvalidArgumentsError: If neither source nor catalog is given.
        """
        if source is None and catalog is None:
            raise errors.InvalidArgumentsError("CatalogHandle needs a source or a catalog")
        self._source = _pathlib.Path(source).expanduser() if source is not None else None
        self._catalog = catalog
        self._lock = _threading.Lock()

    @classmethod
    def from_catalog(cls, catalog: Catalog) -> CatalogHandle:
        """Wrap an in-memory catalog. Reload reads from its root, if it has one."""
        return cls(catalog.root, catalog=catalog)

    @property
    def source(self) -> _pathlib.Path | None:
        return self._source

    @property
    def current(self) -> Catalog:
        """
        The catalog in service. Loads it on first access.

        Raises:
            CatalogValidationError: If the first load fails.
        """
        catalog = self._catalog
        if catalog is not None:
            return catalog
        with self._lock:
            if self._catalog is None:
                self._catalog = load(self._require_source())
            return self._catalog

    def reload(self) -> Catalog:
        """
        Load the source again and swap it in.

        Returns:
            The new catalog.

        Raises:
            CatalogValidationError: If the new catalog is invalid. The
                previous catalog stays in service.
            InvalidArgumentsError: If the handle has no source directory.
        """
        source = self._require_source()
        with self._lock:
            new_catalog = load(source)
            self._catalog = new_catalog
        _logger.info("Reloaded catalog from %s (%d units)", source, len(new_catalog))
        return new_catalog

    def reload_if_changed(self) -> bool:
        """
        Reload only if the source files changed since the last load.

        Returns:
            True if a new catalog was swapped in. Always False for an
            in-memory catalog without a source.
        """
        if self._source is None:
            return False
        catalog = self._catalog
        if catalog is not None and catalog.fingerprint == loader.fingerprint(self._source):
            return False
        self.reload()
        return True

    def _require_source(self) -> _pathlib.Path:
        if self._source is None:
            raise errors.InvalidArgumentsError(
                "Catalog has no source directory and cannot be reloaded"
            )
        return self._source
