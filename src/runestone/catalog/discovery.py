"""
Catalog discovery from standard locations.

The catalog directory is chosen from:
1. An explicit path (CLI --catalog or settings catalog.path), used even
   if it does not exist so the loader can report it

Otherwise the first existing directory among:
2. Configured search paths (settings catalog.search_paths)
3. $RUNESTONE_CATALOG_PATH - Custom paths (colon-separated)
4. Project .agent/ - The project's own directive folder
5. Project .runestone/catalog/
6. <user config dir>/catalog/ - User catalog (global); the user config
   dir is $RUNESTONE_CONFIG_DIR or ~/.config/runestone
"""

from __future__ import annotations

import os as _os
import pathlib as _pathlib

import runestone.config.sources as config_sources


def get_global_catalog_path() -> _pathlib.Path:
    """Get the path to the global catalog directory."""
    return config_sources.get_user_config_dir() / "catalog"


def get_project_catalog_paths(project_root: _pathlib.Path) -> list[_pathlib.Path]:
    """Get the project-local catalog locations, most preferred first."""
    return [
        project_root / ".agent",
        project_root / ".runestone" / "catalog",
    ]


def get_catalog_search_paths(
    project_root: _pathlib.Path | None = None,
    *,
    extra_paths: list[_pathlib.Path] | None = None,
) -> list[_pathlib.Path]:
    """
    Get all catalog search paths in priority order.

    Args:
        project_root: Project root directory. If None, project-local
                      locations are skipped.
        extra_paths: Configured search paths, checked before the
                     environment variable.

    Returns:
        List of paths to check (highest priority first).
    """
    paths: list[_pathlib.Path] = []

    for p in extra_paths or []:
        paths.append(_pathlib.Path(p).expanduser())

    env_path = _os.environ.get("RUNESTONE_CATALOG_PATH", "")
    if env_path:
        for p in env_path.split(":"):
            p = p.strip()
            if p:
                paths.append(_pathlib.Path(p).expanduser().resolve())

    if project_root is not None:
        paths.extend(get_project_catalog_paths(project_root))

    paths.append(get_global_catalog_path())
    return paths


def find_catalog(
    project_root: _pathlib.Path | None = None,
    *,
    explicit: _pathlib.Path | str | None = None,
    extra_paths: list[_pathlib.Path] | None = None,
) -> _pathlib.Path | None:
    """
    Find the catalog directory to load.

    An explicit path is returned as-is (even if missing) so the loader can
    report it; otherwise the first existing search path wins.

    Returns:
        Catalog directory, or None if none of the locations exist.
    """
    if explicit is not None:
        return _pathlib.Path(explicit).expanduser()

    for path in get_catalog_search_paths(project_root, extra_paths=extra_paths):
        if path.is_dir():
            return path
    return None
