"""
Shared pytest fixtures for Runestone tests.

This file is automatically loaded by pytest. Fixtures defined here are
available to all test files without explicit imports.
"""

import logging as _logging
import os as _os
import pathlib as _pathlib
import typing as _typing

import pytest as _pytest
import yaml as _yaml

import runestone.catalog as catalog
import runestone.catalog.unit as unit_module

# Kind -> how a markdown unit file is laid out in a catalog directory
_KIND_LAYOUT = {
    "agent": "agents/{id}.md",
    "rule": "rules/{id}.md",
    "workflow-step": "workflows/{id}.md",
    "skill": "skills/{id}/SKILL.md",
}


# =============================================================================
# Environment isolation
# =============================================================================


@_pytest.fixture(autouse=True)
def isolated_environment(
    tmp_path_factory: _pytest.TempPathFactory,
    monkeypatch: _pytest.MonkeyPatch,
) -> _pathlib.Path:
    """
    Keep tests away from the developer's own config and catalogs.

    Clears RUNESTONE_* variables and points HOME and the user config
    directory at an empty temporary directory.
    """
    for key in list(_os.environ):
        if key.startswith("RUNESTONE_"):
            monkeypatch.delenv(key, raising=False)

    home = tmp_path_factory.mktemp("home")
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("RUNESTONE_CONFIG_DIR", str(home / ".config" / "runestone"))
    return home


@_pytest.fixture(autouse=True)
def reset_runestone_logger() -> _typing.Iterator[None]:
    """Drop handlers the CLI attaches so they do not outlive a test."""
    logger = _logging.getLogger("runestone")
    handlers, level = list(logger.handlers), logger.level
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)


# =============================================================================
# Unit and catalog builders
# =============================================================================


def build_unit(unit_id: str, kind: str = "rule", **fields: _typing.Any) -> unit_module.DirectiveUnit:
    """Build a DirectiveUnit; field names may use either spelling (depends_on/depends-on)."""
    return unit_module.DirectiveUnit.model_validate({"id": unit_id, "kind": kind, **fields})


def write_unit_file(
    root: _pathlib.Path,
    unit_id: str,
    kind: str = "rule",
    body: str = "Instructions.",
    **fields: _typing.Any,
) -> _pathlib.Path:
    """Write a markdown unit with YAML frontmatter into a catalog directory."""
    path = root / _KIND_LAYOUT[kind].format(id=unit_id)
    path.parent.mkdir(parents=True, exist_ok=True)
    frontmatter = _yaml.safe_dump(fields, sort_keys=False)
    path.write_text(f"---\n{frontmatter}---\n\n{body}\n", encoding="utf-8")
    return path


@_pytest.fixture
def make_unit() -> _typing.Callable[..., unit_module.DirectiveUnit]:
    """Factory for in-memory units."""
    return build_unit


@_pytest.fixture
def write_unit() -> _typing.Callable[..., _pathlib.Path]:
    """Factory that writes unit files: write_unit(root, id, kind, **frontmatter)."""
    return write_unit_file


@_pytest.fixture
def make_catalog() -> _typing.Callable[..., catalog.Catalog]:
    """Factory for validated in-memory catalogs from units."""

    def _make(*units: unit_module.DirectiveUnit) -> catalog.Catalog:
        return catalog.Catalog.from_units(units)

    return _make


@_pytest.fixture
def project_dir(tmp_path: _pathlib.Path) -> _pathlib.Path:
    """An empty project directory (no markers at all)."""
    project = tmp_path / "project"
    project.mkdir()
    return project


@_pytest.fixture
def sample_catalog_dir(tmp_path: _pathlib.Path) -> _pathlib.Path:
    """
    A small catalog covering every kind and relation.

    - core: always-on mandatory rule
    - old-skill: deprecated, replaced by new-skill (keyword "migrate")
    - new-skill: depends on core (keyword "upgrade")
    - react-patterns: has-react marker, depends on frontend-basics (advisory)
    - styling-authority: has-react marker, authoritative for styling
    - debugger: agent for debugging mode
    - write-tests: workflow step for "test*" keywords
    """
    root = tmp_path / "catalog"
    write_unit_file(
        root,
        "core",
        "rule",
        description="Ground rules",
        triggers={"always-on": True},
        **{"priority-tier": "mandatory"},
    )
    write_unit_file(
        root,
        "old-skill",
        "skill",
        description="Old migration guide",
        status="deprecated",
        triggers={"keywords": ["migrate"]},
        **{"replaced-by": "new-skill", "priority-tier": "task-triggered"},
    )
    write_unit_file(
        root,
        "new-skill",
        "skill",
        description="Migration guide",
        triggers={"keywords": ["upgrade"]},
        **{"depends-on": ["core"], "priority-tier": "task-triggered"},
    )
    write_unit_file(
        root,
        "react-patterns",
        "skill",
        description="React component patterns",
        triggers={"markers": ["has-react"]},
        concerns=["styling"],
        **{"depends-on": ["frontend-basics"], "priority-tier": "tech-triggered"},
    )
    write_unit_file(
        root,
        "frontend-basics",
        "rule",
        description="Frontend basics",
        **{"priority-tier": "advisory"},
    )
    write_unit_file(
        root,
        "styling-authority",
        "rule",
        description="Styling conventions",
        triggers={"markers": ["has-react"]},
        **{"authoritative-for": ["styling"], "priority-tier": "tech-triggered"},
    )
    write_unit_file(
        root,
        "debugger",
        "agent",
        description="Debugging specialist",
        triggers={"modes": ["debugging"]},
        **{"priority-tier": "task-triggered"},
    )
    write_unit_file(
        root,
        "write-tests",
        "workflow-step",
        description="Write tests first",
        triggers={"keywords": ["test*"]},
        **{"depends-on": ["core"], "priority-tier": "task-triggered"},
    )
    return root


@_pytest.fixture
def react_project(project_dir: _pathlib.Path) -> _pathlib.Path:
    """A project whose package.json depends on react."""
    (project_dir / "package.json").write_text(
        '{"dependencies": {"react": "^18.0.0"}}', encoding="utf-8"
    )
    return project_dir
