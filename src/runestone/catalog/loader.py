"""
Catalog loading from a directory of unit descriptions.

A catalog directory follows the .agent layout:

    <catalog>/
      agents/<id>.md            kind: agent
      skills/<id>/SKILL.md      kind: skill
      rules/<id>.md             kind: rule
      workflows/<id>.md         kind: workflow-step
      units/**/*.yaml           any kind (must declare `kind`)
      markers.yaml              extra file-marker checks (optional)

Markdown units carry their metadata in YAML frontmatter; the body is kept
as the unit's instructions. Markdown files without frontmatter are plain
documentation and are not units.

Loading never stops at the first problem. Parse failures are collected
together with the semantic validation issues so a broken catalog can be
fixed in one pass.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import hashlib as _hashlib
import logging as _logging
import pathlib as _pathlib
import re as _re
import typing as _typing

import pydantic as _pydantic
import yaml as _yaml

import runestone.catalog.unit as unit_module
import runestone.errors as errors
import runestone.signals.markers as markers

_logger = _logging.getLogger(__name__)

# Regex to extract YAML frontmatter from markdown
_FRONTMATTER_RE = _re.compile(
    r"^---\s*\n(.*?)\n---\s*\n?(.*)$",
    _re.DOTALL,
)

# Directory name -> unit kind for markdown units
KIND_DIRECTORIES: dict[str, str] = {
    "agents": "agent",
    "rules": "rule",
    "workflows": "workflow-step",
}

SKILLS_DIRECTORY = "skills"
SKILL_FILE = "SKILL.md"
UNITS_DIRECTORY = "units"
MARKERS_FILE = "markers.yaml"


@_dataclasses.dataclass
class LoadResult:
    """Raw output of scanning a catalog directory, before validation."""

    units: list[unit_module.DirectiveUnit] = _dataclasses.field(default_factory=list)
    issues: list[errors.ValidationIssue] = _dataclasses.field(default_factory=list)
    markers: tuple[markers.MarkerCheck, ...] = ()
    files: list[_pathlib.Path] = _dataclasses.field(default_factory=list)


def _is_hidden(path: _pathlib.Path) -> bool:
    return path.name.startswith((".", "_"))


def default_unit_id(stem: str) -> str:
    """Derive a unit id from a file or directory name."""
    return _re.sub(r"[\s_]+", "-", stem.strip()).lower()


def split_frontmatter(content: str) -> tuple[dict[str, _typing.Any], str] | None:
    """
    Split markdown into frontmatter data and body.

    Returns:
        (frontmatter dict, body), or None if there is no frontmatter.

    Raises:
        ValueError: If the frontmatter is not valid YAML or not a mapping.
    """
    match = _FRONTMATTER_RE.match(content)
    if not match:
        return None

    try:
        data = _yaml.safe_load(match.group(1)) or {}
    except _yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in frontmatter: {e}") from e

    if not isinstance(data, dict):
        raise ValueError("Frontmatter must be a YAML mapping")

    return data, match.group(2).strip()


def build_unit(
    data: dict[str, _typing.Any],
    *,
    default_id: str | None,
    default_kind: str | None,
    path: _pathlib.Path,
    body: str = "",
    source: str = "catalog",
) -> unit_module.DirectiveUnit:
    """
    Build a DirectiveUnit from declared metadata.

    `id` falls back to `name` (skill frontmatter convention) and then to
    `default_id`. `kind` falls back to `default_kind`; if both are given
    they must agree.

    Raises:
        ValueError: If the metadata is invalid.
    """
    fields = dict(data)

    if "id" not in fields:
        if "name" in fields:
            fields["id"] = fields["name"]
        elif default_id is not None:
            fields["id"] = default_id

    declared_kind = fields.get("kind")
    if default_kind is not None:
        if declared_kind is not None and declared_kind != default_kind:
            raise ValueError(
                f"kind '{declared_kind}' does not match directory kind '{default_kind}'"
            )
        fields["kind"] = default_kind

    fields["body"] = body
    fields["path"] = path
    fields["source"] = source

    try:
        return unit_module.DirectiveUnit.model_validate(fields)
    except _pydantic.ValidationError as e:
        raise ValueError(f"Invalid unit metadata: {e}") from e


class CatalogLoader:
    """
    Scans a catalog directory and parses every declared unit.

    The loader only parses. Cross-unit checks live in
    runestone.catalog.validation and run on the loader's output.
    """

    def __init__(self, root: _pathlib.Path, *, source: str = "catalog") -> None:
        """
        Initialize the loader.

        Args:
            root: Catalog directory.
            source: Label recorded on every loaded unit.
        """
        self._root = root
        self._source = source

    @property
    def root(self) -> _pathlib.Path:
        return self._root

    def iter_unit_files(self) -> _typing.Iterator[tuple[_pathlib.Path, str | None]]:
        """
        Yield (path, default kind) for every candidate unit file.

        Files are yielded in sorted order so loading is deterministic.
        """
        for dirname, kind in sorted(KIND_DIRECTORIES.items()):
            directory = self._root / dirname
            if not directory.is_dir():
                continue
            for path in sorted(directory.glob("*.md")):
                if path.is_file() and not _is_hidden(path):
                    yield path, kind

        skills_dir = self._root / SKILLS_DIRECTORY
        if skills_dir.is_dir():
            for skill_dir in sorted(skills_dir.iterdir()):
                skill_file = skill_dir / SKILL_FILE
                if skill_dir.is_dir() and not _is_hidden(skill_dir) and skill_file.is_file():
                    yield skill_file, "skill"

        units_dir = self._root / UNITS_DIRECTORY
        if units_dir.is_dir():
            for path in sorted(units_dir.rglob("*")):
                if (
                    path.suffix in (".yaml", ".yml")
                    and path.is_file()
                    and not _is_hidden(path)
                ):
                    yield path, None

    def load(self) -> LoadResult:
        """
        Parse all units and marker definitions.

        Returns:
            LoadResult with parsed units and any parse issues.
        """
        result = LoadResult()

        if not self._root.is_dir():
            result.issues.append(
                errors.ValidationIssue(
                    code="missing-catalog",
                    message="catalog directory not found",
                    path=self._root,
                )
            )
            return result

        for path, kind in self.iter_unit_files():
            result.files.append(path)
            try:
                if path.suffix == ".md":
                    unit = self._load_markdown(path, kind)
                    parsed = [unit] if unit is not None else []
                else:
                    parsed = self._load_yaml(path)
            except (OSError, UnicodeDecodeError, ValueError) as e:
                result.issues.append(
                    errors.ValidationIssue(code="parse-error", message=str(e), path=path)
                )
                continue

            for unit in parsed:
                result.units.append(unit)
                for key in unit.unknown_fields():
                    result.issues.append(
                        errors.ValidationIssue(
                            code="unknown-field",
                            unit_id=unit.id,
                            message=f"unknown field '{key}'",
                            path=path,
                        )
                    )

        markers_path = self._root / MARKERS_FILE
        if markers_path.is_file():
            result.files.append(markers_path)
            try:
                result.markers = markers.load_marker_file(markers_path)
            except (OSError, ValueError) as e:
                result.issues.append(
                    errors.ValidationIssue(code="parse-error", message=str(e), path=markers_path)
                )

        _logger.debug(
            "Loaded %d units from %s (%d parse issues)",
            len(result.units),
            self._root,
            len(result.issues),
        )
        return result

    def _load_markdown(
        self,
        path: _pathlib.Path,
        kind: str | None,
    ) -> unit_module.DirectiveUnit | None:
        content = path.read_text(encoding="utf-8")
        split = split_frontmatter(content)
        if split is None:
            _logger.debug("Skipping %s: no frontmatter", path)
            return None

        data, body = split
        stem = path.parent.name if path.name == SKILL_FILE else path.stem
        return build_unit(
            data,
            default_id=default_unit_id(stem),
            default_kind=kind,
            path=path,
            body=body,
            source=self._source,
        )

    def _load_yaml(self, path: _pathlib.Path) -> list[unit_module.DirectiveUnit]:
        try:
            data = _yaml.safe_load(path.read_text(encoding="utf-8"))
        except _yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML: {e}") from e

        if data is None:
            return []

        # A file holds either one unit or a `units:` list
        if isinstance(data, dict) and "units" in data:
            entries = data["units"]
            if not isinstance(entries, list):
                raise ValueError("'units' must be a list")
        else:
            entries = [data]

        units: list[unit_module.DirectiveUnit] = []
        for index, entry in enumerate(entries):
            if not isinstance(entry, dict):
                raise ValueError(f"unit #{index} must be a mapping")
            body = str(entry.pop("body", "") or "")
            units.append(
                build_unit(
                    entry,
                    default_id=default_unit_id(path.stem) if len(entries) == 1 else None,
                    default_kind=None,
                    path=path,
                    body=body,
                    source=self._source,
                )
            )
        return units


def fingerprint(root: _pathlib.Path) -> str:
    """
    Compute a cheap change fingerprint for a catalog directory.

    Based on the relative path, mtime and size of every file the loader
    would read, so edits, additions and removals all change it.
    """
    loader = CatalogLoader(root)
    digest = _hashlib.sha256()
    if not root.is_dir():
        return digest.hexdigest()

    paths = [path for path, _ in loader.iter_unit_files()]
    markers_path = root / MARKERS_FILE
    if markers_path.is_file():
        paths.append(markers_path)

    for path in paths:
        try:
            stat = path.stat()
        except OSError:
            continue
        rel = path.relative_to(root).as_posix()
        digest.update(f"{rel}\0{stat.st_mtime_ns}\0{stat.st_size}\n".encode())
    return digest.hexdigest()
