"""
File-marker checks.

A marker is a named boolean fact about a project directory, such as
"has-react" or "has-docker". Each check is independent: a missing path
simply evaluates to False. Checks only read the filesystem.

Catalogs can extend the built-in registry with a markers.yaml file:

```yaml
markers:
  - name: has-storybook
    kind: exists
    paths: [.storybook]
  - name: has-tailwind
    kind: contains
    paths: [package.json]
    text: ['"tailwindcss"']
```
"""

from __future__ import annotations

import pathlib as _pathlib
import typing as _typing

import pydantic as _pydantic
import yaml as _yaml

# Manifest files can be large lockfile-like blobs; only the head is searched
MAX_MARKER_READ_BYTES = 1024 * 1024

MarkerKind = _typing.Literal["exists", "file", "dir", "contains", "any"]


class MarkerCheck(_pydantic.BaseModel):
    """
    A single marker check.

    Kinds:
    - exists: any of `paths` exists (file or directory)
    - file: any of `paths` is a regular file
    - dir: any of `paths` is a directory
    - contains: any of `paths` is a file containing any of `text`
    - any: any of the nested `checks` holds
    """

    model_config = _pydantic.ConfigDict(extra="forbid", frozen=True)

    name: str = ""
    """Marker name. Required for registry entries, optional for nested checks."""

    kind: MarkerKind = "exists"

    paths: tuple[str, ...] = ()
    """Paths relative to the project root."""

    text: tuple[str, ...] = ()
    """Substrings searched for by `contains` checks."""

    ignore_case: bool = False

    checks: tuple[MarkerCheck, ...] = ()
    """Nested checks for `any`."""

    @_pydantic.field_validator("paths", "text", mode="before")
    @classmethod
    def _coerce_sequence(cls, value: _typing.Any) -> _typing.Any:
        if isinstance(value, str):
            return (value,)
        return value

    @_pydantic.model_validator(mode="after")
    def _validate_kind_fields(self) -> MarkerCheck:
        """Validate that the right fields are set for the check kind."""
        if self.kind == "any":
            if not self.checks:
                raise ValueError("'any' markers must specify 'checks'")
        elif not self.paths:
            raise ValueError(f"'{self.kind}' markers must specify 'paths'")
        if self.kind == "contains" and not self.text:
            raise ValueError("'contains' markers must specify 'text'")
        for path in self.paths:
            if _pathlib.PurePath(path).is_absolute():
                raise ValueError(f"marker paths must be relative: {path}")
        return self

    def evaluate(self, project_root: _pathlib.Path) -> bool:
        """
        Evaluate the check against a project directory.

        Returns:
            True if the marker holds.

        Raises:
            OSError: If a path exists but cannot be read (e.g. permission denied).
        """
        if self.kind == "any":
            return any(check.evaluate(project_root) for check in self.checks)

        for rel in self.paths:
            target = project_root / rel
            if self.kind == "exists" and target.exists():
                return True
            if self.kind == "file" and target.is_file():
                return True
            if self.kind == "dir" and target.is_dir():
                return True
            if self.kind == "contains" and target.is_file() and self._file_contains(target):
                return True
        return False

    def _file_contains(self, path: _pathlib.Path) -> bool:
        with path.open("r", encoding="utf-8", errors="replace") as f:
            content = f.read(MAX_MARKER_READ_BYTES)
        if self.ignore_case:
            content = content.lower()
            return any(t.lower() in content for t in self.text)
        return any(t in content for t in self.text)


MarkerCheck.model_rebuild()


def _file(name: str, *paths: str) -> MarkerCheck:
    return MarkerCheck(name=name, kind="file", paths=paths)


def _contains(
    name: str,
    paths: tuple[str, ...],
    *text: str,
    ignore_case: bool = False,
) -> MarkerCheck:
    return MarkerCheck(
        name=name,
        kind="contains",
        paths=paths,
        text=text,
        ignore_case=ignore_case,
    )


_PYTHON_MANIFESTS = ("requirements.txt", "pyproject.toml")

BUILTIN_MARKERS: tuple[MarkerCheck, ...] = (
    # Node / frontend
    _file("has-package-json", "package.json"),
    _contains("has-next", ("package.json",), '"next"'),
    _contains("has-react", ("package.json",), '"react"'),
    _contains("has-vue", ("package.json",), '"vue"'),
    MarkerCheck(
        name="has-typescript",
        kind="any",
        checks=(
            MarkerCheck(kind="file", paths=("tsconfig.json",)),
            MarkerCheck(kind="contains", paths=("package.json",), text=('"typescript"',)),
        ),
    ),
    # PHP
    _file("has-composer", "composer.json"),
    _contains("has-laravel", ("composer.json",), '"laravel/framework"'),
    _contains(
        "has-inertia",
        ("composer.json", "package.json"),
        "inertiajs/inertia-laravel",
        '"@inertiajs/',
    ),
    # Python
    _file("has-requirements", "requirements.txt"),
    _file("has-pyproject", "pyproject.toml"),
    _contains("has-fastapi", _PYTHON_MANIFESTS, "fastapi", ignore_case=True),
    _contains("has-django", _PYTHON_MANIFESTS, "django", ignore_case=True),
    # Other backends
    _file("has-go", "go.mod"),
    _file("has-rust", "Cargo.toml"),
    # Mobile
    _file("has-flutter", "pubspec.yaml"),
    _file("has-react-native", "ios/Podfile", "android/build.gradle"),
    # Data / infra
    _file("has-prisma", "prisma/schema.prisma"),
    _file("has-docker", "Dockerfile", "docker-compose.yml", "docker-compose.yaml", "compose.yaml"),
    MarkerCheck(name="has-git", kind="exists", paths=(".git",)),
    _file("has-agent-config", ".agent/project.json"),
)
"""Built-in marker registry, covering the stacks the .agent init script detects."""


class MarkerFile(_pydantic.BaseModel):
    """Schema of a catalog markers.yaml file."""

    model_config = _pydantic.ConfigDict(extra="forbid")

    version: int = 1
    markers: list[MarkerCheck] = _pydantic.Field(default_factory=list)

    @_pydantic.model_validator(mode="after")
    def _validate_names(self) -> MarkerFile:
        seen: set[str] = set()
        for marker in self.markers:
            if not marker.name:
                raise ValueError("every marker must have a 'name'")
            if marker.name in seen:
                raise ValueError(f"duplicate marker name: {marker.name}")
            seen.add(marker.name)
        return self


def load_marker_file(path: _pathlib.Path) -> tuple[MarkerCheck, ...]:
    """
    Load marker definitions from a YAML file.

    Args:
        path: Path to markers.yaml.

    Returns:
        Tuple of marker checks in file order.

    Raises:
        FileNotFoundError: If file doesn't exist.
        ValueError: If file is invalid.
    """
    if not path.exists():
        raise FileNotFoundError(f"Marker file not found: {path}")

    try:
        data = _yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        return tuple(MarkerFile.model_validate(data).markers)
    except _yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e
    except _pydantic.ValidationError as e:
        raise ValueError(f"Invalid marker definitions in {path}: {e}") from e


def merge_markers(
    base: _typing.Iterable[MarkerCheck],
    extra: _typing.Iterable[MarkerCheck],
) -> tuple[MarkerCheck, ...]:
    """
    Merge two marker registries.

    Markers from `extra` with the same name as a `base` marker replace it
    in place; new names are appended.
    """
    merged: dict[str, MarkerCheck] = {m.name: m for m in base}
    for marker in extra:
        merged[marker.name] = marker
    return tuple(merged.values())
