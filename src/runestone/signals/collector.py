"""
Signal collection from a project directory and a task request.

The collector evaluates every marker check independently, tokenizes the
task text, optionally reads the declared tech stack from
.agent/project.json, and infers a mode from keywords. It only reads the
filesystem and never fails the whole run for one unreadable path.
"""

from __future__ import annotations

import json as _json
import logging as _logging
import os as _os
import pathlib as _pathlib
import re as _re
import typing as _typing

import runestone.errors as errors
import runestone.signals.markers as markers
import runestone.signals.types as types

_logger = _logging.getLogger(__name__)

# Words: letters/digits, with inner hyphens kept ("react-native")
_TOKEN_RE = _re.compile(r"[^\W_]+(?:-[^\W_]+)*")
_SLUG_RE = _re.compile(r"[^a-z0-9]+")

DECLARED_STACK_FILE = ".agent/project.json"

DEFAULT_MODE_KEYWORDS: dict[str, tuple[str, ...]] = {
    "debugging": ("debug", "bug", "bugs", "crash", "error", "fix", "broken"),
    "deployment": ("deploy", "deployment", "release", "ship", "rollout"),
    "planning": ("plan", "design", "architecture", "spec", "roadmap"),
    "review": ("review", "audit", "refactor"),
    "scaffolding": ("scaffold", "bootstrap", "boilerplate"),
    "testing": ("test", "tests", "testing", "coverage", "tdd"),
}
"""Mode -> keywords that suggest it. Mirrors the plan/scaffold/test/review/deploy workflows."""


def tokenize(text: str) -> frozenset[str]:
    """
    Split free text into normalized keywords.

    Lowercases, strips punctuation and deduplicates. Hyphenated words are
    kept whole and also contribute their parts ("react-native" yields
    "react-native", "react" and "native").
    """
    tokens: set[str] = set()
    for match in _TOKEN_RE.finditer(text.lower().replace("'", "")):
        token = match.group(0)
        tokens.add(token)
        if "-" in token:
            tokens.update(part for part in token.split("-") if part)
    return frozenset(tokens)


def infer_mode(
    keywords: _typing.AbstractSet[str],
    mode_keywords: _typing.Mapping[str, _typing.Iterable[str]] | None = None,
) -> str | None:
    """
    Infer a mode from keywords.

    The mode with the most keyword hits wins; ties go to the
    alphabetically first mode name.

    Returns:
        Mode name, or None if no mode keyword appears.
    """
    table = DEFAULT_MODE_KEYWORDS if mode_keywords is None else mode_keywords
    best: tuple[int, str] | None = None
    for mode in sorted(table):
        hits = len(keywords & {k.lower() for k in table[mode]})
        if hits and (best is None or hits > best[0]):
            best = (hits, mode)
    return best[1] if best else None


def slugify(value: str) -> str:
    """Normalize a tech-stack name for use in a marker ("Next.js" -> "next-js")."""
    return _SLUG_RE.sub("-", value.lower()).strip("-")


def _split_stack_value(value: _typing.Any) -> list[str]:
    if isinstance(value, list):
        return [str(v) for v in value if str(v).strip()]
    if isinstance(value, str):
        # The init script writes space-separated names; commas are also accepted
        parts = value.split(",") if "," in value else value.split()
        return [p.strip() for p in parts if p.strip()]
    return []


def read_declared_stack(project_root: _pathlib.Path) -> frozenset[str]:
    """
    Read `stack:<name>` markers from .agent/project.json.

    Returns:
        Marker names; empty if the file does not exist.

    Raises:
        OSError: If the file exists but cannot be read.
        ValueError: If the file is not valid JSON or has the wrong shape.
    """
    path = project_root / DECLARED_STACK_FILE
    if not path.is_file():
        return frozenset()

    try:
        data = _json.loads(path.read_text(encoding="utf-8"))
    except _json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a JSON object")
    stack = data.get("tech_stack") or {}
    if not isinstance(stack, dict):
        raise ValueError(f"'tech_stack' in {path} must be an object")

    names: set[str] = set()
    for value in stack.values():
        for name in _split_stack_value(value):
            slug = slugify(name)
            if slug:
                names.add(f"stack:{slug}")
    return frozenset(names)


def check_project_root(project_root: _pathlib.Path | str) -> _pathlib.Path:
    """
    Validate that the project root is an existing, readable directory.

    Raises:
        InvalidArgumentsError: If it is missing, not a directory, or unreadable.
    """
    root = _pathlib.Path(project_root).expanduser()
    if not root.exists():
        raise errors.InvalidArgumentsError(f"Project root does not exist: {root}")
    if not root.is_dir():
        raise errors.InvalidArgumentsError(f"Project root is not a directory: {root}")
    if not _os.access(root, _os.R_OK | _os.X_OK):
        raise errors.InvalidArgumentsError(f"Project root is not readable: {root}")
    return root.resolve()


class SignalCollector:
    """
    Collects ProjectSignals for a project directory and task text.

    Holds the marker registry and mode table so one collector can serve
    many calls; it keeps no per-call state.
    """

    def __init__(
        self,
        marker_checks: _typing.Iterable[markers.MarkerCheck] | None = None,
        *,
        mode_keywords: _typing.Mapping[str, _typing.Iterable[str]] | None = None,
        read_declared_stack: bool = True,
    ) -> None:
        """
        Initialize the collector.

        Args:
            marker_checks: Marker registry. Defaults to the built-in markers.
            mode_keywords: Mode -> keywords table. Defaults to DEFAULT_MODE_KEYWORDS.
            read_declared_stack: Whether to read .agent/project.json.
        """
        if marker_checks is None:
            marker_checks = markers.BUILTIN_MARKERS
        self._markers = tuple(marker_checks)
        self._mode_keywords = (
            {mode: tuple(words) for mode, words in mode_keywords.items()}
            if mode_keywords is not None
            else DEFAULT_MODE_KEYWORDS
        )
        self._read_declared_stack = read_declared_stack

    @property
    def markers(self) -> tuple[markers.MarkerCheck, ...]:
        return self._markers

    def collect_markers(
        self,
        project_root: _pathlib.Path,
    ) -> tuple[frozenset[str], tuple[types.SignalCollectionWarning, ...]]:
        """
        Evaluate every marker check.

        A check that raises OSError counts as negative and yields a warning.

        Returns:
            (names of markers that hold, warnings)
        """
        present: set[str] = set()
        warnings: list[types.SignalCollectionWarning] = []

        for check in self._markers:
            try:
                if check.evaluate(project_root):
                    present.add(check.name)
            except OSError as e:
                _logger.warning("Marker check %s failed: %s", check.name, e)
                warnings.append(types.SignalCollectionWarning(check.name, str(e)))

        if self._read_declared_stack:
            try:
                present.update(read_declared_stack(project_root))
            except (OSError, ValueError) as e:
                _logger.warning("Could not read declared tech stack: %s", e)
                warnings.append(types.SignalCollectionWarning("declared-stack", str(e)))

        return frozenset(present), tuple(warnings)

    def collect(
        self,
        project_root: _pathlib.Path | str,
        task_text: str,
        explicit_mode: str | None = None,
    ) -> types.ProjectSignals:
        """
        Collect signals for one resolution call.

        Args:
            project_root: Target project directory.
            task_text: Free-text task request.
            explicit_mode: Caller-chosen mode; recorded as-is.

        Returns:
            Immutable ProjectSignals.

        Raises:
            InvalidArgumentsError: If project_root is missing or unreadable.
        """
        root = check_project_root(project_root)
        file_markers, warnings = self.collect_markers(root)
        keywords = tokenize(task_text or "")

        signals = types.ProjectSignals(
            file_markers=file_markers,
            keywords=keywords,
            explicit_mode=explicit_mode,
            inferred_mode=infer_mode(keywords, self._mode_keywords),
            warnings=warnings,
            project_root=root,
        )
        _logger.debug(
            "Collected %d markers, %d keywords, mode=%s for %s",
            len(signals.file_markers),
            len(signals.keywords),
            signals.mode,
            root,
        )
        return signals


def collect(
    project_root: _pathlib.Path | str,
    task_text: str,
    explicit_mode: str | None = None,
    *,
    marker_checks: _typing.Iterable[markers.MarkerCheck] | None = None,
    mode_keywords: _typing.Mapping[str, _typing.Iterable[str]] | None = None,
) -> types.ProjectSignals:
    """
    Convenience function to collect signals with a one-off collector.

    See SignalCollector.collect().
    """
    collector = SignalCollector(marker_checks, mode_keywords=mode_keywords)
    return collector.collect(project_root, task_text, explicit_mode)
