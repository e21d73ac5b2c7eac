"""
Tests for file-marker checks.

Tests verify that:
- Each check kind evaluates against the project directory
- Built-in markers detect common stacks
- Marker files load and merge with the built-in registry
"""

import pathlib as _pathlib

import pydantic as _pydantic
import pytest as _pytest

import runestone.signals.markers as markers


def _names_present(project: _pathlib.Path) -> set[str]:
    return {m.name for m in markers.BUILTIN_MARKERS if m.evaluate(project)}


class TestMarkerCheck:
    """Tests for MarkerCheck evaluation."""

    def test_file_and_dir_kinds(self, tmp_path: _pathlib.Path) -> None:
        """file matches regular files only; dir matches directories only."""
        (tmp_path / "Makefile").write_text("all:\n", encoding="utf-8")
        (tmp_path / "docs").mkdir()

        assert markers.MarkerCheck(name="m", kind="file", paths=["Makefile"]).evaluate(tmp_path)
        assert not markers.MarkerCheck(name="m", kind="file", paths=["docs"]).evaluate(tmp_path)
        assert markers.MarkerCheck(name="m", kind="dir", paths=["docs"]).evaluate(tmp_path)
        assert markers.MarkerCheck(name="m", kind="exists", paths=["docs"]).evaluate(tmp_path)

    def test_contains_kind(self, tmp_path: _pathlib.Path) -> None:
        """contains looks for substrings, optionally ignoring case."""
        (tmp_path / "requirements.txt").write_text("FastAPI==0.110\n", encoding="utf-8")

        exact = markers.MarkerCheck(
            name="m", kind="contains", paths="requirements.txt", text="fastapi"
        )
        folded = markers.MarkerCheck(
            name="m",
            kind="contains",
            paths="requirements.txt",
            text="fastapi",
            ignore_case=True,
        )
        assert not exact.evaluate(tmp_path)
        assert folded.evaluate(tmp_path)

    def test_any_kind(self, tmp_path: _pathlib.Path) -> None:
        """any holds when one nested check holds."""
        check = markers.MarkerCheck(
            name="m",
            kind="any",
            checks=[
                {"kind": "file", "paths": ["a"]},
                {"kind": "file", "paths": ["b"]},
            ],
        )
        assert not check.evaluate(tmp_path)
        (tmp_path / "b").write_text("", encoding="utf-8")
        assert check.evaluate(tmp_path)

    @_pytest.mark.parametrize(
        "fields",
        [
            {"kind": "file"},
            {"kind": "contains", "paths": ["a"]},
            {"kind": "any"},
            {"kind": "file", "paths": ["/etc/passwd"]},
            {"kind": "regex", "paths": ["a"]},
        ],
    )
    def test_invalid_checks_rejected(self, fields: dict) -> None:
        """Missing required fields, absolute paths and unknown kinds are rejected."""
        with _pytest.raises(_pydantic.ValidationError):
            markers.MarkerCheck(name="m", **fields)


class TestBuiltinMarkers:
    """Tests for the built-in marker registry."""

    def test_empty_project_has_no_markers(self, tmp_path: _pathlib.Path) -> None:
        """Nothing is detected in an empty directory."""
        assert _names_present(tmp_path) == set()

    def test_detects_react_typescript(self, tmp_path: _pathlib.Path) -> None:
        """package.json dependencies and tsconfig are detected."""
        (tmp_path / "package.json").write_text(
            '{"dependencies": {"react": "18", "next": "14"}}', encoding="utf-8"
        )
        (tmp_path / "tsconfig.json").write_text("{}", encoding="utf-8")

        present = _names_present(tmp_path)
        assert {"has-package-json", "has-react", "has-next", "has-typescript"} <= present
        assert "has-vue" not in present

    def test_detects_laravel(self, tmp_path: _pathlib.Path) -> None:
        """composer.json with laravel/framework is detected."""
        (tmp_path / "composer.json").write_text(
            '{"require": {"laravel/framework": "^11.0"}}', encoding="utf-8"
        )
        assert {"has-composer", "has-laravel"} <= _names_present(tmp_path)

    def test_detects_python_frameworks(self, tmp_path: _pathlib.Path) -> None:
        """pyproject.toml mentioning Django is detected case-insensitively."""
        (tmp_path / "pyproject.toml").write_text(
            '[project]\ndependencies = ["Django>=5"]\n', encoding="utf-8"
        )
        present = _names_present(tmp_path)
        assert {"has-pyproject", "has-django"} <= present
        assert "has-fastapi" not in present

    def test_names_are_unique(self) -> None:
        """Every built-in marker has a distinct name."""
        names = [m.name for m in markers.BUILTIN_MARKERS]
        assert len(names) == len(set(names))


class TestMarkerFile:
    """Tests for load_marker_file and merge_markers."""

    def test_load_marker_file(self, tmp_path: _pathlib.Path) -> None:
        """Markers are loaded in file order."""
        path = tmp_path / "markers.yaml"
        path.write_text(
            "markers:\n"
            "  - name: has-makefile\n"
            "    kind: file\n"
            "    paths: Makefile\n"
            "  - name: has-terraform\n"
            "    kind: any\n"
            "    checks:\n"
            "      - kind: file\n"
            "        paths: [main.tf]\n",
            encoding="utf-8",
        )
        loaded = markers.load_marker_file(path)
        assert [m.name for m in loaded] == ["has-makefile", "has-terraform"]

    def test_missing_file(self, tmp_path: _pathlib.Path) -> None:
        """A missing marker file raises FileNotFoundError."""
        with _pytest.raises(FileNotFoundError):
            markers.load_marker_file(tmp_path / "markers.yaml")

    @_pytest.mark.parametrize(
        "content",
        [
            "markers: [\n",
            "markers:\n  - kind: file\n    paths: [a]\n",
            "markers:\n  - {name: a, kind: file, paths: [a]}\n  - {name: a, kind: dir, paths: [b]}\n",
        ],
    )
    def test_invalid_file(self, tmp_path: _pathlib.Path, content: str) -> None:
        """Bad YAML, unnamed markers and duplicate names raise ValueError."""
        path = tmp_path / "markers.yaml"
        path.write_text(content, encoding="utf-8")
        with _pytest.raises(ValueError):
            markers.load_marker_file(path)

    def test_merge_replaces_by_name(self) -> None:
        """A catalog marker with a built-in name replaces it in place."""
        custom = markers.MarkerCheck(name="has-react", kind="file", paths=["react.lock"])
        extra = markers.MarkerCheck(name="has-makefile", kind="file", paths=["Makefile"])

        merged = markers.merge_markers(markers.BUILTIN_MARKERS, [custom, extra])

        names = [m.name for m in merged]
        assert names.count("has-react") == 1
        assert names[-1] == "has-makefile"
        assert next(m for m in merged if m.name == "has-react") is custom
        assert names.index("has-react") == [m.name for m in markers.BUILTIN_MARKERS].index(
            "has-react"
        )
