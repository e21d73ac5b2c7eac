"""
Tests for signal collection.

Tests verify that:
- Task text is tokenized into normalized keywords
- Modes are inferred from keywords unless given explicitly
- The declared tech stack in .agent/project.json becomes stack markers
- Unreadable marker paths produce warnings instead of failures
- Bad project roots are rejected
"""

import json as _json
import logging as _logging
import os as _os
import pathlib as _pathlib

import pytest as _pytest

import runestone.errors as errors
import runestone.signals.collector as collector
import runestone.signals.markers as markers


class TestTokenize:
    """Tests for tokenize."""

    def test_lowercases_and_strips_punctuation(self) -> None:
        """Words are lowercased and punctuation dropped."""
        assert collector.tokenize("Fix the Login-Page, please!") == frozenset(
            {"fix", "the", "login-page", "login", "page", "please"}
        )

    def test_apostrophes_removed(self) -> None:
        """Contractions collapse into one token."""
        assert "dont" in collector.tokenize("Don't break it")

    def test_empty_text(self) -> None:
        """Empty text yields no keywords."""
        assert collector.tokenize("") == frozenset()


class TestInferMode:
    """Tests for infer_mode."""

    def test_most_hits_wins(self) -> None:
        """The mode with the most matching keywords is chosen."""
        keywords = collector.tokenize("write tests and improve coverage, then deploy")
        assert collector.infer_mode(keywords) == "testing"

    def test_tie_broken_alphabetically(self) -> None:
        """Equal hit counts go to the alphabetically first mode."""
        keywords = collector.tokenize("deploy the fix")
        assert collector.infer_mode(keywords) == "debugging"

    def test_no_hits(self) -> None:
        """No mode keyword means no mode."""
        assert collector.infer_mode(frozenset({"hello"})) is None

    def test_custom_table(self) -> None:
        """A configured table replaces the default one."""
        table = {"docs": ["readme", "docs"]}
        assert collector.infer_mode(frozenset({"readme"}), table) == "docs"
        assert collector.infer_mode(frozenset({"test"}), table) is None


class TestReadDeclaredStack:
    """Tests for read_declared_stack."""

    def _write_project_json(self, root: _pathlib.Path, data: object) -> None:
        (root / ".agent").mkdir()
        (root / ".agent" / "project.json").write_text(_json.dumps(data), encoding="utf-8")

    def test_missing_file(self, project_dir: _pathlib.Path) -> None:
        """No project.json means no stack markers."""
        assert collector.read_declared_stack(project_dir) == frozenset()

    def test_reads_tech_stack(self, project_dir: _pathlib.Path) -> None:
        """Each declared technology becomes a stack:<slug> marker."""
        self._write_project_json(
            project_dir,
            {"tech_stack": {"frontend": "Next.js React", "backend": ["Laravel"], "database": ""}},
        )
        assert collector.read_declared_stack(project_dir) == frozenset(
            {"stack:next-js", "stack:react", "stack:laravel"}
        )

    def test_invalid_json(self, project_dir: _pathlib.Path) -> None:
        """Broken JSON raises ValueError."""
        (project_dir / ".agent").mkdir()
        (project_dir / ".agent" / "project.json").write_text("{", encoding="utf-8")
        with _pytest.raises(ValueError):
            collector.read_declared_stack(project_dir)


class TestCheckProjectRoot:
    """Tests for check_project_root."""

    def test_missing_root(self, tmp_path: _pathlib.Path) -> None:
        """A missing directory is an invalid argument."""
        with _pytest.raises(errors.InvalidArgumentsError, match="does not exist"):
            collector.check_project_root(tmp_path / "missing")

    def test_file_root(self, tmp_path: _pathlib.Path) -> None:
        """A file is not a project root."""
        path = tmp_path / "file.txt"
        path.write_text("", encoding="utf-8")
        with _pytest.raises(errors.InvalidArgumentsError, match="not a directory"):
            collector.check_project_root(path)

    def test_returns_resolved_path(self, project_dir: _pathlib.Path) -> None:
        """A valid root is returned resolved."""
        assert collector.check_project_root(project_dir) == project_dir.resolve()


class TestSignalCollector:
    """Tests for SignalCollector."""

    def test_empty_project_and_task(self, project_dir: _pathlib.Path) -> None:
        """An empty project with no task text gives empty signals."""
        signals = collector.collect(project_dir, "")
        assert signals.is_empty
        assert signals.warnings == ()
        assert signals.project_root == project_dir.resolve()

    def test_collects_markers_keywords_and_mode(self, react_project: _pathlib.Path) -> None:
        """Markers, keywords and an inferred mode are all collected."""
        signals = collector.collect(react_project, "Fix the broken button")

        assert "has-react" in signals.file_markers
        assert "button" in signals.keywords
        assert signals.inferred_mode == "debugging"
        assert signals.mode == "debugging"

    def test_explicit_mode_wins(self, project_dir: _pathlib.Path) -> None:
        """An explicit mode overrides inference but inference is still recorded."""
        signals = collector.collect(project_dir, "fix the crash", explicit_mode="review")
        assert signals.mode == "review"
        assert signals.inferred_mode == "debugging"

    def test_declared_stack_markers(self, project_dir: _pathlib.Path) -> None:
        """Declared stack names are added as markers."""
        (project_dir / ".agent").mkdir()
        (project_dir / ".agent" / "project.json").write_text(
            '{"tech_stack": {"backend": "Laravel"}}', encoding="utf-8"
        )

        signals = collector.collect(project_dir, "")
        assert "stack:laravel" in signals.file_markers
        assert "has-agent-config" in signals.file_markers

    def test_declared_stack_can_be_disabled(self, project_dir: _pathlib.Path) -> None:
        """read_declared_stack=False skips project.json."""
        (project_dir / ".agent").mkdir()
        (project_dir / ".agent" / "project.json").write_text(
            '{"tech_stack": {"backend": "Laravel"}}', encoding="utf-8"
        )
        signals = collector.SignalCollector(read_declared_stack=False).collect(project_dir, "")
        assert "stack:laravel" not in signals.file_markers

    def test_bad_declared_stack_is_warning(
        self,
        project_dir: _pathlib.Path,
        caplog: _pytest.LogCaptureFixture,
    ) -> None:
        """A broken project.json is a warning, not a failure."""
        (project_dir / ".agent").mkdir()
        (project_dir / ".agent" / "project.json").write_text("{", encoding="utf-8")

        with caplog.at_level(_logging.WARNING, logger="runestone"):
            signals = collector.collect(project_dir, "")

        assert [w.marker for w in signals.warnings] == ["declared-stack"]
        assert "declared tech stack" in caplog.text

    @_pytest.mark.skipif(
        hasattr(_os, "geteuid") and _os.geteuid() == 0,
        reason="root can read files regardless of permissions",
    )
    def test_unreadable_marker_file_is_warning(self, project_dir: _pathlib.Path) -> None:
        """A marker whose file cannot be read counts as absent and is reported."""
        package_json = project_dir / "package.json"
        package_json.write_text('{"dependencies": {"react": "18"}}', encoding="utf-8")
        package_json.chmod(0)
        try:
            signals = collector.collect(project_dir, "")
        finally:
            package_json.chmod(0o644)

        assert "has-react" not in signals.file_markers
        assert "has-package-json" in signals.file_markers
        assert "has-react" in {w.marker for w in signals.warnings}

    def test_marker_read_error_is_warning(
        self,
        project_dir: _pathlib.Path,
        monkeypatch: _pytest.MonkeyPatch,
        caplog: _pytest.LogCaptureFixture,
    ) -> None:
        """A marker file that fails to open is negative, warned about and logged."""
        package_json = project_dir / "package.json"
        package_json.write_text('{"dependencies": {"react": "18"}}', encoding="utf-8")

        real_open = _pathlib.Path.open

        def failing_open(self: _pathlib.Path, *args: object, **kwargs: object) -> object:
            if self.name == "package.json":
                raise PermissionError(13, "Permission denied", str(self))
            return real_open(self, *args, **kwargs)  # type: ignore[arg-type]

        monkeypatch.setattr(_pathlib.Path, "open", failing_open)

        with caplog.at_level(_logging.WARNING, logger="runestone"):
            signals = collector.collect(project_dir, "")

        assert "has-react" not in signals.file_markers
        assert "has-package-json" in signals.file_markers
        assert "has-react" in {w.marker for w in signals.warnings}
        assert any(
            r.levelno == _logging.WARNING and "has-react" in r.getMessage()
            for r in caplog.records
        )

    def test_custom_markers(self, project_dir: _pathlib.Path) -> None:
        """Only the given marker checks are evaluated."""
        (project_dir / "Makefile").write_text("", encoding="utf-8")
        check = markers.MarkerCheck(name="has-makefile", kind="file", paths=["Makefile"])

        signals = collector.collect(project_dir, "", marker_checks=[check])
        assert signals.file_markers == frozenset({"has-makefile"})

    def test_missing_root_raises(self, tmp_path: _pathlib.Path) -> None:
        """collect() rejects a missing project root."""
        with _pytest.raises(errors.InvalidArgumentsError):
            collector.collect(tmp_path / "missing", "anything")

    def test_to_dict_is_sorted(self, react_project: _pathlib.Path) -> None:
        """to_dict lists markers and keywords in sorted order."""
        data = collector.collect(react_project, "zeta alpha").to_dict()
        assert data["keywords"] == ["alpha", "zeta"]
        assert data["file_markers"] == sorted(data["file_markers"])
