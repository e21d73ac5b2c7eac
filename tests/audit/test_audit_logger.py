"""Tests for the resolution audit logger."""

import json as _json
import pathlib as _pathlib

import runestone.audit.logger as audit_logger
import runestone.resolution.bundle as bundle


class TestResolutionAuditLogger:
    """Tests for ResolutionAuditLogger."""

    def test_writes_one_line_per_event(self, tmp_path: _pathlib.Path) -> None:
        """Each event is a JSON object on its own line, numbered in order."""
        log_file = tmp_path / "audit.jsonl"
        audit = audit_logger.ResolutionAuditLogger(log_file=log_file)

        audit.log_resolution(bundle.ResolvedBundle(ordered_units=()), task_text="first")
        audit.log_error(ValueError("boom"), task_text="second", project_root=tmp_path)

        lines = [_json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]
        assert [r["event_type"] for r in lines] == ["resolution", "error"]
        assert [r["event_number"] for r in lines] == [1, 2]
        assert lines[0]["bundle"] == {"units": [], "dropped": []}
        assert lines[1]["error_type"] == "ValueError"
        assert lines[1]["project_root"] == str(tmp_path)

    def test_daily_file_in_log_dir(self, tmp_path: _pathlib.Path) -> None:
        """Without an explicit file, a dated file is created in a private directory."""
        log_dir = tmp_path / "audit"
        audit = audit_logger.ResolutionAuditLogger(log_dir=log_dir)

        audit.log_resolution(bundle.ResolvedBundle(ordered_units=()), task_text="x")

        path = audit.file_path
        assert path is not None
        assert path.parent == log_dir
        assert path.name.startswith("runestone_") and path.suffix == ".jsonl"
        assert path.exists()
        assert (log_dir.stat().st_mode & 0o777) == 0o700

    def test_disabled_writes_nothing(self, tmp_path: _pathlib.Path) -> None:
        """A disabled logger has no file and writes nothing."""
        audit = audit_logger.ResolutionAuditLogger(log_dir=tmp_path / "audit", enabled=False)
        audit.log_resolution(bundle.ResolvedBundle(ordered_units=()), task_text="x")

        assert audit.file_path is None
        assert not (tmp_path / "audit").exists()

    def test_write_failure_is_not_raised(self, tmp_path: _pathlib.Path) -> None:
        """A log file that cannot be written does not break resolution."""
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("", encoding="utf-8")
        audit = audit_logger.ResolutionAuditLogger(log_file=blocker / "audit.jsonl")

        audit.log_resolution(bundle.ResolvedBundle(ordered_units=()), task_text="x")
