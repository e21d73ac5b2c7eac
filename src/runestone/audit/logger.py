"""
Resolution audit logging.

Appends one JSON object per resolution to a JSONL file so the directives
handed to the assistant can be reviewed later.
"""

import datetime as _datetime
import json as _json
import logging as _logging
import os as _os
import pathlib as _pathlib
import threading as _threading
import typing as _typing

if _typing.TYPE_CHECKING:
    import runestone.resolution.bundle as bundle

_logger = _logging.getLogger(__name__)


class ResolutionAuditLogger:
    """
    Logs resolution events to a JSONL file.

    Each line is a JSON object:
    - resolution: a completed resolution (task, project, bundle)
    - error: a resolution call that failed

    One file per day is written under the log directory. The logger is
    safe to share between threads; each record is written with a single
    call under a lock.

    Usage:
        audit = ResolutionAuditLogger(log_dir="/tmp/runestone-audit")
        audit.log_resolution(bundle, task_text="add tests")
    """

    def __init__(
        self,
        *,
        log_dir: _pathlib.Path | str | None = None,
        log_file: _pathlib.Path | str | None = None,
        private_mode: bool = True,
        enabled: bool = True,
    ) -> None:
        """
        Initialize the audit logger.

        Args:
            log_dir: Directory for log files.
            log_file: Explicit log file path (overrides log_dir + auto name).
            private_mode: If True, set log directory to drwx------ (0o700).
            enabled: Whether logging is enabled.
        """
        self._enabled = enabled
        self._lock = _threading.Lock()
        self._event_count = 0
        self._log_dir = _pathlib.Path(log_dir) if log_dir else None
        self._log_file = _pathlib.Path(log_file) if log_file else None
        self._private_mode = private_mode

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def file_path(self) -> _pathlib.Path | None:
        """Path of the file the next record goes to."""
        if not self._enabled:
            return None
        if self._log_file is not None:
            return self._log_file
        base_dir = self._log_dir or _pathlib.Path("/tmp/runestone-audit")
        day = _datetime.date.today().strftime("%Y%m%d")
        return base_dir / f"runestone_{day}.jsonl"

    def _ensure_dir(self, path: _pathlib.Path) -> None:
        directory = path.parent
        if directory.is_dir():
            return
        directory.mkdir(parents=True, exist_ok=True)
        # Lock down permissions if private_mode (drwx------)
        if self._private_mode and self._log_file is None:
            _os.chmod(directory, 0o700)

    def _write_event(self, event_type: str, data: dict[str, _typing.Any]) -> None:
        """Append an event to the log file. Failures are logged, never raised."""
        path = self.file_path
        if path is None:
            return

        with self._lock:
            self._event_count += 1
            event = {
                "timestamp": _datetime.datetime.now().isoformat(),
                "event_number": self._event_count,
                "event_type": event_type,
                **data,
            }
            try:
                self._ensure_dir(path)
                with path.open("a", encoding="utf-8") as f:
                    f.write(_json.dumps(event, default=str) + "\n")
            except OSError as e:
                _logger.warning("Could not write audit log %s: %s", path, e)

    def log_resolution(
        self,
        resolved: "bundle.ResolvedBundle",
        *,
        task_text: str,
        catalog_root: _pathlib.Path | None = None,
    ) -> None:
        """Log a completed resolution."""
        self._write_event(
            "resolution",
            {
                "task_text": task_text,
                "catalog_root": str(catalog_root) if catalog_root else None,
                "bundle": resolved.to_dict(),
            },
        )

    def log_error(
        self,
        error: Exception,
        *,
        task_text: str,
        project_root: _pathlib.Path | str | None = None,
    ) -> None:
        """Log a failed resolution call."""
        self._write_event(
            "error",
            {
                "task_text": task_text,
                "project_root": str(project_root) if project_root else None,
                "error_type": type(error).__name__,
                "message": str(error),
            },
        )
