"""Tests for Settings precedence and derived values."""

import pathlib as _pathlib

import pydantic as _pydantic
import pytest as _pytest

import runestone.config as config


def _write_project_config(project: _pathlib.Path, content: str) -> None:
    path = project / ".runestone" / "config.yaml"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def _write_user_config(home: _pathlib.Path, content: str) -> None:
    path = home / ".config" / "runestone" / "config.yaml"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


class TestSettingsDefaults:
    """Tests for built-in defaults."""

    def test_defaults(self, project_dir: _pathlib.Path) -> None:
        """Built-in defaults apply when nothing else is configured."""
        s = config.Settings.construct_without_dotenv(project_root=project_dir)

        assert s.catalog.path is None
        assert s.signals.mode_keywords is None
        assert s.signals.read_declared_stack is True
        assert s.logging.level == "WARNING"
        assert s.logging.audit_enabled is False
        assert s.behavior.output_format == "text"

    def test_default_audit_dir(self, isolated_environment: _pathlib.Path) -> None:
        """The audit log defaults to the XDG state directory."""
        s = config.Settings.construct_without_dotenv()
        assert s.audit_dir == isolated_environment / ".local" / "state" / "runestone" / "audit"


class TestSettingsPrecedence:
    """Tests for layer precedence."""

    def test_user_config_applies(
        self,
        project_dir: _pathlib.Path,
        isolated_environment: _pathlib.Path,
    ) -> None:
        """User config overrides defaults."""
        _write_user_config(isolated_environment, "logging:\n  level: info\n")
        s = config.Settings.construct_without_dotenv(project_root=project_dir)
        assert s.logging.level == "INFO"

    def test_project_beats_user(
        self,
        project_dir: _pathlib.Path,
        isolated_environment: _pathlib.Path,
    ) -> None:
        """Project config overrides user config key by key."""
        _write_user_config(
            isolated_environment,
            "catalog:\n  path: /user/catalog\nlogging:\n  audit_enabled: true\n",
        )
        _write_project_config(project_dir, "catalog:\n  path: /project/catalog\n")

        s = config.Settings.construct_without_dotenv(project_root=project_dir)
        assert s.catalog.path == "/project/catalog"
        assert s.logging.audit_enabled is True

    def test_env_beats_project(
        self,
        project_dir: _pathlib.Path,
        monkeypatch: _pytest.MonkeyPatch,
    ) -> None:
        """RUNESTONE_* nested env vars override config files."""
        _write_project_config(project_dir, "logging:\n  level: INFO\n")
        monkeypatch.setenv("RUNESTONE_LOGGING__LEVEL", "ERROR")

        s = config.Settings.construct_without_dotenv(project_root=project_dir)
        assert s.logging.level == "ERROR"

    def test_constructor_beats_env(
        self,
        project_dir: _pathlib.Path,
        monkeypatch: _pytest.MonkeyPatch,
    ) -> None:
        """Constructor arguments have the highest precedence."""
        monkeypatch.setenv("RUNESTONE_BEHAVIOR__OUTPUT_FORMAT", "json")
        s = config.Settings.construct_without_dotenv(
            project_root=project_dir,
            behavior={"output_format": "text"},
        )
        assert s.behavior.output_format == "text"

    def test_invalid_value_rejected(self, project_dir: _pathlib.Path) -> None:
        """Values are validated after merging."""
        _write_project_config(project_dir, "behavior:\n  output_format: xml\n")
        with _pytest.raises(_pydantic.ValidationError):
            config.Settings.construct_without_dotenv(project_root=project_dir)

    def test_broken_project_config(self, project_dir: _pathlib.Path) -> None:
        """A malformed config file raises ConfigFileError."""
        _write_project_config(project_dir, "catalog: [\n")
        with _pytest.raises(config.ConfigFileError):
            config.Settings.construct_without_dotenv(project_root=project_dir)


class TestSettingsHelpers:
    """Tests for derived settings values."""

    def test_catalog_search_paths_expanded(
        self,
        project_dir: _pathlib.Path,
        isolated_environment: _pathlib.Path,
    ) -> None:
        """~ in configured search paths is expanded."""
        _write_project_config(project_dir, "catalog:\n  search_paths: ['~/catalogs']\n")
        s = config.Settings.construct_without_dotenv(project_root=project_dir)
        assert s.catalog_search_paths == [isolated_environment / "catalogs"]

    def test_to_dict_excludes_project_root(self, project_dir: _pathlib.Path) -> None:
        """to_dict gives the JSON-ready config sections."""
        data = config.Settings.construct_without_dotenv(project_root=project_dir).to_dict()
        assert "project_root" not in data
        assert set(data) >= {"catalog", "signals", "logging", "behavior"}

    def test_unknown_keys_collected_with_dotted_paths(
        self,
        project_dir: _pathlib.Path,
        isolated_environment: _pathlib.Path,
    ) -> None:
        """Typos in any layer are reported with their section path."""
        _write_user_config(isolated_environment, "behavior:\n  output_fromat: json\n")
        _write_project_config(project_dir, "catalg:\n  path: /srv\ncatalog:\n  serch_paths: []\n")
        s = config.Settings.construct_without_dotenv(project_root=project_dir)

        assert s.has_extra_fields()
        assert sorted(s.collect_all_extra_fields()) == [
            "behavior.output_fromat",
            "catalg",
            "catalog.serch_paths",
        ]

    def test_no_unknown_keys_by_default(self, project_dir: _pathlib.Path) -> None:
        """The built-in defaults and RUNESTONE_CONFIG_DIR never count as unknown."""
        s = config.Settings.construct_without_dotenv(project_root=project_dir)
        assert s.collect_all_extra_fields() == {}
        assert not s.has_extra_fields()
