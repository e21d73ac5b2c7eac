"""
Settings configuration using pydantic-settings.

Loads configuration from:
1. Constructor arguments (highest precedence)
2. Environment variables with RUNESTONE_ prefix
3. .env file (if RUNESTONE_ENV_FILE points at one)
4. Layered YAML config files:
   - Project config: .runestone/config.yaml (highest)
   - User config: ~/.config/runestone/config.yaml
   - Built-in defaults: bundled defaults/config.yaml (lowest)

Nested config uses double underscore delimiter:
  RUNESTONE_CATALOG__PATH=/srv/catalog
  RUNESTONE_LOGGING__AUDIT_ENABLED=true
"""

import os as _os
import pathlib as _pathlib
import typing as _typing

import pydantic as _pydantic
import pydantic_settings as _pydantic_settings

import runestone.config.sources as sources
import runestone.config.types as types

# RUNESTONE_* variables that steer config loading rather than set a field
_ENV_CONTROL_KEYS = frozenset({"config_dir", "env_file", "catalog_path"})


def _get_env_file() -> str | None:
    """Return RUNESTONE_ENV_FILE if it names an existing file."""
    if env_file := _os.environ.get("RUNESTONE_ENV_FILE"):
        if _pathlib.Path(env_file).exists():
            return env_file
    return None


class Settings(_pydantic_settings.BaseSettings):
    """
    Runestone configuration settings.

    All settings can be overridden via environment variables with the
    RUNESTONE_ prefix. For nested config, use double underscore:
    RUNESTONE_LOGGING__LEVEL=DEBUG

    Config precedence (highest to lowest):
    1. Constructor arguments
    2. Environment variables (RUNESTONE_*)
    3. .env file
    4. Project config (.runestone/config.yaml)
    5. User config (~/.config/runestone/config.yaml)
    6. Built-in defaults
    """

    model_config = _pydantic_settings.SettingsConfigDict(
        env_prefix="RUNESTONE_",
        env_file=_get_env_file(),
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="allow",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[_pydantic_settings.BaseSettings],
        init_settings: _pydantic_settings.PydanticBaseSettingsSource,
        env_settings: _pydantic_settings.PydanticBaseSettingsSource,
        dotenv_settings: _pydantic_settings.PydanticBaseSettingsSource,
        file_secret_settings: _pydantic_settings.PydanticBaseSettingsSource,
    ) -> tuple[_pydantic_settings.PydanticBaseSettingsSource, ...]:
        """
        Configure settings sources with precedence:
        1. init_settings (constructor args) - highest
        2. env_settings (RUNESTONE_* env vars)
        3. dotenv_settings (.env file)
        4. yaml layers (project, user, built-in)
        """
        init_kwargs: dict[str, _typing.Any] = getattr(init_settings, "init_kwargs", {})
        project_root = init_kwargs.get("project_root")
        root = _pathlib.Path(project_root) if project_root else _pathlib.Path.cwd()

        return (
            init_settings,
            env_settings,
            dotenv_settings,
            sources.YamlLayersSettingsSource(settings_cls, root),
            file_secret_settings,
        )

    @classmethod
    def construct_without_dotenv(cls, **kwargs: _typing.Any) -> "Settings":
        """Create Settings without loading a .env file (test isolation)."""
        return cls(_env_file=None, **kwargs)  # type: ignore[call-arg]

    version: int = _pydantic.Field(default=1, description="Config schema version")

    project_root: _pathlib.Path | None = _pydantic.Field(
        default=None,
        description="Project whose .runestone/config.yaml is layered in",
    )

    catalog: types.CatalogConfig = _pydantic.Field(default_factory=types.CatalogConfig)
    """Catalog location."""

    signals: types.SignalsConfig = _pydantic.Field(default_factory=types.SignalsConfig)
    """Signal collection."""

    logging: types.LoggingConfig = _pydantic.Field(default_factory=types.LoggingConfig)
    """Logging and audit log."""

    behavior: types.BehaviorConfig = _pydantic.Field(default_factory=types.BehaviorConfig)
    """General behavior."""

    @property
    def catalog_search_paths(self) -> list[_pathlib.Path]:
        """Configured extra catalog search paths."""
        return [_pathlib.Path(p).expanduser() for p in self.catalog.search_paths]

    @property
    def audit_dir(self) -> _pathlib.Path:
        """Directory for the resolution audit log."""
        if self.logging.audit_dir:
            return _pathlib.Path(self.logging.audit_dir).expanduser()
        return _pathlib.Path.home() / ".local" / "state" / "runestone" / "audit"

    def get_extra_fields(self) -> dict[str, _typing.Any]:
        """Return top-level fields that are not part of the schema."""
        extra = self.model_extra or {}
        return {k: v for k, v in extra.items() if k not in _ENV_CONTROL_KEYS}

    def collect_all_extra_fields(self) -> dict[str, _typing.Any]:
        """
        Recursively collect all extra fields from Settings and its sections.

        Returns a flat dict with dotted paths as keys, e.g.:
            {"behavior.output_fromat": "json", "catalg": {...}}
        """
        result = self.get_extra_fields()
        for field_name in ("catalog", "signals", "logging", "behavior"):
            section: types.ConfigBase = getattr(self, field_name)
            result.update(section.collect_all_extra_fields(prefix=field_name))
        return result

    def has_extra_fields(self) -> bool:
        """Check if there are any unknown fields anywhere in the config."""
        return bool(self.collect_all_extra_fields())

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert to dictionary for JSON serialization."""
        return self.model_dump(mode="json", exclude={"project_root"})
