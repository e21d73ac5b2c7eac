"""Configuration type definitions for Runestone settings.

These are the config sections nested within the main Settings class:
- CatalogConfig: where to find the directive catalog
- SignalsConfig: mode-keyword table, declared-stack reading
- LoggingConfig: log level and the resolution audit log
- BehaviorConfig: output format

All types use `extra="allow"` so unknown keys are preserved and reported
by collect_all_extra_fields() (typos in config files) instead of silently
dropped.
"""

import typing as _typing

import pydantic as _pydantic


class ConfigBase(_pydantic.BaseModel):
    """Base class for all config sections."""

    model_config = _pydantic.ConfigDict(extra="allow")

    def get_extra_fields(self) -> dict[str, _typing.Any]:
        """Return fields that were provided but not in the schema."""
        return dict(self.model_extra) if self.model_extra else {}

    def collect_all_extra_fields(self, prefix: str = "") -> dict[str, _typing.Any]:
        """
        Recursively collect extra fields from this section and nested sections.

        Returns a flat dict with dotted paths as keys, e.g.:
            {"catalog.serch_paths": ["/srv"]}

        Args:
            prefix: Dotted path prefix (used in recursion).
        """
        result: dict[str, _typing.Any] = {}
        for key, value in self.get_extra_fields().items():
            result[f"{prefix}.{key}" if prefix else key] = value

        for field_name in self.__class__.model_fields:
            value = getattr(self, field_name, None)
            if isinstance(value, ConfigBase):
                child_prefix = f"{prefix}.{field_name}" if prefix else field_name
                result.update(value.collect_all_extra_fields(child_prefix))
        return result


class CatalogConfig(ConfigBase):
    """Catalog location settings."""

    path: str | None = None
    """Explicit catalog directory. Overrides discovery when set."""

    search_paths: list[str] = _pydantic.Field(default_factory=list)
    """Extra directories to check before the standard locations."""


class SignalsConfig(ConfigBase):
    """Signal collection settings."""

    mode_keywords: dict[str, list[str]] | None = None
    """Mode -> keywords table. None uses the built-in table."""

    read_declared_stack: bool = True
    """Read `stack:<name>` markers from .agent/project.json."""


class LoggingConfig(ConfigBase):
    """Logging settings."""

    level: _typing.Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"
    """Log level used by the CLI."""

    audit_enabled: bool = False
    """Append every resolution to a JSONL audit log."""

    audit_dir: str | None = None
    """Audit log directory (default: ~/.local/state/runestone/audit)."""

    @_pydantic.field_validator("level", mode="before")
    @classmethod
    def _upper_level(cls, value: _typing.Any) -> _typing.Any:
        return value.upper() if isinstance(value, str) else value


class BehaviorConfig(ConfigBase):
    """General behavior settings."""

    output_format: _typing.Literal["text", "json"] = "text"
    """Default output format for CLI commands."""
