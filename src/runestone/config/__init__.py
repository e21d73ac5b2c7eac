"""
Configuration module for Runestone.

Uses pydantic-settings for environment variable loading and layered
YAML config files.
"""

from runestone.config.settings import Settings
from runestone.config.sources import ConfigFileError

__all__ = ["ConfigFileError", "Settings"]
