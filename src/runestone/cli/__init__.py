"""
CLI module for Runestone.

Provides the command-line interface using Click.
"""

from runestone.cli.main import cli, main

__all__ = ["main", "cli"]
