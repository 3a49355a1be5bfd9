"""CLI module for Session Core admin tools."""

from session_core.cli.admin import admin

__all__ = ["admin"]
