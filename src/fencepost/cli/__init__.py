"""Command-line entry points."""

from .app import app, main, migrate_database

__all__ = ["app", "main", "migrate_database"]
