"""Semantic-version schema migrations."""

from .runner import (
    HISTORY_COLLECTION,
    Direction,
    Migration,
    MigrationRunner,
    MigrationStep,
    PlannedStep,
    run_migration,
)
from .schema import create_index, create_unique_index, drop_collection, drop_index
from .versions import (
    DOWNGRADE_KEYWORD,
    INITIAL_VERSION,
    LATEST_KEYWORD,
    SchemaVersion,
    resolve_target,
)

__all__ = [
    "DOWNGRADE_KEYWORD",
    "Direction",
    "HISTORY_COLLECTION",
    "INITIAL_VERSION",
    "LATEST_KEYWORD",
    "Migration",
    "MigrationRunner",
    "MigrationStep",
    "PlannedStep",
    "SchemaVersion",
    "create_index",
    "create_unique_index",
    "drop_collection",
    "drop_index",
    "resolve_target",
    "run_migration",
]
