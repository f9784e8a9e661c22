"""Versioned schema migrations applied transactionally, one step at a time."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from pymongo.errors import PyMongoError

from fencepost.config import AppSettings
from fencepost.context import ClientFactory, create_client
from fencepost.errors import InvalidRequestError, TransactionError
from fencepost.utils.time import utc_now

from .versions import INITIAL_VERSION, SchemaVersion, resolve_target

MigrationStep = Callable[[Any, Any], Awaitable[None]]
"""``async (database, session) -> None`` performing one direction of a migration."""

HISTORY_COLLECTION = "_migrations"

logger = logging.getLogger(__name__)


class Direction(StrEnum):
    UP = "up"
    DOWN = "down"


@dataclass(frozen=True, slots=True)
class Migration:
    """One schema change with its forward and backward procedures."""

    version: SchemaVersion
    name: str
    up: MigrationStep
    down: MigrationStep

    def __post_init__(self) -> None:
        if isinstance(self.version, str):
            parsed = SchemaVersion.parse(self.version)
            if parsed is None:
                raise InvalidRequestError(f"Invalid migration version: {self.version}")
            object.__setattr__(self, "version", parsed)


@dataclass(frozen=True, slots=True)
class PlannedStep:
    migration: Migration
    direction: Direction
    resulting_version: SchemaVersion


class MigrationRunner:
    """Bring a database to a target schema version.

    Applied steps are recorded in ``history_collection``; the most recent
    record holds the database's current version.
    """

    def __init__(
        self,
        client: Any,
        database: Any,
        migrations: Sequence[Migration],
        *,
        history_collection: str = HISTORY_COLLECTION,
    ) -> None:
        ordered = sorted(migrations, key=lambda migration: migration.version)
        for previous, following in zip(ordered, ordered[1:]):
            if previous.version == following.version:
                raise InvalidRequestError(f"Duplicate migration version {following.version}")
        self._client = client
        self._database = database
        self._migrations = ordered
        self._history = database.get_collection(history_collection)

    @property
    def migrations(self) -> list[Migration]:
        return list(self._migrations)

    @property
    def versions(self) -> list[SchemaVersion]:
        return [migration.version for migration in self._migrations]

    async def current_version(self) -> SchemaVersion:
        record = await self._history.find_one({}, sort=[("seq", -1)])
        if record is None:
            return INITIAL_VERSION
        return SchemaVersion.parse(record["version"]) or INITIAL_VERSION

    def plan(self, current: SchemaVersion, target: SchemaVersion) -> list[PlannedStep]:
        if target > current:
            return [
                PlannedStep(migration, Direction.UP, migration.version)
                for migration in self._migrations
                if current < migration.version <= target
            ]
        steps: list[PlannedStep] = []
        for position in range(len(self._migrations) - 1, -1, -1):
            migration = self._migrations[position]
            if target < migration.version <= current:
                below = self._migrations[position - 1].version if position else INITIAL_VERSION
                steps.append(PlannedStep(migration, Direction.DOWN, below))
        return steps

    async def run(self, target: SchemaVersion | None = None) -> SchemaVersion:
        """Apply every step between the current version and ``target``.

        ``target`` defaults to the newest registered migration. Returns the
        version the database ends up at.
        """

        current = await self.current_version()
        if target is None:
            target = self._migrations[-1].version if self._migrations else current
        steps = self.plan(current, target)
        if not steps:
            logger.info("Database already at %s", current)
            return current

        last = await self._history.find_one({}, sort=[("seq", -1)])
        sequence = last["seq"] if last else 0
        for step in steps:
            sequence += 1
            await self._apply(step, sequence)
            current = step.resulting_version
        return current

    async def _apply(self, step: PlannedStep, sequence: int) -> None:
        migration = step.migration
        procedure = migration.up if step.direction is Direction.UP else migration.down
        logger.info(
            "Applying migration %s (%s) %s", migration.version, migration.name, step.direction
        )
        session = self._client.start_session()
        try:
            await session.start_transaction()
            try:
                await procedure(self._database, session)
                await self._history.insert_one(
                    {
                        "seq": sequence,
                        "version": str(step.resulting_version),
                        "migration": str(migration.version),
                        "name": migration.name,
                        "direction": str(step.direction),
                        "applied_at": utc_now(),
                    },
                    session=session,
                )
                await session.commit_transaction()
            except BaseException:
                if session.in_transaction:
                    await session.abort_transaction()
                raise
        except PyMongoError as exc:
            raise TransactionError(
                f"Migration {migration.version} ({migration.name}) failed",
                debug_info=str(exc),
            ) from exc
        finally:
            await session.end_session()


async def run_migration(
    migrations: Sequence[Migration],
    version_text: str | None = None,
    *,
    settings: AppSettings | None = None,
    client_factory: ClientFactory = create_client,
) -> SchemaVersion | None:
    """Resolve the connection, pick the target version and migrate to it.

    Returns the version reached, or ``None`` when the database was already up
    to date.
    """

    resolved = settings or AppSettings.from_env()
    connection = resolved.connection_settings()
    requested = version_text or resolved.upgrade_version
    logger.info("Database  : %s", connection.database_name)

    client = client_factory(connection.connection_string)
    try:
        runner = MigrationRunner(client, client.get_database(connection.database_name), migrations)
        current = await runner.current_version()
        target = resolve_target(requested, current, runner.versions)
        if target is None:
            logger.info("Up to date.")
            return None

        logger.info("Migrating to version: %s", target)
        reached = await runner.run(target)

        if resolved.delay_exit:
            logger.info("Delay for %s seconds...", resolved.delay_exit)
            await asyncio.sleep(resolved.delay_exit)
        logger.info("End migration.")
        return reached
    except PyMongoError as exc:
        raise TransactionError(
            f"Migration of {connection.database_name} failed", debug_info=str(exc)
        ) from exc
    finally:
        await client.close()


__all__ = [
    "Direction",
    "HISTORY_COLLECTION",
    "Migration",
    "MigrationRunner",
    "MigrationStep",
    "PlannedStep",
    "run_migration",
]
