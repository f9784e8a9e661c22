"""Typer CLI for running fencepost migrations."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import re
import sys
from collections.abc import Sequence

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from fencepost.config import AppSettings
from fencepost.errors import FencepostError
from fencepost.logging_config import setup_logging
from fencepost.migration import Migration, run_migration

from ._loader import load_migrations
from .deps import get_client_factory, get_settings

app = typer.Typer(help="fencepost command-line interface")
console = Console()
error_console = Console(stderr=True)

logger = logging.getLogger(__name__)

_CREDENTIALS = re.compile(r"(?<=://)([^:@/]+):([^@/]+)@")


def _redact(uri: str | None) -> str:
    if not uri:
        return "-"
    return _CREDENTIALS.sub(r"\1:***@", uri)


def migrate_database(
    migrations: Sequence[Migration],
    version: str | None,
    settings: AppSettings,
) -> int:
    """Run ``migrations`` and return a process exit code."""

    setup_logging(settings.log_level)
    try:
        reached = asyncio.run(
            run_migration(
                migrations,
                version,
                settings=settings,
                client_factory=get_client_factory(),
            )
        )
    except FencepostError as exc:
        logger.error("Migration failed: %s", exc)
        error_console.print(f"[red]Migration failed:[/red] {escape(str(exc))}")
        if exc.debug_info:
            error_console.print(exc.debug_info, markup=False)
        return 1
    except Exception as exc:
        logger.exception("Migration failed")
        detail = escape(f"{type(exc).__name__}: {exc}")
        error_console.print(f"[red]Migration failed:[/red] {detail}")
        return 1

    if reached is None:
        console.print("Up to date.")
    else:
        console.print(f"Database migrated to {reached}")
    return 0


@app.command("show-settings")
def show_settings() -> None:
    """Print the resolved settings."""

    settings = get_settings()
    table = Table(title="fencepost settings")
    table.add_column("Setting")
    table.add_column("Value")
    table.add_row("MongoDB URI", _redact(settings.mongodb_uri))
    table.add_row("Upgrade version", settings.upgrade_version)
    table.add_row("Delay exit", "-" if settings.delay_exit is None else f"{settings.delay_exit}s")
    table.add_row("Log level", settings.log_level)
    try:
        connection = settings.connection_settings()
        table.add_row("Database", connection.database_name)
    except FencepostError as exc:
        table.add_row("Database", escape(f"unresolved ({exc.message})"))
    console.print(table)


@app.command("migrate")
def migrate(
    version: str | None = typer.Argument(
        None, help="Target version: 'latest', 'downgrade' or major.minor.patch"
    ),
    registry: str = typer.Option(
        ..., "--registry", "-r", help="Migration list as module:ATTRIBUTE"
    ),
    connection_string: str | None = typer.Option(
        None, "--connection-string", "-c", help="Override FENCEPOST_MONGODB_URI"
    ),
) -> None:
    """Migrate the configured database to VERSION."""

    settings = get_settings()
    if connection_string:
        settings = dataclasses.replace(settings, mongodb_uri=connection_string)
    try:
        migrations = load_migrations(registry)
    except FencepostError as exc:
        error_console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc

    code = migrate_database(migrations, version, settings)
    if code:
        raise typer.Exit(code=code)


def main(migrations: Sequence[Migration], argv: Sequence[str] | None = None) -> int:
    """Entry point for applications that ship their own migration list.

    The first argument, when present, is the target version.
    """

    args = list(sys.argv[1:] if argv is None else argv)
    return migrate_database(migrations, args[0] if args else None, get_settings())


__all__ = ["app", "main", "migrate_database"]
