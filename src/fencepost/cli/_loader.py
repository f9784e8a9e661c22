"""Load a migration list from an importable ``module:attribute`` reference."""

from __future__ import annotations

import importlib
import os
import sys
from collections.abc import Iterable

from fencepost.errors import InvalidRequestError
from fencepost.migration import Migration

DEFAULT_ATTRIBUTE = "MIGRATIONS"


def load_migrations(reference: str) -> list[Migration]:
    """Import ``reference`` and return the migrations it names.

    The attribute may be a sequence of :class:`Migration` or a callable
    returning one; it defaults to ``MIGRATIONS``.
    """

    module_name, _, attribute = reference.partition(":")
    if not module_name:
        raise InvalidRequestError(f"Invalid migration registry reference: {reference!r}")

    # Allow registries living in the directory the CLI is run from.
    cwd = os.getcwd()
    if cwd not in sys.path:
        sys.path.insert(0, cwd)
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise InvalidRequestError(
            f"Cannot import migration module {module_name}", debug_info=str(exc)
        ) from exc

    try:
        value = getattr(module, attribute or DEFAULT_ATTRIBUTE)
    except AttributeError as exc:
        raise InvalidRequestError(
            f"Module {module_name} has no attribute {attribute or DEFAULT_ATTRIBUTE}"
        ) from exc
    if callable(value):
        value = value()

    if not isinstance(value, Iterable):
        raise InvalidRequestError(f"{reference} is not a list of migrations")
    migrations = list(value)
    for item in migrations:
        if not isinstance(item, Migration):
            raise InvalidRequestError(f"{reference} contains a non-migration entry: {item!r}")
    return migrations
