"""Schema helpers for use inside migration steps."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from fencepost.models import Document, collection_name_for

IndexKeys = str | Sequence[tuple[str, int]] | Mapping[str, int]


def collection_of(database: Any, model: type[Document]) -> Any:
    return database.get_collection(collection_name_for(model))


async def create_index(
    database: Any,
    model: type[Document],
    name: str,
    keys: IndexKeys,
    *,
    unique: bool = False,
    session: Any | None = None,
) -> str:
    return await collection_of(database, model).create_index(
        keys, name=name, unique=unique, session=session
    )


async def create_unique_index(
    database: Any,
    model: type[Document],
    name: str,
    keys: IndexKeys,
    *,
    session: Any | None = None,
) -> str:
    """Create ``name`` so that inserts duplicating ``keys`` report duplication."""

    return await create_index(database, model, name, keys, unique=True, session=session)


async def drop_index(
    database: Any,
    model: type[Document],
    name: str,
    *,
    session: Any | None = None,
) -> None:
    await collection_of(database, model).drop_index(name, session=session)


async def drop_collection(database: Any, model: type[Document], *, session: Any | None = None) -> None:
    await database.drop_collection(collection_name_for(model), session=session)


__all__ = [
    "collection_of",
    "create_index",
    "create_unique_index",
    "drop_collection",
    "drop_index",
]
