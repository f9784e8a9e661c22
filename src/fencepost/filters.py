"""Predicates encoding identity and version preconditions."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

Filter = Mapping[str, Any]

ID_FIELD = "_id"
VERSION_FIELD = "version"


def by_id(key: Any) -> dict[str, Any]:
    return {ID_FIELD: key}


def by_id_and_version(key: Any, version: int) -> dict[str, Any]:
    """Match the document with ``key`` only while it is still at ``version``."""

    return {"$and": [by_id(key), {VERSION_FIELD: version}]}


def by_key(key: Any, version: int | None = None) -> dict[str, Any]:
    return by_id(key) if version is None else by_id_and_version(key, version)


__all__ = ["Filter", "ID_FIELD", "VERSION_FIELD", "by_id", "by_id_and_version", "by_key"]
