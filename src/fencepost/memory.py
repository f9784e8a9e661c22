"""In-memory stand-in for the pymongo asyncio API, used for unit testing.

Only the surface fencepost relies on is implemented. Results and errors are
pymongo's own types so classification behaves exactly as against a server.
Writes made inside a session transaction are staged on a private copy of each
touched collection and published on commit; concurrent writes outside the
transaction are overwritten at commit time.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, MutableMapping, Sequence
from copy import deepcopy
from dataclasses import dataclass, field
from types import TracebackType
from typing import Any

from bson import ObjectId
from pymongo.errors import DuplicateKeyError, InvalidOperation, OperationFailure, WriteError
from pymongo.results import DeleteResult, InsertManyResult, InsertOneResult, UpdateResult

from fencepost.results import IMMUTABLE_FIELD_CODE

Document = dict[str, Any]
IndexKeys = list[tuple[str, int]]

_MISSING = object()
_COMPARATORS = {"$eq", "$ne", "$gt", "$gte", "$lt", "$lte", "$in", "$nin", "$exists", "$regex"}
_LOGICAL = {"$and", "$or", "$nor"}
_BAD_VALUE = 2
_INDEX_NOT_FOUND = 27
_DUPLICATE_KEY = 11000


# Query engine


def deep_get(document: Mapping[str, Any], dotted_key: str) -> Any:
    current: Any = document
    for part in dotted_key.split("."):
        if isinstance(current, Mapping) and part in current:
            current = current[part]
        else:
            return _MISSING
    return current


def match_query(document: Mapping[str, Any], query: Mapping[str, Any]) -> bool:
    for key, condition in query.items():
        if key in _LOGICAL:
            if not _eval_logical(document, key, condition):
                return False
        elif key.startswith("$"):
            raise OperationFailure(f"unknown top level operator: {key}", _BAD_VALUE)
        elif not _eval_field(document, key, condition):
            return False
    return True


def _eval_logical(document: Mapping[str, Any], operator: str, clauses: Any) -> bool:
    if not isinstance(clauses, list) or not clauses:
        raise OperationFailure(f"{operator} must be a nonempty array", _BAD_VALUE)
    results = (match_query(document, clause) for clause in clauses)
    if operator == "$and":
        return all(results)
    if operator == "$or":
        return any(results)
    return not any(results)


def _is_operator_document(condition: Any) -> bool:
    return isinstance(condition, Mapping) and bool(condition) and all(
        str(key).startswith("$") for key in condition
    )


def _eval_field(document: Mapping[str, Any], dotted_key: str, condition: Any) -> bool:
    value = deep_get(document, dotted_key)
    if _is_operator_document(condition):
        return all(_eval_op(value, op, arg) for op, arg in condition.items())
    return _equals(value, condition)


def _equals(value: Any, expected: Any) -> bool:
    if value is _MISSING:
        return expected is None
    if isinstance(value, list) and not isinstance(expected, list):
        return expected in value
    return bool(value == expected)


def _compare(value: Any, argument: Any, predicate: Any) -> bool:
    if value is _MISSING or value is None:
        return False
    try:
        return bool(predicate(value, argument))
    except TypeError:
        return False


def _eval_op(value: Any, operator: str, argument: Any) -> bool:
    if operator not in _COMPARATORS:
        raise OperationFailure(f"unknown operator: {operator}", _BAD_VALUE)
    if operator == "$eq":
        return _equals(value, argument)
    if operator == "$ne":
        return not _equals(value, argument)
    if operator == "$gt":
        return _compare(value, argument, lambda a, b: a > b)
    if operator == "$gte":
        return _compare(value, argument, lambda a, b: a >= b)
    if operator == "$lt":
        return _compare(value, argument, lambda a, b: a < b)
    if operator == "$lte":
        return _compare(value, argument, lambda a, b: a <= b)
    if operator == "$in":
        return any(_equals(value, candidate) for candidate in argument)
    if operator == "$nin":
        return not any(_equals(value, candidate) for candidate in argument)
    if operator == "$exists":
        return (value is not _MISSING) == bool(argument)
    return isinstance(value, str) and re.search(argument, value) is not None


def _id_from_filter(query: Mapping[str, Any]) -> Any:
    if "_id" in query:
        condition = query["_id"]
        if not isinstance(condition, Mapping):
            return condition
        if set(condition) == {"$eq"}:
            return condition["$eq"]
    for clause in query.get("$and", ()):
        found = _id_from_filter(clause)
        if found is not _MISSING:
            return found
    return _MISSING


def _normalize_keys(keys: str | Sequence[tuple[str, int]] | Mapping[str, int]) -> IndexKeys:
    if isinstance(keys, str):
        return [(keys, 1)]
    if isinstance(keys, Mapping):
        return list(keys.items())
    return [(name, direction) for name, direction in keys]


def _index_name(keys: IndexKeys) -> str:
    return "_".join(f"{name}_{direction}" for name, direction in keys)


def _sort_documents(documents: list[Document], sort: Iterable[tuple[str, int]] | None) -> list[Document]:
    if not sort:
        return documents
    ordered = list(documents)
    for key, direction in reversed(list(sort)):

        def sort_key(doc: Document, key: str = key) -> tuple[bool, Any]:
            value = deep_get(doc, key)
            missing = value is _MISSING or value is None
            return (not missing, None if missing else value)

        ordered.sort(key=sort_key, reverse=direction < 0)
    return ordered


# Storage


@dataclass
class _Index:
    keys: IndexKeys
    unique: bool = False


@dataclass
class _CollectionState:
    documents: list[Document] = field(default_factory=list)
    indexes: dict[str, _Index] = field(default_factory=dict)


class InMemoryCursor:
    """Async cursor over a snapshot of matching documents."""

    def __init__(self, documents: list[Document]) -> None:
        self._documents = documents
        self._position = 0
        self.alive = True

    def __aiter__(self) -> InMemoryCursor:
        return self

    async def __anext__(self) -> Document:
        if not self.alive or self._position >= len(self._documents):
            self.alive = False
            raise StopAsyncIteration
        document = self._documents[self._position]
        self._position += 1
        return deepcopy(document)

    async def to_list(self, length: int | None = None) -> list[Document]:
        remaining = self._documents[self._position :] if self.alive else []
        if length is not None:
            remaining = remaining[:length]
        self._position += len(remaining)
        return deepcopy(remaining)

    async def close(self) -> None:
        self.alive = False

    async def __aenter__(self) -> InMemoryCursor:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()


class InMemoryCollection:
    """Collection handle mirroring ``pymongo.asynchronous.collection.AsyncCollection``."""

    def __init__(
        self,
        database: InMemoryDatabase,
        name: str,
        state: _CollectionState,
        *,
        acknowledged: bool = True,
    ) -> None:
        self.database = database
        self.name = name
        self._state = state
        self._acknowledged = acknowledged

    @property
    def full_name(self) -> str:
        return f"{self.database.name}.{self.name}"

    def with_options(self, write_concern: Any = None, **_: Any) -> InMemoryCollection:
        acknowledged = self._acknowledged if write_concern is None else write_concern.acknowledged
        return InMemoryCollection(self.database, self.name, self._state, acknowledged=acknowledged)

    def _documents(self, session: InMemorySession | None) -> list[Document]:
        if session is not None and session.in_transaction:
            return session._working_set(self._state)
        return self._state.documents

    def _duplicate(self, index_name: str, key_value: Mapping[str, Any]) -> DuplicateKeyError:
        message = (
            f"E11000 duplicate key error collection: {self.full_name} "
            f"index: {index_name} dup key: {dict(key_value)!r}"
        )
        return DuplicateKeyError(
            message,
            _DUPLICATE_KEY,
            {"index": 0, "code": _DUPLICATE_KEY, "errmsg": message, "keyValue": dict(key_value)},
        )

    def _check_unique(
        self,
        documents: list[Document],
        candidate: Document,
        skip: int | None = None,
    ) -> None:
        others = [doc for position, doc in enumerate(documents) if position != skip]
        if any(doc["_id"] == candidate["_id"] for doc in others):
            raise self._duplicate("_id_", {"_id": candidate["_id"]})
        for name, index in self._state.indexes.items():
            if not index.unique:
                continue
            key = tuple(deep_get(candidate, field_name) for field_name, _ in index.keys)
            for doc in others:
                if tuple(deep_get(doc, field_name) for field_name, _ in index.keys) == key:
                    key_value = {field_name: deep_get(candidate, field_name) for field_name, _ in index.keys}
                    raise self._duplicate(name, key_value)

    # Writes

    async def insert_one(
        self,
        document: MutableMapping[str, Any],
        *,
        session: InMemorySession | None = None,
        **_: Any,
    ) -> InsertOneResult:
        documents = self._documents(session)
        stored = deepcopy(dict(document))
        stored.setdefault("_id", ObjectId())
        self._check_unique(documents, stored)
        documents.append(stored)
        document.setdefault("_id", stored["_id"])
        return InsertOneResult(stored["_id"], self._acknowledged)

    async def insert_many(
        self,
        documents: Iterable[MutableMapping[str, Any]],
        *,
        session: InMemorySession | None = None,
        **_: Any,
    ) -> InsertManyResult:
        inserted = [
            (await self.insert_one(document, session=session)).inserted_id for document in documents
        ]
        return InsertManyResult(inserted, self._acknowledged)

    async def replace_one(
        self,
        filter: Mapping[str, Any],
        replacement: Mapping[str, Any],
        upsert: bool = False,
        *,
        session: InMemorySession | None = None,
        **_: Any,
    ) -> UpdateResult:
        if any(str(key).startswith("$") for key in replacement):
            raise ValueError("replacement can not include $ operators")
        documents = self._documents(session)
        for position, existing in enumerate(documents):
            if not match_query(existing, filter):
                continue
            updated = deepcopy(dict(replacement))
            if "_id" in updated and updated["_id"] != existing["_id"]:
                message = (
                    "After applying the update, the (immutable) field '_id' was found "
                    f"to have been altered to _id: {updated['_id']!r}"
                )
                raise WriteError(
                    message,
                    IMMUTABLE_FIELD_CODE,
                    {"index": 0, "code": IMMUTABLE_FIELD_CODE, "errmsg": message},
                )
            updated["_id"] = existing["_id"]
            self._check_unique(documents, updated, skip=position)
            modified = 0 if updated == existing else 1
            documents[position] = updated
            raw = {"n": 1, "nModified": modified, "ok": 1.0, "updatedExisting": True}
            return UpdateResult(raw, self._acknowledged)

        if not upsert:
            raw = {"n": 0, "nModified": 0, "ok": 1.0, "updatedExisting": False}
            return UpdateResult(raw, self._acknowledged)

        inserted = deepcopy(dict(replacement))
        if "_id" not in inserted:
            key = _id_from_filter(filter)
            inserted["_id"] = ObjectId() if key is _MISSING else key
        self._check_unique(documents, inserted)
        documents.append(inserted)
        raw = {"n": 1, "nModified": 0, "ok": 1.0, "upserted": inserted["_id"]}
        return UpdateResult(raw, self._acknowledged)

    async def delete_one(
        self,
        filter: Mapping[str, Any],
        *,
        session: InMemorySession | None = None,
        **_: Any,
    ) -> DeleteResult:
        documents = self._documents(session)
        for position, existing in enumerate(documents):
            if match_query(existing, filter):
                del documents[position]
                return DeleteResult({"n": 1, "ok": 1.0}, self._acknowledged)
        return DeleteResult({"n": 0, "ok": 1.0}, self._acknowledged)

    async def delete_many(
        self,
        filter: Mapping[str, Any],
        *,
        session: InMemorySession | None = None,
        **_: Any,
    ) -> DeleteResult:
        documents = self._documents(session)
        kept = [doc for doc in documents if not match_query(doc, filter)]
        deleted = len(documents) - len(kept)
        documents[:] = kept
        return DeleteResult({"n": deleted, "ok": 1.0}, self._acknowledged)

    # Reads

    def find(
        self,
        filter: Mapping[str, Any] | None = None,
        *,
        session: InMemorySession | None = None,
        sort: Iterable[tuple[str, int]] | None = None,
        limit: int = 0,
        **_: Any,
    ) -> InMemoryCursor:
        matches = [doc for doc in self._documents(session) if match_query(doc, filter or {})]
        matches = _sort_documents(matches, sort)
        if limit:
            matches = matches[:limit]
        return InMemoryCursor(matches)

    async def find_one(
        self,
        filter: Mapping[str, Any] | None = None,
        *,
        session: InMemorySession | None = None,
        sort: Iterable[tuple[str, int]] | None = None,
        **_: Any,
    ) -> Document | None:
        documents = await self.find(filter, session=session, sort=sort, limit=1).to_list()
        return documents[0] if documents else None

    async def count_documents(
        self,
        filter: Mapping[str, Any],
        *,
        session: InMemorySession | None = None,
        **_: Any,
    ) -> int:
        return sum(1 for doc in self._documents(session) if match_query(doc, filter))

    # Indexes

    async def create_index(
        self,
        keys: str | Sequence[tuple[str, int]] | Mapping[str, int],
        *,
        name: str | None = None,
        unique: bool = False,
        session: InMemorySession | None = None,
        **_: Any,
    ) -> str:
        normalized = _normalize_keys(keys)
        index_name = name or _index_name(normalized)
        index = _Index(normalized, unique)
        if unique:
            seen: set[Any] = set()
            for doc in self._documents(session):
                key = repr(tuple(deep_get(doc, field_name) for field_name, _ in normalized))
                if key in seen:
                    raise self._duplicate(index_name, {k: deep_get(doc, k) for k, _ in normalized})
                seen.add(key)
        self._state.indexes[index_name] = index
        return index_name

    async def drop_index(
        self,
        index_or_name: str | Sequence[tuple[str, int]],
        *,
        session: InMemorySession | None = None,
        **_: Any,
    ) -> None:
        name = index_or_name if isinstance(index_or_name, str) else _index_name(_normalize_keys(index_or_name))
        if name not in self._state.indexes:
            raise OperationFailure(f"index not found with name [{name}]", _INDEX_NOT_FOUND)
        del self._state.indexes[name]

    async def index_information(self, *, session: InMemorySession | None = None) -> dict[str, Any]:
        information: dict[str, Any] = {"_id_": {"key": [("_id", 1)]}}
        for name, index in self._state.indexes.items():
            entry: dict[str, Any] = {"key": list(index.keys)}
            if index.unique:
                entry["unique"] = True
            information[name] = entry
        return information


class InMemoryDatabase:
    """Database handle mirroring ``AsyncDatabase``."""

    def __init__(self, client: InMemoryClient, name: str) -> None:
        self.client = client
        self.name = name
        self._collections: dict[str, _CollectionState] = {}

    def get_collection(self, name: str, **_: Any) -> InMemoryCollection:
        state = self._collections.setdefault(name, _CollectionState())
        return InMemoryCollection(self, name, state)

    def __getitem__(self, name: str) -> InMemoryCollection:
        return self.get_collection(name)

    async def list_collection_names(self, *, session: InMemorySession | None = None, **_: Any) -> list[str]:
        return list(self._collections)

    async def drop_collection(
        self,
        name_or_collection: str | InMemoryCollection,
        *,
        session: InMemorySession | None = None,
        **_: Any,
    ) -> None:
        name = name_or_collection if isinstance(name_or_collection, str) else name_or_collection.name
        self._collections.pop(name, None)


class InMemorySession:
    """Client session with single-transaction staging."""

    def __init__(self, client: InMemoryClient) -> None:
        self.client = client
        self._staged: dict[int, tuple[_CollectionState, list[Document]]] | None = None
        self.has_ended = False

    @property
    def in_transaction(self) -> bool:
        return self._staged is not None

    def _working_set(self, state: _CollectionState) -> list[Document]:
        assert self._staged is not None
        if id(state) not in self._staged:
            self._staged[id(state)] = (state, deepcopy(state.documents))
        return self._staged[id(state)][1]

    async def start_transaction(self, **_: Any) -> None:
        if self.has_ended:
            raise InvalidOperation("Cannot use ended session")
        if self.in_transaction:
            raise InvalidOperation("Transaction already in progress")
        self._staged = {}

    async def commit_transaction(self) -> None:
        if self._staged is None:
            raise InvalidOperation("No transaction started")
        for state, documents in self._staged.values():
            state.documents = documents
        self._staged = None

    async def abort_transaction(self) -> None:
        if self._staged is None:
            raise InvalidOperation("No transaction started")
        self._staged = None

    async def end_session(self) -> None:
        self._staged = None
        self.has_ended = True

    async def __aenter__(self) -> InMemorySession:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.end_session()


class InMemoryClient:
    """Client mirroring ``AsyncMongoClient``; databases live for the client's lifetime."""

    def __init__(self) -> None:
        self._databases: dict[str, InMemoryDatabase] = {}
        self.closed = False

    def get_database(self, name: str, **_: Any) -> InMemoryDatabase:
        if name not in self._databases:
            self._databases[name] = InMemoryDatabase(self, name)
        return self._databases[name]

    def __getitem__(self, name: str) -> InMemoryDatabase:
        return self.get_database(name)

    def start_session(self, **_: Any) -> InMemorySession:
        return InMemorySession(self)

    async def drop_database(self, name: str) -> None:
        self._databases.pop(name, None)

    async def close(self) -> None:
        self.closed = True


__all__ = [
    "InMemoryClient",
    "InMemoryCollection",
    "InMemoryCursor",
    "InMemoryDatabase",
    "InMemorySession",
    "match_query",
]
