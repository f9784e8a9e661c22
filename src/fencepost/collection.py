"""Optimistic-concurrency CRUD operations over a MongoDB collection.

Every operation exists twice: ``try_*`` returns an :class:`Outcome` and never
raises for classified failures, while the plain name unwraps that outcome and
raises a :class:`~fencepost.errors.FencepostError` carrying the same code.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from typing import Any, Generic, TypeVar, overload

import pymongo

from fencepost.codec import from_document, to_document
from fencepost.errors import ErrorCode
from fencepost.filters import Filter, by_id, by_id_and_version, by_key
from fencepost.models import Document, VersionedDocument, collection_name_for
from fencepost.outcome import Outcome
from fencepost.results import interpret_update_result, try_execute
from fencepost.versioning import Clock, advance_version

D = TypeVar("D", bound=Document)
V = TypeVar("V", bound=VersionedDocument)
R = TypeVar("R")

logger = logging.getLogger(__name__)


@contextmanager
def _deadline(timeout: float | None) -> Iterator[None]:
    if timeout is None:
        yield
        return
    with pymongo.timeout(timeout):
        yield


class DocumentCollection(Generic[D]):
    """Typed access to the collection storing ``model`` documents."""

    def __init__(self, collection: Any, model: type[D], *, session: Any | None = None) -> None:
        self._collection = collection
        self._model = model
        self._session = session

    @property
    def model(self) -> type[D]:
        return self._model

    @property
    def name(self) -> str:
        return collection_name_for(self._model)

    @property
    def raw(self) -> Any:
        """The underlying driver collection."""

        return self._collection

    async def _execute(
        self,
        description: str,
        operation: Callable[[], Awaitable[Outcome[R]]],
        timeout: float | None,
    ) -> Outcome[R]:
        async def guarded() -> Outcome[R]:
            with _deadline(timeout):
                return await operation()

        logger.debug("%s on %s", description, self.name)
        return await try_execute(guarded, description=f"{description} on {self.name}")

    async def _replace(self, data: R, predicate: Filter, upsert: bool) -> Outcome[R]:
        result = await self._collection.replace_one(
            predicate,
            to_document(data),  # type: ignore[arg-type]
            upsert=upsert,
            session=self._session,
        )
        return interpret_update_result(data, result)

    # Retrieval

    async def try_get(self, predicate: Filter, *, timeout: float | None = None) -> Outcome[D]:
        """Return the first document matching ``predicate`` in store order."""

        async def operation() -> Outcome[D]:
            document = await self._collection.find_one(predicate, session=self._session)
            if document is None:
                return Outcome.fail(ErrorCode.NOT_FOUND, f"{self._model.__name__} not found")
            return Outcome.success(from_document(self._model, document))

        return await self._execute("get", operation, timeout)

    async def get(self, predicate: Filter, *, timeout: float | None = None) -> D:
        return (await self.try_get(predicate, timeout=timeout)).unwrap()

    async def try_get_by_id(self, key: Any, *, timeout: float | None = None) -> Outcome[D]:
        return await self.try_get(by_id(key), timeout=timeout)

    async def get_by_id(self, key: Any, *, timeout: float | None = None) -> D:
        return (await self.try_get_by_id(key, timeout=timeout)).unwrap()

    async def try_find(
        self,
        predicate: Filter | None = None,
        *,
        timeout: float | None = None,
    ) -> Outcome[list[D]]:
        async def operation() -> Outcome[list[D]]:
            cursor = self._collection.find(predicate or {}, session=self._session)
            try:
                documents = await cursor.to_list(length=None)
            finally:
                await cursor.close()
            return Outcome.success([from_document(self._model, doc) for doc in documents])

        return await self._execute("find", operation, timeout)

    async def find(self, predicate: Filter | None = None, *, timeout: float | None = None) -> list[D]:
        return (await self.try_find(predicate, timeout=timeout)).unwrap()

    async def try_count(
        self,
        predicate: Filter | None = None,
        *,
        timeout: float | None = None,
    ) -> Outcome[int]:
        async def operation() -> Outcome[int]:
            count = await self._collection.count_documents(predicate or {}, session=self._session)
            return Outcome.success(count)

        return await self._execute("count", operation, timeout)

    async def count(self, predicate: Filter | None = None, *, timeout: float | None = None) -> int:
        return (await self.try_count(predicate, timeout=timeout)).unwrap()

    # Insertion

    async def try_add(self, entity: D, *, timeout: float | None = None) -> Outcome[D]:
        """Insert ``entity``; a taken id or unique index reports duplication."""

        async def operation() -> Outcome[D]:
            await self._collection.insert_one(to_document(entity), session=self._session)
            return Outcome.success(entity)

        return await self._execute("add", operation, timeout)

    async def add(self, entity: D, *, timeout: float | None = None) -> D:
        return (await self.try_add(entity, timeout=timeout)).unwrap()

    # Update

    async def try_update(
        self,
        entity: D,
        predicate: Filter,
        *,
        upsert: bool = False,
        timeout: float | None = None,
    ) -> Outcome[D]:
        """Replace the document matching ``predicate`` with ``entity`` as given."""

        return await self._execute(
            "upsert" if upsert else "update",
            lambda: self._replace(entity, predicate, upsert),
            timeout,
        )

    async def update(
        self,
        entity: D,
        predicate: Filter,
        *,
        upsert: bool = False,
        timeout: float | None = None,
    ) -> D:
        return (await self.try_update(entity, predicate, upsert=upsert, timeout=timeout)).unwrap()

    @overload
    async def try_update_by_key(
        self,
        key: Any,
        entity: D,
        current_version: None = None,
        *,
        upsert: bool = False,
        clock: None = None,
        timeout: float | None = None,
    ) -> Outcome[D]: ...

    @overload
    async def try_update_by_key(
        self: DocumentCollection[V],
        key: Any,
        entity: V,
        current_version: int,
        *,
        upsert: bool = False,
        clock: Clock | None = None,
        timeout: float | None = None,
    ) -> Outcome[V]: ...

    async def try_update_by_key(
        self,
        key: Any,
        entity: Any,
        current_version: int | None = None,
        *,
        upsert: bool = False,
        clock: Clock | None = None,
        timeout: float | None = None,
    ) -> Outcome[Any]:
        """Replace the document stored under ``key``.

        With ``current_version`` the write is fenced on that version and the
        entity is advanced to ``current_version + 1`` stamped with ``clock``.
        Without it the entity is written exactly as given.
        """

        if current_version is None:
            final = entity
        else:
            final = advance_version(entity, clock, current=current_version)
        predicate = by_key(key, current_version)
        return await self._execute(
            "upsert" if upsert else "update",
            lambda: self._replace(final, predicate, upsert),
            timeout,
        )

    @overload
    async def update_by_key(
        self,
        key: Any,
        entity: D,
        current_version: None = None,
        *,
        upsert: bool = False,
        clock: None = None,
        timeout: float | None = None,
    ) -> D: ...

    @overload
    async def update_by_key(
        self: DocumentCollection[V],
        key: Any,
        entity: V,
        current_version: int,
        *,
        upsert: bool = False,
        clock: Clock | None = None,
        timeout: float | None = None,
    ) -> V: ...

    async def update_by_key(
        self,
        key: Any,
        entity: Any,
        current_version: int | None = None,
        *,
        upsert: bool = False,
        clock: Clock | None = None,
        timeout: float | None = None,
    ) -> Any:
        outcome = await self.try_update_by_key(
            key, entity, current_version, upsert=upsert, clock=clock, timeout=timeout
        )
        return outcome.unwrap()

    async def try_update_versioned(
        self: DocumentCollection[V],
        entity: V,
        *,
        upsert: bool = False,
        clock: Clock | None = None,
        timeout: float | None = None,
    ) -> Outcome[V]:
        """Write ``entity`` at its next version, fenced on the version it carries."""

        final = advance_version(entity, clock)
        predicate = by_id_and_version(entity.id, entity.version)
        return await self._execute(
            "upsert" if upsert else "update",
            lambda: self._replace(final, predicate, upsert),
            timeout,
        )

    async def update_versioned(
        self: DocumentCollection[V],
        entity: V,
        *,
        upsert: bool = False,
        clock: Clock | None = None,
        timeout: float | None = None,
    ) -> V:
        outcome = await self.try_update_versioned(entity, upsert=upsert, clock=clock, timeout=timeout)
        return outcome.unwrap()

    # Upsert

    async def try_upsert(
        self,
        entity: D,
        predicate: Filter,
        *,
        timeout: float | None = None,
    ) -> Outcome[D]:
        return await self.try_update(entity, predicate, upsert=True, timeout=timeout)

    async def upsert(self, entity: D, predicate: Filter, *, timeout: float | None = None) -> D:
        return (await self.try_upsert(entity, predicate, timeout=timeout)).unwrap()

    @overload
    async def try_upsert_by_key(
        self,
        key: Any,
        entity: D,
        current_version: None = None,
        *,
        clock: None = None,
        timeout: float | None = None,
    ) -> Outcome[D]: ...

    @overload
    async def try_upsert_by_key(
        self: DocumentCollection[V],
        key: Any,
        entity: V,
        current_version: int,
        *,
        clock: Clock | None = None,
        timeout: float | None = None,
    ) -> Outcome[V]: ...

    async def try_upsert_by_key(
        self,
        key: Any,
        entity: Any,
        current_version: int | None = None,
        *,
        clock: Clock | None = None,
        timeout: float | None = None,
    ) -> Outcome[Any]:
        return await self.try_update_by_key(
            key, entity, current_version, upsert=True, clock=clock, timeout=timeout
        )

    @overload
    async def upsert_by_key(
        self,
        key: Any,
        entity: D,
        current_version: None = None,
        *,
        clock: None = None,
        timeout: float | None = None,
    ) -> D: ...

    @overload
    async def upsert_by_key(
        self: DocumentCollection[V],
        key: Any,
        entity: V,
        current_version: int,
        *,
        clock: Clock | None = None,
        timeout: float | None = None,
    ) -> V: ...

    async def upsert_by_key(
        self,
        key: Any,
        entity: Any,
        current_version: int | None = None,
        *,
        clock: Clock | None = None,
        timeout: float | None = None,
    ) -> Any:
        outcome = await self.try_upsert_by_key(
            key, entity, current_version, clock=clock, timeout=timeout
        )
        return outcome.unwrap()

    async def try_upsert_versioned(
        self: DocumentCollection[V],
        entity: V,
        *,
        clock: Clock | None = None,
        timeout: float | None = None,
    ) -> Outcome[V]:
        return await self.try_update_versioned(entity, upsert=True, clock=clock, timeout=timeout)

    async def upsert_versioned(
        self: DocumentCollection[V],
        entity: V,
        *,
        clock: Clock | None = None,
        timeout: float | None = None,
    ) -> V:
        return (await self.try_upsert_versioned(entity, clock=clock, timeout=timeout)).unwrap()

    # Deletion

    async def try_delete(self, predicate: Filter, *, timeout: float | None = None) -> Outcome[None]:
        """Delete one matching document; matching nothing is still a success."""

        async def operation() -> Outcome[None]:
            await self._collection.delete_one(predicate, session=self._session)
            return Outcome.success(None)

        return await self._execute("delete", operation, timeout)

    async def delete(self, predicate: Filter, *, timeout: float | None = None) -> None:
        (await self.try_delete(predicate, timeout=timeout)).unwrap()

    async def try_delete_all(
        self,
        predicate: Filter,
        *,
        timeout: float | None = None,
    ) -> Outcome[None]:
        async def operation() -> Outcome[None]:
            await self._collection.delete_many(predicate, session=self._session)
            return Outcome.success(None)

        return await self._execute("delete all", operation, timeout)

    async def delete_all(self, predicate: Filter, *, timeout: float | None = None) -> None:
        (await self.try_delete_all(predicate, timeout=timeout)).unwrap()

    async def try_delete_by_key(
        self,
        key: Any,
        expected_version: int | None = None,
        *,
        timeout: float | None = None,
    ) -> Outcome[None]:
        return await self.try_delete(by_key(key, expected_version), timeout=timeout)

    async def delete_by_key(
        self,
        key: Any,
        expected_version: int | None = None,
        *,
        timeout: float | None = None,
    ) -> None:
        (await self.try_delete_by_key(key, expected_version, timeout=timeout)).unwrap()

    async def try_delete_entity(self, entity: D, *, timeout: float | None = None) -> Outcome[None]:
        return await self.try_delete_by_key(entity.id, timeout=timeout)

    async def delete_entity(self, entity: D, *, timeout: float | None = None) -> None:
        (await self.try_delete_entity(entity, timeout=timeout)).unwrap()

    async def try_delete_versioned(
        self: DocumentCollection[V],
        entity: V,
        *,
        timeout: float | None = None,
    ) -> Outcome[None]:
        return await self.try_delete_by_key(entity.id, entity.version, timeout=timeout)

    async def delete_versioned(
        self: DocumentCollection[V],
        entity: V,
        *,
        timeout: float | None = None,
    ) -> None:
        (await self.try_delete_versioned(entity, timeout=timeout)).unwrap()


__all__ = ["DocumentCollection"]
