"""Scoped multi-document transactions."""

from __future__ import annotations

import logging
from types import TracebackType
from typing import Any, TypeVar
from uuid import UUID, uuid4

from pymongo.errors import PyMongoError

from fencepost.collection import DocumentCollection
from fencepost.errors import TransactionError
from fencepost.models import Document, collection_name_for

D = TypeVar("D", bound=Document)

logger = logging.getLogger(__name__)


class MongoTransaction:
    """Session-bound transaction that aborts unless explicitly committed.

    Use as ``async with context.transaction() as tx:``; collections obtained
    from ``tx.collection(Model)`` run every operation inside the transaction.
    """

    def __init__(self, client: Any, database: Any, *, transaction_id: UUID | None = None) -> None:
        self._client = client
        self._database = database
        self.transaction_id = transaction_id or uuid4()
        self._session: Any | None = None
        self._committed = False

    @property
    def session(self) -> Any:
        if self._session is None:
            raise RuntimeError("Transaction session not started")
        return self._session

    @property
    def committed(self) -> bool:
        return self._committed

    async def __aenter__(self) -> MongoTransaction:
        self._session = self._client.start_session()
        await self._session.start_transaction()
        logger.debug("Started transaction %s", self.transaction_id)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self._session is None:
            return
        try:
            if self._session.in_transaction:
                await self._session.abort_transaction()
                logger.info("Transaction %s rolled back", self.transaction_id)
        finally:
            await self._session.end_session()
            self._session = None

    def collection(self, model: type[D]) -> DocumentCollection[D]:
        raw = self._database.get_collection(collection_name_for(model))
        return DocumentCollection(raw, model, session=self.session)

    async def commit(self) -> None:
        try:
            await self.session.commit_transaction()
        except PyMongoError as exc:
            raise TransactionError("Failed to commit the transaction", debug_info=str(exc)) from exc
        self._committed = True
        logger.debug("Committed transaction %s", self.transaction_id)

    async def rollback(self) -> None:
        await self.session.abort_transaction()


__all__ = ["MongoTransaction"]
