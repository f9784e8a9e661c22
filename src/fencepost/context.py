"""Database context: lazily connected client, typed collections, transactions."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, TypeVar

from pymongo import AsyncMongoClient

from fencepost.codec import CLIENT_OPTIONS
from fencepost.collection import DocumentCollection
from fencepost.config import ConnectionSettings
from fencepost.connection import MongoConnectionString
from fencepost.errors import InvalidRequestError
from fencepost.models import Document, collection_name_for
from fencepost.transaction import MongoTransaction

D = TypeVar("D", bound=Document)

ClientFactory = Callable[[str], Any]

logger = logging.getLogger(__name__)


def create_client(connection_string: str) -> AsyncMongoClient[Any]:
    """Create a driver client configured for fencepost documents."""

    return AsyncMongoClient(connection_string, **CLIENT_OPTIONS)


class MongoDbContext:
    """Entry point handing out collections and transactions for one database.

    The client is created on first use, so constructing a context never
    touches the network.
    """

    def __init__(
        self,
        connection: MongoConnectionString | str | None = None,
        database_name: str | None = None,
        *,
        client: Any | None = None,
        client_factory: ClientFactory = create_client,
    ) -> None:
        if connection is None and client is None:
            raise InvalidRequestError("Either a connection string or a client is required")
        if isinstance(connection, str):
            parsed = MongoConnectionString.parse(connection)
            if parsed is None:
                raise InvalidRequestError(
                    "Database connection string is invalid", debug_info=connection
                )
            connection = parsed
        name = database_name or (connection.database_name if connection else None)
        if not name:
            raise InvalidRequestError("Database name is missing")
        self._connection = connection
        self._database_name = name
        self._client_factory = client_factory
        self._client: Any | None = client
        self._database: Any | None = None

    @classmethod
    def from_settings(
        cls,
        settings: ConnectionSettings,
        *,
        client_factory: ClientFactory = create_client,
    ) -> MongoDbContext:
        return cls(settings.connection_string, settings.database_name, client_factory=client_factory)

    @classmethod
    def from_client(cls, client: Any, database_name: str) -> MongoDbContext:
        """Wrap an already constructed client (e.g. one owned by a host application)."""

        return cls(database_name=database_name, client=client)

    @property
    def database_name(self) -> str:
        return self._database_name

    @property
    def client(self) -> Any:
        if self._client is None:
            logger.info("Connecting to database %s", self._database_name)
            self._client = self._client_factory(str(self._connection))
        return self._client

    @property
    def database(self) -> Any:
        if self._database is None:
            self._database = self.client.get_database(self._database_name)
        return self._database

    def collection(self, model: type[D]) -> DocumentCollection[D]:
        raw = self.database.get_collection(collection_name_for(model))
        return DocumentCollection(raw, model)

    def transaction(self) -> MongoTransaction:
        return MongoTransaction(self.client, self.database)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
        self._client = None
        self._database = None


__all__ = ["ClientFactory", "MongoDbContext", "create_client"]
