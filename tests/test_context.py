from __future__ import annotations

import asyncio

import pytest
from support import DATABASE_NAME, JOHN_DOE, Customer

from fencepost import ConnectionSettings, InvalidRequestError, MongoDbContext
from fencepost.memory import InMemoryClient


def test_context_validates_connection() -> None:
    with pytest.raises(InvalidRequestError):
        MongoDbContext("redis://localhost/0")
    with pytest.raises(InvalidRequestError):
        MongoDbContext("mongodb://localhost")
    with pytest.raises(InvalidRequestError):
        MongoDbContext()


def test_client_is_created_lazily_from_settings() -> None:
    created: list[str] = []
    client = InMemoryClient()

    def factory(connection_string: str) -> InMemoryClient:
        created.append(connection_string)
        return client

    settings = ConnectionSettings(connection_string="mongodb://localhost/?w=majority", database_name="shop")
    context = MongoDbContext.from_settings(settings, client_factory=factory)
    assert context.database_name == "shop"
    assert created == []

    async def _scenario() -> None:
        await context.collection(Customer).add(JOHN_DOE)
        await context.close()

    asyncio.run(_scenario())
    assert created == ["mongodb://localhost/?w=majority"]
    assert client.closed
    assert asyncio.run(MongoDbContext.from_client(client, "shop").collection(Customer).count()) == 1


def test_database_from_uri(client: InMemoryClient) -> None:
    context = MongoDbContext(f"mongodb://localhost/{DATABASE_NAME}", client_factory=lambda _: client)

    assert context.database_name == DATABASE_NAME
    assert context.database is client.get_database(DATABASE_NAME)
