from __future__ import annotations

import asyncio
from typing import Any

import pytest
from pymongo.errors import DuplicateKeyError, InvalidOperation, OperationFailure

from fencepost.memory import InMemoryClient, match_query

DOCUMENT = {
    "_id": 1,
    "name": "John",
    "age": 42,
    "tags": ["a", "b"],
    "address": {"city": "Paris", "zip": "75001"},
}


@pytest.mark.parametrize(
    ("query", "expected"),
    [
        ({}, True),
        ({"name": "John"}, True),
        ({"address.city": "Paris"}, True),
        ({"address.country": None}, True),
        ({"tags": "a"}, True),
        ({"age": {"$gt": 40, "$lte": 42}}, True),
        ({"age": {"$lt": 40}}, False),
        ({"age": {"$gte": "x"}}, False),
        ({"name": {"$in": ["Jane", "John"]}}, True),
        ({"name": {"$nin": ["John"]}}, False),
        ({"name": {"$ne": "Jane"}}, True),
        ({"email": {"$exists": False}}, True),
        ({"name": {"$regex": "^Jo"}}, True),
        ({"$and": [{"_id": 1}, {"age": 42}]}, True),
        ({"$and": [{"_id": 1}, {"age": 41}]}, False),
        ({"$or": [{"_id": 2}, {"age": 42}]}, True),
        ({"$nor": [{"_id": 2}, {"age": 42}]}, False),
        ({"address": {"city": "Paris", "zip": "75001"}}, True),
    ],
)
def test_match_query(query: dict[str, Any], expected: bool) -> None:
    assert match_query(DOCUMENT, query) is expected


def test_unknown_operators_fail() -> None:
    with pytest.raises(OperationFailure):
        match_query(DOCUMENT, {"$where": "true"})
    with pytest.raises(OperationFailure):
        match_query(DOCUMENT, {"$and": []})


def test_sorted_find_and_cursor_iteration() -> None:
    collection = InMemoryClient().get_database("db").get_collection("people")

    async def _scenario() -> list[str]:
        await collection.insert_many([{"name": "b", "rank": 2}, {"name": "a", "rank": 3}, {"name": "c"}])
        first = await collection.find_one({}, sort=[("rank", -1)])
        assert first is not None
        assert first["name"] == "a"
        names = []
        async with collection.find({}, sort=[("rank", 1)]) as cursor:
            async for document in cursor:
                names.append(document["name"])
        return names

    assert asyncio.run(_scenario()) == ["c", "b", "a"]


def test_returned_documents_are_copies() -> None:
    collection = InMemoryClient().get_database("db").get_collection("people")

    async def _scenario() -> None:
        await collection.insert_one({"_id": 1, "address": {"city": "Paris"}})
        found = await collection.find_one({"_id": 1})
        assert found is not None
        found["address"]["city"] = "Lyon"
        assert await collection.count_documents({"address.city": "Paris"}) == 1

    asyncio.run(_scenario())


def test_indexes() -> None:
    collection = InMemoryClient().get_database("db").get_collection("people")

    async def _scenario() -> None:
        await collection.insert_many([{"_id": 1, "email": "x"}, {"_id": 2, "email": "x"}])
        with pytest.raises(DuplicateKeyError):
            await collection.create_index([("email", 1)], unique=True)

        await collection.delete_one({"_id": 2})
        name = await collection.create_index("email", unique=True)
        assert name == "email_1"
        assert (await collection.index_information())["email_1"]["unique"] is True
        with pytest.raises(DuplicateKeyError):
            await collection.insert_one({"_id": 3, "email": "x"})

        await collection.drop_index("email_1")
        with pytest.raises(OperationFailure):
            await collection.drop_index("email_1")

    asyncio.run(_scenario())


def test_replace_upsert_takes_id_from_filter() -> None:
    collection = InMemoryClient().get_database("db").get_collection("people")

    async def _scenario() -> None:
        result = await collection.replace_one({"$and": [{"_id": 7}, {"version": 1}]}, {"name": "x"}, upsert=True)
        assert result.upserted_id == 7
        result = await collection.replace_one({"_id": 7}, {"name": "x"})
        assert (result.matched_count, result.modified_count) == (1, 0)

    asyncio.run(_scenario())


def test_session_transaction_lifecycle() -> None:
    client = InMemoryClient()
    collection = client.get_database("db").get_collection("people")

    async def _scenario() -> None:
        session = client.start_session()
        await session.start_transaction()
        with pytest.raises(InvalidOperation):
            await session.start_transaction()
        await collection.insert_one({"_id": 1}, session=session)
        assert await collection.count_documents({}) == 0
        assert await collection.count_documents({}, session=session) == 1
        await session.commit_transaction()
        assert await collection.count_documents({}) == 1

        with pytest.raises(InvalidOperation):
            await session.abort_transaction()
        await session.end_session()
        with pytest.raises(InvalidOperation):
            await session.start_transaction()

    asyncio.run(_scenario())


def test_database_and_client_housekeeping() -> None:
    client = InMemoryClient()
    database = client["db"]

    async def _scenario() -> None:
        await database["people"].insert_one({"_id": 1})
        assert await database.list_collection_names() == ["people"]
        await database.drop_collection("people")
        assert await database.list_collection_names() == []
        await client.drop_database("db")
        await client.close()

    asyncio.run(_scenario())
    assert client.closed
    assert client.get_database("db") is not database
