from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure the src/ directory is importable when tests run from a checkout.
sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

from fencepost import DocumentCollection, MongoDbContext  # noqa: E402
from fencepost.memory import InMemoryClient  # noqa: E402
from support import DATABASE_NAME, Customer, Tag  # noqa: E402


@pytest.fixture
def client() -> InMemoryClient:
    return InMemoryClient()


@pytest.fixture
def context(client: InMemoryClient) -> MongoDbContext:
    return MongoDbContext.from_client(client, DATABASE_NAME)


@pytest.fixture
def customers(context: MongoDbContext) -> DocumentCollection[Customer]:
    return context.collection(Customer)


@pytest.fixture
def tags(context: MongoDbContext) -> DocumentCollection[Tag]:
    return context.collection(Tag)
