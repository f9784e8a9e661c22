"""Sample documents and migrations shared by the test suite."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from fencepost import Document, FixedClock, VersionedDocument
from fencepost.migration import Migration, create_unique_index, drop_index
from fencepost.migration.schema import collection_of

DATABASE_NAME = "fencepost_test"

NEW_YEAR_2024 = FixedClock(datetime(2024, 1, 1, tzinfo=UTC))
CREATED = datetime(2023, 6, 1, 12, 30, tzinfo=UTC)


class Address(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    street: str
    city: str


class Customer(VersionedDocument):
    collection_name = "customers"

    id: UUID
    name: str
    email: str | None = None
    address: Address | None = None


class Tag(Document):
    id: str
    label: str


JOHN_DOE = Customer(
    id=UUID("6f1c8d8e-3b43-4a63-9a1f-2f0d2c6b5a01"),
    name="John Doe",
    email="john@example.com",
    address=Address(street="1 Main St", city="Springfield"),
    updated=CREATED,
)
JANE_DOE = Customer(
    id=UUID("6f1c8d8e-3b43-4a63-9a1f-2f0d2c6b5a02"),
    name="Jane Doe",
    email="jane@example.com",
    address=Address(street="2 Rue de Rivoli", city="Paris"),
    updated=CREATED,
)
HELLO_WORLD = Customer(
    id=UUID("6f1c8d8e-3b43-4a63-9a1f-2f0d2c6b5a03"),
    name="Hello World",
    address=Address(street="3 Quai Voltaire", city="Paris"),
    updated=CREATED,
)
NEW_KID = Customer(
    id=UUID("6f1c8d8e-3b43-4a63-9a1f-2f0d2c6b5a04"),
    name="New Kid",
    email="kid@example.com",
    updated=CREATED,
)


async def add_email_index(database: Any, session: Any) -> None:
    await create_unique_index(database, Customer, "customer_email", [("email", 1)], session=session)


async def drop_email_index(database: Any, session: Any) -> None:
    await drop_index(database, Customer, "customer_email", session=session)


async def seed_default_tag(database: Any, session: Any) -> None:
    await collection_of(database, Tag).insert_one(
        {"_id": "default", "label": "Default"}, session=session
    )


async def remove_default_tag(database: Any, session: Any) -> None:
    await collection_of(database, Tag).delete_one({"_id": "default"}, session=session)


MIGRATIONS = [
    Migration("1.0.0", "customer email index", add_email_index, drop_email_index),
    Migration("1.1.0", "default tag", seed_default_tag, remove_default_tag),
]
