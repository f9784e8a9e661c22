"""Entity contracts for documents persisted through fencepost."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, ClassVar, Protocol, Self, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from fencepost.utils.time import utc_now

K = TypeVar("K")
T_co = TypeVar("T_co", covariant=True)


class HasKey(Protocol[K]):
    """Anything with a stable identity."""

    @property
    def id(self) -> K: ...


class HasVersion(Protocol):
    """Entities opting into optimistic concurrency."""

    @property
    def version(self) -> int: ...

    @property
    def updated(self) -> datetime: ...


class CanAdvanceVersion(HasVersion, Protocol[T_co]):
    """Entities able to produce a copy of themselves at a newer version."""

    def with_version(self, updated: datetime, version: int) -> T_co: ...


class Document(BaseModel):
    """Immutable persisted record keyed by ``id`` (stored as ``_id``)."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_assignment=True)

    collection_name: ClassVar[str | None] = None

    id: Any


class VersionedDocument(Document):
    """Document carrying a fencing token and last update timestamp."""

    version: Annotated[int, Field(ge=0)] = 0
    updated: datetime = Field(default_factory=utc_now)

    def with_version(self, updated: datetime, version: int) -> Self:
        return self.model_copy(update={"updated": updated, "version": version})


def collection_name_for(model: type[Document]) -> str:
    """Return the collection backing ``model``."""

    return model.collection_name or model.__name__


__all__ = [
    "CanAdvanceVersion",
    "Document",
    "HasKey",
    "HasVersion",
    "VersionedDocument",
    "collection_name_for",
]
