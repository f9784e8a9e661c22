"""Mapping between document models and BSON-ready dictionaries."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, TypeVar

from fencepost.filters import ID_FIELD
from fencepost.models import Document

D = TypeVar("D", bound=Document)

MODEL_ID_FIELD = "id"

# Keyword options every client is created with so UUID keys and aware datetimes round-trip.
CLIENT_OPTIONS: dict[str, Any] = {
    "uuidRepresentation": "standard",
    "tz_aware": True,
}


def to_document(entity: Document) -> dict[str, Any]:
    payload = entity.model_dump(mode="python")
    payload[ID_FIELD] = payload.pop(MODEL_ID_FIELD)
    return payload


def from_document(model: type[D], document: Mapping[str, Any]) -> D:
    payload = dict(document)
    if ID_FIELD in payload:
        payload[MODEL_ID_FIELD] = payload.pop(ID_FIELD)
    return model.model_validate(payload)


__all__ = ["CLIENT_OPTIONS", "from_document", "to_document"]
