"""Optimistic-concurrency data access for MongoDB."""

from .collection import DocumentCollection
from .config import AppSettings, ConnectionSettings
from .connection import MongoConnectionString
from .context import MongoDbContext, create_client
from .errors import (
    ConcurrencyError,
    DuplicationError,
    ErrorCode,
    ErrorInfo,
    FencepostError,
    InvalidRequestError,
    MissingConfigurationError,
    NotFoundError,
    TransactionError,
)
from .filters import by_id, by_id_and_version
from .models import (
    CanAdvanceVersion,
    Document,
    HasKey,
    HasVersion,
    VersionedDocument,
    collection_name_for,
)
from .outcome import Outcome
from .transaction import MongoTransaction
from .versioning import Clock, FixedClock, SystemClock, advance_version

__all__ = [
    "AppSettings",
    "CanAdvanceVersion",
    "Clock",
    "ConcurrencyError",
    "ConnectionSettings",
    "Document",
    "DocumentCollection",
    "DuplicationError",
    "ErrorCode",
    "ErrorInfo",
    "FencepostError",
    "FixedClock",
    "HasKey",
    "HasVersion",
    "InvalidRequestError",
    "MissingConfigurationError",
    "MongoConnectionString",
    "MongoDbContext",
    "MongoTransaction",
    "NotFoundError",
    "Outcome",
    "SystemClock",
    "TransactionError",
    "VersionedDocument",
    "advance_version",
    "by_id",
    "by_id_and_version",
    "collection_name_for",
    "create_client",
]
