"""Configuration loading: application settings and connection resolution."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from fencepost.connection import MongoConnectionString
from fencepost.errors import InvalidRequestError, MissingConfigurationError

ENV_CONNECTION_STRING = "CS_CONNECTION"
ENV_DATABASE_NAME = "CS_DATABASE"
ENV_CONFIG_FILE = "CS_CONFIGFILE"

logger = logging.getLogger(__name__)


def _env_float(name: str) -> float | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r", name, raw)
        return None


class ConnectionSettings(BaseModel):
    """A connection string together with the database to use."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    connection_string: str = Field(
        validation_alias=AliasChoices("connection_string", "ConnectionString"),
    )
    database_name: str = Field(
        validation_alias=AliasChoices("database_name", "DatabaseName"),
    )

    @classmethod
    def from_connection_string(cls, connection: MongoConnectionString) -> ConnectionSettings | None:
        """Settings taken from the URI itself, when it names a database."""

        if connection.database_name is None:
            return None
        return cls(connection_string=str(connection), database_name=connection.database_name)

    @classmethod
    def from_file(cls, path: str | Path) -> ConnectionSettings:
        try:
            return cls.model_validate_json(Path(path).read_text(encoding="utf-8"))
        except OSError as exc:
            raise MissingConfigurationError(
                f"Cannot read connection settings file {path}", debug_info=str(exc)
            ) from exc
        except ValidationError as exc:
            raise InvalidRequestError(
                f"Invalid connection settings file {path}", debug_info=str(exc)
            ) from exc

    @classmethod
    def from_environment(cls, connection_string: str | None = None) -> ConnectionSettings:
        """Resolve settings from the environment.

        ``connection_string`` (or ``CS_CONNECTION``) paired with ``CS_DATABASE``
        wins; otherwise the JSON file named by ``CS_CONFIGFILE`` is read.

        Raises:
            MissingConfigurationError: If neither source yields settings.
        """

        connection = connection_string or os.getenv(ENV_CONNECTION_STRING)
        database_name = os.getenv(ENV_DATABASE_NAME)
        if connection and database_name:
            return cls(connection_string=connection, database_name=database_name)

        config_file = os.getenv(ENV_CONFIG_FILE)
        if config_file:
            return cls.from_file(config_file)

        logger.warning("Configured connection: [%s]", connection)
        if connection_string is None:
            message = (
                f"No connection settings in {ENV_CONNECTION_STRING}, "
                f"{ENV_DATABASE_NAME}, or {ENV_CONFIG_FILE}"
            )
        else:
            message = f"No database name in {ENV_DATABASE_NAME} or {ENV_CONFIG_FILE}"
        raise MissingConfigurationError(message)

    @classmethod
    def resolve(cls, connection_string: str | None = None) -> ConnectionSettings:
        """Apply the full precedence: URI database, then environment, then file."""

        if connection_string is None:
            return cls.from_environment()
        connection = MongoConnectionString.parse(connection_string)
        if connection is None:
            raise InvalidRequestError(
                "Invalid Mongo connection string", debug_info=connection_string
            )
        return cls.from_connection_string(connection) or cls.from_environment(str(connection))


@dataclass(frozen=True)
class AppSettings:
    """Immutable configuration sourced from environment variables."""

    mongodb_uri: str | None = None
    upgrade_version: str = "latest"
    delay_exit: float | None = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> AppSettings:
        return cls(
            mongodb_uri=os.getenv("FENCEPOST_MONGODB_URI") or None,
            upgrade_version=os.getenv("FENCEPOST_UPGRADE_VERSION", cls.upgrade_version),
            delay_exit=_env_float("FENCEPOST_DELAY_EXIT"),
            log_level=os.getenv("FENCEPOST_LOG_LEVEL", cls.log_level).upper(),
        )

    def connection_settings(self) -> ConnectionSettings:
        return ConnectionSettings.resolve(self.mongodb_uri)


__all__ = [
    "AppSettings",
    "ConnectionSettings",
    "ENV_CONFIG_FILE",
    "ENV_CONNECTION_STRING",
    "ENV_DATABASE_NAME",
]
