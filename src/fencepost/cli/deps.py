"""Shared CLI dependency helpers."""

from __future__ import annotations

from functools import lru_cache

from dotenv import load_dotenv

from fencepost.config import AppSettings
from fencepost.context import ClientFactory, create_client


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """Return cached settings, honouring a local ``.env`` file."""

    load_dotenv()
    return AppSettings.from_env()


def reset_settings() -> None:
    """Clear the cached settings (useful for tests)."""

    get_settings.cache_clear()


def get_client_factory() -> ClientFactory:
    return create_client
