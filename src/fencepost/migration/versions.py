"""Schema versions and migration target resolution."""

from __future__ import annotations

from collections.abc import Iterable
from typing import NamedTuple

from fencepost.errors import InvalidRequestError

LATEST_KEYWORD = "latest"
DOWNGRADE_KEYWORD = "downgrade"


class SchemaVersion(NamedTuple):
    """Three-part database schema version, ordered component-wise."""

    major: int
    minor: int
    patch: int

    @classmethod
    def parse(cls, text: str) -> SchemaVersion | None:
        """Parse ``major.minor.patch``; anything with another shape yields ``None``."""

        parts = text.strip().split(".")
        if len(parts) != 3:
            return None
        try:
            major, minor, patch = (int(part) for part in parts)
        except ValueError as exc:
            raise InvalidRequestError(f"Invalid version number: {text}") from exc
        if min(major, minor, patch) < 0:
            raise InvalidRequestError(f"Invalid version number: {text}")
        return cls(major, minor, patch)

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


INITIAL_VERSION = SchemaVersion(0, 0, 0)


def resolve_target(
    text: str,
    current: SchemaVersion,
    available: Iterable[SchemaVersion],
) -> SchemaVersion | None:
    """Translate a requested version into the version to migrate to.

    ``latest`` picks the highest available version above ``current`` and
    ``downgrade`` the highest one below it; ``None`` means there is nothing
    to do.

    Raises:
        InvalidRequestError: For an unknown keyword or malformed version.
    """

    explicit = SchemaVersion.parse(text)
    if explicit is not None:
        return explicit

    keyword = text.strip().lower()
    if keyword == LATEST_KEYWORD:
        candidates = [version for version in available if version > current]
    elif keyword == DOWNGRADE_KEYWORD:
        candidates = [version for version in available if version < current]
    else:
        raise InvalidRequestError(
            f"Invalid version keyword. Only '{LATEST_KEYWORD}', '{DOWNGRADE_KEYWORD}', "
            "or Semver is accepted.",
            debug_info=text,
        )
    return max(candidates, default=None)


__all__ = [
    "DOWNGRADE_KEYWORD",
    "INITIAL_VERSION",
    "LATEST_KEYWORD",
    "SchemaVersion",
    "resolve_target",
]
