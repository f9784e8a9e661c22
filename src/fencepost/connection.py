"""MongoDB connection string parsing."""

from __future__ import annotations

from dataclasses import dataclass, field
from urllib.parse import parse_qsl, unquote, urlencode, urlsplit

SCHEMES = frozenset({"mongodb", "mongodb+srv"})
DATABASE_OPTION = "database"


@dataclass(frozen=True, slots=True)
class MongoConnectionString:
    """Connection string split into its server part and its database name.

    The database may be named in the URI path or, as a convenience, in a
    ``database`` query option; either way it is removed from ``str(self)``
    unless it came from the path.
    """

    scheme: str
    netloc: str
    path_database: str | None = None
    options: tuple[tuple[str, str], ...] = field(default_factory=tuple)
    option_database: str | None = None

    @classmethod
    def parse(cls, text: str) -> MongoConnectionString | None:
        """Return the parsed connection string, or ``None`` if it is not a MongoDB URI."""

        try:
            parts = urlsplit(text.strip())
        except ValueError:
            return None
        if parts.scheme not in SCHEMES or not parts.netloc or parts.netloc.endswith("@"):
            return None

        path = unquote(parts.path.strip("/"))
        options: list[tuple[str, str]] = []
        option_database: str | None = None
        for key, value in parse_qsl(parts.query, keep_blank_values=True):
            if key == DATABASE_OPTION:
                option_database = value or None
            else:
                options.append((key, value))

        return cls(
            scheme=parts.scheme,
            netloc=parts.netloc,
            path_database=path or None,
            options=tuple(sorted(options)),
            option_database=option_database,
        )

    @property
    def database_name(self) -> str | None:
        return self.path_database or self.option_database

    def __str__(self) -> str:
        text = f"{self.scheme}://{self.netloc}"
        if self.path_database:
            text += f"/{self.path_database}"
        if self.options:
            if not self.path_database:
                text += "/"
            text += "?" + urlencode(self.options, safe=":,/")
        return text


__all__ = ["MongoConnectionString"]
