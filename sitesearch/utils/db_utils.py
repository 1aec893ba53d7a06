"""Helpers for database connection strings.

Tortoise ORM understands ``sqlite://``, ``asyncpg://``/``postgres://`` and
``mysql://`` URLs. Deployments often hand us SQLAlchemy-style DSNs instead
(``postgresql+psycopg2://``), so they are normalized here before
``Tortoise.init`` sees them.
"""

from __future__ import annotations


DEFAULT_DATABASE_URL = "sqlite://sitesearch.sqlite3"


def to_tortoise_url(url: str | None) -> str:
    """Convert a DSN to a scheme Tortoise ORM accepts.

    ``postgresql://``, ``postgres://`` and driver-qualified variants such as
    ``postgresql+psycopg2://`` become ``asyncpg://``. SQLite and MySQL URLs
    pass through unchanged; an empty value falls back to the local SQLite
    file.
    """

    if not url:
        return DEFAULT_DATABASE_URL
    if url.startswith("postgresql+") or url.startswith("postgres+"):
        url = "postgresql://" + url.split("://", 1)[1]
    if url.startswith("postgresql://"):
        return "asyncpg://" + url[len("postgresql://") :]
    if url.startswith("postgres://"):
        return "asyncpg://" + url[len("postgres://") :]
    return url
