"""DSN helpers built on SQLAlchemy's URL model.

Connection strings in configuration use SQLAlchemy URL syntax::

    postgresql://db.ci.internal:5432/postgres
    mysql+mysqlconnector://localhost/
    sqlite:////var/tmp/fixtures.db

Only parsing and rendering happen here; no engine is ever created.
"""

from __future__ import annotations

from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError

from testdb.core.errors import ConfigError

# Scheme spellings that name the same engine.
ENGINE_ALIASES: dict[str, str] = {
    "postgres": "postgresql",
    "pg": "postgresql",
    "mariadb": "mysql",
    "sqlite3": "sqlite",
}


def canonical_engine(name: str) -> str:
    """Map an alias to its registered engine name (``postgres`` → ``postgresql``)."""
    return ENGINE_ALIASES.get(name, name)


def parse_dsn(dsn: str) -> URL:
    """Parse ``dsn`` into a SQLAlchemy ``URL``; raises ``ConfigError`` when invalid."""
    try:
        return make_url(dsn)
    except (ArgumentError, ValueError) as e:
        raise ConfigError(f"Invalid DSN {dsn!r}: {e}", cause=e) from e


def engine_of(dsn: str | URL) -> str:
    """Engine named by a DSN scheme, ignoring any ``+dbapi`` suffix."""
    url = dsn if isinstance(dsn, URL) else parse_dsn(dsn)
    return canonical_engine(url.get_backend_name())


def strip_credentials(url: URL) -> URL:
    """Drop username and password; credentials travel separately in handles."""
    return url.set(username=None, password=None)


def with_database(dsn: str | URL, database: str | None) -> str:
    """Render ``dsn`` with ``database`` substituted and credentials removed."""
    url = dsn if isinstance(dsn, URL) else parse_dsn(dsn)
    return strip_credentials(url.set(database=database)).render_as_string(hide_password=False)


__all__ = [
    "ENGINE_ALIASES",
    "canonical_engine",
    "parse_dsn",
    "engine_of",
    "strip_credentials",
    "with_database",
]
