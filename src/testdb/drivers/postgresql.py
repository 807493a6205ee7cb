"""PostgreSQL driver.

Uses ``psycopg2`` from the ``psycopg2-binary`` package::

    pip install spine-testdb[postgresql]

The ``driver_dsn`` names the administrative connection, for example
``postgresql://ci_admin@db.ci.internal/postgres``. The login needs the
CREATEDB privilege; provisioned databases are owned by it.
"""

from __future__ import annotations

from typing import Any

from testdb.core.errors import DriverUnavailable

from .base import ServerDriver

# duplicate_database, and unique_violation on pg_database when two
# CREATE DATABASE statements race
_DUPLICATE_CODES = frozenset({"42P04", "23505"})


class PostgreSQLDriver(ServerDriver):
    """Server-based PostgreSQL driver."""

    engine = "postgresql"
    default_port = 5432
    default_admin_database = "postgres"

    version_sql = "SHOW server_version"
    list_sql = "SELECT datname FROM pg_database WHERE NOT datistemplate"

    connect_timeout: int = 10

    def _connect(self) -> Any:
        try:
            import psycopg2
        except ImportError:
            raise DriverUnavailable(
                "psycopg2 is required for PostgreSQL. Install with: pip install psycopg2-binary"
            ) from None

        url = self.url
        try:
            conn = psycopg2.connect(
                host=url.host,
                port=url.port or self.default_port,
                dbname=url.database or self.default_admin_database,
                user=self.login,
                password=self.password or url.password,
                connect_timeout=self.connect_timeout,
                **{k: v for k, v in url.query.items() if isinstance(v, str)},
            )
        except psycopg2.Error as e:
            raise self._connect_error(e) from e
        # CREATE/DROP DATABASE cannot run inside a transaction block
        conn.autocommit = True
        return conn

    def _is_duplicate(self, error: Exception) -> bool:
        return getattr(error, "pgcode", None) in _DUPLICATE_CODES

    def _quote(self, name: str) -> str:
        return '"' + name.replace('"', '""') + '"'


__all__ = ["PostgreSQLDriver"]
