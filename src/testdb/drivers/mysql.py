"""MySQL / MariaDB driver.

Uses ``mysql.connector`` from the ``mysql-connector-python`` package::

    pip install spine-testdb[mysql]

Import-guarded: if ``mysql.connector`` is not installed the engine probes as
unavailable and its ``driver_dsn`` blocks are skipped.
"""

from __future__ import annotations

from typing import Any

from testdb.core.errors import DriverUnavailable

from .base import ServerDriver

ER_DB_CREATE_EXISTS = 1007


class MySQLDriver(ServerDriver):
    """Server-based MySQL driver. The admin login needs global CREATE and DROP."""

    engine = "mysql"
    default_port = 3306

    version_sql = "SELECT VERSION()"
    list_sql = "SHOW DATABASES"

    connect_timeout: int = 10

    def _connect(self) -> Any:
        try:
            import mysql.connector
        except ImportError:
            raise DriverUnavailable(
                "mysql-connector-python is required for MySQL. "
                "Install with: pip install mysql-connector-python"
            ) from None

        url = self.url
        params: dict[str, Any] = {
            "host": url.host or "localhost",
            "port": url.port or self.default_port,
            "user": self.login,
            "password": self.password or url.password or "",
            "connection_timeout": self.connect_timeout,
            "autocommit": True,
        }
        if url.database:
            params["database"] = url.database
        try:
            return mysql.connector.connect(**params)
        except mysql.connector.Error as e:
            raise self._connect_error(e) from e

    def _is_duplicate(self, error: Exception) -> bool:
        return getattr(error, "errno", None) == ER_DB_CREATE_EXISTS

    def _quote(self, name: str) -> str:
        return "`" + name.replace("`", "``") + "`"


__all__ = ["MySQLDriver"]
