"""Shared driver plumbing for file-based and server-based engines.

File-based engines keep every database in its own directory::

    <databases_dir>/<engine>/<name>/<name>.<suffix>

``os.mkdir`` of the per-database directory is the atomic create, so two
processes racing for the same name see ``FileExistsError`` exactly like a
server answering "database exists".

Server-based engines open an administrative DB-API connection per
operation. Driver libraries are import-guarded: a missing library surfaces
as ``DriverUnavailable`` at probe time, never at import time.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, ClassVar

from sqlalchemy.engine import URL

from testdb.core.dsn import parse_dsn, with_database
from testdb.core.errors import (
    DatabaseConnectionError,
    DatabaseError,
    DatabaseExistsError,
    DriverUnavailable,
    TestDBError,
)
from testdb.core.logging import get_logger
from testdb.core.settings import current_login
from testdb.core.types import DriverSpec
from testdb.core.version import Version

logger = get_logger(__name__)


class DriverBase(ABC):
    """Attributes common to every driver. Subclasses set ``engine``."""

    engine: ClassVar[str] = ""
    file_based: ClassVar[bool] = False

    def __init__(self, spec: DriverSpec | None = None, **kwargs: Any):
        self.spec = spec or DriverSpec(engine=self.engine)
        self._url: URL | None = (
            parse_dsn(self.spec.admin_address) if self.spec.admin_address else None
        )
        self._version: Version | None = None

    @property
    def configured(self) -> bool:
        """True when built from a ``driver_dsn`` block rather than auto-detected."""
        return self.spec.admin_address is not None

    @property
    def key(self) -> str | None:
        return self.spec.key

    @property
    def version(self) -> Version | None:
        return self._version

    @property
    def username(self) -> str | None:
        return self.spec.username

    @property
    def password(self) -> str | None:
        return self.spec.password

    @property
    def login(self) -> str:
        return self.spec.username or current_login()

    @abstractmethod
    def probe(self) -> bool: ...

    @abstractmethod
    def create_database(self, name: str) -> None: ...

    @abstractmethod
    def list_databases(self, prefix: str = "") -> list[str]: ...

    @abstractmethod
    def drop_database(self, name: str) -> None: ...

    @abstractmethod
    def address_for(self, name: str) -> str: ...

    def __repr__(self) -> str:
        origin = "configured" if self.configured else "auto"
        return f"{type(self).__name__}(engine={self.engine!r}, {origin}, version={self._version})"


# =============================================================================
# File-based engines
# =============================================================================


class FileDriver(DriverBase):
    """
    Driver for an embedded engine whose databases are local files.

    Probing opens and closes a throwaway database in a temporary directory.
    A ``driver_dsn`` such as ``sqlite:////srv/testdbs`` relocates the
    databases under that directory.
    """

    file_based = True
    suffix: ClassVar[str] = "db"

    def __init__(
        self,
        spec: DriverSpec | None = None,
        *,
        databases_dir: Path | None = None,
        **kwargs: Any,
    ):
        super().__init__(spec, **kwargs)
        if self._url is not None and self._url.database:
            self.root = Path(self._url.database).expanduser()
        else:
            base = databases_dir or Path(tempfile.gettempdir()) / "testdb"
            self.root = Path(base) / self.engine

    @abstractmethod
    def _library_version(self) -> str:
        """Import the engine library and return its version string."""

    @abstractmethod
    def _initialise(self, path: Path) -> None:
        """Open and close a database file at ``path`` so that it exists."""

    def probe(self) -> bool:
        try:
            version = self._library_version()
            with tempfile.TemporaryDirectory(prefix=f"testdb-probe-{self.engine}-") as tmp:
                self._initialise(Path(tmp) / f"probe.{self.suffix}")
        except (DriverUnavailable, DatabaseError, OSError) as e:
            logger.debug("driver_probe_failed", engine=self.engine, error=str(e))
            return False
        self._version = Version.coerce(version)
        logger.debug("driver_probe_succeeded", engine=self.engine, version=str(self._version))
        return True

    def path_for(self, name: str) -> Path:
        return self.root / name / f"{name}.{self.suffix}"

    def address_for(self, name: str) -> str:
        return URL.create(self.engine, database=str(self.path_for(name))).render_as_string()

    def create_database(self, name: str) -> None:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            os.mkdir(self.root / name)
        except FileExistsError:
            raise DatabaseExistsError(name).with_context(engine=self.engine) from None
        except OSError as e:
            raise DatabaseError(
                f"Cannot create {self.engine} database directory for {name}: {e}", cause=e
            ).with_context(engine=self.engine, database=name) from e
        try:
            self._initialise(self.path_for(name))
        except DatabaseError:
            shutil.rmtree(self.root / name, ignore_errors=True)
            raise

    def list_databases(self, prefix: str = "") -> list[str]:
        if not self.root.is_dir():
            return []
        return sorted(
            entry.name
            for entry in self.root.iterdir()
            if entry.is_dir() and entry.name.startswith(prefix)
        )

    def drop_database(self, name: str) -> None:
        target = self.root / name
        if not target.exists():
            logger.debug("drop_missing_database", engine=self.engine, name=name)
            return
        try:
            shutil.rmtree(target)
        except OSError as e:
            raise DatabaseError(f"Cannot drop {name}: {e}", cause=e).with_context(
                engine=self.engine, database=name
            ) from e


# =============================================================================
# Server-based engines
# =============================================================================


class ServerDriver(DriverBase):
    """
    Driver for an engine reached through an administrative connection.

    Subclasses provide ``_connect()`` returning an autocommit DB-API
    connection, the SQL to list/create/drop databases, and
    ``_is_duplicate()`` recognising the engine's "database exists" error.
    """

    file_based = False
    default_port: ClassVar[int] = 0
    default_admin_database: ClassVar[str | None] = None

    def __init__(self, spec: DriverSpec | None = None, **kwargs: Any):
        super().__init__(spec, **kwargs)
        if self._url is None:
            raise DriverUnavailable(f"{self.engine} requires a driver_dsn").with_context(
                engine=self.engine
            )

    @property
    def url(self) -> URL:
        assert self._url is not None
        return self._url

    @property
    def login(self) -> str:
        return self.spec.username or self.url.username or current_login()

    @abstractmethod
    def _connect(self) -> Any:
        """Open an autocommit administrative connection.

        Raises ``DriverUnavailable`` when the library is missing and
        ``DatabaseConnectionError`` when the server refuses the login.
        """

    @abstractmethod
    def _is_duplicate(self, error: Exception) -> bool: ...

    @abstractmethod
    def _quote(self, name: str) -> str: ...

    version_sql: ClassVar[str] = "SELECT VERSION()"
    list_sql: ClassVar[str] = ""

    @contextmanager
    def _cursor(self) -> Iterator[Any]:
        conn = self._connect()
        try:
            cursor = conn.cursor()
            try:
                yield cursor
            finally:
                cursor.close()
        finally:
            conn.close()

    def probe(self) -> bool:
        try:
            with self._cursor() as cur:
                cur.execute(self.version_sql)
                row = cur.fetchone()
        except Exception as e:  # TestDBError from _connect or the driver's own error types
            logger.debug("driver_probe_failed", engine=self.engine, error=str(e))
            return False
        try:
            self._version = Version.coerce(row[0]) if row and row[0] else None
        except ValueError:
            self._version = None
        logger.debug("driver_probe_succeeded", engine=self.engine, version=str(self._version))
        return True

    def address_for(self, name: str) -> str:
        return with_database(self.url, name)

    def _execute(self, sql: str, name: str) -> None:
        try:
            with self._cursor() as cur:
                cur.execute(sql)
        except TestDBError:
            raise
        except Exception as e:
            if self._is_duplicate(e):
                raise DatabaseExistsError(name).with_context(engine=self.engine) from e
            raise DatabaseError(f"{self.engine}: {e}", cause=e).with_context(
                engine=self.engine, database=name
            ) from e

    def create_database(self, name: str) -> None:
        self._execute(f"CREATE DATABASE {self._quote(name)}", name)

    def drop_database(self, name: str) -> None:
        self._execute(f"DROP DATABASE IF EXISTS {self._quote(name)}", name)

    def list_databases(self, prefix: str = "") -> list[str]:
        try:
            with self._cursor() as cur:
                cur.execute(self.list_sql)
                rows = cur.fetchall()
        except TestDBError:
            raise
        except Exception as e:
            raise DatabaseError(f"{self.engine}: cannot list databases: {e}", cause=e).with_context(
                engine=self.engine
            ) from e
        return sorted(row[0] for row in rows if row[0].startswith(prefix))

    def _connect_error(self, error: Exception) -> DatabaseConnectionError:
        return DatabaseConnectionError(
            f"Failed to connect to {self.engine} at {self.url.host}: {error}", cause=error
        ).with_context(engine=self.engine)


__all__ = ["DriverBase", "FileDriver", "ServerDriver"]
