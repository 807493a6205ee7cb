"""SQLite driver (stdlib ``sqlite3``, always available)."""

from __future__ import annotations

import sqlite3
from pathlib import Path

from testdb.core.errors import DatabaseError

from .base import FileDriver


class SQLiteDriver(FileDriver):
    """
    File-based SQLite driver.

    Every provisioned database is a single file; handles address it as
    ``sqlite:////<state_dir>/databases/sqlite/<name>/<name>.db``.
    """

    engine = "sqlite"
    suffix = "db"

    def _library_version(self) -> str:
        return sqlite3.sqlite_version

    def _initialise(self, path: Path) -> None:
        try:
            conn = sqlite3.connect(str(path))
            try:
                # forces the file header to be written
                conn.execute("PRAGMA user_version = 0")
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to initialise SQLite database {path}: {e}", cause=e) from e


__all__ = ["SQLiteDriver"]
