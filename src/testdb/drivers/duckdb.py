"""DuckDB driver.

Uses the ``duckdb`` package, installed with the ``duckdb`` extra::

    pip install spine-testdb[duckdb]

Import-guarded: without the package the engine is simply not auto-detected.
"""

from __future__ import annotations

from pathlib import Path

from testdb.core.errors import DatabaseError, DriverUnavailable

from .base import FileDriver


def _duckdb():
    try:
        import duckdb
    except ImportError:
        raise DriverUnavailable(
            "duckdb is required for DuckDB. Install with: pip install duckdb"
        ) from None
    return duckdb


class DuckDBDriver(FileDriver):
    """File-based DuckDB driver, one ``.duckdb`` file per database."""

    engine = "duckdb"
    suffix = "duckdb"

    def _library_version(self) -> str:
        return _duckdb().__version__

    def _initialise(self, path: Path) -> None:
        duckdb = _duckdb()
        try:
            conn = duckdb.connect(str(path))
            conn.close()
        except duckdb.Error as e:
            raise DatabaseError(f"Failed to initialise DuckDB database {path}: {e}", cause=e) from e


__all__ = ["DuckDBDriver"]
