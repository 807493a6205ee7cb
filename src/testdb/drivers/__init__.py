"""Engine drivers -- one implementation per supported engine.

Each server driver is **import-guarded**: its client library is only needed
when the driver is probed. Install the corresponding extra::

    pip install spine-testdb[postgresql]   # psycopg2-binary
    pip install spine-testdb[mysql]        # mysql-connector-python
    pip install spine-testdb[duckdb]       # duckdb

Modules
-------
protocol        EngineDriver capability protocol
base            FileDriver / ServerDriver shared plumbing
registry        DriverRegistry registration table + availability probing
sqlite          SQLite (stdlib, always available)
duckdb          DuckDB (optional)
postgresql      PostgreSQL (optional)
mysql           MySQL / MariaDB (optional)
"""

from .base import DriverBase, FileDriver, ServerDriver
from .duckdb import DuckDBDriver
from .mysql import MySQLDriver
from .postgresql import PostgreSQLDriver
from .protocol import EngineDriver
from .registry import DriverRegistry
from .sqlite import SQLiteDriver

__all__ = [
    "EngineDriver",
    "DriverBase",
    "FileDriver",
    "ServerDriver",
    "DriverRegistry",
    "SQLiteDriver",
    "DuckDBDriver",
    "PostgreSQLDriver",
    "MySQLDriver",
]
