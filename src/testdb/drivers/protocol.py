"""
Driver protocol: the capability set every engine driver provides.

Drivers are selected through the registration table in
:mod:`testdb.drivers.registry`; nothing in the provisioning layer depends on
a concrete driver class. Anything matching this shape can be registered,
which is how the test suite plugs in an in-memory server.

Architecture:
    ::

        EngineDriver
        ├── probe()                 admin login / trial open, sets ``version``
        ├── create_database(name)   raises DatabaseExistsError on collision
        ├── list_databases(prefix)  authoritative name listing
        ├── drop_database(name)
        └── address_for(name)       DSN of ``name`` without credentials

        Implementations:
        ├── SQLiteDriver       file-based, stdlib sqlite3
        ├── DuckDBDriver       file-based, duckdb (optional)
        ├── PostgreSQLDriver   server, psycopg2 (optional)
        └── MySQLDriver        server, mysql-connector-python (optional)
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from testdb.core.types import DriverSpec
from testdb.core.version import Version


@runtime_checkable
class EngineDriver(Protocol):
    """
    Capability-bearing driver for one engine.

    ``login`` is the name segment identifying who creates databases, and
    ``key`` the optional disambiguator from the driver spec. ``version`` is
    ``None`` until a successful ``probe()``.
    """

    engine: str
    file_based: bool
    spec: DriverSpec

    @property
    def login(self) -> str: ...

    @property
    def key(self) -> str | None: ...

    @property
    def version(self) -> Version | None: ...

    @property
    def username(self) -> str | None: ...

    @property
    def password(self) -> str | None: ...

    def probe(self) -> bool:
        """Check availability without side effects visible to callers."""
        ...

    def create_database(self, name: str) -> None:
        """Create ``name``. Raises ``DatabaseExistsError`` when it already exists."""
        ...

    def list_databases(self, prefix: str = "") -> list[str]:
        """Names of existing databases starting with ``prefix``."""
        ...

    def drop_database(self, name: str) -> None:
        """Drop ``name``. Dropping a missing database is not an error."""
        ...

    def address_for(self, name: str) -> str:
        """DSN addressing database ``name``, without credentials."""
        ...


__all__ = ["EngineDriver"]
