"""spine-testdb -- test database handles for test suites.

Ask for engines, get connection descriptors::

    from testdb import handles

    for handle in handles("postgresql", "sqlite"):
        dsn, user, password = handle.connection_info()

Handles come from ``dsn`` blocks of the configuration file (existing
databases) and from drivers that create a database per working directory
(``driver_dsn`` blocks, plus SQLite/DuckDB auto-detected locally).
"""

from testdb.api import drivers, handles, list_drivers
from testdb.core.errors import ConfigError, ProvisionError, TestDBError
from testdb.core.types import ConnectionSpec, DriverSpec, Handle, Request
from testdb.core.version import Version
from testdb.provisioning.context import ManagedDriver, ProvisioningContext, load_context

__version__ = "0.3.0"

__all__ = [
    "handles",
    "list_drivers",
    "drivers",
    "load_context",
    "ProvisioningContext",
    "ManagedDriver",
    "Request",
    "Handle",
    "ConnectionSpec",
    "DriverSpec",
    "Version",
    "TestDBError",
    "ConfigError",
    "ProvisionError",
]
