"""Driver registry: the registration table from engine name to driver class.

Consumers never hard-code driver classes. ``DriverRegistry.available()``
turns configured driver specs plus local auto-detection into the list of
drivers usable in this invocation; anything that fails to probe is left out.

Pre-registered engines:

========== ========== ==========================
engine     kind       library
========== ========== ==========================
sqlite     file       sqlite3 (stdlib)
duckdb     file       duckdb (optional)
postgresql server     psycopg2 (optional)
mysql      server     mysql-connector-python (optional)
========== ========== ==========================

Usage:
    registry = DriverRegistry(databases_dir=settings.databases_dir)
    drivers = registry.available(driver_specs)
    registry.list("configured")
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

from testdb.core.dsn import canonical_engine
from testdb.core.errors import ConfigError, TestDBError
from testdb.core.logging import get_logger
from testdb.core.types import DriverSpec

from .duckdb import DuckDBDriver
from .mysql import MySQLDriver
from .postgresql import PostgreSQLDriver
from .protocol import EngineDriver
from .sqlite import SQLiteDriver

logger = get_logger(__name__)

ListMode = Literal["available", "configured", "all"]

DriverFactory = Callable[..., EngineDriver]


@dataclass(frozen=True)
class Registration:
    engine: str
    factory: DriverFactory
    file_based: bool


class DriverRegistry:
    """
    Registry of engine driver factories.

    A factory is called as ``factory(spec, databases_dir=...)`` where
    ``spec`` is ``None`` for auto-detection of file-based engines.
    """

    def __init__(self, *, databases_dir: Path | None = None):
        self._registrations: dict[str, Registration] = {}
        self._databases_dir = databases_dir
        self._configured: list[DriverSpec] = []
        self._last: list[EngineDriver] = []
        self._register_defaults()

    def _register_defaults(self) -> None:
        self.register("sqlite", SQLiteDriver, file_based=True)
        self.register("duckdb", DuckDBDriver, file_based=True)
        self.register("postgresql", PostgreSQLDriver, file_based=False)
        self.register("mysql", MySQLDriver, file_based=False)

    def register(self, engine: str, factory: DriverFactory, *, file_based: bool) -> None:
        """Register (or replace) the factory for ``engine``."""
        self._registrations[engine] = Registration(engine, factory, file_based)

    def unregister(self, engine: str) -> None:
        self._registrations.pop(engine, None)

    def engines(self) -> list[str]:
        """Every registered engine name."""
        return sorted(self._registrations)

    def is_file_based(self, engine: str) -> bool:
        reg = self._registrations.get(canonical_engine(engine))
        return reg is not None and reg.file_based

    def _build(self, reg: Registration, spec: DriverSpec | None) -> EngineDriver | None:
        try:
            driver = reg.factory(spec, databases_dir=self._databases_dir)
        except TestDBError as e:
            logger.debug("driver_build_failed", engine=reg.engine, error=str(e))
            return None
        return driver if driver.probe() else None

    def available(self, configured: Sequence[DriverSpec] = ()) -> list[EngineDriver]:
        """
        Probe and return every usable driver, one per engine.

        Configured specs come first and win over auto-detected file-based
        drivers for the same engine. A spec that fails to probe, or names an
        unregistered engine, is omitted.
        """
        self._configured = list(configured)
        drivers: dict[str, EngineDriver] = {}

        for spec in configured:
            engine = canonical_engine(spec.engine)
            reg = self._registrations.get(engine)
            if reg is None:
                logger.debug("driver_unknown_engine", engine=spec.engine)
                continue
            if engine in drivers:
                logger.warning("driver_duplicate_spec", engine=engine)
                continue
            driver = self._build(reg, spec)
            if driver is None:
                logger.info("driver_unavailable", engine=engine, configured=True)
                continue
            drivers[engine] = driver

        for reg in self._registrations.values():
            if not reg.file_based or reg.engine in drivers:
                continue
            driver = self._build(reg, None)
            if driver is not None:
                drivers[reg.engine] = driver

        self._last = list(drivers.values())
        logger.debug("drivers_available", engines=sorted(drivers))
        return list(self._last)

    def list(self, mode: ListMode = "available") -> list[str]:
        """
        Engine names for introspection.

        ``available`` re-probes everything, ``configured`` reports the
        engines registered from driver specs by the last ``available()``
        call without probing, ``all`` lists the registration table.
        """
        if mode == "available":
            return sorted(d.engine for d in self.available(self._configured))
        if mode == "configured":
            return sorted(d.engine for d in self._last if _is_configured(d))
        if mode == "all":
            return self.engines()
        raise ConfigError(f"Unknown driver list mode: {mode!r}")


def _is_configured(driver: Any) -> bool:
    return getattr(driver.spec, "admin_address", None) is not None


__all__ = ["DriverRegistry", "Registration", "DriverFactory", "ListMode"]
