"""
Provisioning context: everything one invocation resolves against.

The context is built once per invocation and passed explicitly to the
resolver, the provisioner and the handle factory; nothing is kept in
process-wide globals. It bundles the parsed configuration, the probed
drivers and the provisioner bound to the invocation's working directory.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from testdb.core.errors import ConfigError
from testdb.core.hashing import context_id as compute_context_id
from testdb.core.logging import get_logger
from testdb.core.settings import TestDBSettings, get_settings
from testdb.core.types import ConnectionSpec, DriverSpec
from testdb.core.version import Version
from testdb.drivers.protocol import EngineDriver
from testdb.drivers.registry import DriverRegistry

from .config_store import ConfigStore
from .mapping_store import MappingStore
from .provisioner import Provisioner

logger = get_logger(__name__)


@dataclass(frozen=True)
class ManagedDriver:
    """A driver paired with the provisioner, for maintenance tooling."""

    driver: EngineDriver
    provisioner: Provisioner = field(repr=False)

    @property
    def engine(self) -> str:
        return self.driver.engine

    @property
    def version(self) -> Version | None:
        return self.driver.version

    @property
    def file_based(self) -> bool:
        return self.driver.file_based

    def databases(self, key: str | None = None) -> list[str]:
        """Databases this driver created, optionally only those for ``key``."""
        return self.provisioner.list(self.driver, key)

    def drop_database(self, name: str) -> None:
        """Drop ``name`` and forget any mapping pointing at it."""
        self.provisioner.drop(self.driver, name)

    def drop_all(self, key: str | None = None) -> list[str]:
        return self.provisioner.drop_all(self.driver, key)


@dataclass(frozen=True)
class ProvisioningContext:
    """Immutable per-invocation state."""

    settings: TestDBSettings
    context_id: str
    connection_specs: tuple[ConnectionSpec, ...]
    driver_specs: tuple[DriverSpec, ...]
    drivers: tuple[EngineDriver, ...]
    registry: DriverRegistry = field(repr=False)
    provisioner: Provisioner = field(repr=False)

    def managed_drivers(self) -> list[ManagedDriver]:
        return [ManagedDriver(d, self.provisioner) for d in self.drivers]

    def driver(self, engine: str) -> ManagedDriver | None:
        for d in self.drivers:
            if d.engine == engine:
                return ManagedDriver(d, self.provisioner)
        return None


def load_context(
    settings: TestDBSettings | None = None,
    *,
    cwd: str | os.PathLike[str] | None = None,
    registry: DriverRegistry | None = None,
    config: str | os.PathLike[str] | None = None,
) -> ProvisioningContext:
    """
    Build the context for one invocation.

    ``config`` overrides ``settings.config_file``: a ``Path`` is read as a
    file, a ``str`` is parsed as configuration text. A malformed
    configuration is logged and treated as empty, so auto-detected
    file-based engines remain usable.
    """
    settings = settings or get_settings()
    registry = registry or DriverRegistry(databases_dir=settings.databases_dir)

    try:
        if config is None:
            specs, driver_specs = ConfigStore.load_file(settings.config_file)
        elif isinstance(config, str):
            specs, driver_specs = ConfigStore.load(config)
        else:
            specs, driver_specs = ConfigStore.load_file(config)
    except ConfigError as e:
        logger.error("config_invalid", **e.to_dict())
        specs, driver_specs = [], []

    drivers = registry.available(driver_specs)
    provisioner = Provisioner(
        MappingStore(settings.mapping_file, lock_timeout=settings.lock_timeout),
        prefix=settings.name_prefix,
        max_attempts=settings.max_attempts,
    )
    return ProvisioningContext(
        settings=settings,
        context_id=compute_context_id(cwd),
        connection_specs=tuple(specs),
        driver_specs=tuple(driver_specs),
        drivers=tuple(drivers),
        registry=registry,
        provisioner=provisioner,
    )


__all__ = ["ManagedDriver", "ProvisioningContext", "load_context"]
