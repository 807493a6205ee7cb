"""
Shared pytest fixtures for spine-testdb tests.

This module provides:
- Quiet structlog configuration for the whole session
- Isolated settings (state directory, config file) per test
- A fresh DriverRegistry without network-probing server drivers
- A provisioner over a temporary mapping store

Every test runs with ``TESTDB_*`` variables pointing into ``tmp_path`` so
nothing touches the real ``~/.test-database`` or the shared temp state.
"""

from __future__ import annotations

import logging
from collections.abc import Generator
from pathlib import Path

import pytest
import structlog

from testdb.core.settings import TestDBSettings, clear_settings_cache
from testdb.drivers.registry import DriverRegistry
from testdb.provisioning.mapping_store import MappingStore
from testdb.provisioning.provisioner import Provisioner

# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def quiet_logging() -> Generator[None, None, None]:
    """Route structlog to ReturnLogger so nothing leaks into captured CLI output."""
    structlog.configure(
        processors=[structlog.contextvars.merge_contextvars, structlog.processors.KeyValueRenderer()],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG),
        logger_factory=structlog.ReturnLoggerFactory(),
        cache_logger_on_first_use=False,
    )
    yield
    structlog.reset_defaults()


# =============================================================================
# Environment isolation
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Point every setting at ``tmp_path`` and reset the settings cache."""
    monkeypatch.setenv("TESTDB_STATE_DIR", str(tmp_path / "state"))
    monkeypatch.setenv("TESTDB_CONFIG_FILE", str(tmp_path / "test-database.conf"))
    for var in (
        "TESTDB_NAME_PREFIX",
        "TESTDB_MAX_ATTEMPTS",
        "TESTDB_LOCK_TIMEOUT",
        "TESTDB_LOG_LEVEL",
        "TESTDB_JSON_LOGS",
    ):
        monkeypatch.delenv(var, raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def settings(tmp_path: Path) -> TestDBSettings:
    return TestDBSettings(
        state_dir=tmp_path / "state",
        config_file=tmp_path / "test-database.conf",
    )


@pytest.fixture
def config_file(settings: TestDBSettings) -> Path:
    """Path of the (not yet written) configuration file."""
    return settings.config_file


# =============================================================================
# Provisioning building blocks
# =============================================================================


@pytest.fixture
def registry(settings: TestDBSettings) -> DriverRegistry:
    """Registry with only SQLite auto-detection; no server drivers are probed."""
    reg = DriverRegistry(databases_dir=settings.databases_dir)
    reg.unregister("duckdb")
    return reg


@pytest.fixture
def mapping(settings: TestDBSettings) -> MappingStore:
    return MappingStore(settings.mapping_file, lock_timeout=2.0)


@pytest.fixture
def provisioner(mapping: MappingStore) -> Provisioner:
    return Provisioner(mapping, prefix="tdd", max_attempts=10)
