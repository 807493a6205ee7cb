"""CLI test fixtures: a prepared invocation context and inert logging setup."""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from testdb.core.settings import TestDBSettings
from testdb.drivers.registry import DriverRegistry
from testdb.provisioning.context import ProvisioningContext, load_context

CONFIG = """\
dsn      = postgresql://tester:pw@db.ci:5432/fixtures
version  = 13.4
"""


@pytest.fixture(autouse=True)
def configure_logging_mock() -> Generator[MagicMock, None, None]:
    with patch("testdb.core.logging.configure_logging") as mock:
        yield mock


@pytest.fixture
def cli_context(
    settings: TestDBSettings, registry: DriverRegistry, tmp_path: Path
) -> Generator[ProvisioningContext, None, None]:
    """Every command sees a postgresql dsn block and auto-detected sqlite."""
    settings.config_file.write_text(CONFIG)

    def _load() -> ProvisioningContext:
        return load_context(settings, cwd=tmp_path, registry=registry)

    with patch("testdb.cli.utils.load_context", side_effect=_load):
        yield _load()
