"""Runtime settings for spine-testdb.

Settings come from ``TESTDB_*`` environment variables (or a ``.env`` file)
and are validated once per process::

    TESTDB_CONFIG_FILE=~/ci/test-database.conf
    TESTDB_STATE_DIR=/shared/tmp/testdb
    TESTDB_NAME_PREFIX=tdd

``state_dir`` holds the directory-to-database mapping and the databases of
file-based engines. It defaults to a per-user directory under the system
temporary directory so that every process on the host shares it.
"""

from __future__ import annotations

import getpass
import os
import re
import tempfile
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def current_login() -> str:
    """Login name of the invoking user, used in file-based database names."""
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return f"uid{os.getuid()}" if hasattr(os, "getuid") else "user"


def _default_state_dir() -> Path:
    return Path(tempfile.gettempdir()) / f"testdb-{current_login()}"


class TestDBSettings(BaseSettings):
    """Settings for the provisioning engine.

    Fields
    ──────
    config_file   : Configuration file with ``dsn`` / ``driver_dsn`` blocks
    state_dir     : Shared directory for the mapping store and file databases
    name_prefix   : First segment of every provisioned database name
    max_attempts  : Retry ceiling for name collisions during creation
    lock_timeout  : Seconds to wait for the mapping store lock
    log_level     : Structlog log level
    json_logs     : Force JSON (True) or console (False) logs; None auto-detects
    """

    __test__ = False

    model_config = SettingsConfigDict(
        env_prefix="TESTDB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Sources ──────────────────────────────────────────────────
    config_file: Path = Field(
        default_factory=lambda: Path.home() / ".test-database",
        description="Configuration file with dsn/driver_dsn blocks",
    )

    # ── State ────────────────────────────────────────────────────
    state_dir: Path = Field(default_factory=_default_state_dir)
    name_prefix: str = Field(default="tdd")

    # ── Provisioning ─────────────────────────────────────────────
    max_attempts: int = Field(default=10, ge=1)
    lock_timeout: float = Field(default=10.0, gt=0)

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="WARNING")
    json_logs: bool | None = Field(default=None)

    @field_validator("name_prefix")
    @classmethod
    def _check_prefix(cls, value: str) -> str:
        if not re.fullmatch(r"[a-z][a-z0-9]*", value):
            raise ValueError("name_prefix must be lowercase alphanumeric and start with a letter")
        return value

    @field_validator("config_file", "state_dir")
    @classmethod
    def _expand(cls, value: Path) -> Path:
        return Path(os.path.expanduser(str(value)))

    @property
    def mapping_file(self) -> Path:
        return self.state_dir / "mapping.json"

    @property
    def databases_dir(self) -> Path:
        """Parent directory of file-based databases (one subdirectory per engine)."""
        return self.state_dir / "databases"


_settings_cache: dict[str, TestDBSettings] = {}


def get_settings(*, _force_reload: bool = False) -> TestDBSettings:
    """Load, validate, and cache a :class:`TestDBSettings` instance."""
    if not _force_reload and "default" in _settings_cache:
        return _settings_cache["default"]
    settings = TestDBSettings()
    _settings_cache["default"] = settings
    return settings


def clear_settings_cache() -> None:
    """Clear the settings cache (primarily for testing)."""
    _settings_cache.clear()


__all__ = [
    "TestDBSettings",
    "get_settings",
    "clear_settings_cache",
    "current_login",
]
