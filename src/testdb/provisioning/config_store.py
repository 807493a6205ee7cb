"""
Configuration store: ``dsn`` and ``driver_dsn`` blocks.

The configuration source is a sequence of blocks separated by blank lines;
each line is ``key = value`` and ``#`` starts a comment line::

    # an existing database, used as is
    dsn      = postgresql://ci.internal:5432/fixtures
    username = tester
    password = s3cret

    # admin rights: databases are created on demand
    driver_dsn = mysql://ci.internal/
    username   = ci_admin
    password   = s3cret
    key        = runner7

Each block becomes exactly one ``ConnectionSpec`` (``dsn``) or
``DriverSpec`` (``driver_dsn``).
"""

from __future__ import annotations

import os
from collections.abc import Iterable
from pathlib import Path

from testdb.core.errors import ConfigError
from testdb.core.logging import get_logger
from testdb.core.types import ConnectionSpec, DriverSpec
from testdb.core.version import Version

logger = get_logger(__name__)

COMMON_KEYS = frozenset({"username", "password", "key"})
DSN_KEYS = COMMON_KEYS | {"dsn", "version"}
DRIVER_KEYS = COMMON_KEYS | {"driver_dsn"}

Block = list[tuple[int, str]]


def _blocks(lines: Iterable[str]) -> list[Block]:
    blocks: list[Block] = []
    current: Block = []
    for lineno, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line:
            if current:
                blocks.append(current)
                current = []
            continue
        if line.startswith("#"):
            continue
        current.append((lineno, line))
    if current:
        blocks.append(current)
    return blocks


def _parse_block(index: int, block: Block) -> dict[str, str]:
    values: dict[str, str] = {}
    for lineno, line in block:
        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ConfigError(f"line {lineno}: expected 'key = value', got {line!r}", block_index=index)
        if key not in DSN_KEYS | DRIVER_KEYS:
            raise ConfigError(f"line {lineno}: unknown key {key!r}", block_index=index)
        if key in values:
            raise ConfigError(f"line {lineno}: duplicate key {key!r}", block_index=index)
        values[key] = value.strip()
    return values


def _spec_from_block(index: int, values: dict[str, str]) -> ConnectionSpec | DriverSpec:
    has_dsn = "dsn" in values
    has_driver = "driver_dsn" in values
    if has_dsn == has_driver:
        raise ConfigError("exactly one of 'dsn' or 'driver_dsn' is required", block_index=index)

    common = {k: values[k] or None for k in COMMON_KEYS if k in values}
    try:
        if has_dsn:
            version = values.get("version")
            return ConnectionSpec.from_dsn(
                values["dsn"], version=Version.parse(version) if version else None, **common
            )
        if "version" in values:
            raise ConfigError("'version' is only valid in dsn blocks", block_index=index)
        return DriverSpec.from_dsn(values["driver_dsn"], **common)
    except ConfigError as e:
        if e.block_index is not None:
            raise
        raise ConfigError(e.message, block_index=index, cause=e) from e
    except ValueError as e:
        raise ConfigError(str(e), block_index=index, cause=e) from e


class ConfigStore:
    """Parses configuration sources into connection specs and driver specs."""

    @staticmethod
    def load(
        source: str | os.PathLike[str] | Iterable[str],
    ) -> tuple[list[ConnectionSpec], list[DriverSpec]]:
        """
        Parse ``source`` (a path, configuration text, or lines).

        Raises ``ConfigError`` naming the 0-based index of the first
        malformed block. Pure: nothing is probed or opened.
        """
        if isinstance(source, os.PathLike):
            lines: Iterable[str] = Path(source).read_text(encoding="utf-8").splitlines()
        elif isinstance(source, str):
            lines = source.splitlines()
        else:
            lines = source

        specs: list[ConnectionSpec] = []
        drivers: list[DriverSpec] = []
        for index, block in enumerate(_blocks(lines)):
            spec = _spec_from_block(index, _parse_block(index, block))
            if isinstance(spec, ConnectionSpec):
                specs.append(spec)
            else:
                drivers.append(spec)
        return specs, drivers

    @classmethod
    def load_file(cls, path: str | os.PathLike[str]) -> tuple[list[ConnectionSpec], list[DriverSpec]]:
        """``load`` for a file that may not exist (no file, no sources)."""
        path = Path(path)
        if not path.is_file():
            logger.debug("config_file_missing", path=str(path))
            return [], []
        try:
            return cls.load(path)
        except ConfigError as e:
            e.with_context(path=str(path))
            raise
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigError(f"Cannot read {path}: {e}", cause=e).with_context(path=str(path)) from e


__all__ = ["ConfigStore"]
