"""
Provisioner: resolve-or-create a stably named database per invocation.

Names follow ``<prefix>_<engine>_<login>[_<key>]_<sequence>``. The space of
names under one base is an arena indexed by sequence number: the mapping
store remembers which sequence belongs to which working directory, and
the driver's own listing is the ground truth used to pick a fresh one.

Allocation protocol (``obtain``):

    1. mapping hit            → return the mapped name (no re-detection)
    2. list names under base  → next = max(sequence) + 1, or 0
    3. create next            → persist mapping, return
    4. "already exists"       → next + 1, back to 3 (bounded by max_attempts)
    5. anything else          → ProvisionError

Concurrent allocators on other processes or hosts are resolved by step 4
alone; the remote server is never locked.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from testdb.core.errors import (
    DatabaseError,
    DatabaseExistsError,
    ProvisionError,
    StorageError,
    TestDBError,
)
from testdb.core.logging import get_logger
from testdb.drivers.protocol import EngineDriver

from .mapping_store import MappingEntry, MappingStore

logger = get_logger(__name__)

_UNSAFE = re.compile(r"[^a-z0-9]+")
# what may follow the root: an optional key segment, then the sequence
_TAIL = re.compile(r"(?:[a-z0-9]+_)?[0-9]+")


def name_segment(value: str) -> str:
    """
    Lower-case ``value`` and drop anything outside ``[a-z0-9]``.

    Segments never contain ``_`` so that a name splits back into its parts:
    login ``bob_ci`` becomes ``bobci`` and cannot pass for login ``bob``
    with key ``ci``.
    """
    segment = _UNSAFE.sub("", value.lower())
    return segment or "x"


@dataclass(frozen=True)
class NameScheme:
    """Database naming for one driver and key."""

    prefix: str
    engine: str
    login: str
    key: str | None = None

    @property
    def root(self) -> str:
        """Shared by every database of this engine and login, any key."""
        return f"{self.prefix}_{name_segment(self.engine)}_{name_segment(self.login)}_"

    @property
    def base(self) -> str:
        """Names under this scheme start with ``base`` and end with the sequence."""
        if self.key is None:
            return self.root
        return f"{self.root}{name_segment(self.key)}_"

    def name(self, sequence: int) -> str:
        return f"{self.base}{sequence}"

    def sequence_of(self, name: str) -> int | None:
        """Trailing sequence of ``name`` when it belongs to exactly this scheme."""
        if not name.startswith(self.base):
            return None
        tail = name[len(self.base):]
        return int(tail) if tail.isdigit() else None

    def owns(self, name: str) -> bool:
        """True when ``name`` was allocated under this engine and login, whatever its key."""
        return name.startswith(self.root) and _TAIL.fullmatch(name[len(self.root):]) is not None


class Provisioner:
    """
    Allocates databases through drivers, keeping allocations stable across runs.

    Mapping store failures never escape: allocation falls back to the name
    scan and a failed write only costs reuse on the next run.
    """

    def __init__(
        self,
        mapping: MappingStore,
        *,
        prefix: str = "tdd",
        max_attempts: int = 10,
    ):
        self.mapping = mapping
        self.prefix = prefix
        self.max_attempts = max_attempts

    def scheme(self, driver: EngineDriver, key: str | None = None) -> NameScheme:
        return NameScheme(self.prefix, driver.engine, driver.login, key)

    # ── Allocation ───────────────────────────────────────────────

    def _lookup(
        self, driver: EngineDriver, context_id: str, key: str | None, slot: int
    ) -> MappingEntry | None:
        try:
            return self.mapping.get(context_id, driver.engine, key, slot)
        except StorageError as e:
            logger.warning("mapping_lookup_failed", engine=driver.engine, error=str(e))
            return None

    def _remember(self, entry: MappingEntry) -> None:
        try:
            self.mapping.put(entry)
        except StorageError as e:
            logger.warning("mapping_write_failed", engine=entry.engine, error=str(e))

    def _next_sequence(self, driver: EngineDriver, scheme: NameScheme) -> int:
        try:
            existing = driver.list_databases(scheme.base)
        except TestDBError as e:
            raise ProvisionError(
                f"Cannot list {driver.engine} databases: {e}", engine=driver.engine, cause=e
            ) from e
        sequences = [s for s in (scheme.sequence_of(n) for n in existing) if s is not None]
        return max(sequences) + 1 if sequences else 0

    def obtain(
        self,
        driver: EngineDriver,
        context_id: str,
        key: str | None = None,
        slot: int = 0,
    ) -> str:
        """Return the database name for ``(context_id, driver.engine, key, slot)``."""
        scheme = self.scheme(driver, key)

        entry = self._lookup(driver, context_id, key, slot)
        if entry is not None:
            if scheme.sequence_of(entry.database) == entry.sequence:
                logger.debug("database_reused", engine=driver.engine, name=entry.database)
                return entry.database
            # login or prefix changed since the entry was written
            logger.info("mapping_outdated", engine=driver.engine, name=entry.database)

        candidate = self._next_sequence(driver, scheme)
        for attempt in range(1, self.max_attempts + 1):
            name = scheme.name(candidate)
            try:
                driver.create_database(name)
            except DatabaseExistsError:
                logger.debug("database_name_taken", engine=driver.engine, name=name, attempt=attempt)
                candidate += 1
                continue
            except TestDBError as e:
                raise ProvisionError(
                    f"Cannot create {driver.engine} database {name}: {e}",
                    engine=driver.engine,
                    attempts=attempt,
                    cause=e,
                ) from e

            self._remember(
                MappingEntry(
                    context_id=context_id,
                    engine=driver.engine,
                    key=key,
                    sequence=candidate,
                    database=name,
                    slot=slot,
                )
            )
            logger.info("database_provisioned", engine=driver.engine, name=name, attempts=attempt)
            return name

        raise ProvisionError(
            f"Gave up creating a {driver.engine} database under {scheme.base!r} "
            f"after {self.max_attempts} name collisions",
            engine=driver.engine,
            attempts=self.max_attempts,
        )

    # ── Maintenance ──────────────────────────────────────────────

    def list(self, driver: EngineDriver, key: str | None = None) -> list[str]:
        """
        Databases created under ``driver``'s name root.

        Without ``key`` every database of this engine and login is listed,
        whatever its key; with ``key`` only those carrying that key segment.
        """
        scheme = self.scheme(driver, key)
        try:
            names = driver.list_databases(scheme.root)
        except TestDBError as e:
            raise ProvisionError(
                f"Cannot list {driver.engine} databases: {e}", engine=driver.engine, cause=e
            ) from e
        if key is None:
            return [n for n in names if scheme.owns(n)]
        return [n for n in names if scheme.sequence_of(n) is not None]

    def drop(self, driver: EngineDriver, name: str) -> None:
        """Drop ``name`` and forget every mapping entry pointing at it."""
        if not self.scheme(driver).owns(name):
            raise ProvisionError(
                f"Refusing to drop {name!r}: not created by this {driver.engine} driver",
                engine=driver.engine,
            )
        try:
            driver.drop_database(name)
        except DatabaseError as e:
            raise ProvisionError(f"Cannot drop {name}: {e}", engine=driver.engine, cause=e) from e
        try:
            removed = self.mapping.remove_database(driver.engine, name)
        except StorageError as e:
            # a stale entry would hand out a dropped database, so surface it
            raise ProvisionError(
                f"Dropped {name} but could not clear its mapping: {e}",
                engine=driver.engine,
                cause=e,
            ) from e
        logger.info("database_dropped", engine=driver.engine, name=name, mappings_removed=removed)

    def drop_all(self, driver: EngineDriver, key: str | None = None) -> list[str]:
        """Drop everything ``list(driver, key)`` returns; returns the dropped names."""
        names = self.list(driver, key)
        for name in names:
            self.drop(driver, name)
        return names


__all__ = ["NameScheme", "Provisioner", "name_segment"]
