"""
Mapping store: working directory → previously allocated database.

A JSON document shared by every process on the host::

    {
      "version": 1,
      "entries": [
        {"context_id": "…", "engine": "sqlite", "key": null, "slot": 0,
         "sequence": 3, "database": "tdd_sqlite_bob_3"}
      ]
    }

The store is an acceleration cache, not the authority: the driver's name
listing is. Every access happens under an ``fcntl`` lock on a sidecar
``.lock`` file (shared for reads, exclusive for read-modify-write) acquired
with a bounded wait and released on every exit path. Writes go to a
temporary file in the same directory followed by ``os.replace``.
"""

from __future__ import annotations

import fcntl
import json
import os
import tempfile
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from testdb.core.errors import LockTimeoutError, MappingCorruption, StorageError
from testdb.core.logging import get_logger

logger = get_logger(__name__)

FORMAT_VERSION = 1
_POLL_INTERVAL = 0.05


@dataclass(frozen=True)
class MappingEntry:
    """One allocation. ``(context_id, engine, key, slot)`` identifies it."""

    context_id: str
    engine: str
    key: str | None
    sequence: int
    database: str
    slot: int = 0

    @property
    def ident(self) -> tuple[str, str, str | None, int]:
        return self.context_id, self.engine, self.key, self.slot

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MappingEntry:
        return cls(
            context_id=str(data["context_id"]),
            engine=str(data["engine"]),
            key=data.get("key"),
            sequence=int(data["sequence"]),
            database=str(data["database"]),
            slot=int(data.get("slot", 0)),
        )


class MappingStore:
    """File-backed, lock-scoped mapping store."""

    def __init__(self, path: Path, *, lock_timeout: float = 10.0):
        self.path = Path(path)
        self.lock_path = self.path.with_name(self.path.name + ".lock")
        self.lock_timeout = lock_timeout

    # ── Locking ──────────────────────────────────────────────────

    @contextmanager
    def _locked(self, *, exclusive: bool) -> Iterator[None]:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self.lock_path, os.O_RDWR | os.O_CREAT, 0o666)
        except OSError as e:
            raise StorageError(f"Cannot open lock file {self.lock_path}: {e}", cause=e) from e

        mode = fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH
        deadline = time.monotonic() + self.lock_timeout
        try:
            while True:
                try:
                    fcntl.flock(fd, mode | fcntl.LOCK_NB)
                    break
                except BlockingIOError:
                    if time.monotonic() >= deadline:
                        raise LockTimeoutError(
                            f"Timed out after {self.lock_timeout}s waiting for {self.lock_path}"
                        ).with_context(path=str(self.lock_path)) from None
                    time.sleep(_POLL_INTERVAL)
            try:
                yield
            finally:
                fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)

    # ── Document I/O (caller holds the lock) ─────────────────────

    def _read(self) -> list[MappingEntry]:
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            return []
        except OSError as e:
            raise MappingCorruption(f"Cannot read {self.path}: {e}", cause=e).with_context(
                path=str(self.path)
            ) from e
        try:
            text = raw.decode("utf-8")
            if not text.strip():
                return []
            document = json.loads(text)
            return [MappingEntry.from_dict(item) for item in document["entries"]]
        except (ValueError, KeyError, TypeError) as e:
            raise MappingCorruption(f"Corrupt mapping store {self.path}: {e}", cause=e).with_context(
                path=str(self.path)
            ) from e

    def _write(self, entries: list[MappingEntry]) -> None:
        document = {"version": FORMAT_VERSION, "entries": [asdict(e) for e in entries]}
        tmp: str | None = None
        try:
            fd, tmp = tempfile.mkstemp(prefix=".mapping-", dir=self.path.parent)
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(document, fh, indent=2, sort_keys=True)
            os.replace(tmp, self.path)
        except OSError as e:
            if tmp is not None:
                Path(tmp).unlink(missing_ok=True)
            raise StorageError(f"Cannot write {self.path}: {e}", cause=e) from e

    def _read_for_update(self) -> list[MappingEntry]:
        try:
            return self._read()
        except MappingCorruption as e:
            logger.warning("mapping_store_reset", path=str(self.path), error=str(e))
            return []

    # ── Public API ───────────────────────────────────────────────

    def entries(self) -> list[MappingEntry]:
        with self._locked(exclusive=False):
            return self._read()

    def get(
        self, context_id: str, engine: str, key: str | None = None, slot: int = 0
    ) -> MappingEntry | None:
        ident = (context_id, engine, key, slot)
        with self._locked(exclusive=False):
            for entry in self._read():
                if entry.ident == ident:
                    return entry
        return None

    def put(self, entry: MappingEntry) -> None:
        """Insert or replace the entry with the same identity."""
        with self._locked(exclusive=True):
            entries = [e for e in self._read_for_update() if e.ident != entry.ident]
            entries.append(entry)
            self._write(entries)

    def remove(self, context_id: str, engine: str, key: str | None = None, slot: int = 0) -> bool:
        ident = (context_id, engine, key, slot)
        with self._locked(exclusive=True):
            entries = self._read_for_update()
            kept = [e for e in entries if e.ident != ident]
            if len(kept) == len(entries):
                return False
            self._write(kept)
            return True

    def remove_database(self, engine: str, database: str) -> int:
        """Remove every entry pointing at ``database``; returns how many."""
        with self._locked(exclusive=True):
            entries = self._read_for_update()
            kept = [e for e in entries if not (e.engine == engine and e.database == database)]
            removed = len(entries) - len(kept)
            if removed:
                self._write(kept)
            return removed


__all__ = ["MappingEntry", "MappingStore"]
