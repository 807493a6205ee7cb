"""
In-memory database server for provisioning tests.

``FakeServer`` holds the shared database namespace, as a real server would
for every host pointing at it. Any number of ``FakeServerDriver`` objects
can point at one server to simulate concurrent allocators.

Usage in test code::

    server = FakeServer(existing={"tdd_fake_alice_0"})
    driver = FakeServerDriver(server, login="alice")
    registry.register("fake", lambda spec, **kw: FakeServerDriver(server, spec=spec), file_based=False)
"""

from __future__ import annotations

import threading
from typing import Any

from testdb.core.errors import DatabaseConnectionError, DatabaseExistsError
from testdb.core.types import DriverSpec
from testdb.core.version import Version


class FakeServer:
    """Shared namespace of database names, safe for concurrent use."""

    def __init__(self, existing: set[str] | None = None):
        self.names: set[str] = set(existing or ())
        self.created: list[str] = []
        self.dropped: list[str] = []
        self._lock = threading.Lock()

    def create(self, name: str) -> None:
        with self._lock:
            if name in self.names:
                raise DatabaseExistsError(name)
            self.names.add(name)
            self.created.append(name)

    def drop(self, name: str) -> None:
        with self._lock:
            self.names.discard(name)
            self.dropped.append(name)

    def list(self, prefix: str) -> list[str]:
        with self._lock:
            return sorted(n for n in self.names if n.startswith(prefix))


class FakeServerDriver:
    """Driver satisfying ``EngineDriver`` on top of a ``FakeServer``."""

    file_based = False

    def __init__(
        self,
        server: FakeServer,
        *,
        spec: DriverSpec | None = None,
        engine: str = "fake",
        login: str = "alice",
        version: str | None = "5.1",
        available: bool = True,
        stale_listing: bool = False,
        create_error: Exception | None = None,
    ):
        self.server = server
        self.engine = engine
        self.spec = spec or DriverSpec(engine=engine, admin_address=f"{engine}://admin@server/")
        self._login = login
        self._version = Version.coerce(version)
        self._available = available
        self.stale_listing = stale_listing
        self.create_error = create_error
        self.create_calls: list[str] = []

    @property
    def login(self) -> str:
        return self.spec.username or self._login

    @property
    def key(self) -> str | None:
        return self.spec.key

    @property
    def version(self) -> Version | None:
        return self._version

    @property
    def username(self) -> str | None:
        return self.spec.username or "admin"

    @property
    def password(self) -> str | None:
        return self.spec.password

    def probe(self) -> bool:
        return self._available

    def create_database(self, name: str) -> None:
        self.create_calls.append(name)
        if self.create_error is not None:
            raise self.create_error
        self.server.create(name)

    def list_databases(self, prefix: str = "") -> list[str]:
        if self.stale_listing:
            return []
        return self.server.list(prefix)

    def drop_database(self, name: str) -> None:
        self.server.drop(name)

    def address_for(self, name: str) -> str:
        return f"postgresql://server:5432/{name}"


def fake_factory(server: FakeServer, **options: Any):
    """Registry factory building ``FakeServerDriver`` objects for ``server``."""

    def _factory(spec: DriverSpec | None, **kwargs: Any) -> FakeServerDriver:
        return FakeServerDriver(server, spec=spec, **options)

    return _factory


def connection_refused() -> DatabaseConnectionError:
    return DatabaseConnectionError("connection refused")
