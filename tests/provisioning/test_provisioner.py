"""
Tests for the Provisioner allocation protocol.

Covers:
- Reuse of the mapped database for the same working directory
- Retry on "already exists" when the name listing lags behind
- The retry ceiling and non-retryable driver failures
- Maintenance (list, drop, drop_all) keeping the mapping store consistent
- Concurrent allocators against one shared server
"""

from __future__ import annotations

import threading
from unittest.mock import patch

import pytest

from tests._support.fake_server import FakeServer, FakeServerDriver
from testdb.core.errors import DatabaseConnectionError, DatabaseError, ProvisionError, StorageError
from testdb.core.types import DriverSpec
from testdb.provisioning.mapping_store import MappingEntry, MappingStore
from testdb.provisioning.provisioner import NameScheme, Provisioner, name_segment

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def driver(server: FakeServer) -> FakeServerDriver:
    return FakeServerDriver(server)


def keyed(server: FakeServer, key: str, **options) -> FakeServerDriver:
    spec = DriverSpec(engine="fake", admin_address="fake://admin@server/", key=key)
    return FakeServerDriver(server, spec=spec, **options)


# =============================================================================
# Naming
# =============================================================================


class TestNameScheme:
    def test_without_key(self) -> None:
        scheme = NameScheme("tdd", "postgresql", "bob")
        assert scheme.name(0) == "tdd_postgresql_bob_0"
        assert scheme.root == scheme.base == "tdd_postgresql_bob_"

    def test_with_key(self) -> None:
        scheme = NameScheme("tdd", "mysql", "bob", "runner7")
        assert scheme.name(12) == "tdd_mysql_bob_runner7_12"
        assert scheme.root == "tdd_mysql_bob_"

    def test_segments_sanitised(self) -> None:
        assert name_segment("Bob.Smith@CORP") == "bobsmithcorp"
        assert name_segment("bob_ci") == "bobci"
        assert name_segment("--") == "x"
        assert NameScheme("tdd", "sqlite", "J. Doe").name(1) == "tdd_sqlite_jdoe_1"

    def test_owns_only_its_own_login(self) -> None:
        scheme = NameScheme("tdd", "fake", "bob")
        assert scheme.owns("tdd_fake_bob_0")
        assert scheme.owns("tdd_fake_bob_ci_3")
        assert not scheme.owns("tdd_fake_bob_ci_runner_3")
        assert not scheme.owns("tdd_fake_bob_ci_")
        assert not scheme.owns("tdd_fake_bobby_0")
        assert not scheme.owns("tdd_mysql_bob_0")

    def test_sequence_of(self) -> None:
        scheme = NameScheme("tdd", "sqlite", "bob")
        assert scheme.sequence_of("tdd_sqlite_bob_7") == 7
        assert scheme.sequence_of("tdd_sqlite_bob_ci_7") is None
        assert scheme.sequence_of("tdd_sqlite_bob_") is None
        assert scheme.sequence_of("tdd_mysql_bob_7") is None


# =============================================================================
# Allocation
# =============================================================================


class TestObtain:
    def test_first_allocation_is_sequence_zero(self, provisioner: Provisioner, driver) -> None:
        assert provisioner.obtain(driver, "ctx-a") == "tdd_fake_alice_0"

    def test_same_directory_reuses(self, provisioner: Provisioner, driver, server) -> None:
        first = provisioner.obtain(driver, "ctx-a")
        second = provisioner.obtain(driver, "ctx-a")
        assert first == second
        assert server.created == [first]

    def test_distinct_directories_get_distinct_databases(self, provisioner: Provisioner, driver) -> None:
        names = {provisioner.obtain(driver, ctx) for ctx in ("a", "b", "c")}
        assert names == {"tdd_fake_alice_0", "tdd_fake_alice_1", "tdd_fake_alice_2"}

    def test_next_sequence_follows_highest(self, provisioner: Provisioner) -> None:
        server = FakeServer(existing={"tdd_fake_alice_0", "tdd_fake_alice_5", "tdd_fake_alice_ci_9"})
        assert provisioner.obtain(FakeServerDriver(server), "ctx") == "tdd_fake_alice_6"

    def test_key_segment(self, provisioner: Provisioner, server) -> None:
        driver = keyed(server, "ci")
        assert provisioner.obtain(driver, "ctx", driver.key) == "tdd_fake_alice_ci_0"

    def test_slots_are_independent(self, provisioner: Provisioner, driver) -> None:
        first = provisioner.obtain(driver, "ctx", slot=0)
        second = provisioner.obtain(driver, "ctx", slot=1)
        assert first != second
        assert provisioner.obtain(driver, "ctx", slot=1) == second

    def test_mapping_survives_new_provisioner(self, mapping: MappingStore, driver, server) -> None:
        name = Provisioner(mapping).obtain(driver, "ctx")
        assert Provisioner(MappingStore(mapping.path)).obtain(driver, "ctx") == name
        assert len(server.created) == 1

    def test_mapping_is_trusted(self, provisioner: Provisioner, driver, server) -> None:
        name = provisioner.obtain(driver, "ctx")
        server.names.discard(name)
        assert provisioner.obtain(driver, "ctx") == name
        assert server.created == [name]

    def test_login_change_invalidates_mapping(self, provisioner: Provisioner, server) -> None:
        provisioner.obtain(FakeServerDriver(server, login="alice"), "ctx")
        name = provisioner.obtain(FakeServerDriver(server, login="bob"), "ctx")
        assert name == "tdd_fake_bob_0"

    def test_retries_past_stale_listing(self, provisioner: Provisioner) -> None:
        server = FakeServer(existing={f"tdd_fake_alice_{i}" for i in range(3)})
        driver = FakeServerDriver(server, stale_listing=True)
        assert provisioner.obtain(driver, "ctx") == "tdd_fake_alice_3"
        assert driver.create_calls == [f"tdd_fake_alice_{i}" for i in range(4)]

    def test_ceiling(self, mapping: MappingStore) -> None:
        server = FakeServer(existing={f"tdd_fake_alice_{i}" for i in range(5)})
        driver = FakeServerDriver(server, stale_listing=True)
        with pytest.raises(ProvisionError, match="after 5 name collisions") as exc_info:
            Provisioner(mapping, max_attempts=5).obtain(driver, "ctx")
        assert exc_info.value.attempts == 5
        assert len(driver.create_calls) == 5
        assert mapping.entries() == []

    def test_non_retryable_failure_is_immediate(self, provisioner: Provisioner, server, mapping) -> None:
        driver = FakeServerDriver(server, create_error=DatabaseError("permission denied"))
        with pytest.raises(ProvisionError, match="permission denied") as exc_info:
            provisioner.obtain(driver, "ctx")
        assert len(driver.create_calls) == 1
        assert exc_info.value.engine == "fake"
        assert isinstance(exc_info.value.cause, DatabaseError)
        assert mapping.entries() == []

    def test_connection_loss_is_not_retried(self, provisioner: Provisioner, server) -> None:
        driver = FakeServerDriver(server, create_error=DatabaseConnectionError("reset"))
        with pytest.raises(ProvisionError):
            provisioner.obtain(driver, "ctx")
        assert len(driver.create_calls) == 1

    def test_listing_failure(self, provisioner: Provisioner, driver, monkeypatch) -> None:
        def broken(prefix: str = "") -> list[str]:
            raise DatabaseConnectionError("gone")

        monkeypatch.setattr(driver, "list_databases", broken)
        with pytest.raises(ProvisionError, match="Cannot list"):
            provisioner.obtain(driver, "ctx")

    def test_mapping_write_failure_still_returns(self, provisioner: Provisioner, driver, monkeypatch) -> None:
        def broken(entry: MappingEntry) -> None:
            raise StorageError("read-only")

        monkeypatch.setattr(provisioner.mapping, "put", broken)
        assert provisioner.obtain(driver, "ctx") == "tdd_fake_alice_0"

    def test_corrupt_mapping_falls_back_to_scan(self, provisioner: Provisioner, driver) -> None:
        provisioner.mapping.path.parent.mkdir(parents=True, exist_ok=True)
        provisioner.mapping.path.write_text("[[[")
        assert provisioner.obtain(driver, "ctx") == "tdd_fake_alice_0"
        assert provisioner.obtain(driver, "ctx") == "tdd_fake_alice_0"

    def test_undecodable_mapping_falls_back_to_scan(self, provisioner: Provisioner, driver) -> None:
        provisioner.mapping.path.parent.mkdir(parents=True, exist_ok=True)
        provisioner.mapping.path.write_bytes(b"\xff\xfe\x00garbage")
        assert provisioner.obtain(driver, "ctx") == "tdd_fake_alice_0"
        assert provisioner.obtain(driver, "ctx") == "tdd_fake_alice_0"

    def test_unwritable_state_dir_still_returns(self, provisioner: Provisioner, driver) -> None:
        with patch(
            "testdb.provisioning.mapping_store.tempfile.mkstemp",
            side_effect=PermissionError("read-only state dir"),
        ):
            assert provisioner.obtain(driver, "ctx") == "tdd_fake_alice_0"
        assert provisioner.mapping.entries() == []

    def test_custom_prefix(self, mapping: MappingStore, driver) -> None:
        assert Provisioner(mapping, prefix="ci").obtain(driver, "ctx") == "ci_fake_alice_0"


class TestConcurrency:
    def test_racing_allocators_get_distinct_names(self, mapping: MappingStore, server) -> None:
        results: list[str] = []
        errors: list[Exception] = []
        barrier = threading.Barrier(8)

        def worker(i: int) -> None:
            driver = FakeServerDriver(server, stale_listing=True)
            barrier.wait()
            try:
                results.append(Provisioner(mapping, max_attempts=10).obtain(driver, f"ctx-{i}"))
            except Exception as e:  # surfaced below
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert sorted(results) == sorted(f"tdd_fake_alice_{i}" for i in range(8))
        assert len(mapping.entries()) == 8

    def test_distinct_keys_never_collide(self, mapping: MappingStore, server) -> None:
        results: dict[str, str] = {}

        def worker(key: str) -> None:
            driver = keyed(server, key)
            results[key] = Provisioner(mapping).obtain(driver, "shared", key)

        threads = [threading.Thread(target=worker, args=(k,)) for k in ("ci", "nightly", "local")]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results == {
            "ci": "tdd_fake_alice_ci_0",
            "nightly": "tdd_fake_alice_nightly_0",
            "local": "tdd_fake_alice_local_0",
        }


# =============================================================================
# Maintenance
# =============================================================================


class TestMaintenance:
    def test_list_all_keys(self, provisioner: Provisioner, server, driver) -> None:
        provisioner.obtain(driver, "ctx")
        provisioner.obtain(keyed(server, "ci"), "ctx", "ci")
        server.names.update({"tdd_fake_bob_0", "postgres"})
        assert provisioner.list(driver) == ["tdd_fake_alice_0", "tdd_fake_alice_ci_0"]

    def test_list_skips_longer_login_sharing_the_root(self, provisioner: Provisioner, server, driver) -> None:
        provisioner.obtain(driver, "ctx")
        server.names.update({"tdd_fake_alice_ops_team_0", "tdd_fake_alice_scratch"})
        assert provisioner.list(driver) == ["tdd_fake_alice_0"]

    def test_drop_all_spares_other_logins(self, provisioner: Provisioner, server, driver) -> None:
        provisioner.obtain(driver, "ctx")
        other = FakeServerDriver(server, login="alice_ci")
        theirs = provisioner.obtain(other, "ctx-ci")
        assert theirs == "tdd_fake_aliceci_0"
        assert provisioner.drop_all(driver) == ["tdd_fake_alice_0"]
        assert server.names == {theirs}

    def test_list_one_key(self, provisioner: Provisioner, server, driver) -> None:
        provisioner.obtain(driver, "ctx")
        provisioner.obtain(keyed(server, "ci"), "ctx", "ci")
        assert provisioner.list(driver, "ci") == ["tdd_fake_alice_ci_0"]

    def test_drop_forgets_mapping(self, provisioner: Provisioner, driver, server) -> None:
        a = provisioner.obtain(driver, "ctx-a")
        provisioner.obtain(driver, "ctx-b")
        provisioner.drop(driver, a)
        assert a not in server.names
        assert provisioner.mapping.get("ctx-a", "fake") is None
        assert provisioner.obtain(driver, "ctx-a") == "tdd_fake_alice_2"

    def test_drop_refuses_foreign_names(self, provisioner: Provisioner, driver, server) -> None:
        server.names.add("production")
        with pytest.raises(ProvisionError, match="Refusing to drop"):
            provisioner.drop(driver, "production")
        assert "production" in server.names

    def test_drop_surfaces_mapping_failure(self, provisioner: Provisioner, driver, monkeypatch) -> None:
        name = provisioner.obtain(driver, "ctx")

        def broken(engine: str, database: str) -> int:
            raise StorageError("locked")

        monkeypatch.setattr(provisioner.mapping, "remove_database", broken)
        with pytest.raises(ProvisionError, match="could not clear its mapping"):
            provisioner.drop(driver, name)

    def test_drop_all_with_key(self, provisioner: Provisioner, server, driver) -> None:
        provisioner.obtain(driver, "ctx")
        ci = keyed(server, "ci")
        provisioner.obtain(ci, "ctx", "ci")
        provisioner.obtain(ci, "other", "ci")
        assert provisioner.drop_all(driver, "ci") == ["tdd_fake_alice_ci_0", "tdd_fake_alice_ci_1"]
        assert server.list("tdd_") == ["tdd_fake_alice_0"]
        assert [e.key for e in provisioner.mapping.entries()] == [None]

    def test_drop_all(self, provisioner: Provisioner, server, driver) -> None:
        provisioner.obtain(driver, "a")
        provisioner.obtain(keyed(server, "ci"), "a", "ci")
        assert len(provisioner.drop_all(driver)) == 2
        assert server.names == set()
        assert provisioner.mapping.entries() == []

    def test_drop_all_then_obtain_allocates_again(self, provisioner: Provisioner, server) -> None:
        ci = keyed(server, "ci")
        first = provisioner.obtain(ci, "ctx", "ci")
        provisioner.drop_all(ci, "ci")
        assert provisioner.obtain(ci, "ctx", "ci") == first
        assert server.created == [first, first]
