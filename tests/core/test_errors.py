"""Tests for testdb.core.errors module."""

import pytest

from testdb.core.errors import (
    ConfigError,
    DatabaseConnectionError,
    DatabaseError,
    DatabaseExistsError,
    ErrorCategory,
    ErrorContext,
    LockTimeoutError,
    MappingCorruption,
    ProvisionError,
    StorageError,
    TestDBError,
)


class TestErrorContext:
    """Test ErrorContext dataclass."""

    def test_empty_context_serializes_to_empty_dict(self):
        assert ErrorContext().to_dict() == {}

    def test_only_set_fields_are_serialized(self):
        ctx = ErrorContext(engine="sqlite", database="tdd_sqlite_bob_0")
        assert ctx.to_dict() == {"engine": "sqlite", "database": "tdd_sqlite_bob_0"}

    def test_metadata_is_flattened(self):
        ctx = ErrorContext(engine="mysql", metadata={"attempt": 3})
        assert ctx.to_dict() == {"engine": "mysql", "attempt": 3}


class TestTestDBError:
    """Test the base error."""

    def test_defaults(self):
        err = TestDBError("boom")
        assert err.message == "boom"
        assert str(err) == "boom"
        assert err.category == ErrorCategory.INTERNAL
        assert err.retryable is False
        assert err.cause is None

    def test_cause_is_chained(self):
        cause = RuntimeError("inner")
        err = TestDBError("outer", cause=cause)
        assert err.__cause__ is cause
        assert err.to_dict()["cause"] == "inner"

    def test_with_context_sets_known_fields_and_metadata(self):
        err = TestDBError("x").with_context(engine="sqlite", host="db1")
        assert err.context.engine == "sqlite"
        assert err.context.metadata == {"host": "db1"}

    def test_to_dict(self):
        err = DatabaseError("drop failed").with_context(database="tdd_x_0")
        data = err.to_dict()
        assert data["error_type"] == "DatabaseError"
        assert data["category"] == "DATABASE"
        assert data["retryable"] is False
        assert data["context"] == {"database": "tdd_x_0"}

    def test_repr(self):
        assert repr(StorageError("disk")) == "StorageError('disk', category=STORAGE)"


class TestSubclasses:
    def test_config_error_names_block(self):
        err = ConfigError("unknown key 'foo'", block_index=2)
        assert err.message == "block 2: unknown key 'foo'"
        assert err.block_index == 2
        assert err.context.block_index == 2
        assert err.category == ErrorCategory.CONFIG

    def test_config_error_without_block(self):
        err = ConfigError("bad")
        assert err.message == "bad"
        assert err.block_index is None

    def test_database_exists_error(self):
        err = DatabaseExistsError("tdd_sqlite_bob_4")
        assert err.name == "tdd_sqlite_bob_4"
        assert "tdd_sqlite_bob_4" in err.message
        assert err.context.database == "tdd_sqlite_bob_4"
        assert isinstance(err, DatabaseError)

    def test_provision_error_reports_attempts(self):
        err = ProvisionError("gave up", engine="mysql", attempts=10)
        assert err.engine == "mysql"
        assert err.context.engine == "mysql"
        assert err.to_dict()["attempts"] == 10

    def test_provision_error_omits_zero_attempts(self):
        assert "attempts" not in ProvisionError("x").to_dict()

    @pytest.mark.parametrize(
        "error,retryable",
        [
            (DatabaseConnectionError("refused"), True),
            (LockTimeoutError("busy"), True),
            (MappingCorruption("garbage"), False),
            (DatabaseExistsError("n"), False),
            (ConfigError("bad"), False),
        ],
    )
    def test_retryable_defaults(self, error, retryable):
        assert error.retryable is retryable

    def test_storage_hierarchy(self):
        assert issubclass(MappingCorruption, StorageError)
        assert issubclass(LockTimeoutError, StorageError)
