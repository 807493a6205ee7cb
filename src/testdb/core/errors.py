"""
Structured error types for spine-testdb.

Every failure the provisioning engine can produce is a ``TestDBError``
subclass carrying a category, a retryable flag, structured context and the
chained cause. Most of them never reach the caller: configuration and probing
failures degrade into "engine unavailable", mapping store failures fall back
to the authoritative name scan. Only ``ProvisionError`` is surfaced, and only
for the one request it affects.

Architecture:
    ::

        TestDBError (category, retryable, context, cause)
        ├── ConfigError              malformed configuration block
        ├── DriverUnavailable        engine cannot be reached or imported
        ├── DatabaseError            driver-level failure
        │   ├── DatabaseConnectionError   (retryable)
        │   └── DatabaseExistsError       name already taken
        ├── ProvisionError           allocation failed definitively
        └── StorageError             mapping store failures
            ├── MappingCorruption    unreadable mapping document
            └── LockTimeoutError     lock not acquired within the bounded wait

Usage:
    from testdb.core.errors import DatabaseExistsError, ProvisionError

    try:
        driver.create_database(name)
    except DatabaseExistsError:
        ...  # another process won the race, try the next sequence
    except DatabaseError as e:
        raise ProvisionError("create failed", engine=driver.engine, cause=e) from e
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories used for log routing."""

    CONFIG = "CONFIG"
    DRIVER = "DRIVER"
    DATABASE = "DATABASE"
    PROVISION = "PROVISION"
    STORAGE = "STORAGE"
    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """Structured metadata attached to an error for logging."""

    engine: str | None = None
    database: str | None = None
    context_id: str | None = None
    block_index: int | None = None
    path: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["engine", "database", "context_id", "block_index", "path"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class TestDBError(Exception):
    """
    Base exception for all spine-testdb errors.

    Subclasses set ``default_category`` and ``default_retryable`` so that
    call sites rarely need to pass them explicitly.
    """

    __test__ = False  # keep pytest from collecting this as a test class

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> TestDBError:
        """
        Add context to this error (fluent API).

        Usage:
            raise DatabaseError("drop failed").with_context(engine="mysql", database=name)
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(TestDBError):
    """
    Configuration error.

    Never retryable. ``block_index`` names the offending configuration
    block (0-based) when the error comes from parsing.
    """

    default_category = ErrorCategory.CONFIG

    def __init__(self, message: str, *, block_index: int | None = None, **kwargs: Any):
        if block_index is not None:
            message = f"block {block_index}: {message}"
        super().__init__(message, **kwargs)
        self.block_index = block_index
        if block_index is not None:
            self.context.block_index = block_index


# =============================================================================
# DRIVER / DATABASE ERRORS
# =============================================================================


class DriverUnavailable(TestDBError):
    """An engine driver cannot be used (library missing, admin login refused)."""

    default_category = ErrorCategory.DRIVER


class DatabaseError(TestDBError):
    """Database-level failure reported by a driver."""

    default_category = ErrorCategory.DATABASE


class DatabaseConnectionError(DatabaseError):
    """Connection to the database server failed or was lost."""

    default_retryable = True


class DatabaseExistsError(DatabaseError):
    """A database with the requested name already exists."""

    def __init__(self, name: str, *, message: str | None = None, **kwargs: Any):
        super().__init__(message or f"Database already exists: {name}", **kwargs)
        self.name = name
        self.context.database = name


# =============================================================================
# PROVISIONING ERRORS
# =============================================================================


class ProvisionError(TestDBError):
    """Database allocation failed definitively for one request."""

    default_category = ErrorCategory.PROVISION

    def __init__(
        self,
        message: str,
        *,
        engine: str | None = None,
        attempts: int = 0,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.engine = engine
        self.attempts = attempts
        if engine is not None:
            self.context.engine = engine

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.attempts:
            result["attempts"] = self.attempts
        return result


# =============================================================================
# STORAGE ERRORS
# =============================================================================


class StorageError(TestDBError):
    """Local state storage error (mapping file, lock file)."""

    default_category = ErrorCategory.STORAGE


class MappingCorruption(StorageError):
    """The mapping document exists but cannot be decoded."""


class LockTimeoutError(StorageError):
    """The mapping store lock was not acquired within the bounded wait."""

    default_retryable = True


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "TestDBError",
    "ConfigError",
    "DriverUnavailable",
    "DatabaseError",
    "DatabaseConnectionError",
    "DatabaseExistsError",
    "ProvisionError",
    "StorageError",
    "MappingCorruption",
    "LockTimeoutError",
]
