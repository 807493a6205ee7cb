"""
pytest plugin: request test databases from fixtures.

Registered through the ``pytest11`` entry point, so installing the
package is enough::

    def test_roundtrip(testdb_handles):
        (handle,) = testdb_handles("postgresql", min_version="13")
        conn = psycopg2.connect(handle.url)

When no source can serve the request the test is skipped rather than
failed: a missing engine is an environment property, not a bug.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from testdb.api import handles
from testdb.core.types import Handle, Request
from testdb.provisioning.context import ProvisioningContext, load_context


@pytest.fixture(scope="session")
def testdb_context() -> ProvisioningContext:
    """One provisioning context (config read, drivers probed) per test session."""
    return load_context()


@pytest.fixture
def testdb_handles(testdb_context: ProvisioningContext) -> Callable[..., list[Handle]]:
    """Factory returning handles for an engine, skipping the test if there are none."""

    def _handles(engine: str, **constraints: Any) -> list[Handle]:
        request = Request.coerce({"engine": engine, **constraints})
        found = handles(request, context=testdb_context)
        if not found:
            pytest.skip(f"no test database available for {engine}")
        return found

    return _handles


__all__ = ["testdb_context", "testdb_handles"]
