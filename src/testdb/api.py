"""
Public entry points.

    >>> from testdb import handles
    >>> for handle in handles("sqlite", {"engine": "postgresql", "min_version": "13"}):
    ...     connect(*handle.connection_info())

Each call without an explicit ``context`` builds a fresh context (config
read, drivers probed). Test suites calling repeatedly should build one with
``load_context()`` and pass it along.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from testdb.core.logging import LogContext, get_logger
from testdb.core.types import Handle, Request
from testdb.drivers.registry import ListMode
from testdb.provisioning.context import ManagedDriver, ProvisioningContext, load_context
from testdb.provisioning.handles import HandleFactory
from testdb.provisioning.resolver import resolve

logger = get_logger(__name__)

RequestLike = Request | str | Mapping[str, Any]


def _requests(items: Iterable[RequestLike | Iterable[RequestLike]]) -> list[Request]:
    requests: list[Request] = []
    for item in items:
        if isinstance(item, (list, tuple)):
            requests.extend(Request.coerce(i) for i in item)
        else:
            requests.append(Request.coerce(item))
    return requests


def handles(
    *requests: RequestLike | Iterable[RequestLike],
    context: ProvisioningContext | None = None,
) -> list[Handle]:
    """
    Handles for ``requests``; with no request, one per available source.

    Requests nobody can serve are omitted, and so are matches whose
    provisioning fails. The result may be shorter than the request list.
    """
    ctx = context or load_context()
    wanted = _requests(requests)
    with LogContext(context_id=ctx.context_id):
        matches = resolve(wanted, ctx.connection_specs, ctx.drivers)
        result = HandleFactory(ctx.provisioner, ctx.context_id).build(matches)
        logger.debug("handles_built", requested=len(wanted), returned=len(result))
    return result


def list_drivers(
    mode: ListMode = "available",
    *,
    context: ProvisioningContext | None = None,
) -> list[str]:
    """Engine names: ``available`` (re-probed), ``configured`` or ``all``."""
    ctx = context or load_context()
    return ctx.registry.list(mode)


def drivers(*, context: ProvisioningContext | None = None) -> list[ManagedDriver]:
    """Available drivers wrapped for maintenance (listing and dropping databases)."""
    ctx = context or load_context()
    return ctx.managed_drivers()


__all__ = ["handles", "list_drivers", "drivers"]
