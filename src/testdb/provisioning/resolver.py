"""Request resolution: pair each request with the sources able to serve it."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Union

from testdb.core.logging import get_logger
from testdb.core.types import ConnectionSpec, Request
from testdb.core.version import in_range
from testdb.drivers.protocol import EngineDriver

logger = get_logger(__name__)

Source = Union[ConnectionSpec, EngineDriver]
Match = tuple[Source, Request]


def matches(source: Source, request: Request) -> bool:
    """Exact engine match plus the inclusive version range, if any."""
    if source.engine != request.engine:
        return False
    return in_range(source.version, request.min_version, request.max_version)


def resolve(
    requests: Sequence[Request],
    specs: Sequence[ConnectionSpec],
    drivers: Sequence[EngineDriver],
) -> list[Match]:
    """
    Match requests against connection specs and drivers.

    Results follow request order; within one request connection specs come
    before drivers. An empty request list matches every spec and every
    driver once, each paired with a bare request for its engine. Requests
    nothing can serve are dropped silently.
    """
    if not requests:
        return [(spec, Request(spec.engine)) for spec in specs] + [
            (driver, Request(driver.engine)) for driver in drivers
        ]

    results: list[Match] = []
    for request in requests:
        found: list[Match] = [(s, request) for s in specs if matches(s, request)]
        found += [(d, request) for d in drivers if matches(d, request)]
        if not found:
            logger.info(
                "request_unsatisfied",
                engine=request.engine,
                min_version=str(request.min_version) if request.min_version else None,
                max_version=str(request.max_version) if request.max_version else None,
            )
        results.extend(found)
    return results


__all__ = ["Source", "Match", "matches", "resolve"]
