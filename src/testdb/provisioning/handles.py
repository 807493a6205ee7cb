"""Handle assembly from resolver matches."""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence

from testdb.core.dsn import parse_dsn, strip_credentials
from testdb.core.errors import ProvisionError
from testdb.core.logging import get_logger
from testdb.core.types import ConnectionSpec, Handle, HandleSource
from testdb.drivers.protocol import EngineDriver

from .provisioner import Provisioner
from .resolver import Match

logger = get_logger(__name__)


def handle_for_spec(spec: ConnectionSpec) -> Handle:
    url = parse_dsn(spec.address)
    return Handle(
        engine=spec.engine,
        address=strip_credentials(url).render_as_string(hide_password=False),
        username=spec.username,
        password=spec.password,
        database_name=url.database,
        source=HandleSource.CONNECTION_SPEC,
    )


def handle_for_database(driver: EngineDriver, name: str) -> Handle:
    return Handle(
        engine=driver.engine,
        address=driver.address_for(name),
        username=driver.username,
        password=driver.password,
        database_name=name,
        source=HandleSource.DRIVER,
    )


class HandleFactory:
    """Turns ``(source, request)`` matches into handles; never opens a connection."""

    def __init__(self, provisioner: Provisioner, context_id: str):
        self.provisioner = provisioner
        self.context_id = context_id

    def build(self, matches: Sequence[Match]) -> list[Handle]:
        """
        Build handles in match order.

        The n-th match of the same driver gets allocation slot n, so two
        requests for one engine receive two databases, and the same two on
        the next run. A match whose provisioning fails is logged and
        skipped.
        """
        handles: list[Handle] = []
        slots: Counter[int] = Counter()
        for source, request in matches:
            if isinstance(source, ConnectionSpec):
                handles.append(handle_for_spec(source))
                continue

            slot = slots[id(source)]
            slots[id(source)] += 1
            try:
                name = self.provisioner.obtain(source, self.context_id, source.key, slot)
            except ProvisionError as e:
                logger.error("provision_failed", engine=request.engine, slot=slot, **e.to_dict())
                continue
            handles.append(handle_for_database(source, name))
        return handles


__all__ = ["HandleFactory", "handle_for_spec", "handle_for_database"]
