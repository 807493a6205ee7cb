"""Records exchanged between the provisioning components.

All records are frozen: configuration is read once per invocation and
handles are inert descriptors that callers may pass around freely.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any

from testdb.core.dsn import canonical_engine, engine_of, parse_dsn
from testdb.core.errors import ConfigError
from testdb.core.version import Version


def _frozen_mapping(value: Mapping[str, str] | None) -> Mapping[str, str]:
    return MappingProxyType(dict(value or {}))


@dataclass(frozen=True)
class Request:
    """
    Abstract request for a test database.

    ``engine`` is matched exactly against the engine of every source, after
    aliases such as ``postgres`` are mapped to their canonical name.
    ``min_version`` / ``max_version`` bound the source's reported version,
    inclusively. ``extra`` carries caller-defined attributes untouched.
    """

    engine: str
    min_version: Version | None = None
    max_version: Version | None = None
    extra: Mapping[str, str] = field(default_factory=dict, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "engine", canonical_engine(self.engine))
        object.__setattr__(self, "min_version", Version.coerce(self.min_version))
        object.__setattr__(self, "max_version", Version.coerce(self.max_version))
        object.__setattr__(self, "extra", _frozen_mapping(self.extra))

    @property
    def constrained(self) -> bool:
        return self.min_version is not None or self.max_version is not None

    @classmethod
    def coerce(cls, value: Request | str | Mapping[str, Any]) -> Request:
        """
        Build a request from a bare engine name or a mapping.

        Mapping keys other than ``engine``, ``min_version`` and
        ``max_version`` are kept in ``extra``.
        """
        if isinstance(value, Request):
            return value
        if isinstance(value, str):
            return cls(engine=value)
        if isinstance(value, Mapping):
            data = dict(value)
            try:
                engine = data.pop("engine")
            except KeyError:
                raise ConfigError(f"Request without 'engine': {value!r}") from None
            try:
                return cls(
                    engine=engine,
                    min_version=data.pop("min_version", None),
                    max_version=data.pop("max_version", None),
                    extra={k: str(v) for k, v in data.items()},
                )
            except ValueError as e:
                raise ConfigError(f"Invalid request {value!r}: {e}", cause=e) from e
        raise ConfigError(f"Cannot build a request from {value!r}")


@dataclass(frozen=True)
class ConnectionSpec:
    """A pre-existing, directly usable database from a ``dsn`` block."""

    engine: str
    address: str
    username: str | None = None
    password: str | None = field(default=None, repr=False)
    key: str | None = None
    version: Version | None = None

    @classmethod
    def from_dsn(cls, dsn: str, **kwargs: Any) -> ConnectionSpec:
        url = parse_dsn(dsn)
        return cls(
            engine=engine_of(url),
            address=dsn,
            username=kwargs.pop("username", None) or url.username,
            password=kwargs.pop("password", None) or url.password,
            **kwargs,
        )


@dataclass(frozen=True)
class DriverSpec:
    """Administrative credentials able to create and drop databases for ``engine``."""

    engine: str
    admin_address: str | None = None
    username: str | None = None
    password: str | None = field(default=None, repr=False)
    key: str | None = None

    @classmethod
    def from_dsn(cls, dsn: str, **kwargs: Any) -> DriverSpec:
        url = parse_dsn(dsn)
        return cls(
            engine=engine_of(url),
            admin_address=dsn,
            username=kwargs.pop("username", None) or url.username,
            password=kwargs.pop("password", None) or url.password,
            **kwargs,
        )


class HandleSource(str, Enum):
    """Where a handle came from."""

    CONNECTION_SPEC = "dsn"
    DRIVER = "driver"


@dataclass(frozen=True)
class Handle:
    """
    Inert descriptor of a test database. Nothing is opened.

    ``address`` never embeds credentials; use ``url`` when a driver wants a
    single connection string.
    """

    engine: str
    address: str
    username: str | None = None
    password: str | None = field(default=None, repr=False)
    database_name: str | None = None
    source: HandleSource = HandleSource.CONNECTION_SPEC

    def connection_info(self) -> tuple[str, str | None, str | None]:
        return self.address, self.username, self.password

    @property
    def url(self) -> str:
        """``address`` with credentials folded back in."""
        url = parse_dsn(self.address)
        if self.username is not None:
            url = url.set(username=self.username, password=self.password)
        return url.render_as_string(hide_password=False)

    def to_dict(self, *, include_password: bool = False) -> dict[str, Any]:
        data: dict[str, Any] = {
            "engine": self.engine,
            "address": self.address,
            "username": self.username,
            "database_name": self.database_name,
            "source": self.source.value,
        }
        if include_password:
            data["password"] = self.password
        return data


__all__ = [
    "Request",
    "ConnectionSpec",
    "DriverSpec",
    "Handle",
    "HandleSource",
]
