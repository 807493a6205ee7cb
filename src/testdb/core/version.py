"""Numeric dotted version comparison for engine version constraints.

Engines report versions in many shapes (``3.45.1``, ``16.2 (Debian 16.2-1)``,
``8.0.36-0ubuntu0.22.04.1``, ``v1.1.3``). Only the leading run of
dot-separated integers takes part in comparisons; trailing zeros are
insignificant, so ``4.0 == 4`` and ``4.0 < 4.1.2``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import total_ordering

_LEADING_NUMERIC = re.compile(r"v?(\d+(?:\.\d+)*)")


@total_ordering
@dataclass(frozen=True)
class Version:
    """Parsed engine version. ``raw`` keeps the original text for display."""

    parts: tuple[int, ...]
    raw: str = field(default="", compare=False)

    @classmethod
    def parse(cls, value: str | int | float | Version) -> Version:
        if isinstance(value, Version):
            return value
        text = str(value).strip()
        match = _LEADING_NUMERIC.match(text)
        if match is None:
            raise ValueError(f"Not a dotted numeric version: {value!r}")
        return cls(tuple(int(p) for p in match.group(1).split(".")), raw=text)

    @classmethod
    def coerce(cls, value: str | int | float | Version | None) -> Version | None:
        """``parse`` that lets ``None`` through."""
        return None if value is None else cls.parse(value)

    @property
    def _key(self) -> tuple[int, ...]:
        parts = list(self.parts)
        while len(parts) > 1 and parts[-1] == 0:
            parts.pop()
        return tuple(parts)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._key == other._key

    def __hash__(self) -> int:
        return hash(self._key)

    def __lt__(self, other: Version) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._key < other._key

    def __str__(self) -> str:
        return ".".join(str(p) for p in self.parts)


def in_range(
    version: Version | None,
    minimum: Version | None = None,
    maximum: Version | None = None,
) -> bool:
    """Inclusive range check.

    Without bounds every source matches, including those that report no
    version. With any bound, a source without a version never matches.
    """
    if minimum is None and maximum is None:
        return True
    if version is None:
        return False
    if minimum is not None and version < minimum:
        return False
    if maximum is not None and version > maximum:
        return False
    return True


__all__ = ["Version", "in_range"]
