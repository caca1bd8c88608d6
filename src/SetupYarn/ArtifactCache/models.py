"""Value objects exchanged between the cache orchestrator and transport."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from .errors import ProtocolError


@dataclass(slots=True, frozen=True)
class CacheKey:
    """Two-part identifier of a cache entry family and one instance of it."""

    key: str
    version: str = ""

    def __post_init__(self) -> None:
        if not self.key:
            raise ValueError("cache key must not be empty")

    def __str__(self) -> str:
        return f"{self.key}-{self.version}" if self.version else self.key


@dataclass(slots=True, frozen=True)
class CacheEntry:
    """Server-side record returned by a successful cache lookup."""

    archive_location: str
    cache_id: Optional[int] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "CacheEntry":
        """Build an entry from the lookup JSON body (``cacheId``, ``archiveLocation``)."""

        if not isinstance(payload, Mapping) or not isinstance(
            payload.get("archiveLocation"), str
        ):
            raise ProtocolError("cache lookup response is missing 'archiveLocation'")
        cache_id = payload.get("cacheId")
        return cls(
            archive_location=payload["archiveLocation"],
            cache_id=int(cache_id) if cache_id is not None else None,
        )


__all__ = ["CacheKey", "CacheEntry"]
