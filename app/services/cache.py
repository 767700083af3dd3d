"""
In-process response cache with per-entry TTL.

Usage
-----
    from app.services.cache import response_cache

    cached = await response_cache.get("articles:published")
    if cached is None:
        cached = build_payload()
        await response_cache.set("articles:published", cached, ttl=600)
"""
from __future__ import annotations

import dataclasses
import logging
import time
from typing import Any, Callable, Dict, Optional

from app.config import settings

logger = logging.getLogger(__name__)


@dataclasses.dataclass
class _Entry:
    value: Any
    expires_at: float


class ResponseCache:
    """Keyed get/set/delete store; entries expire ``ttl`` seconds after set()."""

    def __init__(
        self,
        default_ttl: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.default_ttl = default_ttl if default_ttl is not None else settings.CACHE_TTL_SECONDS
        self._clock = clock
        self._entries: Dict[str, _Entry] = {}

    async def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            self._entries.pop(key, None)
            return None
        return entry.value

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        if ttl <= 0:
            self._entries.pop(key, None)
            return
        self._entries[key] = _Entry(value=value, expires_at=self._clock() + ttl)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def clear(self) -> None:
        self._entries.clear()
        logger.debug("Response cache cleared")

    def __len__(self) -> int:
        return len(self._entries)


# Module-level singleton instance
response_cache = ResponseCache()
