"""TTL-aware, size-bounded LRU cache for resolved classifications."""

import time
from typing import Callable, Optional

from cachetools import TTLCache

from venue_engine.core.errors import ConfigurationError
from venue_engine.models import VenueClassification


class ResultCache:
    """
    Thin wrapper over ``cachetools.TTLCache`` that refuses to store ``None``.

    Entries expire ``ttl_seconds`` after their last ``put``; once full, the
    least recently used entry is evicted first.
    """

    def __init__(
        self,
        max_entries: int = 2048,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ConfigurationError("cache max_entries must be >= 1")
        if ttl_seconds <= 0:
            raise ConfigurationError("cache ttl_seconds must be positive")
        self._entries = TTLCache(maxsize=max_entries, ttl=ttl_seconds, timer=clock)

    def __len__(self) -> int:
        self._entries.expire()
        return len(self._entries)

    def get(self, key: str) -> Optional[VenueClassification]:
        return self._entries.get(key)

    def put(self, key: str, value: Optional[VenueClassification]) -> None:
        # Failed resolutions are never cached
        if value is None:
            return
        self._entries[key] = value

    def clear(self) -> None:
        self._entries.clear()
