"""TTL cache for catalog lookups."""

import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Protocol


class Cache(Protocol):
    """Cache interface for catalog search results."""

    def get(self, key: str) -> object | None:
        """Return a cached value if present and fresh."""

    def set(self, key: str, value: object, ttl_seconds: int) -> None:
        """Store a value for ttl_seconds."""


@dataclass
class InMemoryCache(Cache):
    """Per-process cache with expiry and a bounded number of entries."""

    max_entries: int = 256
    _entries: OrderedDict[str, tuple[float, object]] = field(
        default_factory=OrderedDict, init=False, repr=False
    )

    def get(self, key: str) -> object | None:
        """Return a cached value unless it has expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if time.monotonic() >= expires_at:
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return value

    def set(self, key: str, value: object, ttl_seconds: int) -> None:
        """Store a value, evicting the least recently used entry when full."""
        self._entries[key] = (time.monotonic() + ttl_seconds, value)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)
