# world_synth/runtime/lru_cache.py

"""
================================================================================
LRU CACHE WITH TTL
================================================================================
A bounded, insertion-ordered cache. Reads and writes both refresh recency; at
capacity the least recently touched entry is evicted. Entries older than the
TTL read as absent. The TTL only bounds memory: keys are pure functions of
their inputs, so a live entry is always valid.

Not thread-safe on its own; TileCache guards it with a lock.
================================================================================
"""

import time
from collections import OrderedDict
from typing import Any, Callable, Hashable, Optional

class LRUCache:
    def __init__(self, max_entries: int = 100, ttl_seconds: float = 600.0,
                 clock: Callable[[], float] = time.monotonic):
        """
        Args:
            max_entries (int): Capacity; must be at least 1.
            ttl_seconds (float): Entry lifetime. None disables expiry.
            clock (callable): Monotonic time source, injectable for tests.
        """
        if max_entries < 1:
            raise ValueError(f"max_entries must be >= 1, got {max_entries}")
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: "OrderedDict[Hashable, tuple[Any, float]]" = OrderedDict()

    def _expired(self, created_at: float) -> bool:
        return self.ttl_seconds is not None and self._clock() - created_at > self.ttl_seconds

    def get(self, key: Hashable) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, created_at = entry
        if self._expired(created_at):
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return value

    def set(self, key: Hashable, value: Any) -> None:
        if key in self._entries:
            del self._entries[key]
        elif len(self._entries) >= self.max_entries:
            self._entries.popitem(last=False)
        self._entries[key] = (value, self._clock())

    def has(self, key: Hashable) -> bool:
        entry = self._entries.get(key)
        if entry is None:
            return False
        if self._expired(entry[1]):
            del self._entries[key]
            return False
        return True

    def delete(self, key: Hashable) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def prune(self) -> int:
        """Removes every expired entry and returns how many were removed."""
        expired = [key for key, (_, created_at) in self._entries.items() if self._expired(created_at)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def keys(self) -> list:
        """Keys from least to most recently used."""
        return list(self._entries.keys())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return self.has(key)
