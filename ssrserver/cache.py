"""A small bounded cache with insertion/recency ordering and timestamps."""

from __future__ import annotations

import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Hashable, Optional

EvictCallback = Callable[[Hashable, Any], None]

__all__ = ["Cache"]


@dataclass
class _Entry:
    value: Any
    stamp: float


class Cache:
    """Bounded key/value cache.

    Entries are kept in order of last use. Looking a key up (or testing it
    with ``in``) refreshes its timestamp and makes it the most recent. When an
    insertion brings the number of entries up to ``capacity``, the oldest
    entry is dropped, so at most ``capacity - 1`` entries survive an insert.

    ``on_evict(key, value)`` is called whenever an entry whose value is not
    ``None`` leaves the cache, except on ``purge(keep_data=True)``.
    """

    def __init__(self, capacity: int, on_evict: Optional[EvictCallback] = None) -> None:
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._on_evict = on_evict
        self._entries: "OrderedDict[Hashable, _Entry]" = OrderedDict()

    def _release(self, key: Hashable, entry: _Entry) -> None:
        if entry.value is not None and self._on_evict is not None:
            self._on_evict(key, entry.value)

    def _touch(self, key: Hashable) -> Optional[_Entry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        entry.stamp = time.time()
        self._entries.move_to_end(key)
        return entry

    def insert(self, key: Hashable, value: Any) -> None:
        """Store ``value`` under ``key``, evicting the oldest entry if full."""
        old = self._entries.pop(key, None)
        if old is not None:
            self._release(key, old)
        self._entries[key] = _Entry(value, time.time())
        if len(self._entries) >= self.capacity:
            oldest_key, oldest = self._entries.popitem(last=False)
            self._release(oldest_key, oldest)

    def lookup(self, key: Hashable) -> Any:
        """Return the value for ``key`` (refreshing it), or ``None`` if absent."""
        entry = self._touch(key)
        return None if entry is None else entry.value

    def __contains__(self, key: object) -> bool:
        return self._touch(key) is not None  # type: ignore[arg-type]

    def __len__(self) -> int:
        return len(self._entries)

    def remove(self, key: Hashable) -> bool:
        """Remove ``key`` if present; return whether it was there."""
        entry = self._entries.pop(key, None)
        if entry is None:
            return False
        self._release(key, entry)
        return True

    def clear(self, age: float) -> int:
        """Remove entries not used for more than ``age`` seconds; return the count."""
        now = time.time()
        stale = [key for key, entry in self._entries.items() if now - entry.stamp > age]
        for key in stale:
            self._release(key, self._entries.pop(key))
        return len(stale)

    def purge(self, keep_data: bool = False) -> None:
        """Drop every entry; skip the eviction callback when ``keep_data`` is true."""
        entries = self._entries
        self._entries = OrderedDict()
        if not keep_data:
            for key, entry in entries.items():
                self._release(key, entry)