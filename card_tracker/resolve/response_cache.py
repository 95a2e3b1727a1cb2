"""In-memory cache of API responses, owned by one client instance."""

import json
import time
from typing import Any, Callable, Dict, List, Optional

from ..core.types import CacheEntry


class ResponseCache:
    """Keyed responses with a fixed freshness window.

    Expiry is checked when an entry is read. Expired entries are kept so they
    can still be served when the network fails; they only go away when a
    fresh response overwrites them or the cache is cleared.
    """

    def __init__(self, duration_seconds: float = 24 * 3600, clock: Callable[[], float] = time.time):
        self.duration_seconds = duration_seconds
        self.clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str) -> Optional[CacheEntry]:
        """Entry regardless of age."""
        return self._entries.get(key)

    def is_fresh(self, entry: CacheEntry) -> bool:
        return self.clock() - entry.timestamp < self.duration_seconds

    def get_fresh(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is not None and self.is_fresh(entry):
            return entry
        return None

    def set(self, key: str, data: Any) -> CacheEntry:
        entry = CacheEntry(data=data, timestamp=self.clock())
        self._entries[key] = entry
        return entry

    def clear(self) -> None:
        self._entries.clear()

    def stats(self) -> Dict[str, Any]:
        now = self.clock()
        entries: List[Dict[str, Any]] = []
        for key, entry in self._entries.items():
            entries.append({
                "key": key,
                "age": now - entry.timestamp,
                "fresh": self.is_fresh(entry),
                "dataSize": len(json.dumps(entry.data, default=str)),
            })
        return {"size": len(self._entries), "entries": entries}
