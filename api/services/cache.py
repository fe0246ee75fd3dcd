from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional


@dataclass(frozen=True)
class CacheEntry:
    key: str
    payload: Any
    stored_at_ms: int


class ResponseCache:
    """
    Last successful payload per logical query.

    - Storage and age only; callers decide whether a hit is fresh enough
    - A successful write replaces the whole entry
    - Reads never renew an entry
    - Nothing is evicted; entries live for the process lifetime
    - Clock is injectable so staleness can be tested without sleeping
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._clock = clock or time.time
        self._store: Dict[str, CacheEntry] = {}

    def now_ms(self) -> int:
        return int(self._clock() * 1000)

    def get(self, key: str) -> Optional[CacheEntry]:
        return self._store.get(key)

    def set(self, key: str, payload: Any) -> CacheEntry:
        entry = CacheEntry(key=key, payload=payload, stored_at_ms=self.now_ms())
        self._store[key] = entry
        return entry

    def age_seconds(self, entry: CacheEntry) -> float:
        return max(0.0, (self.now_ms() - entry.stored_at_ms) / 1000.0)

    def is_fresh(self, entry: Optional[CacheEntry], ttl_seconds: float) -> bool:
        if entry is None:
            return False
        return self.age_seconds(entry) < ttl_seconds

    def clear(self) -> None:
        self._store.clear()

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, key: str) -> bool:
        return key in self._store
