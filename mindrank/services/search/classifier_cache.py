"""In-memory TTL cache for LLM-assisted query classifications."""

import threading
import time
from collections.abc import Callable

from mindrank.core.models import QueryClassification


class InMemoryClassificationCache:
    """Lock-guarded dict with per-entry expiry.

    Args:
        clock: Monotonic time source in seconds (tests inject a fake)
        max_entries: Oldest entries are evicted beyond this size
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        max_entries: int = 1024,
    ):
        self._clock = clock
        self._max_entries = max_entries
        self._entries: dict[str, tuple[float, QueryClassification]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> QueryClassification | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at <= self._clock():
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: QueryClassification, ttl_seconds: float) -> None:
        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = (self._clock() + ttl_seconds, value)
            while len(self._entries) > self._max_entries:
                del self._entries[next(iter(self._entries))]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
