"""
RESULT CACHE - Bounded LRU cache with a fixed entry lifetime

Page reads are cached under a fingerprint of (table, operation, ids,
filter + pagination). Entries are never invalidated on write: a cached
page can be stale for up to `ttl_seconds`.

Every public method takes the lock, so a single get/set/peek is atomic
when the cache is shared between concurrent requests.
"""

import hashlib
import json
import threading
import time
from collections import OrderedDict
from typing import Any, Callable, Iterable, Mapping, Optional, Tuple


class ResultCache:
    def __init__(
        self,
        max_entries: int = 500,
        ttl_seconds: float = 60 * 60 * 5,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[Any, float]]" = OrderedDict()
        self._lock = threading.Lock()

    def _is_expired(self, stored_at: float) -> bool:
        return self._clock() - stored_at > self.ttl_seconds

    def peek(self, key: str) -> bool:
        """Check presence without touching recency."""
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and not self._is_expired(entry[1])

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None

            value, stored_at = entry
            if self._is_expired(stored_at):
                del self._entries[key]
                return None

            self._entries.move_to_end(key)
            return value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            if key in self._entries:
                del self._entries[key]
            self._entries[key] = (value, self._clock())

            # Evict least recently used
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: str) -> bool:
        return self.peek(key)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def generate_cache_key(
    fullname: str,
    operation: str,
    ids: Iterable[Any],
    args: Optional[Mapping[str, Any]],
) -> str:
    """
    Fingerprint a read for the result cache.

    Only "filter" and "pagination" take part, so "_debug" / "_cache"
    never split two identical queries into separate entries.

    Example:
        generate_cache_key("public.users", "page", [], {"filter": {...}})
        -> "9c1e5d..." (SHA256)
    """
    args = args or {}
    filtered_args = {"filter": args.get("filter"), "pagination": args.get("pagination")}
    key = (
        fullname
        + operation
        + ",".join(str(i) for i in ids)
        + json.dumps(filtered_args, sort_keys=True, default=str)
    )
    return hashlib.sha256(key.encode()).hexdigest()
