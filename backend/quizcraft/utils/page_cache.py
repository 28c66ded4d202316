"""In-memory cache of rendered public quiz pages."""

from __future__ import annotations

import threading
import time
from typing import Callable, Hashable, Optional


class PageCache:
    """TTL cache keyed by quiz id, with one versioned entry per key.

    Callers pass the quiz's current version (its `updated_at`) on every
    lookup; an entry rendered for another version is a miss. A render
    that races with a mutation is therefore never served once the
    mutation has committed, and workers that never saw the matching
    `invalidate` still notice the newer version on their next lookup.
    """

    def __init__(self, ttl_seconds: int = 60, max_entries: int = 1000):
        self._entries: dict[str, tuple[float, Optional[Hashable], dict]] = {}
        self._lock = threading.Lock()
        self._ttl_seconds = ttl_seconds
        self._max_entries = max_entries

    def get(self, key: str, version: Optional[Hashable] = None) -> Optional[dict]:
        now = time.monotonic()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, stored_version, payload = entry
            if now - stored_at > self._ttl_seconds or stored_version != version:
                self._entries.pop(key, None)
                return None
            return payload

    def set(self, key: str, payload: dict, version: Optional[Hashable] = None) -> None:
        if self._ttl_seconds <= 0:
            return
        with self._lock:
            self._entries[key] = (time.monotonic(), version, payload)
            if len(self._entries) > self._max_entries:
                oldest = sorted(self._entries.items(), key=lambda kv: kv[1][0])
                for old_key, _ in oldest[: len(self._entries) - self._max_entries]:
                    self._entries.pop(old_key, None)

    def get_or_render(self, key: str, render: Callable[[], Optional[dict]],
                      version: Optional[Hashable] = None) -> Optional[dict]:
        """Return the cached page for `version`, rendering and storing it on a miss.

        `version` must be read before `render` runs, so a page rendered
        from newer data is at worst stored under an older version and
        re-rendered on the next lookup.
        """
        cached = self.get(key, version)
        if cached is not None:
            return cached
        payload = render()
        if payload is not None:
            self.set(key, payload, version)
        return payload

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
