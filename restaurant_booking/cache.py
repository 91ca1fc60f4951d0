"""In-memory TTL cache with in-flight request deduplication.

Entries are evicted lazily when a stale key is read; there is no background
sweep, so a long-running process with many distinct keys grows until those
keys are touched again. A size-bounded LRU on top of the TTL would cap that.
"""
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from . import config

logger = logging.getLogger(__name__)


class _NotFound:
    """Sentinel payload for "fetched, upstream has no such record"."""

    _instance: Optional["_NotFound"] = None

    def __new__(cls) -> "_NotFound":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NOT_FOUND"


NOT_FOUND = _NotFound()


def make_detail_cache_key(place_id: str, locale: str, extended: bool = True) -> str:
    field_set = "extended" if extended else "basic"
    return f"details|{place_id}|{locale}|{field_set}"


@dataclass(frozen=True)
class CacheEntry:
    key: str
    payload: Any
    stored_at: float


class ResultCache:
    def __init__(
        self,
        ttl_seconds: float = config.CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        on_hit: Optional[Callable[[], None]] = None,
        on_join: Optional[Callable[[], None]] = None,
    ) -> None:
        self.ttl_seconds = float(ttl_seconds)
        self.clock = clock
        self.on_hit = on_hit
        self.on_join = on_join
        self._entries: Dict[str, CacheEntry] = {}
        self._pending: Dict[str, Future] = {}
        self._lock = threading.Lock()

    def _fresh(self, key: str) -> Tuple[bool, Any]:
        # Caller holds the lock.
        entry = self._entries.get(key)
        if entry is None:
            return False, None
        if self.clock() - entry.stored_at < self.ttl_seconds:
            return True, entry.payload
        del self._entries[key]
        return False, None

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            found, payload = self._fresh(key)
        return payload if found else None

    def put(self, key: str, value: Any) -> None:
        with self._lock:
            self._entries[key] = CacheEntry(key=key, payload=value, stored_at=self.clock())

    def get_or_fetch(self, key: str, fetch_fn: Callable[[], Any]) -> Any:
        """Return the cached value or run ``fetch_fn`` once for all concurrent callers.

        The first caller for a missing key owns the fetch; callers arriving
        while it is in flight wait on the same future and see its result or
        its exception. The pending token is dropped once the fetch settles,
        so a failed fetch is retried by the next caller.
        """
        with self._lock:
            found, payload = self._fresh(key)
            if found:
                owner = False
                pending = None
            else:
                pending = self._pending.get(key)
                owner = pending is None
                if owner:
                    pending = Future()
                    self._pending[key] = pending

        if found:
            logger.debug("Cache hit: %s", key)
            if self.on_hit is not None:
                self.on_hit()
            return payload

        if not owner:
            logger.debug("Joining in-flight fetch: %s", key)
            if self.on_join is not None:
                self.on_join()
            return pending.result()

        try:
            value = fetch_fn()
        except BaseException as exc:
            with self._lock:
                self._pending.pop(key, None)
            pending.set_exception(exc)
            raise

        with self._lock:
            self._entries[key] = CacheEntry(key=key, payload=value, stored_at=self.clock())
            self._pending.pop(key, None)
        pending.set_result(value)
        return value

    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
