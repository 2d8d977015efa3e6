"""Time-expiring image cache with single-flight computation.

Entries expire lazily on lookup; there is no background sweep.  Concurrent
requests for the same key share one computation.
"""
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future
from typing import Any, Callable, Dict, Hashable, Tuple

from ..constants import CACHE_TTL_S

log = logging.getLogger(__name__)

_MISSING = object()


class ImageCache:
    """Key → (value, inserted_at) map with a fixed time-to-live."""

    def __init__(self, ttl_s: float = CACHE_TTL_S,
                 clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_s = ttl_s
        self._clock = clock
        self._entries: Dict[Hashable, Tuple[Any, float]] = {}
        self._inflight: Dict[Hashable, Future] = {}
        self._lock = threading.Lock()

    # ── Plain access ─────────────────────────────────────────────────

    def get(self, key: Hashable, default: Any = None) -> Any:
        """Return the live value for *key*, or *default* if missing/expired."""
        with self._lock:
            value = self._lookup(key)
        return default if value is _MISSING else value

    def set(self, key: Hashable, value: Any) -> None:
        with self._lock:
            self._entries[key] = (value, self._clock())

    def invalidate(self, key: Hashable) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def _lookup(self, key: Hashable) -> Any:
        """Caller holds the lock."""
        entry = self._entries.get(key)
        if entry is None:
            return _MISSING
        value, inserted_at = entry
        if self._clock() - inserted_at >= self.ttl_s:
            del self._entries[key]
            log.debug("Cache expired: %s", key)
            return _MISSING
        return value

    # ── Single-flight ────────────────────────────────────────────────

    def get_or_compute(self, key: Hashable, compute: Callable[[], Any]) -> Any:
        """Return the cached value for *key*, computing it on a miss.

        If another thread is already computing *key*, wait for it and
        reuse its result (or its exception).  Failed computations are
        not stored.
        """
        with self._lock:
            value = self._lookup(key)
            if value is not _MISSING:
                log.debug("Cache hit: %s", key)
                return value
            waiting = self._inflight.get(key)
            if waiting is None:
                owner: Future = Future()
                self._inflight[key] = owner

        if waiting is not None:
            log.debug("Cache wait: %s", key)
            return waiting.result()

        try:
            value = compute()
        except BaseException as e:
            with self._lock:
                self._inflight.pop(key, None)
            owner.set_exception(e)
            raise

        with self._lock:
            self._entries[key] = (value, self._clock())
            self._inflight.pop(key, None)
        owner.set_result(value)
        log.debug("Cache store: %s", key)
        return value

    # ── Introspection ────────────────────────────────────────────────

    def __len__(self) -> int:
        with self._lock:
            now = self._clock()
            return sum(1 for _, t in self._entries.values() if now - t < self.ttl_s)

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return self._lookup(key) is not _MISSING
