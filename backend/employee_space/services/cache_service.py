# Overview: Bounded TTL cache owned by the application and passed into services.

"""
Read cache for data that is requested far more often than it changes
(project listings, pending-submission counts).

One TTLCache is built per process in create_app and stored in
app.extensions. Services accept an optional ``cache`` argument and fall back
to the application's instance. Every write path calls ``invalidate`` with the
key prefix it affects.
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict

from flask import current_app

EXTENSION_KEY = "employee_space.cache"

_MISSING = object()


class TTLCache:
    """Thread-safe LRU cache whose entries expire ``ttl_seconds`` after being set."""

    def __init__(self, max_entries: int = 512, ttl_seconds: float = 30, clock=time.monotonic):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._data: OrderedDict[str, tuple[float, object]] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def get(self, key: str, default=None):
        with self._lock:
            item = self._data.get(key, _MISSING)
            if item is _MISSING:
                return default
            expires_at, value = item
            if expires_at <= self._clock():
                del self._data[key]
                return default
            self._data.move_to_end(key)
            return value

    def set(self, key: str, value, ttl_seconds: float | None = None) -> None:
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        with self._lock:
            self._data[key] = (self._clock() + ttl, value)
            self._data.move_to_end(key)
            while len(self._data) > self.max_entries:
                self._data.popitem(last=False)

    def get_or_load(self, key: str, loader):
        value = self.get(key, _MISSING)
        if value is _MISSING:
            value = loader()
            self.set(key, value)
        return value

    def invalidate(self, prefix: str) -> int:
        """Drop every key starting with ``prefix``. Returns the number removed."""
        with self._lock:
            doomed = [k for k in self._data if k.startswith(prefix)]
            for k in doomed:
                del self._data[k]
            return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()


def init_cache(app) -> TTLCache:
    cache = TTLCache(
        max_entries=app.config["CACHE_MAX_ENTRIES"],
        ttl_seconds=app.config["CACHE_TTL_SECONDS"],
    )
    app.extensions[EXTENSION_KEY] = cache
    return cache


def get_cache(cache: TTLCache | None = None) -> TTLCache:
    """Return the explicitly injected cache, else the current application's."""
    if cache is not None:
        return cache
    return current_app.extensions[EXTENSION_KEY]
