"""Centralized cache utilities (TTLCache settings, key builders, result cache)."""
from __future__ import annotations

import os
import threading
import time
from typing import Callable, Optional

from cachetools import TTLCache

from lib.instagram.track import NO_TRACK, NoTrack, PlayableTrack

# Instagram result cache settings
INSTAGRAM_CACHE_VERSION = int(os.getenv("INSTAGRAM_CACHE_VERSION", "1"))
INSTAGRAM_CACHE_MAXSIZE = int(os.getenv("INSTAGRAM_CACHE_MAXSIZE", "200"))
INSTAGRAM_CACHE_TTL_S = int(os.getenv("INSTAGRAM_CACHE_TTL_S", "1800"))


def build_instagram_cache_key(post_url: str) -> str:
    return f"ig:{INSTAGRAM_CACHE_VERSION}:{post_url}"


class ResultCache:
    """
    Thread-safe TTL cache for resolved posts.

    Only terminal results are stored: a PlayableTrack or NO_TRACK. Tracks are
    copied on the way in and on the way out so callers never share state with
    the cached snapshot.
    """

    def __init__(
        self,
        maxsize: int = INSTAGRAM_CACHE_MAXSIZE,
        ttl: float = INSTAGRAM_CACHE_TTL_S,
        timer: Callable[[], float] = time.monotonic,
    ):
        self.maxsize = maxsize
        self.ttl = ttl
        self._cache: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl, timer=timer)
        self._lock = threading.Lock()

    def get(self, post_url: str) -> Optional[PlayableTrack | NoTrack]:
        with self._lock:
            cached = self._cache.get(build_instagram_cache_key(post_url))
        if isinstance(cached, PlayableTrack):
            return cached.make_clone()
        return cached

    def put(self, post_url: str, item: PlayableTrack | NoTrack) -> None:
        if isinstance(item, PlayableTrack):
            item = item.make_clone()
        elif item is not NO_TRACK:
            raise TypeError(f"only tracks and NO_TRACK are cacheable, got {type(item).__name__}")
        with self._lock:
            self._cache[build_instagram_cache_key(post_url)] = item

    def invalidate_all(self) -> None:
        with self._lock:
            self._cache.clear()

    def __contains__(self, post_url: str) -> bool:
        with self._lock:
            return build_instagram_cache_key(post_url) in self._cache

    def __len__(self) -> int:
        with self._lock:
            self._cache.expire()
            return len(self._cache)
