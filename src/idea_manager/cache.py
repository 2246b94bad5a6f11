"""Query result cache keyed by resource path."""

from collections.abc import Awaitable, Callable
from typing import Any

import structlog

logger = structlog.get_logger()

CacheKey = tuple[str, ...]
Listener = Callable[[CacheKey], None]


def make_key(path: str, *parts: Any) -> CacheKey:
    """Build a cache key from a resource path and optional qualifiers.

    ``make_key("/api/ideas/7")`` and ``make_key("/api/ideas", "admin")``
    both start with the ``("api", "ideas")`` segments, so invalidating
    ``make_key("/api/ideas")`` drops them both.
    """
    segments = tuple(segment for segment in path.strip("/").split("/") if segment)
    return segments + tuple(str(part) for part in parts)


class QueryCache:
    """Cache of query results with prefix invalidation.

    Keys are tuples of path segments. ``invalidate(prefix)`` removes every
    entry whose key equals or starts with ``prefix`` and notifies
    subscribers once per removed key.
    """

    def __init__(self) -> None:
        self._entries: dict[CacheKey, Any] = {}
        self._listeners: list[Listener] = []
        # Keys with a loader in flight, and how often each was invalidated.
        self._loading: dict[CacheKey, int] = {}
        self._generations: dict[CacheKey, int] = {}

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: CacheKey, default: Any = None) -> Any:
        return self._entries.get(key, default)

    def set(self, key: CacheKey, value: Any) -> None:
        self._entries[key] = value

    async def fetch(self, key: CacheKey, loader: Callable[[], Awaitable[Any]]) -> Any:
        """Return the cached value for ``key``, loading it on a miss.

        A value whose key is invalidated while the loader runs is returned
        to the caller but not stored.
        """
        if key in self._entries:
            logger.debug("Cache hit", key=key)
            return self._entries[key]
        logger.debug("Cache miss", key=key)
        generation = self._generations.get(key, 0)
        self._loading[key] = self._loading.get(key, 0) + 1
        try:
            value = await loader()
        finally:
            stale = self._generations.get(key, 0) != generation
            self._loading[key] -= 1
            if not self._loading[key]:
                del self._loading[key]
                self._generations.pop(key, None)
        if stale:
            logger.debug("Discarding load invalidated in flight", key=key)
        else:
            self._entries[key] = value
        return value

    def invalidate(self, prefix: CacheKey) -> list[CacheKey]:
        """Drop all entries under ``prefix`` and return the removed keys."""
        for key in self._loading:
            if key[: len(prefix)] == prefix:
                self._generations[key] = self._generations.get(key, 0) + 1
        removed = [key for key in self._entries if key[: len(prefix)] == prefix]
        for key in removed:
            del self._entries[key]
        logger.debug("Cache invalidated", prefix=prefix, removed=len(removed))
        for key in removed:
            for listener in list(self._listeners):
                listener(key)
        return removed

    def clear(self) -> None:
        self.invalidate(())

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for invalidations; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
