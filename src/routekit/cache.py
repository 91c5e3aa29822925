"""
=============================================================================
APPLICATION CACHE
=============================================================================

A process-wide key → value store owned by the App. The file and template
helpers use it so a file is read (or a template compiled) only once:

    ┌────────────────────────────┬───────────────────────────────────────┐
    │  Key                       │  Value                                │
    ├────────────────────────────┼───────────────────────────────────────┤
    │  _file:/srv/app/index.html │  file contents (str)                  │
    │  _format:views/user.txt    │  compiled "format" template           │
    │  _ejl:views/page.ejl       │  compiled template of an "ejl" engine │
    └────────────────────────────┴───────────────────────────────────────┘

The "_<namespace>:" prefix keeps different uses of the same path apart.

=============================================================================
CONCURRENCY
=============================================================================

The cache is the one structure written to while requests are being
served, so every access goes through a lock. get_or_set() runs the
factory OUTSIDE the lock:

    thread A: miss → read file ─────────────► setdefault → stored
    thread B:   miss → read file ─────────────► setdefault → A's value

Both threads may do the work, but the first stored value wins and both
return it. Entries are never evicted; they live as long as the App.

=============================================================================
"""

import logging
from threading import RLock
from typing import Any, Callable, Dict, Iterator, Optional


logger = logging.getLogger(__name__)

_MISSING = object()


def cache_key(namespace: str, name: str) -> str:
    """
    Build a namespaced key.

    Example:
        cache_key("file", "/srv/index.html")   # "_file:/srv/index.html"
    """
    return f"_{namespace}:{name}"


class Cache:
    """
    Thread-safe mapping from string keys to cached values.

    Usage:
        cache = Cache()
        html = cache.get_or_set(cache_key("file", path), lambda: read(path))
    """

    def __init__(self):
        self._entries: Dict[str, Any] = {}
        self._lock = RLock()

    def get(self, key: str, default: Optional[Any] = None) -> Optional[Any]:
        with self._lock:
            return self._entries.get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._entries[key] = value
        logger.debug(f"Cache set: {key}")

    def get_or_set(self, key: str, factory: Callable[[], Any]) -> Any:
        """
        Return the cached value for key, computing it on a miss.

        Args:
            key: Cache key.
            factory: Called with no arguments to produce the value. If it
                     raises, nothing is stored and the error propagates.

        Returns:
            The stored value (the first one stored, if threads raced).
        """
        with self._lock:
            value = self._entries.get(key, _MISSING)
        if value is not _MISSING:
            return value

        value = factory()
        with self._lock:
            stored = self._entries.setdefault(key, value)
        if stored is value:
            logger.debug(f"Cache fill: {key}")
        return stored

    def invalidate(self, key: str) -> bool:
        """Drop one entry. Returns True if it existed."""
        with self._lock:
            return self._entries.pop(key, _MISSING) is not _MISSING

    def clear(self) -> None:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.debug(f"Cache cleared ({count} entries)")

    def keys(self) -> Iterator[str]:
        """Snapshot of the current keys."""
        with self._lock:
            return iter(list(self._entries))

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
