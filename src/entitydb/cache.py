"""
Identity caches for hydrated entities.

An `IdentityCache` maps primary keys to the single instance built for that
key, so parsing the same foreign entity on many rows hydrates it only once.
Caches are ordinary objects: an application or request scope constructs a
`CacheRegistry` and hands the caches it owns to the parsers that need them.
"""
import logging
import threading
from collections.abc import Callable
from typing import Any, Generic, TypeVar

from entitydb.entity import TRANSIENT_ID
from entitydb.exceptions import DataAccessError

__all__ = ['IdentityCache', 'CacheRegistry']

logger = logging.getLogger(__name__)

T = TypeVar('T')


def _is_key(key: Any) -> bool:
    return key is not None and key != TRANSIENT_ID


class IdentityCache(Generic[T]):
    """Per-entity-type cache of hydrated instances keyed by primary key.

    Hydration goes through `fetch_by_id` (a key-based query) or
    `fetch_from_row` (columns already present in the current row). Both call
    the callables given to the constructor; subclasses may override them
    instead.

    Lookups and inserts are safe from several threads. Hydration itself runs
    outside the lock, so two threads missing on the same key may both hydrate
    and the later write wins.
    """

    def __init__(self, by_id: Callable[[Any], T | None] | None = None,
                 from_row: Callable[[Any], T | None] | None = None,
                 name: str | None = None) -> None:
        self._by_id = by_id
        self._from_row = from_row
        self.name = name or type(self).__name__
        self._entries: dict[Any, T] = {}
        self._lock = threading.RLock()

    def fetch_by_id(self, key: Any) -> T | None:
        if self._by_id is None:
            raise DataAccessError(f'{self.name} cannot hydrate by id')
        return self._by_id(key)

    def fetch_from_row(self, row: Any) -> T | None:
        if self._from_row is None:
            raise DataAccessError(f'{self.name} cannot hydrate from a result row')
        return self._from_row(row)

    def get(self, key: Any, row: Any = None, from_row: bool = False) -> T | None:
        """Return the instance for `key`, hydrating and caching it on a miss.

        With `from_row` set the instance is built from `row`, otherwise it is
        fetched by `key`. When no key is given the hydrated value's own id is
        used to cache it. Nothing is cached when hydration yields None.
        """
        if not _is_key(key):
            key = None

        if key is None and not from_row:
            return None

        if key is not None:
            with self._lock:
                result = self._entries.get(key)
            if result is not None:
                logger.debug(f'Cache hit for {self.name}({key})')
                return result

        logger.debug(f'Cache miss for {self.name}({key})')
        try:
            result = self.fetch_from_row(row) if from_row else self.fetch_by_id(key)
        except DataAccessError:
            raise
        except Exception as exc:
            raise DataAccessError(f'Failed to hydrate {self.name}({key}): {exc}') from exc

        if result is None:
            return None

        if key is None:
            key = getattr(result, 'id', None)

        if _is_key(key):
            with self._lock:
                self._entries[key] = result

        return result

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        logger.debug(f'Cleared {self.name}')

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: Any) -> bool:
        with self._lock:
            return key in self._entries


class CacheRegistry:
    """Owner of the identity caches for one application or request scope.
    """

    def __init__(self) -> None:
        self._caches: dict[str, IdentityCache] = {}
        self._lock = threading.RLock()

    def get_cache(self, name: str,
                  factory: Callable[[], IdentityCache] | None = None) -> IdentityCache:
        """Get or create the cache registered under `name`.
        """
        if name not in self._caches:
            with self._lock:
                if name not in self._caches:
                    cache = factory() if factory is not None else IdentityCache()
                    cache.name = name
                    self._caches[name] = cache
        return self._caches[name]

    def clear_all(self) -> None:
        """Clear all managed caches."""
        with self._lock:
            for cache in self._caches.values():
                cache.clear()

    def clear_cache(self, name: str) -> None:
        """Clear a specific cache by name."""
        with self._lock:
            if name in self._caches:
                self._caches[name].clear()

    def __contains__(self, name: str) -> bool:
        return name in self._caches
