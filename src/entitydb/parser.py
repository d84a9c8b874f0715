"""
Row-to-entity parsers.

A parser turns the current row of a `ResultCursor` into one entity. Foreign
key columns are resolved through identity caches the parser registers, which
`clear_cache()` empties around every bulk fetch.

`foreigns_from_result_set` selects how foreign entities are hydrated: from
columns already joined into the same row (no extra queries), or by id through
the foreign type's own cache (one query per cache miss).
"""
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from typing import Any, Generic, TypeVar

from entitydb.cache import IdentityCache

__all__ = ['EntityParser', 'FunctionParser']

T = TypeVar('T')


class EntityParser(ABC, Generic[T]):
    """Base class for a per-entity-type row parser.

    Subclasses implement `parse` and register the caches they read from.
    Returning None from `parse` means the row holds no entity (an outer join
    with no match); bulk accessors skip such rows.
    """

    def __init__(self) -> None:
        self._caches: list[IdentityCache] = []

    def register_cache(self, cache: IdentityCache) -> IdentityCache:
        if not any(c is cache for c in self._caches):
            self._caches.append(cache)
        return cache

    def register_parser(self, parser: 'EntityParser') -> 'EntityParser':
        """Adopt the caches of a nested parser so clearing is transitive.
        """
        for cache in parser.caches:
            self.register_cache(cache)
        return parser

    @property
    def caches(self) -> tuple[IdentityCache, ...]:
        return tuple(self._caches)

    def clear_cache(self) -> None:
        for cache in self._caches:
            cache.clear()

    @abstractmethod
    def parse(self, row: Any, foreigns_from_result_set: bool = False) -> T | None:
        """Build one entity from the cursor's current row.
        """


class FunctionParser(EntityParser[T]):
    """Parser backed by a plain mapping function.

    >>> parser = FunctionParser(lambda row, foreigns: row.get_string('name'))
    """

    def __init__(self, func: Callable[[Any, bool], T | None],
                 caches: Iterable[IdentityCache] = ()) -> None:
        super().__init__()
        self.func = func
        for cache in caches:
            self.register_cache(cache)

    def parse(self, row: Any, foreigns_from_result_set: bool = False) -> T | None:
        return self.func(row, foreigns_from_result_set)
