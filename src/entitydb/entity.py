"""
Base types shared by every hydrated entity.
"""
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

__all__ = ['DatabaseObject', 'PaginatedResult', 'TRANSIENT_ID']

T = TypeVar('T')

TRANSIENT_ID = -1


class DatabaseObject:
    """A domain object identified by a numeric primary key.

    An id of `-1` (or None) marks an object that has not been persisted yet.
    Arbitrary string attributes can be attached through `set_extra`; the
    mapping is only allocated on first use.
    """

    COUNT = 'count'
    CREATED_ON = 'created_on'
    UPDATED_ON = 'updated_on'

    def __init__(self, id: int | None = TRANSIENT_ID) -> None:
        self.id = id
        self.extra: dict[str, str] | None = None

    @staticmethod
    def has_id(obj: 'DatabaseObject | None') -> bool:
        """True when `obj` exists and carries a persisted id.
        """
        return obj is not None and obj.id is not None and obj.id != TRANSIENT_ID

    def get_extra(self, key: str) -> str | None:
        if self.extra is None:
            return None
        return self.extra.get(key)

    def set_extra(self, key: str, value: str) -> None:
        if self.extra is None:
            self.extra = {}
        self.extra[key] = value

    def __eq__(self, other: Any) -> bool:
        if self is other:
            return True
        if other is None or type(self) is not type(other):
            return False
        return self.id is not None and self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __repr__(self) -> str:
        return f'{type(self).__name__}(id={self.id!r})'


@dataclass
class PaginatedResult(Generic[T]):
    """A page of results together with the total number of matching rows.
    """
    count: int = 0
    result: T | None = None
