"""
Lazy, forward-only streams of parsed entities.
"""
import logging
from abc import ABC, abstractmethod
from collections.abc import Iterator
from typing import TYPE_CHECKING, Any, Generic, Self, TypeVar

from entitydb.cursor import ResultCursor
from entitydb.parser import EntityParser

if TYPE_CHECKING:
    from entitydb.connection import Database
    from entitydb.statement import Statement

__all__ = ['BaseStreamer', 'ObjectStreamer']

logger = logging.getLogger(__name__)

T = TypeVar('T')


class BaseStreamer(ABC, Generic[T]):
    """Runs a statement and hands out one item per `next()` call.

    The stream cannot be restarted. Reaching the end of the result closes the
    owning connection; after that every `next()` returns None. `close()` ends
    the stream early and may be called any number of times.
    """

    def __init__(self, database: 'Database', statement: 'Statement') -> None:
        self.database = database
        self.cursor: ResultCursor = statement.query()

    def next(self) -> T | None:
        """Return the next item, or None at the end of the stream.

        A row the parser maps to None also yields None without ending the
        stream; use `closed` (or iterate) to tell the two apart. A failure
        while reading or parsing closes the stream before it propagates.
        """
        if self.database.is_closed:
            return None
        try:
            if self.cursor.next():
                return self.get_next(self.cursor)
        except Exception:
            self.close()
            raise
        logger.debug('Stream exhausted, closing connection')
        self.database.close()
        return None

    @property
    def closed(self) -> bool:
        return self.database.is_closed

    @abstractmethod
    def get_next(self, row: ResultCursor) -> T | None:
        """Convert the current row into a stream item.
        """

    def close(self) -> None:
        if not self.database.is_closed:
            self.database.close()

    def __iter__(self) -> Iterator[T]:
        """Iterate over the non-None items, closing the stream when done or abandoned.
        """
        try:
            while not self.database.is_closed:
                if not self.cursor.next():
                    break
                item = self.get_next(self.cursor)
                if item is not None:
                    yield item
        finally:
            self.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.close()


class ObjectStreamer(BaseStreamer[T]):
    """Stream of entities produced by an `EntityParser`.
    """

    def __init__(self, database: 'Database', statement: 'Statement',
                 parser: EntityParser[T], foreigns_from_result_set: bool = False) -> None:
        super().__init__(database, statement)
        self.parser = parser
        self.foreigns_from_result_set = foreigns_from_result_set

    def get_next(self, row: ResultCursor) -> T | None:
        return self.parser.parse(row, self.foreigns_from_result_set)
