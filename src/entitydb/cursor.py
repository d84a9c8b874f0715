"""
Forward-only result cursor with typed column access by name.

Rows are fetched from the DB-API cursor in chunks and handed out one at a
time through `next()`. Column lookups are exact first, then
case-insensitive; SQL NULL is returned as None by every getter.
"""
import datetime
import logging
import sqlite3
from collections.abc import Iterator
from typing import Any

import dateutil.parser
import psycopg
from entitydb.exceptions import QueryError

__all__ = ['ResultCursor', 'IterChunk']

logger = logging.getLogger(__name__)

DriverError = (sqlite3.Error, psycopg.Error)

_TRUE_STRINGS = {'1', 't', 'true', 'y', 'yes', 'on'}


def IterChunk(cursor: Any, size: int = 500) -> Iterator[tuple]:
    """Iterate through cursor results in chunks."""
    while True:
        chunked = cursor.fetchmany(size)
        if not chunked:
            break
        yield from chunked


class ResultCursor:
    """Row-by-row view over an executed statement's result.
    """

    def __init__(self, dbapi_cursor: Any, fetch_size: int = 500) -> None:
        self.dbapi_cursor = dbapi_cursor
        self._columns = [d[0] for d in (dbapi_cursor.description or [])]
        self._exact = {}
        self._folded = {}
        for i, name in enumerate(self._columns):
            self._exact.setdefault(name, i)
            self._folded.setdefault(name.lower(), i)
        self._rows = IterChunk(dbapi_cursor, fetch_size)
        self._row: tuple | None = None
        self._exhausted = False

    def next(self) -> bool:
        """Advance to the next row. Returns False once the result is exhausted.
        """
        if self._exhausted:
            return False
        try:
            self._row = next(self._rows)
            return True
        except StopIteration:
            self._row = None
            self._exhausted = True
            self.close()
            return False
        except DriverError as exc:
            self._row = None
            self._exhausted = True
            raise QueryError(f'Error reading result row: {exc}') from exc

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    def column_names(self) -> list[str]:
        return list(self._columns)

    def has_column(self, column: str) -> bool:
        return column in self._exact or column.lower() in self._folded

    def _index(self, column: str) -> int:
        if column in self._exact:
            return self._exact[column]
        try:
            return self._folded[column.lower()]
        except KeyError:
            raise QueryError(f'Unknown column: {column}') from None

    def get_value(self, column: str) -> Any:
        if self._row is None:
            raise QueryError('No current row: call next() first')
        return self._row[self._index(column)]

    __getitem__ = get_value

    def row_dict(self) -> dict[str, Any]:
        """Current row as a column-name dictionary.
        """
        if self._row is None:
            raise QueryError('No current row: call next() first')
        return dict(zip(self._columns, self._row))

    def _convert(self, column: str, func: Any, kind: str) -> Any:
        value = self.get_value(column)
        if value is None:
            return None
        try:
            return func(value)
        except (TypeError, ValueError) as exc:
            raise QueryError(f'Column {column} value {value!r} is not a valid {kind}') from exc

    def get_string(self, column: str) -> str | None:
        return self._convert(column, _to_string, 'string')

    def get_int(self, column: str) -> int | None:
        return self._convert(column, int, 'integer')

    get_long = get_int

    def get_double(self, column: str) -> float | None:
        return self._convert(column, float, 'double')

    get_float = get_double

    def get_boolean(self, column: str) -> bool | None:
        return self._convert(column, _to_boolean, 'boolean')

    def get_timestamp(self, column: str) -> datetime.datetime | None:
        return self._convert(column, _to_timestamp, 'timestamp')

    def get_date(self, column: str) -> datetime.date | None:
        return self._convert(column, _to_date, 'date')

    def close(self) -> None:
        try:
            self.dbapi_cursor.close()
        except Exception as e:
            logger.debug(f'Error closing cursor: {e}')


def _to_string(value: Any) -> str:
    if isinstance(value, bytes | bytearray | memoryview):
        return bytes(value).decode()
    return str(value)


def _to_boolean(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


def _to_timestamp(value: Any) -> datetime.datetime:
    if isinstance(value, datetime.datetime):
        return value
    if isinstance(value, datetime.date):
        return datetime.datetime.combine(value, datetime.time())
    if isinstance(value, str | bytes):
        return dateutil.parser.isoparse(_to_string(value))
    raise TypeError(type(value).__name__)


def _to_date(value: Any) -> datetime.date:
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if isinstance(value, str | bytes):
        return dateutil.parser.isoparse(_to_string(value)).date()
    raise TypeError(type(value).__name__)
