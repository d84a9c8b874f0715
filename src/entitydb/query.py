"""
Query execution wrappers.

A query owns one `Database` connection and one prepared `Statement`. Values
are bound by ordinal position in call order (the first setter binds the first
`?`), every setter returns the query so calls chain:

    items = (ObjectQuery(options, 'SELECT * FROM item WHERE kind = ? AND price < ?')
             .set_string('tool')
             .set_double(9.5)
             .run()
             .get_objects(ItemParser(caches)))

`run()` executes the statement once and returns an executed query whose
accessors consume the result and close the connection exactly once, whether a
row was found, none was, or parsing failed.
"""
import logging
import sys
from collections.abc import Callable, Iterable
from typing import IO, Any, Generic, Self, TypeVar

from entitydb.connection import Database
from entitydb.cursor import ResultCursor
from entitydb.entity import PaginatedResult
from entitydb.exceptions import DataAccessError
from entitydb.options import DatabaseOptions, pandas_numpy_data_loader
from entitydb.parser import EntityParser
from entitydb.statement import Statement
from entitydb.streamer import ObjectStreamer
from more_itertools import always_iterable

__all__ = [
    'BaseQuery',
    'ObjectQuery',
    'ExecutedObjectQuery',
    'ValueQuery',
    'ExecutedValueQuery',
]

logger = logging.getLogger(__name__)

T = TypeVar('T')

NOT_RUN_MESSAGE = 'You need to run the query before requesting result values!'


class BaseQuery:
    """Statement plus ordinal parameter binding shared by every query type.

    `database` is either an open `Database` or anything `connect()` accepts,
    in which case a new connection is opened for this query.
    """

    def __init__(self, database: Database | DatabaseOptions | dict[str, Any],
                 sql: str) -> None:
        self.sql = sql
        if isinstance(database, Database):
            self.database = database
        else:
            self.database = Database.connect(database)
        self.position = 1
        self.stmt: Statement = self.database.prepare(sql)
        self._has_run = False

    def _set(self, binder: Callable[[int, Any], None], value: Any) -> Self:
        binder(self.position, value)
        self.position += 1
        return self

    def _set_all(self, binder: Callable[[int, Any], None], values: Iterable[Any]) -> Self:
        for value in always_iterable(values):
            self._set(binder, value)
        return self

    def set_int(self, value: int | None) -> Self:
        return self._set(self.stmt.bind_int, value)

    def set_ints(self, values: Iterable[int]) -> Self:
        return self._set_all(self.stmt.bind_int, values)

    def set_long(self, value: int | None) -> Self:
        return self._set(self.stmt.bind_long, value)

    def set_longs(self, values: Iterable[int]) -> Self:
        return self._set_all(self.stmt.bind_long, values)

    def set_string(self, value: str | None) -> Self:
        return self._set(self.stmt.bind_string, value)

    def set_strings(self, values: Iterable[str]) -> Self:
        return self._set_all(self.stmt.bind_string, values)

    def set_double(self, value: float | None) -> Self:
        return self._set(self.stmt.bind_double, value)

    def set_doubles(self, values: Iterable[float]) -> Self:
        return self._set_all(self.stmt.bind_double, values)

    def set_boolean(self, value: bool | None) -> Self:
        return self._set(self.stmt.bind_boolean, value)

    def set_booleans(self, values: Iterable[bool]) -> Self:
        return self._set_all(self.stmt.bind_boolean, values)

    def set_timestamp(self, value: Any) -> Self:
        return self._set(self.stmt.bind_timestamp, value)

    def set_timestamps(self, values: Iterable[Any]) -> Self:
        return self._set_all(self.stmt.bind_timestamp, values)

    def set_date(self, value: Any) -> Self:
        return self._set(self.stmt.bind_date, value)

    def set_dates(self, values: Iterable[Any]) -> Self:
        return self._set_all(self.stmt.bind_date, values)

    def set_null(self) -> Self:
        self.stmt.bind_null(self.position)
        self.position += 1
        return self

    def set_nulls(self, count: int) -> Self:
        for _ in range(count):
            self.set_null()
        return self

    def set_auto_close_connection(self, auto_close: bool = True) -> Self:
        """Close the connection before any bind or execution error propagates.
        """
        self.stmt.auto_close_connection = auto_close
        return self

    def _mark_run(self) -> None:
        if self._has_run:
            raise DataAccessError('Query has already been run')
        self._has_run = True

    def string_representation(self) -> str:
        return self.stmt.string_representation()

    def print_to(self, out: IO[str] | None = None) -> Self:
        print(self.string_representation(), file=out or sys.stdout)
        return self

    def close_database(self) -> None:
        self.database.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.close_database()


class ObjectQuery(BaseQuery, Generic[T]):
    """Query whose rows are parsed into entities.
    """

    def __init__(self, database: Database | DatabaseOptions | dict[str, Any],
                 sql: str) -> None:
        super().__init__(database, sql)
        self.previous_count: int | None = None

    def set_fetches_count(self, previous_count: int | None = None) -> Self:
        """Supply the total row count for paginated results.

        With None (the default) the total is counted by the database when
        `get_objects_paginated` runs.
        """
        self.previous_count = previous_count
        return self

    def run(self) -> 'ExecutedObjectQuery[T]':
        self._mark_run()
        cursor = self.stmt.query()
        return ExecutedObjectQuery(self.database, cursor, self.previous_count, self.stmt)

    def get_streamer(self, parser: EntityParser[T],
                     foreigns_from_result_set: bool = False) -> ObjectStreamer[T]:
        """Run the query and stream its entities lazily.
        """
        self._mark_run()
        return ObjectStreamer(self.database, self.stmt, parser, foreigns_from_result_set)


class ExecutedObjectQuery(Generic[T]):
    """Result of an `ObjectQuery` run, consumed by exactly one accessor.
    """

    def __init__(self, database: Database, cursor: ResultCursor | None,
                 previous_count: int | None = None,
                 statement: Statement | None = None) -> None:
        self.database = database
        self.cursor = cursor
        self.previous_count = previous_count
        self.statement = statement

    def _check_result(self) -> None:
        if self.cursor is None:
            self.database.close()
            raise DataAccessError(NOT_RUN_MESSAGE)

    def get_object(self, parser: EntityParser[T],
                   foreigns_from_result_set: bool = False) -> T | None:
        """Parse the first row, or return None when there is none.
        """
        self._check_result()
        try:
            if self.cursor.next():
                return parser.parse(self.cursor, foreigns_from_result_set)
            return None
        finally:
            self.database.close()

    def get_objects(self, parser: EntityParser[T],
                    foreigns_from_result_set: bool = False) -> list[T] | None:
        """Parse every row in order, skipping rows that parse to None.

        Returns None (not an empty list) when the query produced no rows.
        """
        self._check_result()
        try:
            return self._collect(parser, foreigns_from_result_set)
        finally:
            self.database.close()

    def get_objects_paginated(self, parser: EntityParser[T],
                              foreigns_from_result_set: bool = False) -> PaginatedResult[list[T]]:
        """Like `get_objects`, paired with the total number of matching rows.

        The total is the count given to `set_fetches_count`, or when none was
        given, a COUNT(*) of the statement without its LIMIT/OFFSET.
        """
        self._check_result()
        try:
            result = self._collect(parser, foreigns_from_result_set)
            if self.previous_count is not None:
                count = self.previous_count
            elif self.statement is not None:
                count = self.statement.get_count()
            else:
                raise DataAccessError('No statement available to count rows')
            return PaginatedResult(count, result)
        finally:
            self.database.close()

    def _collect(self, parser: EntityParser[T], foreigns_from_result_set: bool) -> list[T] | None:
        result = None
        parser.clear_cache()
        try:
            while self.cursor.next():
                if result is None:
                    result = []
                obj = parser.parse(self.cursor, foreigns_from_result_set)
                if obj is not None:
                    result.append(obj)
        finally:
            parser.clear_cache()
        logger.debug(f'Parsed {len(result) if result is not None else 0} object(s)')
        return result

    def has_next(self) -> bool:
        """Advance the cursor; True if a row was available.
        """
        self._check_result()
        return self.cursor.next()


class ValueQuery(BaseQuery):
    """Query for scalar values, or a statement that returns no rows.
    """

    def execute(self) -> list[int]:
        """Run the statement and return the generated keys, then close the connection.
        """
        self._mark_run()
        ids = self.stmt.execute()
        self.database.close()
        return ids

    def execute_update(self) -> int:
        """Run the statement and return the affected row count, then close the connection.
        """
        self._mark_run()
        rowcount = self.stmt.execute_update()
        self.database.close()
        return rowcount

    def run(self, column: str | None = None) -> 'ExecutedValueQuery':
        """Run the query, reading values from `column` (the first column when omitted).
        """
        self._mark_run()
        return ExecutedValueQuery(column, self.database, self.stmt.query())


class ExecutedValueQuery:
    """Result of a `ValueQuery` run.

    Singular getters read the first row and return `fallback` (None unless
    given) when there is no row. Plural getters read every row and return None
    when there are none. Every getter closes the connection.
    """

    def __init__(self, column: str | None, database: Database,
                 cursor: ResultCursor | None) -> None:
        self.column = column
        self.database = database
        self.cursor = cursor

    def _check_result(self) -> None:
        if self.cursor is None:
            self.database.close()
            raise DataAccessError(NOT_RUN_MESSAGE)

    def _column(self) -> str:
        if self.column is not None:
            return self.column
        names = self.cursor.column_names()
        if not names:
            raise DataAccessError('Query returned no columns')
        return names[0]

    def _single(self, getter: str, fallback: Any) -> Any:
        self._check_result()
        try:
            if self.cursor.next():
                return getattr(self.cursor, getter)(self._column())
            return fallback
        finally:
            self.database.close()

    def _all(self, getter: str) -> list[Any] | None:
        self._check_result()
        try:
            result = None
            while self.cursor.next():
                if result is None:
                    result = []
                result.append(getattr(self.cursor, getter)(self._column()))
            return result
        finally:
            self.database.close()

    def get_string(self, fallback: str | None = None) -> str | None:
        return self._single('get_string', fallback)

    def get_strings(self) -> list[str] | None:
        return self._all('get_string')

    def get_int(self, fallback: int | None = None) -> int | None:
        return self._single('get_int', fallback)

    def get_ints(self) -> list[int] | None:
        return self._all('get_int')

    def get_long(self, fallback: int | None = None) -> int | None:
        return self._single('get_long', fallback)

    def get_longs(self) -> list[int] | None:
        return self._all('get_long')

    def get_double(self, fallback: float | None = None) -> float | None:
        return self._single('get_double', fallback)

    def get_doubles(self) -> list[float] | None:
        return self._all('get_double')

    def get_float(self, fallback: float | None = None) -> float | None:
        return self._single('get_float', fallback)

    def get_floats(self) -> list[float] | None:
        return self._all('get_float')

    def get_boolean(self, fallback: bool | None = None) -> bool | None:
        return self._single('get_boolean', fallback)

    def get_booleans(self) -> list[bool] | None:
        return self._all('get_boolean')

    def get_column_names(self) -> list[str]:
        self._check_result()
        return self.cursor.column_names()

    def get_frame(self) -> Any:
        """Load the remaining rows through the connection's data loader.

        Returns a pandas DataFrame with the default loader, keeping the column
        names when there are no rows.
        """
        self._check_result()
        try:
            rows = []
            while self.cursor.next():
                rows.append(self.cursor.row_dict())
            options = self.database.options
            data_loader = options.data_loader if options else pandas_numpy_data_loader
            return data_loader(rows, self.cursor.column_names())
        finally:
            self.database.close()

    def has_next(self) -> bool:
        """Advance the cursor; True if a row was available.
        """
        self._check_result()
        return self.cursor.next()
