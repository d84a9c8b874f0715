"""
Prepared positional statements.

A `Statement` collects bind values by ordinal position (1-based, matching the
order of `?` placeholders in the SQL text) and executes on its owning
`Database` connection. Driver failures are wrapped in `QueryError`; when
`auto_close_connection` is set the connection is closed before the error
propagates.
"""
import datetime
import logging
import re
import time
from collections.abc import Callable
from functools import wraps
from typing import TYPE_CHECKING, Any, NoReturn

from entitydb.cursor import DriverError, ResultCursor
from entitydb.exceptions import QueryError
from entitydb.sql import count_placeholders, make_count_query
from entitydb.sql import standardize_placeholders

if TYPE_CHECKING:
    from entitydb.connection import Database

__all__ = ['Statement']

logger = logging.getLogger(__name__)

_INSERT = re.compile(r'^\s*(INSERT|REPLACE)\b', re.IGNORECASE)


def dumpsql(func):
    """Decorator for logging SQL statements and their bound parameters."""
    @wraps(func)
    def wrapper(self, *args: Any, **kwargs: Any):
        start = time.time()
        logger.debug(f'SQL:\n{self.sql}\nargs: {self.bound_values()}')
        try:
            return func(self, *args, **kwargs)
        except Exception:
            logger.error(f'Error with query:\nSQL:\n{self.sql}\nargs: {self.bound_values()}')
            raise
        finally:
            elapsed = time.time() - start
            self.database.addcall(elapsed)
            logger.debug(f'Query time: {elapsed:.4f}s')
    return wrapper


class Statement:
    """A SQL statement bound to one connection, with positional parameters.
    """

    def __init__(self, database: 'Database', sql: str) -> None:
        self.database = database
        self.sql = sql
        self.params: dict[int, Any] = {}
        self.auto_close_connection = False

    def _fail(self, message: str, exc: BaseException | None = None) -> NoReturn:
        if self.auto_close_connection:
            self.database.close()
        raise QueryError(message) from exc

    # Binding

    def bind(self, position: int, value: Any) -> None:
        """Bind a value as-is at the given 1-based position.
        """
        if not isinstance(position, int) or position < 1:
            self._fail(f'Invalid parameter position: {position!r}')
        self.params[position] = value

    def _bind_as(self, position: int, value: Any, func: Callable[[Any], Any], kind: str) -> None:
        if value is not None:
            try:
                value = func(value)
            except (TypeError, ValueError) as exc:
                self._fail(f'Cannot bind {value!r} as {kind} at position {position}', exc)
        self.bind(position, value)

    def bind_int(self, position: int, value: Any) -> None:
        self._bind_as(position, value, int, 'integer')

    bind_long = bind_int

    def bind_string(self, position: int, value: Any) -> None:
        self._bind_as(position, value, str, 'string')

    def bind_double(self, position: int, value: Any) -> None:
        self._bind_as(position, value, float, 'double')

    def bind_boolean(self, position: int, value: Any) -> None:
        self._bind_as(position, value, _to_boolean, 'boolean')

    def bind_timestamp(self, position: int, value: Any) -> None:
        self._bind_as(position, value, _to_timestamp, 'timestamp')

    def bind_date(self, position: int, value: Any) -> None:
        self._bind_as(position, value, _to_date, 'date')

    def bind_null(self, position: int) -> None:
        self.bind(position, None)

    def bound_values(self) -> list[Any]:
        return [self.params[i] for i in sorted(self.params)]

    def _args(self) -> tuple:
        """Bound values in placeholder order; every placeholder must be bound exactly once.
        """
        expected = count_placeholders(self.sql)
        positions = sorted(self.params)
        if positions != list(range(1, expected + 1)):
            missing = sorted(set(range(1, expected + 1)) - set(positions))
            extra = [p for p in positions if p > expected]
            self._fail(f'Statement has {expected} placeholder(s); '
                       f'unbound positions {missing}, positions without placeholder {extra}')
        return tuple(self.params[i] for i in positions)

    # Execution

    def _execute(self, sql: str, args: tuple) -> Any:
        if self.database.is_closed:
            self._fail('Cannot execute a statement on a closed connection')
        sql = standardize_placeholders(sql, self.database.dialect)
        cursor = self.database.dbapi_connection.cursor()
        try:
            if args:
                cursor.execute(sql, args)
            else:
                cursor.execute(sql)
        except DriverError as exc:
            _close_quietly(cursor)
            self._fail(f'Error executing statement: {exc}', exc)
        return cursor

    @dumpsql
    def query(self) -> ResultCursor:
        """Run a row-returning statement and return a cursor over its result.
        """
        return ResultCursor(self._execute(self.sql, self._args()))

    @dumpsql
    def execute(self) -> list[int]:
        """Run a statement and return database-generated keys in generation order.

        Keys come from the rows the statement returns (`INSERT ... RETURNING id`)
        or, for SQLite inserts without RETURNING, from the last inserted rowid.
        The statement is closed afterwards; the connection stays open.
        """
        cursor = self._execute(self.sql, self._args())
        try:
            if cursor.description is not None:
                ids = [int(row[0]) for row in cursor.fetchall() if row[0] is not None]
            else:
                ids = self._last_row_ids(cursor)
            self.database.commit()
        except DriverError as exc:
            self._fail(f'Error collecting generated keys: {exc}', exc)
        finally:
            _close_quietly(cursor)
        logger.debug(f'Statement generated {len(ids)} key(s)')
        return ids

    def _last_row_ids(self, cursor: Any) -> list[int]:
        lastrowid = getattr(cursor, 'lastrowid', None)
        if not lastrowid or cursor.rowcount is None or cursor.rowcount < 1:
            return []
        if not _INSERT.match(self.sql):
            return []
        return list(range(lastrowid - cursor.rowcount + 1, lastrowid + 1))

    @dumpsql
    def execute_update(self) -> int:
        """Run a statement and return the number of affected rows.
        """
        cursor = self._execute(self.sql, self._args())
        try:
            rowcount = cursor.rowcount
            self.database.commit()
        except DriverError as exc:
            self._fail(f'Error committing statement: {exc}', exc)
        finally:
            _close_quietly(cursor)
        return rowcount

    def get_count(self) -> int:
        """Total number of rows the statement matches, ignoring LIMIT/OFFSET.

        Runs a separate COUNT(*) over the statement with its trailing
        LIMIT/OFFSET clause removed, reusing the bound values that precede it.
        """
        count_sql, dropped = make_count_query(self.sql)
        args = self._args()
        if dropped:
            args = args[:-dropped]
        start = time.time()
        logger.debug(f'SQL:\n{count_sql}\nargs: {list(args)}')
        cursor = self._execute(count_sql, args)
        try:
            row = cursor.fetchone()
        except DriverError as exc:
            self._fail(f'Error reading row count: {exc}', exc)
        finally:
            _close_quietly(cursor)
            self.database.addcall(time.time() - start)
        return int(row[0]) if row else 0

    def string_representation(self) -> str:
        return f'{self.sql} -- args: {self.bound_values()}'

    def __str__(self) -> str:
        return self.string_representation()


def _close_quietly(cursor: Any) -> None:
    try:
        cursor.close()
    except Exception as e:
        logger.debug(f'Error closing cursor: {e}')


def _to_boolean(value: Any) -> bool:
    if isinstance(value, str):
        raise ValueError('strings are not booleans')
    return bool(value)


def _to_timestamp(value: Any) -> datetime.datetime:
    if isinstance(value, datetime.datetime):
        return value
    if isinstance(value, datetime.date):
        return datetime.datetime.combine(value, datetime.time())
    raise TypeError(type(value).__name__)


def _to_date(value: Any) -> datetime.date:
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    raise TypeError(type(value).__name__)
