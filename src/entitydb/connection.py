"""
Database connection handling with SQLAlchemy.

This module provides:
1. Engine creation and management through a thread-safe registry
2. The `Database` class, one SQLAlchemy connection owned by one logical operation
3. The `connect()` function for opening a new `Database`

A `Database` hands out prepared `Statement` objects; queries close it once
their result has been consumed. Closing is idempotent and never raises.
"""
import atexit
import logging
import sqlite3
import threading
from collections.abc import Callable
from typing import Any, Self

import sqlalchemy as sa
from entitydb.exceptions import ConnectionFailure
from entitydb.options import DatabaseOptions, load_options
from entitydb.statement import Statement
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import NullPool

__all__ = [
    'Database',
    'connect',
    'check_connection',
    'create_url_from_options',
    'get_engine_for_options',
    'dispose_all_engines',
]

logger = logging.getLogger(__name__)

_engine_registry: dict[tuple, Engine] = {}
_engine_registry_lock = threading.RLock()


def create_url_from_options(options: DatabaseOptions,
                            url_creator: Callable[..., sa.URL] = sa.URL.create) -> sa.URL:
    """Build the SQLAlchemy URL for the configured driver.

    PostgreSQL connections go through psycopg 3 and report `appname` as
    their `application_name`.
    """
    if options.drivername == 'sqlite':
        return url_creator(drivername='sqlite', database=options.database)

    if options.drivername == 'postgresql':
        query = {'application_name': options.appname}
        if options.timeout:
            query['connect_timeout'] = str(options.timeout)
        return url_creator(drivername='postgresql+psycopg',
                           username=options.username,
                           password=options.password,
                           host=options.hostname,
                           port=options.port or None,
                           database=options.database,
                           query=query)

    raise ValueError(f'Unsupported database type: {options.drivername}')


def _engine_key(options: DatabaseOptions) -> tuple:
    """Options that change the engine; the data loader and appname do not."""
    return (options.drivername, options.hostname, options.port, options.database,
            options.username, options.use_pool, options.pool_max_connections,
            options.pool_max_idle_time, options.pool_wait_timeout)


def _pool_kwargs(options: DatabaseOptions) -> dict[str, Any]:
    # Unpooled: every connect() opens a fresh DB-API connection
    if not options.use_pool:
        return {'poolclass': NullPool}
    return {
        'pool_size': options.pool_max_connections,
        'pool_recycle': options.pool_max_idle_time,
        'pool_timeout': options.pool_wait_timeout,
        'max_overflow': 10,
        'pool_pre_ping': True,
        'pool_reset_on_return': 'rollback',
    }


def get_engine_for_options(options: DatabaseOptions,
                           engine_factory: Callable[..., Engine] = sa.create_engine,
                           **kwargs: Any) -> Engine:
    """Return the registered engine for these options, creating it on first use.
    """
    key = _engine_key(options)

    with _engine_registry_lock:
        engine = _engine_registry.get(key)
        if engine is not None:
            return engine

        engine_kwargs: dict[str, Any] = {'echo': False, **_pool_kwargs(options)}
        if options.drivername == 'sqlite':
            engine_kwargs['connect_args'] = {
                'detect_types': sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES
            }
        engine_kwargs.update(kwargs)

        engine = engine_factory(create_url_from_options(options), **engine_kwargs)
        _engine_registry[key] = engine
        logger.debug(f'Created engine for {options.drivername} database {options.database} '
                     f'(pooled: {options.use_pool})')
        return engine


def dispose_all_engines() -> None:
    """Dispose and forget every registered engine.
    """
    with _engine_registry_lock:
        engines = list(_engine_registry.values())
        _engine_registry.clear()
    for engine in engines:
        engine.dispose()
    logger.debug(f'Disposed {len(engines)} engine(s)')


atexit.register(dispose_all_engines)


class Database:
    """One open connection, used and closed by a single logical operation.

    Wraps a SQLAlchemy connection and exposes its DB-API connection to the
    statements it prepares. Tracks the number of executed statements and the
    time spent in them for the close-time debug summary.
    """

    def __init__(self, sa_connection: sa.engine.Connection,
                 options: DatabaseOptions | None = None) -> None:
        self.sa_connection = sa_connection
        self.options = options
        self.dbapi_connection = sa_connection.connection
        self._dialect = sa_connection.engine.dialect.name.lower()
        self.calls = 0
        self.time = 0.0

    @classmethod
    def connect(cls, options: DatabaseOptions | dict[str, Any] | None = None,
                **kw: Any) -> 'Database':
        """Open a new connection for the given options.
        """
        options = load_options(options, **kw)
        try:
            engine = get_engine_for_options(options)
            sa_connection = engine.connect()
        except (SQLAlchemyError, sqlite3.Error, OSError) as exc:
            logger.error(f'Unable to connect to {options.drivername} database {options.database}: {exc}')
            raise ConnectionFailure(f'Unable to connect to database: {exc}') from exc
        logger.debug(f'Opened {options.drivername} connection to {options.database}')
        return cls(sa_connection, options)

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.close()

    @property
    def dialect(self) -> str:
        """Return the dialect name ('postgresql' or 'sqlite')."""
        return self._dialect

    @property
    def is_closed(self) -> bool:
        return self.sa_connection is None or self.sa_connection.closed

    def addcall(self, elapsed: float) -> None:
        """Track execution statistics
        """
        self.time += elapsed
        self.calls += 1

    def prepare(self, sql: str) -> Statement:
        """Prepare a positional statement on this connection.
        """
        if self.is_closed:
            raise ConnectionFailure('Cannot prepare a statement on a closed connection')
        return Statement(self, sql)

    def commit(self) -> None:
        self.dbapi_connection.commit()

    def close(self) -> None:
        """Close the connection. Safe to call repeatedly; errors are swallowed.
        """
        sa_connection, self.sa_connection = self.sa_connection, None
        self.dbapi_connection = None
        if sa_connection is None:
            return
        try:
            sa_connection.close()
        except Exception as e:
            logger.debug(f'Error closing connection: {e}')
            return
        logger.debug(f'Connection closed: {self.calls} queries in {self.time:.2f}s (avg: {self.time/max(1, self.calls):.3f}s per query)')


def connect(options: DatabaseOptions | dict[str, Any] | None = None, **kw: Any) -> Database:
    """Connect to a database

    Args:
        options: Can be:
                - DatabaseOptions object
                - Dictionary of options
                - Options specified as keyword arguments
        **kw: Additional keyword arguments to override options

    Returns
        Database wrapping a freshly opened connection
    """
    return Database.connect(options, **kw)


def check_connection(options: DatabaseOptions | dict[str, Any] | None = None, **kw: Any) -> None:
    """Open and immediately close a connection, raising ConnectionFailure on error.
    """
    database = connect(options, **kw)
    database.close()
