"""
Data-access layer that hydrates typed entities from parameterized SQL.

Queries bind values by position, run once, and hand back a single entity, a
list, a paginated list, a lazy stream, or scalar values:

- ObjectQuery(db, sql).set_int(5).run().get_object(parser)
- ObjectQuery(db, sql).run().get_objects(parser)
- ObjectQuery(db, sql).set_fetches_count(None).run().get_objects_paginated(parser)
- ObjectQuery(db, sql).get_streamer(parser)
- ValueQuery(db, sql).run('name').get_string()

Foreign entities are deduplicated through per-type identity caches owned by
a CacheRegistry and registered on the parsers that read them.
"""
__version__ = '0.1.0'

from entitydb.cache import CacheRegistry, IdentityCache
from entitydb.connection import Database, check_connection, connect
from entitydb.connection import dispose_all_engines
from entitydb.cursor import ResultCursor
from entitydb.entity import DatabaseObject, PaginatedResult
from entitydb.exceptions import ConnectionFailure, DataAccessError
from entitydb.exceptions import DbConnectionError, IntegrityError
from entitydb.exceptions import OperationalError, ProgrammingError, QueryError
from entitydb.options import DatabaseOptions, load_options
from entitydb.parser import EntityParser, FunctionParser
from entitydb.query import ExecutedObjectQuery, ExecutedValueQuery
from entitydb.query import ObjectQuery, ValueQuery
from entitydb.statement import Statement
from entitydb.streamer import BaseStreamer, ObjectStreamer

__all__ = [
    'connect',
    'check_connection',
    'dispose_all_engines',
    'Database',
    'DatabaseOptions',
    'load_options',
    'Statement',
    'ResultCursor',
    'DatabaseObject',
    'PaginatedResult',
    'IdentityCache',
    'CacheRegistry',
    'EntityParser',
    'FunctionParser',
    'ObjectQuery',
    'ExecutedObjectQuery',
    'ValueQuery',
    'ExecutedValueQuery',
    'BaseStreamer',
    'ObjectStreamer',
    'DataAccessError',
    'ConnectionFailure',
    'QueryError',
    'DbConnectionError',
    'IntegrityError',
    'ProgrammingError',
    'OperationalError',
]
