"""
Data-access exception classes.
"""
import sqlite3

import psycopg


class DataAccessError(Exception):
    """Base class for every failure raised by this package.
    """


class ConnectionFailure(DataAccessError):
    """Error establishing or maintaining a database connection.
    """


class QueryError(DataAccessError):
    """Error preparing, binding or executing a statement.
    """


DbConnectionError = (
    psycopg.OperationalError,
    psycopg.InterfaceError,
    sqlite3.OperationalError,
    sqlite3.InterfaceError,
    ConnectionFailure,
    )

IntegrityError = (
    psycopg.IntegrityError,
    sqlite3.IntegrityError,
    )

ProgrammingError = (
    psycopg.ProgrammingError,
    psycopg.DatabaseError,
    sqlite3.ProgrammingError,
    sqlite3.DatabaseError,
    QueryError,
    )

OperationalError = (
    psycopg.OperationalError,
    sqlite3.OperationalError,
    )
