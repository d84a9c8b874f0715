"""
Unit tests for typed column access on result cursors.
"""
import datetime
import sqlite3

import pytest
from entitydb.cursor import ResultCursor
from entitydb.exceptions import QueryError

from tests.fixtures.mocks import FakeDbapiCursor


def test_next_walks_rows_then_closes(result_cursor):
    cursor = result_cursor(['id'], [(1,), (2,)])

    assert cursor.next()
    assert cursor.get_int('id') == 1
    assert cursor.next()
    assert cursor.get_int('id') == 2
    assert not cursor.next()
    assert cursor.exhausted
    assert cursor.dbapi_cursor.close_calls == 1
    assert not cursor.next()


def test_rows_are_fetched_in_chunks():
    dbapi_cursor = FakeDbapiCursor(['id'], [(i,) for i in range(7)])
    cursor = ResultCursor(dbapi_cursor, fetch_size=3)

    values = []
    while cursor.next():
        values.append(cursor.get_int('id'))

    assert values == list(range(7))


def test_column_lookup_is_case_insensitive(result_cursor):
    cursor = result_cursor(['Id', 'NAME'], [(1, 'Widget')])
    cursor.next()

    assert cursor.get_int('id') == 1
    assert cursor.get_string('name') == 'Widget'
    assert cursor['NAME'] == 'Widget'
    assert cursor.has_column('nAmE')
    assert not cursor.has_column('price')


def test_exact_match_wins_over_folded(result_cursor):
    cursor = result_cursor(['name', 'NAME'], [('lower', 'upper')])
    cursor.next()

    assert cursor.get_string('NAME') == 'upper'
    assert cursor.get_string('Name') == 'lower'


def test_unknown_column(result_cursor):
    cursor = result_cursor(['id'], [(1,)])
    cursor.next()
    with pytest.raises(QueryError, match='Unknown column: price'):
        cursor.get_value('price')


def test_value_before_next(result_cursor):
    cursor = result_cursor(['id'], [(1,)])
    with pytest.raises(QueryError, match='No current row'):
        cursor.get_value('id')


def test_null_is_none_for_every_getter(result_cursor):
    cursor = result_cursor(['v'], [(None,)])
    cursor.next()
    for getter in ('get_string', 'get_int', 'get_long', 'get_double', 'get_float',
                   'get_boolean', 'get_timestamp', 'get_date'):
        assert getattr(cursor, getter)('v') is None


@pytest.mark.parametrize(('getter', 'raw', 'expected'), [
    ('get_string', b'bytes', 'bytes'),
    ('get_string', 12, '12'),
    ('get_int', '42', 42),
    ('get_double', 3, 3.0),
    ('get_boolean', 1, True),
    ('get_boolean', 'false', False),
    ('get_boolean', 'yes', True),
    ('get_timestamp', '2024-03-01 10:00:00', datetime.datetime(2024, 3, 1, 10, 0)),
    ('get_timestamp', datetime.date(2024, 3, 1), datetime.datetime(2024, 3, 1)),
    ('get_date', '2024-03-01 10:00:00', datetime.date(2024, 3, 1)),
    ('get_date', datetime.datetime(2024, 3, 1, 10, 0), datetime.date(2024, 3, 1)),
], ids=['bytes', 'int_to_string', 'str_to_int', 'int_to_double', 'int_bool', 'str_false',
        'str_yes', 'str_timestamp', 'date_timestamp', 'str_date', 'datetime_date'])
def test_typed_getters(result_cursor, getter, raw, expected):
    cursor = result_cursor(['v'], [(raw,)])
    cursor.next()
    assert getattr(cursor, getter)('v') == expected


def test_conversion_error(result_cursor):
    cursor = result_cursor(['v'], [('abc',)])
    cursor.next()
    with pytest.raises(QueryError, match='not a valid integer'):
        cursor.get_int('v')


def test_row_dict(result_cursor):
    cursor = result_cursor(['id', 'name'], [(1, 'Widget')])
    cursor.next()
    assert cursor.row_dict() == {'id': 1, 'name': 'Widget'}


def test_driver_error_while_fetching(mocker):
    dbapi_cursor = mocker.Mock()
    dbapi_cursor.description = [('id',)]
    dbapi_cursor.fetchmany.side_effect = sqlite3.OperationalError('database is locked')
    cursor = ResultCursor(dbapi_cursor)

    with pytest.raises(QueryError, match='database is locked'):
        cursor.next()
    assert not cursor.next()
