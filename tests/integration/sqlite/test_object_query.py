"""
End-to-end entity queries against SQLite.
"""
import pytest
from entitydb import Database, DataAccessError, ObjectQuery, QueryError
from entitydb.statement import Statement

from tests.fixtures.entities import CountryParser, ItemParser
from tests.fixtures.sqlite import ITEMS_WITH_COUNTRY


def test_get_object_by_id(sqlite_options, country_parser):
    country = (ObjectQuery(sqlite_options, 'SELECT id, name FROM country WHERE id = ?')
               .set_int(2)
               .run()
               .get_object(country_parser))

    assert country.id == 2
    assert country.name == 'Peru'


def test_get_object_no_match(sqlite_options, country_parser):
    result = (ObjectQuery(sqlite_options, 'SELECT id, name FROM country WHERE id = ?')
              .set_int(99)
              .run()
              .get_object(country_parser))
    assert result is None


def test_connection_closed_exactly_once(sqlite_options, country_parser, mocker):
    close = mocker.spy(Database, 'close')

    countries = ObjectQuery(sqlite_options, 'SELECT id, name FROM country ORDER BY id') \
        .run().get_objects(country_parser)

    assert [c.name for c in countries] == ['Scotland', 'Peru', 'Chile']
    assert close.call_count == 1


def test_get_objects_no_rows_is_none(sqlite_options, country_parser):
    result = ObjectQuery(sqlite_options, 'SELECT id, name FROM country WHERE name = ?') \
        .set_string('Atlantis').run().get_objects(country_parser)
    assert result is None


def test_items_hydrate_country_by_id_once_per_key(sqlite_options, item_parser):
    items = ObjectQuery(sqlite_options, 'SELECT * FROM item ORDER BY id').run().get_objects(item_parser)

    assert [i.name for i in items] == ['Widget', 'Gadget', 'Sprocket', 'Flange', 'Gizmo']
    assert item_parser.country_fetches == 2
    assert items[0].country is items[2].country
    assert items[1].country is items[4].country
    assert items[0].country.name == 'Scotland'
    assert items[3].country is None
    assert items[1].active is False
    assert items[3].price is None
    assert len(item_parser.countries) == 0


def test_items_hydrate_country_from_joined_columns(sqlite_options, item_parser):
    items = ObjectQuery(sqlite_options, ITEMS_WITH_COUNTRY).run().get_objects(item_parser, True)

    assert item_parser.country_fetches == 0
    assert items[0].country is items[2].country
    assert items[4].country.name == 'Peru'


def test_cache_cleared_between_fetches(sqlite_options, item_parser):
    sql = 'SELECT * FROM item WHERE country_id = ?'
    first = ObjectQuery(sqlite_options, sql).set_int(1).run().get_objects(item_parser)
    second = ObjectQuery(sqlite_options, sql).set_int(1).run().get_objects(item_parser)

    assert item_parser.country_fetches == 2
    assert first[0].country == second[0].country
    assert first[0].country is not second[0].country


def test_outer_join_rows_without_entity_are_skipped(sqlite_options, country_parser):
    sql = """
    SELECT country.id, country.name
    FROM item LEFT JOIN country ON country.id = item.country_id
    ORDER BY item.id
    """
    countries = ObjectQuery(sqlite_options, sql).run().get_objects(country_parser)
    assert [c.id for c in countries] == [1, 2, 1, 2]


def test_paginated_count_computed(sqlite_options, item_parser):
    page = (ObjectQuery(sqlite_options, 'SELECT * FROM item WHERE price > ? ORDER BY id LIMIT ? OFFSET ?')
            .set_double(3.0)
            .set_ints([2, 1])
            .run()
            .get_objects_paginated(item_parser))

    assert page.count == 3
    assert [i.name for i in page.result] == ['Sprocket', 'Gizmo']


def test_paginated_count_supplied(sqlite_options, item_parser, mocker):
    get_count = mocker.spy(Statement, 'get_count')
    page = (ObjectQuery(sqlite_options, 'SELECT * FROM item ORDER BY id LIMIT ?')
            .set_int(2)
            .set_fetches_count(42)
            .run()
            .get_objects_paginated(item_parser))

    assert page.count == 42
    assert len(page.result) == 2
    assert get_count.call_count == 0


def test_paginated_past_the_end(sqlite_options, item_parser):
    page = (ObjectQuery(sqlite_options, 'SELECT * FROM item ORDER BY id LIMIT ? OFFSET ?')
            .set_ints([10, 100])
            .run()
            .get_objects_paginated(item_parser))

    assert page.count == 5
    assert page.result is None


def test_query_error_is_raised(sqlite_options):
    with pytest.raises(QueryError, match='no such table'):
        ObjectQuery(sqlite_options, 'SELECT * FROM planet').set_auto_close_connection().run()


def test_run_only_once(sqlite_options, country_parser):
    query = ObjectQuery(sqlite_options, 'SELECT id, name FROM country')
    query.run().get_objects(country_parser)
    with pytest.raises(DataAccessError, match='already been run'):
        query.run()


def test_shared_database(sqlite_options):
    with Database.connect(sqlite_options) as database:
        query = ObjectQuery(database, 'SELECT id, name FROM country WHERE id = ?').set_int(1)
        executed = query.run()
        assert executed.has_next()
        assert CountryParser().parse(executed.cursor).name == 'Scotland'
    assert database.is_closed


def test_item_parser_with_shared_registry(sqlite_options, cache_registry):
    first = ItemParser(sqlite_options, cache_registry)
    second = ItemParser(sqlite_options, cache_registry)
    assert first.countries is second.countries
