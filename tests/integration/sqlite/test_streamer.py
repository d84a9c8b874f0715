"""
Streaming entities from SQLite.
"""
from entitydb import Database, ObjectQuery

from tests.fixtures.sqlite import ITEMS_WITH_COUNTRY


def test_stream_all_items(sqlite_options, item_parser):
    stream = ObjectQuery(sqlite_options, 'SELECT * FROM item ORDER BY id').get_streamer(item_parser)

    names = []
    while (item := stream.next()) is not None:
        names.append(item.name)

    assert names == ['Widget', 'Gadget', 'Sprocket', 'Flange', 'Gizmo']
    assert stream.closed
    assert stream.next() is None


def test_stream_reuses_cached_foreigns(sqlite_options, item_parser):
    with ObjectQuery(sqlite_options, ITEMS_WITH_COUNTRY).get_streamer(item_parser, True) as stream:
        items = list(stream)

    assert len(items) == 5
    assert items[0].country is items[2].country
    assert item_parser.country_fetches == 0


def test_stream_closed_early(sqlite_options, country_parser, mocker):
    close = mocker.spy(Database, 'close')
    stream = ObjectQuery(sqlite_options, 'SELECT id, name FROM country ORDER BY id') \
        .get_streamer(country_parser)

    assert stream.next().name == 'Scotland'
    stream.close()
    stream.close()

    assert stream.next() is None
    assert close.call_count == 1


def test_stream_empty(sqlite_options, country_parser):
    stream = ObjectQuery(sqlite_options, 'SELECT id, name FROM country WHERE id > ?') \
        .set_int(100).get_streamer(country_parser)
    assert list(stream) == []
    assert stream.closed
