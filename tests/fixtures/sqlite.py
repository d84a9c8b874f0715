"""
Fixtures for SQLite-backed tests.

Each test gets its own database file. Every query opens and closes its own
connection, so an in-memory database would not survive between queries.
"""
import pytest
from entitydb import DatabaseOptions, ValueQuery
from entitydb.options import iterdict_data_loader

SCHEMA = [
    """
    CREATE TABLE country (
        id INTEGER PRIMARY KEY,
        name TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE item (
        id INTEGER PRIMARY KEY,
        name TEXT NOT NULL,
        price REAL,
        active BOOLEAN NOT NULL DEFAULT 1,
        country_id INTEGER REFERENCES country (id),
        created_on TIMESTAMP
    )
    """,
    "INSERT INTO country (id, name) VALUES (1, 'Scotland'), (2, 'Peru'), (3, 'Chile')",
    """
    INSERT INTO item (id, name, price, active, country_id, created_on) VALUES
    (1, 'Widget', 2.5, 1, 1, '2024-03-01 10:00:00'),
    (2, 'Gadget', 10.0, 0, 2, '2024-03-02 11:30:00'),
    (3, 'Sprocket', 4.75, 1, 1, '2024-03-03 09:15:00'),
    (4, 'Flange', NULL, 1, NULL, NULL),
    (5, 'Gizmo', 7.0, 1, 2, '2024-03-05 16:45:00')
    """,
]

ITEMS_WITH_COUNTRY = """
SELECT item.id, item.name, item.price, item.active, item.country_id,
       country.name AS country_name
FROM item LEFT JOIN country ON country.id = item.country_id
ORDER BY item.id
"""


@pytest.fixture
def sqlite_options(tmp_path):
    """Options for a populated SQLite database file."""
    options = DatabaseOptions(drivername='sqlite', database=str(tmp_path / 'items.db'))
    for sql in SCHEMA:
        ValueQuery(options, sql).execute_update()
    return options


@pytest.fixture
def sqlite_dict_options(sqlite_options):
    """Same database, loading frames as plain lists of dicts."""
    return DatabaseOptions(drivername='sqlite', database=sqlite_options.database,
                           data_loader=iterdict_data_loader)
