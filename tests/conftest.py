import pytest
from entitydb.connection import dispose_all_engines


@pytest.fixture(autouse=True)
def dispose_engines():
    """Dispose cached engines after each test so file databases are released."""
    yield
    dispose_all_engines()


pytest_plugins = [
    'tests.fixtures.entities',
    'tests.fixtures.mocks',
    'tests.fixtures.postgres',
    'tests.fixtures.sqlite',
]
