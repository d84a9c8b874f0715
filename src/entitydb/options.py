import pathlib
import sys
from collections.abc import Callable, Mapping
from dataclasses import dataclass, fields, replace
from typing import Any

import pandas as pd
import pyarrow as pa

__all__ = [
    'DatabaseOptions',
    'load_options',
    'pandas_numpy_data_loader',
    'pandas_pyarrow_data_loader',
    'iterdict_data_loader',
]

SUPPORTED_DRIVERS = ('postgresql', 'sqlite')


def iterdict_data_loader(data, columns, **kwargs) -> list[dict]:
    """Minimal data loader.
    """
    if not data:
        return []
    return [dict(row) for row in data]


def _empty_dataframe(columns) -> pd.DataFrame:
    return pd.DataFrame(columns=list(columns))


def pandas_numpy_data_loader(data, columns, **kwargs) -> pd.DataFrame:
    """Standard pandas DataFrame loader using NumPy.

    Always returns a DataFrame, never None, with columns preserved for empty results.
    """
    if not data:
        return _empty_dataframe(columns)

    return pd.DataFrame.from_records(list(data), columns=list(columns))


def pandas_pyarrow_data_loader(data, columns, **kwargs) -> pd.DataFrame:
    """PyArrow-based pandas DataFrame loader.

    Always returns a DataFrame, never None, with columns preserved for empty results.
    """
    if not data:
        return _empty_dataframe(columns)

    column_names = list(columns)
    columns_data = [[row[col] for row in data] for col in column_names]
    return pa.table(columns_data, names=column_names).to_pandas(types_mapper=pd.ArrowDtype)


def _scriptname() -> str | None:
    if not sys.argv or not sys.argv[0]:
        return None
    return pathlib.Path(sys.argv[0]).stem or None


@dataclass
class DatabaseOptions:
    """Options

    supported driver names: `postgresql`, `sqlite`

    Connection pooling options:
    - use_pool: Whether to use connection pooling (default: False)
    - pool_max_connections: Maximum connections in pool (default: 5)
    - pool_max_idle_time: Maximum seconds a connection can be idle (default: 300)
    - pool_wait_timeout: Maximum seconds to wait for a connection (default: 30)
    """
    drivername: str = 'postgresql'
    hostname: str = None
    username: str = None
    password: str = None
    database: str = None
    port: int = 0
    timeout: int = 0
    appname: str = None
    data_loader: Callable[..., Any] | None = None
    # Connection pooling parameters
    use_pool: bool = False
    pool_max_connections: int = 5
    pool_max_idle_time: int = 300
    pool_wait_timeout: int = 30

    def __post_init__(self):
        if self.drivername not in SUPPORTED_DRIVERS:
            raise ValueError(f'drivername must be one of: {list(SUPPORTED_DRIVERS)}')
        if not self.database:
            raise ValueError(f'database is required for {self.drivername}')
        if self.drivername == 'postgresql' and not (self.hostname and self.username):
            raise ValueError('hostname and username are required for postgresql')
        self.appname = self.appname or _scriptname() or 'python_console'
        if self.data_loader is None:
            self.data_loader = pandas_numpy_data_loader


def load_options(options: DatabaseOptions | Mapping[str, Any] | None = None,
                 **kw: Any) -> DatabaseOptions:
    """Build DatabaseOptions from an instance, a mapping, or keyword arguments.

    Keyword arguments override the instance or mapping entries; an instance
    is copied, never modified. Unknown keys are ignored.
    """
    names = {f.name for f in fields(DatabaseOptions)}
    if isinstance(options, DatabaseOptions):
        overrides = {k: v for k, v in kw.items() if k in names}
        return replace(options, **overrides) if overrides else options

    values = dict(options or {})
    values.update(kw)
    return DatabaseOptions(**{k: v for k, v in values.items() if k in names})
