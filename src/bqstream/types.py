"""
Core types for query execution and result delivery.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional

import pyarrow as pa

from .backend.models import JobReference, TableFieldSchema

Row = List[Any]


@dataclass(frozen=True)
class QuerySpec:
    """A query to execute and how to page over its results"""

    dataset: str
    project: str
    query: str
    page_size: int = 1000
    allow_large_results: bool = False
    temp_table_name: Optional[str] = None
    temp_dataset: Optional[str] = None  # Defaults to dataset
    use_legacy_sql: bool = True

    def __post_init__(self):
        if self.page_size <= 0:
            raise ValueError(f'page_size must be positive, got {self.page_size}')
        if self.allow_large_results and not self.temp_table_name:
            raise ValueError('allow_large_results requires temp_table_name')

    @property
    def destination_dataset(self) -> str:
        return self.temp_dataset or self.dataset


@dataclass
class Page:
    """One formatted slice of a query's results"""

    headers: List[str]
    rows: List[Row]
    page_token: Optional[str] = None
    job_complete: bool = False
    job_reference: Optional[JobReference] = None
    total_rows: int = 0
    schema: List[TableFieldSchema] = field(default_factory=list)


@dataclass
class StreamEvent:
    """Payload delivered to a stream consumer for each page.

    ``headers`` is set on the first event and whenever the columns change,
    otherwise None. A terminal failure is delivered as an event whose
    ``error`` is set and whose ``rows`` is empty.
    """

    headers: Optional[List[str]] = None
    rows: List[Row] = field(default_factory=list)
    error: Optional[Exception] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass
class QueryResult:
    """Rows of every page of a query, concatenated in order.

    Unpacks like the ``(rows, headers)`` pair:

        >>> rows, headers = client.query('my_dataset', 'my-project', 'select 1 as x')
    """

    rows: List[Row] = field(default_factory=list)
    headers: List[str] = field(default_factory=list)
    schema: List[TableFieldSchema] = field(default_factory=list)
    job_reference: Optional[JobReference] = None
    page_count: int = 0

    def __iter__(self) -> Iterator:
        return iter((self.rows, self.headers))

    def __len__(self) -> int:
        return len(self.rows)

    def to_dicts(self) -> List[Dict[str, Any]]:
        """Rows as dictionaries keyed by header"""
        return [dict(zip(self.headers, row)) for row in self.rows]

    def to_arrow(self) -> pa.Table:
        """Build an Arrow table, converting cells by their BigQuery column type.

        Columns without a known schema type are kept as strings.
        """
        types = {f.name: f for f in self.schema}
        arrays = []
        fields = []
        for index, name in enumerate(self.headers):
            arrow_type, convert = _arrow_column_type(types.get(name))
            values = [None if row[index] is None else convert(row[index]) for row in self.rows]
            arrays.append(pa.array(values, type=arrow_type))
            fields.append(pa.field(name, arrow_type))
        return pa.Table.from_arrays(arrays, schema=pa.schema(fields))


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).lower() == 'true'


def _parse_timestamp(value: Any) -> datetime:
    # Timestamps arrive as float seconds since the epoch
    return datetime.fromtimestamp(float(value), tz=timezone.utc)


def _to_json(value: Any) -> str:
    return value if isinstance(value, str) else json.dumps(value)


_SCALAR_TYPES: Dict[str, tuple] = {
    'INTEGER': (pa.int64(), int),
    'INT64': (pa.int64(), int),
    'FLOAT': (pa.float64(), float),
    'FLOAT64': (pa.float64(), float),
    'BOOLEAN': (pa.bool_(), _parse_bool),
    'BOOL': (pa.bool_(), _parse_bool),
    'TIMESTAMP': (pa.timestamp('us', tz='UTC'), _parse_timestamp),
    'STRING': (pa.string(), str),
}


def _arrow_column_type(schema_field: Optional[TableFieldSchema]) -> tuple[pa.DataType, Callable[[Any], Any]]:
    if schema_field is None or schema_field.mode == 'REPEATED':
        return pa.string(), _to_json
    return _SCALAR_TYPES.get(schema_field.type.upper(), (pa.string(), _to_json))
