"""
Shapes backend tabular responses into headers and rows.
"""

from typing import List, Optional

from .backend.models import TableFieldSchema, TableSchema, TabularResponse
from .errors import FormatError
from .types import Page


def headers_for(schema: Optional[TableSchema]) -> List[str]:
    """Column names in schema order; empty when the response has no schema."""
    if schema is None:
        return []
    return [field.name for field in schema.fields]


def format_page(
    response: TabularResponse,
    row_limit: Optional[int] = None,
    schema: Optional[List[TableFieldSchema]] = None,
) -> Page:
    """
    Convert one backend response into a Page.

    Args:
        response: jobs.query or jobs.getQueryResults reply
        row_limit: Number of rows to take; defaults to every row in the response
        schema: Columns to use when the response carries no schema of its own

    Returns:
        Page with headers in schema order and each row's cell values in that order

    Raises:
        FormatError: If row_limit exceeds the rows present, rows arrive with
            no schema to read them by, or a row is missing declared cells
    """
    available = len(response.rows)
    if row_limit is None:
        row_limit = available
    if row_limit < 0:
        raise FormatError(f'Row limit must not be negative, got {row_limit}')
    if row_limit > available:
        raise FormatError(f'Requested {row_limit} rows but response only contains {available}')

    if response.table_schema is not None:
        fields = list(response.table_schema.fields)
    else:
        fields = list(schema or [])

    headers = [field.name for field in fields]
    if row_limit and not headers:
        raise FormatError(f'Response has {available} rows but no schema')

    num_columns = len(headers)
    rows = []
    for index, raw_row in enumerate(response.rows[:row_limit]):
        if len(raw_row.f) < num_columns:
            raise FormatError(f'Row {index} has {len(raw_row.f)} cells, schema declares {num_columns} columns')
        rows.append([raw_row.f[c].v for c in range(num_columns)])

    return Page(
        headers=headers,
        rows=rows,
        page_token=response.page_token,
        job_complete=response.job_complete,
        job_reference=response.job_reference,
        total_rows=response.total_rows,
        schema=fields,
    )
