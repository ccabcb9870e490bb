"""Query service backend: abstract interface, wire models and REST implementation."""

from .base import CREATE_IF_NEEDED, WRITE_TRUNCATE, QueryBackend
from .models import (
    GetQueryResultsResponse,
    InsertAllResponse,
    Job,
    JobReference,
    QueryResponse,
    Table,
    TableFieldSchema,
    TableReference,
    TableSchema,
    TabularResponse,
)
from .resilience import RetryConfig
from .rest import RestQueryBackend

__all__ = [
    'QueryBackend',
    'RestQueryBackend',
    'RetryConfig',
    'TabularResponse',
    'QueryResponse',
    'GetQueryResultsResponse',
    'Job',
    'JobReference',
    'InsertAllResponse',
    'Table',
    'TableFieldSchema',
    'TableReference',
    'TableSchema',
    'WRITE_TRUNCATE',
    'CREATE_IF_NEEDED',
]
