"""bqstream - BigQuery client with paged and streaming result delivery."""

from bqstream.client import Client
from bqstream.config import ClientConfig
from bqstream.errors import AuthError, BackendError, FormatError, InsertError
from bqstream.streaming import StreamChannel
from bqstream.types import QueryResult, QuerySpec, StreamEvent

__all__ = [
    'Client',
    'ClientConfig',
    'StreamChannel',
    'QueryResult',
    'QuerySpec',
    'StreamEvent',
    'AuthError',
    'BackendError',
    'FormatError',
    'InsertError',
]
