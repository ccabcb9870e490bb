import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .auth.models import AccessToken
from .auth.service import CredentialSession, TokenExchanger
from .backend.base import QueryBackend
from .backend.models import TableFieldSchema, TableSchema
from .backend.rest import RestQueryBackend
from .config import ClientConfig
from .errors import InsertError, QueryTimeoutError
from .formatter import format_page
from .streaming import PagingEngine, StreamChannel
from .types import QueryResult, QuerySpec, Row, StreamEvent

CREDENTIALS_ENV_VAR = 'GOOGLE_APPLICATION_CREDENTIALS'


class Client:
    """BigQuery client with paged and streaming query execution

    Args:
        key_path: Service account JSON key file or PEM private key
        account_email: Service account email (required for PEM keys)
        config: Client configuration (defaults to ClientConfig.from_env())
        session: Pre-built credential session (overrides key_path)

    Key resolution priority (highest to lowest):
        1. Explicit session
        2. Explicit key_path
        3. GOOGLE_APPLICATION_CREDENTIALS environment variable

    Example:
        >>> client = Client('~/keys/service-account.json')
        >>> rows, headers = client.query('samples', 'my-project', 'select * from [publicdata:samples.shakespeare]')
        >>>
        >>> for event in client.stream_query(100, 'samples', 'my-project', query):
        ...     if event.error:
        ...         raise event.error
        ...     print(len(event.rows))
    """

    def __init__(
        self,
        key_path: Optional[Union[str, Path]] = None,
        account_email: Optional[str] = None,
        config: Optional[ClientConfig] = None,
        session: Optional[CredentialSession] = None,
    ):
        self.config = config or ClientConfig.from_env()
        self.logger = logging.getLogger(__name__)

        if session is None:
            key_path = key_path or os.getenv(CREDENTIALS_ENV_VAR)
            if not key_path:
                raise ValueError(f'No key material: pass key_path or set {CREDENTIALS_ENV_VAR}')
            session = CredentialSession(
                key_path,
                account_email=account_email,
                backend_factory=self._build_backend,
                exchanger=TokenExchanger(timeout=self.config.timeout),
                refresh_margin=self.config.refresh_margin,
            )

        self.session = session
        self.engine = PagingEngine(session)

    def _build_backend(self, token: AccessToken) -> QueryBackend:
        return RestQueryBackend(
            token.token,
            base_url=self.config.base_url,
            timeout=self.config.timeout,
            job_timeout_ms=self.config.job_timeout_ms,
            retry_config=self.config.retry,
        )

    def _spec(self, page_size: int, dataset: str, project: str, query: str) -> QuerySpec:
        return QuerySpec(
            dataset=dataset,
            project=project,
            query=query,
            page_size=page_size,
            allow_large_results=self.config.allow_large_results,
            temp_table_name=self.config.temp_table_name,
            temp_dataset=self.config.temp_dataset,
            use_legacy_sql=self.config.use_legacy_sql,
        )

    def query(self, dataset: str, project: str, query: str) -> QueryResult:
        """
        Run a query and return every row, paging with the configured page size.

        Returns:
            QueryResult, which also unpacks as ``rows, headers``

        Raises:
            AuthError: If credentials cannot be exchanged
            BackendError: If the service rejects any request
        """
        return self.paged_query(self.config.page_size, dataset, project, query)

    def paged_query(self, page_size: int, dataset: str, project: str, query: str) -> QueryResult:
        """Run a query, fetching results page_size rows at a time, and return them all"""
        return self.engine.run(self._spec(page_size, dataset, project, query))

    def async_query(self, page_size: int, dataset: str, project: str, query: str, channel: StreamChannel) -> None:
        """
        Run a query, sending each page to channel as it arrives.

        Blocks until paging ends; run it on a worker thread and drain the
        channel from the caller. Errors arrive as an event with ``error``
        set, after which the channel is closed.
        """
        try:
            spec = self._spec(page_size, dataset, project, query)
        except ValueError as e:
            channel.send(StreamEvent(error=e))
            channel.close()
            return
        self.engine.run_streaming(spec, channel)

    def stream_query(self, page_size: int, dataset: str, project: str, query: str) -> StreamChannel:
        """
        Start a query on a background thread and return the channel it feeds.

        Returns:
            StreamChannel to iterate until closed; call cancel() on it to
            stop early
        """
        channel = StreamChannel(maxsize=self.config.stream_buffer_size)
        worker = threading.Thread(
            target=self.async_query,
            args=(page_size, dataset, project, query, channel),
            name='bqstream-pager',
            daemon=True,
        )
        worker.start()
        return channel

    def sync_query(self, dataset: str, project: str, query: str, max_results: int) -> List[Row]:
        """
        Run a query with one request and return at most max_results rows.

        Does not page: rows beyond max_results are not fetched.

        Raises:
            QueryTimeoutError: If the job did not complete within the request
            BackendError: If the service rejects the query
        """
        backend = self.session.acquire().backend
        response = backend.submit_query(project, dataset, query, max_results, self.config.use_legacy_sql)

        if not response.job_complete:
            raise QueryTimeoutError(
                f'Query did not complete within {self.config.job_timeout_ms}ms; use paged_query for long-running queries'
            )

        num_rows = min(response.total_rows, max_results)
        return format_page(response, num_rows).rows

    def count(self, dataset: str, project: str, dataset_table: str) -> int:
        """
        Row count of dataset_table (``dataset.table``).

        Best effort: returns 0 on any failure instead of raising, so a 0 can
        mean either an empty table or an error.
        """
        query = f'select count(*) from [{dataset_table}]'
        try:
            rows = self.sync_query(dataset, project, query, 1)
            if rows:
                return int(rows[0][0])
        except Exception as e:
            self.logger.warning(f'Count of {dataset_table} failed, returning 0: {e}')
        return 0

    def insert_row(self, project: str, dataset: str, table: str, row: Dict[str, Any]) -> None:
        """
        Stream a single row into a table.

        Raises:
            InsertError: Listing every field the service rejected
            BackendError: If the request itself is rejected
        """
        backend = self.session.acquire().backend
        result = backend.insert_rows(project, dataset, table, [row])
        if result.insert_errors:
            error = InsertError(result.insert_errors)
            self.logger.error(f'Insert into {dataset}.{table} failed: {error}')
            raise error

    def insert_new_table(self, project: str, dataset: str, table: str, fields: Dict[str, str]) -> None:
        """
        Create a table with the given columns.

        Args:
            fields: Column name to BigQuery type (e.g. {'name': 'STRING', 'created_at': 'TIMESTAMP'})
        """
        schema = TableSchema(fields=[TableFieldSchema(name=name, type=type_) for name, type_ in fields.items()])
        backend = self.session.acquire().backend
        backend.create_table(project, dataset, table, schema)
        self.logger.info(f'Created table {project}:{dataset}.{table}')

    def table_schema(self, project: str, dataset: str, table: str) -> List[TableFieldSchema]:
        """Columns of an existing table, in schema order"""
        backend = self.session.acquire().backend
        result = backend.get_table(project, dataset, table)
        if result.table_schema is None:
            return []
        return list(result.table_schema.fields)

    def close(self) -> None:
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __repr__(self):
        return f'Client(page_size={self.config.page_size}, allow_large_results={self.config.allow_large_results})'
