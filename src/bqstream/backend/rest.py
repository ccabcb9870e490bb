"""HTTP implementation of the query backend.

This module provides RestQueryBackend, which talks to the BigQuery REST v2
API with a bearer token obtained from the credential session.
"""

import logging
import time
from typing import Any, Dict, List, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from ..errors import BackendError, map_error_response
from .base import CREATE_IF_NEEDED, WRITE_TRUNCATE, QueryBackend
from .models import (
    DatasetReference,
    GetQueryResultsResponse,
    InsertAllResponse,
    Job,
    JobReference,
    QueryResponse,
    Table,
    TableReference,
    TableSchema,
)
from .resilience import ErrorClassifier, ExponentialBackoff, RetryConfig

BIGQUERY_BASE_URL = 'https://bigquery.googleapis.com/bigquery/v2'

ModelT = TypeVar('ModelT', bound=BaseModel)

logger = logging.getLogger(__name__)


class RestQueryBackend(QueryBackend):
    """BigQuery REST v2 backend bound to one access token.

    Args:
        token: Bearer access token
        base_url: Base URL for the BigQuery API
        timeout: HTTP timeout in seconds
        job_timeout_ms: How long the service may hold a query request open
            waiting for the job to complete
        retry_config: Retry behavior for transient transport failures
        transport: Optional httpx transport (used by tests)

    Example:
        >>> backend = RestQueryBackend('ya29....')
        >>> response = backend.submit_query('my-project', 'my_dataset', 'select 1', max_results=10)
        >>> response.job_complete
        True
    """

    def __init__(
        self,
        token: str,
        base_url: str = BIGQUERY_BASE_URL,
        timeout: float = 30.0,
        job_timeout_ms: int = 10000,
        retry_config: Optional[RetryConfig] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.job_timeout_ms = job_timeout_ms
        self.retry_config = retry_config or RetryConfig()
        self._http = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            headers={'Authorization': f'Bearer {token}', 'Accept': 'application/json'},
            transport=transport,
        )

    def _request(
        self, method: str, path: str, json: Optional[dict] = None, params: Optional[dict] = None
    ) -> httpx.Response:
        """Make HTTP request with retry on transient failures.

        Args:
            method: HTTP method
            path: API path relative to the base URL
            json: Optional JSON request body
            params: Optional query parameters

        Returns:
            Successful HTTP response

        Raises:
            BackendError: If the API returns an error response
        """
        backoff = ExponentialBackoff(self.retry_config)

        while True:
            try:
                response = self._http.request(method, path, json=json, params=params)
            except RuntimeError as e:
                if not self._http.is_closed:
                    raise
                raise BackendError(f'{method} {path} failed: backend is closed') from e
            except httpx.HTTPError as e:
                delay = backoff.next_delay() if ErrorClassifier.is_transient_exception(e) else None
                if delay is None:
                    raise BackendError(f'{method} {path} failed: {e}') from e
                logger.warning(f'Transient transport error on {method} {path}: {e}. Retrying in {delay:.2f}s')
                time.sleep(delay)
                continue

            if response.status_code < 400:
                return response

            if ErrorClassifier.is_transient_status(response.status_code):
                delay = backoff.next_delay()
                if delay is not None:
                    logger.warning(
                        f'{method} {path} returned {response.status_code}. '
                        f'Retrying in {delay:.2f}s (attempt {backoff.attempt}/{self.retry_config.max_retries})'
                    )
                    time.sleep(delay)
                    continue

            raise self._error_for(response)

    @staticmethod
    def _error_for(response: httpx.Response) -> BackendError:
        try:
            error_data = response.json()
        except ValueError:
            # Response is not JSON
            return BackendError(
                response.text or f'HTTP {response.status_code}',
                status_code=response.status_code,
            )
        if not isinstance(error_data, dict):
            return BackendError(str(error_data), status_code=response.status_code)
        return map_error_response(response.status_code, error_data)

    @staticmethod
    def _parse(model: Type[ModelT], response: httpx.Response) -> ModelT:
        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise BackendError(f'Unexpected response from {response.request.url}: {e}') from e

    def submit_query(
        self, project: str, dataset: str, query: str, max_results: int, use_legacy_sql: bool = True
    ) -> QueryResponse:
        body = {
            'kind': 'bigquery#queryRequest',
            'query': query,
            'maxResults': max_results,
            'defaultDataset': DatasetReference(project_id=project, dataset_id=dataset).to_wire(),
            'timeoutMs': self.job_timeout_ms,
            'useLegacySql': use_legacy_sql,
        }
        response = self._request('POST', f'/projects/{project}/queries', json=body)
        return self._parse(QueryResponse, response)

    def get_query_results(
        self, job_reference: JobReference, page_token: Optional[str] = None, max_results: Optional[int] = None
    ) -> GetQueryResultsResponse:
        params: Dict[str, Any] = {'timeoutMs': self.job_timeout_ms}
        if page_token:
            params['pageToken'] = page_token
        if max_results is not None:
            params['maxResults'] = max_results
        if job_reference.location:
            params['location'] = job_reference.location

        path = f'/projects/{job_reference.project_id}/queries/{job_reference.job_id}'
        response = self._request('GET', path, params=params)
        return self._parse(GetQueryResultsResponse, response)

    def insert_job(
        self,
        project: str,
        dataset: str,
        query: str,
        destination_table: TableReference,
        write_disposition: str = WRITE_TRUNCATE,
        create_disposition: str = CREATE_IF_NEEDED,
        allow_large_results: bool = True,
        use_legacy_sql: bool = True,
    ) -> Job:
        body = {
            'configuration': {
                'query': {
                    'query': query,
                    'defaultDataset': DatasetReference(project_id=project, dataset_id=dataset).to_wire(),
                    'destinationTable': destination_table.to_wire(),
                    'writeDisposition': write_disposition,
                    'createDisposition': create_disposition,
                    'allowLargeResults': allow_large_results,
                    'useLegacySql': use_legacy_sql,
                }
            }
        }
        response = self._request('POST', f'/projects/{project}/jobs', json=body)
        return self._parse(Job, response)

    def insert_rows(self, project: str, dataset: str, table: str, rows: List[Dict[str, Any]]) -> InsertAllResponse:
        body = {'kind': 'bigquery#tableDataInsertAllRequest', 'rows': [{'json': row} for row in rows]}
        path = f'/projects/{project}/datasets/{dataset}/tables/{table}/insertAll'
        response = self._request('POST', path, json=body)
        return self._parse(InsertAllResponse, response)

    def create_table(self, project: str, dataset: str, table: str, schema: TableSchema) -> Table:
        body = {
            'tableReference': TableReference(project_id=project, dataset_id=dataset, table_id=table).to_wire(),
            'schema': schema.to_wire(),
        }
        response = self._request('POST', f'/projects/{project}/datasets/{dataset}/tables', json=body)
        return self._parse(Table, response)

    def get_table(self, project: str, dataset: str, table: str) -> Table:
        response = self._request('GET', f'/projects/{project}/datasets/{dataset}/tables/{table}')
        return self._parse(Table, response)

    def close(self) -> None:
        self._http.close()
