"""
Abstract query backend the paging engine talks to.

A backend is bound to one bearer token; the credential session builds a new
one whenever the token is refreshed.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from .models import (
    GetQueryResultsResponse,
    InsertAllResponse,
    Job,
    JobReference,
    QueryResponse,
    Table,
    TableReference,
    TableSchema,
)

WRITE_TRUNCATE = 'WRITE_TRUNCATE'
CREATE_IF_NEEDED = 'CREATE_IF_NEEDED'


class QueryBackend(ABC):
    """Operations the client needs from the query service."""

    @abstractmethod
    def submit_query(
        self, project: str, dataset: str, query: str, max_results: int, use_legacy_sql: bool = True
    ) -> QueryResponse:
        """Run a query, waiting for completion within the request if possible."""
        pass

    @abstractmethod
    def get_query_results(
        self, job_reference: JobReference, page_token: Optional[str] = None, max_results: Optional[int] = None
    ) -> GetQueryResultsResponse:
        """Fetch one page of a query job's results."""
        pass

    @abstractmethod
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
        """Queue a query job that materializes into a destination table."""
        pass

    @abstractmethod
    def insert_rows(self, project: str, dataset: str, table: str, rows: List[Dict[str, Any]]) -> InsertAllResponse:
        """Stream rows into a table."""
        pass

    @abstractmethod
    def create_table(self, project: str, dataset: str, table: str, schema: TableSchema) -> Table:
        pass

    @abstractmethod
    def get_table(self, project: str, dataset: str, table: str) -> Table:
        pass

    def close(self) -> None:
        """Release transport resources."""
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
