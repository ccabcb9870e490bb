"""
Paging engine: runs a query and walks every page of its results.

One iterative loop serves both delivery modes. Pages are fetched strictly
one after another, so rows arrive in order and the row bookkeeping needs no
locking. The only concurrency is between the producer calling
run_streaming() and the consumer draining its channel.
"""

import logging
import threading
from typing import Iterator, List, Optional

from ..auth.service import CredentialSession
from ..backend.base import CREATE_IF_NEEDED, WRITE_TRUNCATE
from ..backend.models import TableReference, TabularResponse
from ..errors import BackendError, BigQueryClientError, QueryCancelledError, UnauthorizedError, job_error
from ..formatter import format_page
from ..types import Page, QueryResult, QuerySpec, StreamEvent
from .channel import StreamChannel


class PagingEngine:
    """
    Executes queries against the backend reached through a credential session.

    Args:
        session: Credential session supplying the backend for each request

    Example:
        >>> engine = PagingEngine(CredentialSession('key.json'))
        >>> spec = QuerySpec(dataset='samples', project='my-project', query='select ...', page_size=500)
        >>> result = engine.run(spec)
        >>> len(result.rows), result.headers
    """

    def __init__(self, session: CredentialSession):
        self.session = session
        self.logger = logging.getLogger(__name__)

    def iter_pages(self, spec: QuerySpec, cancel_event: Optional[threading.Event] = None) -> Iterator[Page]:
        """
        Yield every completed page of the query's results in order.

        Headers on each yielded page are the latest known column names: a
        page whose reply carried no schema inherits the previous headers.

        Raises:
            AuthError: If a session cannot be acquired
            BackendError: If any request is rejected, or the job stops
                making progress before all rows are delivered
            FormatError: If a reply is inconsistent with its own row count
            QueryCancelledError: If cancel_event is set between pages
        """
        self.logger.info(f'Running paged query on {spec.project}:{spec.dataset} (page_size={spec.page_size})')

        response = self._initial_response(spec)

        previous: Optional[Page] = None
        row_count = 0
        job_reference = response.job_reference
        page_token = response.page_token

        if response.job_complete:
            page = self._format(response, previous)
            previous = page
            row_count += len(page.rows)
            yield page

        while row_count < response.total_rows or not response.job_complete:
            if job_reference is None:
                raise BackendError('More results are pending but the service returned no job reference')
            if cancel_event is not None and cancel_event.is_set():
                raise QueryCancelledError(f'Paging cancelled after {row_count} rows')

            self.logger.debug(
                f'Fetching page for job {job_reference} (rows so far: {row_count}, total: {response.total_rows})'
            )
            backend = self._acquire_backend()
            response = self._call(backend.get_query_results, job_reference, page_token, spec.page_size)

            if response.job_complete:
                page = self._format(response, previous)
                previous = page
                row_count += len(page.rows)

                if not page.rows and not response.page_token and row_count < response.total_rows:
                    raise BackendError(
                        f'Job {job_reference} reported {response.total_rows} rows '
                        f'but stopped returning pages after {row_count}'
                    )
                yield page

            # A reply may point at a new job; otherwise keep the current one
            if response.job_reference is not None:
                job_reference = response.job_reference
            if response.page_token:
                page_token = response.page_token

        self.logger.info(f'Query complete: {row_count} rows')

    def run(self, spec: QuerySpec) -> QueryResult:
        """
        Execute the query and return all rows once paging is exhausted.

        Raises:
            AuthError, BackendError, FormatError: The first failure; no
                partial result is returned
        """
        result = QueryResult()
        for page in self.iter_pages(spec):
            result.rows.extend(page.rows)
            if page.headers:
                result.headers = page.headers
            if page.schema:
                result.schema = page.schema
            if page.job_reference is not None:
                result.job_reference = page.job_reference
            result.page_count += 1
        return result

    def run_streaming(self, spec: QuerySpec, channel: StreamChannel) -> None:
        """
        Execute the query, sending one StreamEvent per page to the channel.

        Failures are delivered as a final event with ``error`` set. The
        channel is closed exactly once when paging ends, whatever the outcome.
        """
        last_headers: Optional[List[str]] = None
        try:
            for page in self.iter_pages(spec, cancel_event=channel.cancel_event):
                headers = page.headers if page.headers != last_headers else None
                last_headers = page.headers
                if not channel.send(StreamEvent(headers=headers, rows=page.rows)):
                    self.logger.info('Consumer cancelled the stream, stopping')
                    break
        except BigQueryClientError as e:
            self.logger.error(f'Streaming query failed: {e}')
            channel.send(StreamEvent(error=e))
        except Exception as e:
            self.logger.exception(f'Streaming query failed unexpectedly: {e}')
            channel.send(StreamEvent(error=e))
        finally:
            channel.close()

    def _initial_response(self, spec: QuerySpec) -> TabularResponse:
        backend = self._acquire_backend()

        if spec.allow_large_results:
            destination = TableReference(
                project_id=spec.project, dataset_id=spec.destination_dataset, table_id=spec.temp_table_name
            )
            self.logger.info(
                f'Large result query: materializing into {destination.dataset_id}.{destination.table_id}'
            )
            job = self._call(
                backend.insert_job,
                spec.project,
                spec.dataset,
                spec.query,
                destination,
                write_disposition=WRITE_TRUNCATE,
                create_disposition=CREATE_IF_NEEDED,
                allow_large_results=True,
                use_legacy_sql=spec.use_legacy_sql,
            )
            if job.status is not None and job.status.error_result is not None:
                raise job_error(job)
            return self._call(backend.get_query_results, job.job_reference, None, spec.page_size)

        return self._call(
            backend.submit_query, spec.project, spec.dataset, spec.query, spec.page_size, spec.use_legacy_sql
        )

    def _acquire_backend(self):
        return self.session.acquire().backend

    def _call(self, operation, *args, **kwargs):
        try:
            return operation(*args, **kwargs)
        except UnauthorizedError:
            # Token was revoked or expired early; make the next call refresh it
            self.session.invalidate()
            raise

    def _format(self, response: TabularResponse, previous: Optional[Page]) -> Page:
        if previous is None:
            return format_page(response)
        # Continuation replies may omit the schema; keep the last known columns
        page = format_page(response, schema=previous.schema)
        if not page.headers:
            page.headers = previous.headers
        return page
