"""Exception hierarchy for bqstream.

BigQuery reports failures as ``{"error": {"code": ..., "message": ...,
"errors": [{"reason": ...}]}}``. The ``reason`` of the first error entry is
mapped to a typed exception, falling back to the base BackendError.
"""

from typing import Any, List, Optional


class BigQueryClientError(Exception):
    """Base exception for all bqstream errors."""

    pass


class AuthError(BigQueryClientError):
    """Key material could not be read or the token exchange was rejected."""

    pass


class FormatError(BigQueryClientError):
    """A response does not hold the rows the formatter was asked for.

    Indicates a mismatch between the backend reply and the paging engine's
    bookkeeping; it should never occur in correct operation.
    """

    pass


class ChannelClosedError(BigQueryClientError):
    """An event was sent on a channel that is already closed."""

    pass


class BackendError(BigQueryClientError):
    """Base exception for requests rejected by the query service.

    Attributes:
        message: Human-readable error description
        reason: BigQuery error reason (e.g. 'notFound', 'invalidQuery')
        status_code: HTTP status code, if the error came from a response
    """

    def __init__(self, message: str, reason: str = '', status_code: Optional[int] = None):
        self.message = message
        self.reason = reason
        self.status_code = status_code
        if reason:
            super().__init__(f'[{reason}] {message}')
        else:
            super().__init__(message)


class UnauthorizedError(BackendError):
    """Bearer token was rejected (usually expired)."""

    pass


class NotFoundError(BackendError):
    """Project, dataset, table or job does not exist."""

    pass


class InvalidQueryError(BackendError):
    """Query text was rejected by the service."""

    pass


class InvalidRequestError(BackendError):
    """Request payload was rejected by the service."""

    pass


class AccessDeniedError(BackendError):
    """Caller lacks permission for the requested resource."""

    pass


class RateLimitError(BackendError):
    """Rate limit or quota exceeded."""

    pass


class DuplicateError(BackendError):
    """Resource already exists."""

    pass


class ServiceUnavailableError(BackendError):
    """Transient service-side failure."""

    pass


class QueryTimeoutError(BackendError):
    """Query did not complete within the request."""

    pass


class QueryCancelledError(BackendError):
    """Paging was cancelled by the consumer."""

    pass


class InsertError(BigQueryClientError):
    """One or more fields of a streaming insert were rejected.

    Attributes:
        errors: Per-row insert error details as reported by the service
    """

    def __init__(self, errors: List[Any]):
        self.errors = errors
        super().__init__(self._describe(errors))

    @staticmethod
    def _describe(errors: List[Any]) -> str:
        parts = []
        for row_error in errors:
            for detail in row_error.errors:
                location = detail.location or '<row>'
                parts.append(f'row {row_error.index}: {location}: {detail.reason} {detail.message}'.rstrip())
        if not parts:
            return 'Error inserting row'
        return 'Error inserting row: ' + '; '.join(parts)


ERROR_REASON_MAP = {
    'notFound': NotFoundError,
    'invalidQuery': InvalidQueryError,
    'invalid': InvalidRequestError,
    'accessDenied': AccessDeniedError,
    'rateLimitExceeded': RateLimitError,
    'quotaExceeded': RateLimitError,
    'duplicate': DuplicateError,
    'backendError': ServiceUnavailableError,
    'internalError': ServiceUnavailableError,
}


def map_error_response(status_code: int, error_data: dict) -> BackendError:
    """Map a BigQuery error response to a typed exception.

    Args:
        status_code: HTTP status code
        error_data: Parsed JSON error body

    Returns:
        BackendError subclass for the reported reason

    Example:
        >>> error_data = {'error': {'code': 404, 'message': 'Not found: Table p:d.t',
        ...     'errors': [{'reason': 'notFound', 'message': 'Not found: Table p:d.t'}]}}
        >>> exc = map_error_response(404, error_data)
        >>> isinstance(exc, NotFoundError)
        True
    """
    error = error_data.get('error') or {}
    if not isinstance(error, dict):
        # OAuth-style bodies carry a plain string here
        return BackendError(str(error), status_code=status_code)

    message = error.get('message', 'Unknown error')
    details = error.get('errors') or []
    reason = details[0].get('reason', '') if details else ''

    if status_code == 401:
        return UnauthorizedError(message, reason=reason or 'unauthorized', status_code=status_code)

    error_class = ERROR_REASON_MAP.get(reason, BackendError)
    return error_class(message, reason=reason, status_code=status_code)


def job_error(job: Any) -> BackendError:
    """Typed exception for a job whose status carries an ``errorResult``."""
    error = job.status.error_result
    reason = error.reason or ''
    error_class = ERROR_REASON_MAP.get(reason, BackendError)
    return error_class(f'Job {job.job_reference} failed: {error.message or "unknown error"}', reason=reason)
