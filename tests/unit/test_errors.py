"""
Unit tests for the exception hierarchy and error response mapping.
"""

import pytest

from bqstream.backend.models import InsertErrors
from bqstream.errors import (
    AccessDeniedError,
    BackendError,
    BigQueryClientError,
    DuplicateError,
    InsertError,
    InvalidQueryError,
    NotFoundError,
    RateLimitError,
    ServiceUnavailableError,
    UnauthorizedError,
    map_error_response,
)


def body(reason, message='Something went wrong'):
    return {'error': {'code': 400, 'message': message, 'errors': [{'reason': reason, 'message': message}]}}


@pytest.mark.unit
class TestMapErrorResponse:
    """Test mapping BigQuery error bodies to exceptions"""

    @pytest.mark.parametrize(
        'reason,error_class',
        [
            ('notFound', NotFoundError),
            ('invalidQuery', InvalidQueryError),
            ('accessDenied', AccessDeniedError),
            ('rateLimitExceeded', RateLimitError),
            ('quotaExceeded', RateLimitError),
            ('duplicate', DuplicateError),
            ('backendError', ServiceUnavailableError),
        ],
    )
    def test_reason_mapping(self, reason, error_class):
        exc = map_error_response(400, body(reason))

        assert isinstance(exc, error_class)
        assert exc.reason == reason
        assert exc.status_code == 400
        assert exc.message == 'Something went wrong'

    def test_unknown_reason_falls_back(self):
        exc = map_error_response(400, body('somethingNew'))

        assert type(exc) is BackendError
        assert str(exc) == '[somethingNew] Something went wrong'

    def test_401_is_unauthorized(self):
        exc = map_error_response(401, {'error': {'code': 401, 'message': 'Invalid Credentials'}})

        assert isinstance(exc, UnauthorizedError)
        assert exc.reason == 'unauthorized'

    def test_string_error(self):
        exc = map_error_response(400, {'error': 'invalid_request'})

        assert type(exc) is BackendError
        assert str(exc) == 'invalid_request'

    def test_empty_body(self):
        exc = map_error_response(500, {})
        assert exc.message == 'Unknown error'

    def test_hierarchy(self):
        assert issubclass(BackendError, BigQueryClientError)
        assert issubclass(NotFoundError, BackendError)
        assert issubclass(InsertError, BigQueryClientError)


@pytest.mark.unit
class TestInsertError:
    """Test insert error message aggregation"""

    def test_lists_every_field(self):
        errors = [
            InsertErrors.model_validate(
                {'index': 0, 'errors': [{'reason': 'invalid', 'location': 'age', 'message': 'no such field.'}]}
            ),
            InsertErrors.model_validate(
                {'index': 1, 'errors': [{'reason': 'invalid', 'location': 'name', 'message': 'too long.'}]}
            ),
        ]

        exc = InsertError(errors)

        assert str(exc) == 'Error inserting row: row 0: age: invalid no such field.; row 1: name: invalid too long.'
        assert exc.errors == errors

    def test_no_details(self):
        assert str(InsertError([])) == 'Error inserting row'
