"""
Unit tests for shaping backend responses into pages.
"""

import pytest

from bqstream.backend.models import TableFieldSchema, TableSchema
from bqstream.errors import FormatError
from bqstream.formatter import format_page, headers_for
from tests.fixtures.fake_backend import make_page, make_response


@pytest.mark.unit
class TestFormatPage:
    """Test format_page conversion and validation"""

    def test_headers_and_rows(self):
        response = make_response([[1, 'a'], [2, 'b']], total_rows=10, page_token='p2')

        page = format_page(response)

        assert page.headers == ['id', 'name']
        assert page.rows == [[1, 'a'], [2, 'b']]
        assert page.page_token == 'p2'
        assert page.total_rows == 10
        assert page.job_complete is True
        assert page.job_reference.job_id == 'job_1'
        assert [f.name for f in page.schema] == ['id', 'name']

    def test_row_limit_truncates(self):
        page = format_page(make_response([[1, 'a'], [2, 'b'], [3, 'c']]), row_limit=2)
        assert page.rows == [[1, 'a'], [2, 'b']]

    def test_row_limit_zero(self):
        page = format_page(make_response([[1, 'a']]), row_limit=0)

        assert page.rows == []
        assert page.headers == ['id', 'name']

    def test_row_limit_exceeds_available(self):
        with pytest.raises(FormatError, match='only contains 1'):
            format_page(make_response([[1, 'a']], total_rows=5), row_limit=5)

    def test_negative_row_limit(self):
        with pytest.raises(FormatError):
            format_page(make_response([[1, 'a']]), row_limit=-1)

    def test_null_cells_preserved(self):
        page = format_page(make_response([[None, 'a']]))
        assert page.rows == [[None, 'a']]

    def test_fallback_schema(self):
        schema = [TableFieldSchema(name='id', type='INTEGER'), TableFieldSchema(name='name')]

        page = format_page(make_page([[3, 'c']], schema=None), schema=schema)

        assert page.headers == ['id', 'name']
        assert page.rows == [[3, 'c']]

    def test_response_schema_wins_over_fallback(self):
        page = format_page(make_response([[1, 'a']]), schema=[TableFieldSchema(name='other')])
        assert page.headers == ['id', 'name']

    def test_rows_without_schema(self):
        with pytest.raises(FormatError, match='no schema'):
            format_page(make_page([[1, 'a']], schema=None))

    def test_empty_response_without_schema(self):
        page = format_page(make_page([], schema=None, job_complete=False))

        assert page.headers == []
        assert page.rows == []

    def test_short_row(self):
        response = make_response([[1]], schema=[{'name': 'id', 'type': 'INTEGER'}, {'name': 'name', 'type': 'STRING'}])

        with pytest.raises(FormatError, match='Row 0 has 1 cells'):
            format_page(response)


@pytest.mark.unit
def test_headers_for():
    schema = TableSchema(fields=[TableFieldSchema(name='word'), TableFieldSchema(name='word_count', type='INTEGER')])

    assert headers_for(schema) == ['word', 'word_count']
    assert headers_for(None) == []
