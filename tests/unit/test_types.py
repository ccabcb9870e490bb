"""
Unit tests for query types and result conversion.
"""

from datetime import datetime, timezone

import pyarrow as pa
import pytest

from bqstream.backend.models import TableFieldSchema
from bqstream.types import QueryResult, QuerySpec, StreamEvent


@pytest.mark.unit
class TestQuerySpec:
    """Test QuerySpec validation"""

    def test_destination_defaults_to_dataset(self):
        spec = QuerySpec(dataset='samples', project='p', query='select 1', allow_large_results=True, temp_table_name='t')
        assert spec.destination_dataset == 'samples'

    def test_destination_override(self):
        spec = QuerySpec(
            dataset='samples', project='p', query='select 1', allow_large_results=True, temp_table_name='t', temp_dataset='scratch'
        )
        assert spec.destination_dataset == 'scratch'

    def test_invalid_page_size(self):
        with pytest.raises(ValueError):
            QuerySpec(dataset='samples', project='p', query='select 1', page_size=-1)


@pytest.mark.unit
class TestStreamEvent:
    def test_failed(self):
        assert StreamEvent(rows=[[1]]).failed is False
        assert StreamEvent(error=RuntimeError('boom')).failed is True


@pytest.mark.unit
class TestQueryResult:
    """Test QueryResult accessors and Arrow conversion"""

    def make_result(self):
        schema = [
            TableFieldSchema(name='id', type='INTEGER'),
            TableFieldSchema(name='score', type='FLOAT'),
            TableFieldSchema(name='active', type='BOOLEAN'),
            TableFieldSchema(name='created', type='TIMESTAMP'),
            TableFieldSchema(name='name', type='STRING'),
            TableFieldSchema(name='tags', type='STRING', mode='REPEATED'),
        ]
        rows = [
            ['1', '1.5', 'true', '1.7E9', 'alice', [{'v': 'a'}]],
            ['2', None, 'false', None, None, []],
        ]
        return QueryResult(rows=rows, headers=[f.name for f in schema], schema=schema, page_count=1)

    def test_unpacks_as_pair(self):
        rows, headers = QueryResult(rows=[[1]], headers=['x'])

        assert rows == [[1]]
        assert headers == ['x']

    def test_len_and_dicts(self):
        result = QueryResult(rows=[[1, 'a'], [2, 'b']], headers=['id', 'name'])

        assert len(result) == 2
        assert result.to_dicts() == [{'id': 1, 'name': 'a'}, {'id': 2, 'name': 'b'}]

    def test_to_arrow_types(self):
        table = self.make_result().to_arrow()

        assert table.num_rows == 2
        assert table.schema.field('id').type == pa.int64()
        assert table.schema.field('score').type == pa.float64()
        assert table.schema.field('active').type == pa.bool_()
        assert table.schema.field('created').type == pa.timestamp('us', tz='UTC')
        assert table.schema.field('name').type == pa.string()
        assert table.schema.field('tags').type == pa.string()

    def test_to_arrow_values(self):
        columns = self.make_result().to_arrow().to_pydict()

        assert columns['id'] == [1, 2]
        assert columns['score'] == [1.5, None]
        assert columns['active'] == [True, False]
        assert columns['created'][0] == datetime.fromtimestamp(1.7e9, tz=timezone.utc)
        assert columns['created'][1] is None
        assert columns['name'] == ['alice', None]
        assert columns['tags'] == ['[{"v": "a"}]', '[]']

    def test_to_arrow_without_schema(self):
        table = QueryResult(rows=[['x']], headers=['col']).to_arrow()

        assert table.schema.field('col').type == pa.string()
        assert table.to_pydict() == {'col': ['x']}
