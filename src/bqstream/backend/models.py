"""BigQuery REST v2 wire models.

Only the fields the client reads or writes are modelled; anything else in a
response is ignored. Field names follow Python conventions with the
camelCase wire names as aliases.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class WireModel(BaseModel):
    """Base for wire models: accepts aliases or field names, ignores extras."""

    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    def to_wire(self) -> Dict[str, Any]:
        """Dump using camelCase aliases, dropping unset optionals."""
        return self.model_dump(by_alias=True, exclude_none=True)


class TableFieldSchema(WireModel):
    """A single column of a table schema."""

    name: str
    type: str = 'STRING'
    mode: Optional[str] = None
    fields: Optional[List['TableFieldSchema']] = None


TableFieldSchema.model_rebuild()


class TableSchema(WireModel):
    fields: List[TableFieldSchema] = Field(default_factory=list)


class TableCell(WireModel):
    v: Any = None


class TableRow(WireModel):
    f: List[TableCell] = Field(default_factory=list)


class JobReference(WireModel):
    """Identifies a query job; needed to fetch any page after the first."""

    project_id: str = Field(..., alias='projectId')
    job_id: str = Field(..., alias='jobId')
    location: Optional[str] = None

    def __str__(self) -> str:
        return f'{self.project_id}:{self.job_id}'


class DatasetReference(WireModel):
    project_id: str = Field(..., alias='projectId')
    dataset_id: str = Field(..., alias='datasetId')


class TableReference(WireModel):
    project_id: str = Field(..., alias='projectId')
    dataset_id: str = Field(..., alias='datasetId')
    table_id: str = Field(..., alias='tableId')


class ErrorProto(WireModel):
    reason: Optional[str] = None
    location: Optional[str] = None
    message: Optional[str] = None


class TabularResponse(WireModel):
    """Shared shape of jobs.query and jobs.getQueryResults replies.

    BigQuery sends ``totalRows`` as a decimal string; pydantic coerces it.
    ``schema`` and ``rows`` are absent until the job completes.
    """

    table_schema: Optional[TableSchema] = Field(None, alias='schema')
    rows: List[TableRow] = Field(default_factory=list)
    total_rows: int = Field(0, alias='totalRows')
    job_complete: bool = Field(False, alias='jobComplete')
    job_reference: Optional[JobReference] = Field(None, alias='jobReference')
    page_token: Optional[str] = Field(None, alias='pageToken')


class QueryResponse(TabularResponse):
    """Reply to jobs.query."""

    kind: str = 'bigquery#queryResponse'


class GetQueryResultsResponse(TabularResponse):
    """Reply to jobs.getQueryResults."""

    kind: str = 'bigquery#getQueryResultsResponse'


class JobStatus(WireModel):
    state: Optional[str] = None
    error_result: Optional[ErrorProto] = Field(None, alias='errorResult')


class Job(WireModel):
    """Reply to jobs.insert."""

    job_reference: JobReference = Field(..., alias='jobReference')
    status: Optional[JobStatus] = None


class InsertErrors(WireModel):
    index: int = 0
    errors: List[ErrorProto] = Field(default_factory=list)


class InsertAllResponse(WireModel):
    """Reply to tabledata.insertAll."""

    insert_errors: List[InsertErrors] = Field(default_factory=list, alias='insertErrors')


class Table(WireModel):
    """Reply to tables.insert and tables.get."""

    table_reference: TableReference = Field(..., alias='tableReference')
    table_schema: Optional[TableSchema] = Field(None, alias='schema')
    num_rows: Optional[int] = Field(None, alias='numRows')
