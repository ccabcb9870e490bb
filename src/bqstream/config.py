"""Client configuration."""

import os
from dataclasses import dataclass, field
from typing import Optional

from .backend.resilience import RetryConfig
from .backend.rest import BIGQUERY_BASE_URL

ENV_PREFIX = 'BQSTREAM_'


@dataclass
class ClientConfig:
    """Options controlling paging, large results and transport behavior."""

    page_size: int = 1000
    allow_large_results: bool = False
    temp_table_name: Optional[str] = None
    temp_dataset: Optional[str] = None  # Defaults to the query's dataset
    use_legacy_sql: bool = True
    timeout: float = 30.0
    job_timeout_ms: int = 10000
    stream_buffer_size: int = 1
    refresh_margin: float = 60.0
    base_url: str = BIGQUERY_BASE_URL
    retry: RetryConfig = field(default_factory=RetryConfig)

    def __post_init__(self):
        if self.page_size <= 0:
            raise ValueError(f'page_size must be positive, got {self.page_size}')
        if self.stream_buffer_size <= 0:
            raise ValueError(f'stream_buffer_size must be positive, got {self.stream_buffer_size}')
        if self.allow_large_results and not self.temp_table_name:
            raise ValueError('allow_large_results requires temp_table_name')

    @classmethod
    def from_env(cls, **overrides) -> 'ClientConfig':
        """Build a config from BQSTREAM_* environment variables.

        Supported variables: BQSTREAM_PAGE_SIZE, BQSTREAM_ALLOW_LARGE_RESULTS,
        BQSTREAM_TEMP_TABLE, BQSTREAM_TEMP_DATASET, BQSTREAM_USE_LEGACY_SQL,
        BQSTREAM_TIMEOUT, BQSTREAM_JOB_TIMEOUT_MS, BQSTREAM_MAX_RETRIES.
        Keyword overrides take precedence over the environment.
        """
        values = {}

        if os.getenv(f'{ENV_PREFIX}PAGE_SIZE'):
            values['page_size'] = int(os.environ[f'{ENV_PREFIX}PAGE_SIZE'])
        if os.getenv(f'{ENV_PREFIX}ALLOW_LARGE_RESULTS'):
            values['allow_large_results'] = _env_flag(f'{ENV_PREFIX}ALLOW_LARGE_RESULTS')
        if os.getenv(f'{ENV_PREFIX}TEMP_TABLE'):
            values['temp_table_name'] = os.environ[f'{ENV_PREFIX}TEMP_TABLE']
        if os.getenv(f'{ENV_PREFIX}TEMP_DATASET'):
            values['temp_dataset'] = os.environ[f'{ENV_PREFIX}TEMP_DATASET']
        if os.getenv(f'{ENV_PREFIX}USE_LEGACY_SQL'):
            values['use_legacy_sql'] = _env_flag(f'{ENV_PREFIX}USE_LEGACY_SQL')
        if os.getenv(f'{ENV_PREFIX}TIMEOUT'):
            values['timeout'] = float(os.environ[f'{ENV_PREFIX}TIMEOUT'])
        if os.getenv(f'{ENV_PREFIX}JOB_TIMEOUT_MS'):
            values['job_timeout_ms'] = int(os.environ[f'{ENV_PREFIX}JOB_TIMEOUT_MS'])
        if os.getenv(f'{ENV_PREFIX}MAX_RETRIES'):
            values['retry'] = RetryConfig(max_retries=int(os.environ[f'{ENV_PREFIX}MAX_RETRIES']))

        values.update(overrides)
        return cls(**values)


def _env_flag(name: str) -> bool:
    return os.getenv(name, '').lower() in ('1', 'true', 'yes', 'on')
