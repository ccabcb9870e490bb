"""
Unit tests for transport retry primitives.

Tests error classification and backoff calculation without network access.
"""

import httpx
import pytest

from bqstream.backend.resilience import ErrorClassifier, ExponentialBackoff, RetryConfig


@pytest.mark.unit
class TestRetryConfig:
    """Test RetryConfig dataclass defaults"""

    def test_default_values(self):
        config = RetryConfig()
        assert config.enabled is True
        assert config.max_retries == 3
        assert config.initial_backoff_ms == 500
        assert config.max_backoff_ms == 30000
        assert config.backoff_multiplier == 2.0
        assert config.jitter is True

    def test_custom_values(self):
        config = RetryConfig(
            enabled=False, max_retries=5, initial_backoff_ms=100, max_backoff_ms=1000, backoff_multiplier=1.5, jitter=False
        )
        assert config.enabled is False
        assert config.max_retries == 5
        assert config.backoff_multiplier == 1.5


@pytest.mark.unit
class TestErrorClassifier:
    """Test transient/permanent classification"""

    @pytest.mark.parametrize('status_code', [429, 500, 502, 503, 504])
    def test_transient_statuses(self, status_code):
        assert ErrorClassifier.is_transient_status(status_code)

    @pytest.mark.parametrize('status_code', [400, 401, 403, 404, 409])
    def test_permanent_statuses(self, status_code):
        assert not ErrorClassifier.is_transient_status(status_code)

    def test_transient_exceptions(self):
        request = httpx.Request('GET', 'https://bigquery.googleapis.com')
        assert ErrorClassifier.is_transient_exception(httpx.ConnectError('refused', request=request))
        assert ErrorClassifier.is_transient_exception(httpx.ReadTimeout('timed out', request=request))
        assert ErrorClassifier.is_transient_exception(httpx.RemoteProtocolError('reset', request=request))

    def test_permanent_exceptions(self):
        request = httpx.Request('GET', 'https://bigquery.googleapis.com')
        assert not ErrorClassifier.is_transient_exception(httpx.UnsupportedProtocol('ftp', request=request))
        assert not ErrorClassifier.is_transient_exception(ValueError('bad'))


@pytest.mark.unit
class TestExponentialBackoff:
    """Test exponential backoff calculation logic"""

    def test_basic_exponential_growth(self):
        config = RetryConfig(initial_backoff_ms=100, backoff_multiplier=2.0, max_backoff_ms=10000, jitter=False)
        backoff = ExponentialBackoff(config)

        assert backoff.next_delay() == 0.1
        assert backoff.next_delay() == 0.2
        assert backoff.next_delay() == 0.4

    def test_max_backoff_cap(self):
        config = RetryConfig(initial_backoff_ms=1000, backoff_multiplier=10.0, max_backoff_ms=5000, jitter=False)
        backoff = ExponentialBackoff(config)

        assert backoff.next_delay() == 1.0
        assert backoff.next_delay() == 5.0  # Capped at max

    def test_jitter_stays_in_range(self):
        config = RetryConfig(initial_backoff_ms=1000, jitter=True)

        delays = [ExponentialBackoff(config).next_delay() for _ in range(20)]

        # 50-150% of the base delay
        assert all(0.5 <= d <= 1.5 for d in delays), f'Jittered delays out of range: {delays}'
        assert len(set(delays)) > 1

    def test_max_retries_limit(self):
        backoff = ExponentialBackoff(RetryConfig(initial_backoff_ms=100, max_retries=3, jitter=False))

        assert backoff.next_delay() is not None
        assert backoff.next_delay() is not None
        assert backoff.next_delay() is not None
        assert backoff.next_delay() is None

    def test_disabled(self):
        backoff = ExponentialBackoff(RetryConfig(enabled=False))
        assert backoff.next_delay() is None

