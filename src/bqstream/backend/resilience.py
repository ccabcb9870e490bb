"""
Retry primitives for the HTTP transport.

Only transient transport failures are retried here, before a reply ever
reaches the paging engine. Rejections such as invalid queries or missing
tables surface immediately.
"""

import random
from dataclasses import dataclass
from typing import Optional

import httpx


@dataclass
class RetryConfig:
    """Configuration for retry behavior with exponential backoff."""

    enabled: bool = True
    max_retries: int = 3
    initial_backoff_ms: int = 500
    max_backoff_ms: int = 30000
    backoff_multiplier: float = 2.0
    jitter: bool = True  # Randomize delays so concurrent clients spread out


class ErrorClassifier:
    """Classify transport outcomes as transient (retryable) or permanent."""

    TRANSIENT_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

    TRANSIENT_EXCEPTIONS = (
        httpx.ConnectError,
        httpx.ConnectTimeout,
        httpx.ReadTimeout,
        httpx.RemoteProtocolError,
    )

    @staticmethod
    def is_transient_status(status_code: int) -> bool:
        return status_code in ErrorClassifier.TRANSIENT_STATUS_CODES

    @staticmethod
    def is_transient_exception(error: Exception) -> bool:
        """
        Determine if a transport exception is worth retrying.

        Args:
            error: Exception raised by httpx

        Returns:
            True if the failure appears transient
        """
        return isinstance(error, ErrorClassifier.TRANSIENT_EXCEPTIONS)


class ExponentialBackoff:
    """
    Calculate exponential backoff delays with optional jitter.
    """

    def __init__(self, config: RetryConfig):
        self.config = config
        self.attempt = 0

    def next_delay(self) -> Optional[float]:
        """
        Calculate next backoff delay in seconds.

        Returns:
            Delay in seconds, or None if retries are disabled or exhausted
        """
        if not self.config.enabled or self.attempt >= self.config.max_retries:
            return None

        # Exponential backoff: initial * (multiplier ^ attempt)
        delay_ms = min(
            self.config.initial_backoff_ms * (self.config.backoff_multiplier**self.attempt),
            self.config.max_backoff_ms,
        )

        # Randomize to 50-150% of calculated delay
        if self.config.jitter:
            delay_ms *= 0.5 + random.random()

        self.attempt += 1
        return delay_ms / 1000.0
