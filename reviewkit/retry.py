"""
Retry and backoff policy for reads.

Transient failures (network errors, rate limiting, server errors) are
retried with exponential backoff; client errors and schema drift are not.
"""

from dataclasses import dataclass, field

from reviewkit.exceptions import (
    CapabilityError,
    ConfigurationError,
    NetworkError,
    ProviderError,
    QueryCancelledError,
    SchemaValidationError,
)

# Errors that can never succeed on a second attempt.
_PERMANENT_ERRORS = (
    SchemaValidationError,
    ConfigurationError,
    CapabilityError,
    QueryCancelledError,
)


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_retries: int = 3
    base_delay_ms: int = 1000
    max_delay_ms: int = 4000
    no_retry_statuses: frozenset[int] = field(
        default_factory=lambda: frozenset({400, 401, 403, 404, 422})
    )
    respect_retry_after: bool = True

    def should_retry(self, failure_count: int, error: BaseException) -> bool:
        """
        Decide whether a failed read gets another attempt.

        Args:
            failure_count: Number of failures so far
            error: The error raised by the last attempt

        Returns:
            True if the read should be retried
        """
        if failure_count >= self.max_retries:
            return False
        if isinstance(error, NetworkError):
            return True
        if isinstance(error, ProviderError):
            if error.status is None:
                return True
            if error.status in self.no_retry_statuses:
                return False
            return error.status == 429 or error.status >= 500
        if isinstance(error, _PERMANENT_ERRORS):
            return False
        return True

    def retry_delay(self, attempt: int, error: BaseException | None = None) -> int:
        """
        Milliseconds to wait before retry number ``attempt`` (0-indexed).

        A rate-limit response carrying a server wait hint overrides the
        exponential schedule.
        """
        if (
            self.respect_retry_after
            and isinstance(error, ProviderError)
            and error.status == 429
            and error.retry_after_ms is not None
        ):
            return error.retry_after_ms
        return min(self.base_delay_ms * 2**attempt, self.max_delay_ms)


DEFAULT_RETRY_CONFIG = RetryConfig()


def should_retry(failure_count: int, error: BaseException) -> bool:
    """Apply the default retry predicate."""
    return DEFAULT_RETRY_CONFIG.should_retry(failure_count, error)


def retry_delay(attempt: int, error: BaseException | None = None) -> int:
    """Apply the default backoff schedule, in milliseconds."""
    return DEFAULT_RETRY_CONFIG.retry_delay(attempt, error)
