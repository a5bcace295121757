"""reviewkit exception classes."""

from typing import Any


class ReviewKitError(Exception):
    """Base exception for all reviewkit errors."""

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(f"[{code}] {message}")


class ConfigurationError(ReviewKitError):
    """Raised when provider configuration is invalid or missing."""

    def __init__(self, message: str) -> None:
        super().__init__("CONFIGURATION_ERROR", message)


class NetworkError(ReviewKitError):
    """Raised when a request fails before any HTTP response is received."""

    def __init__(self, message: str) -> None:
        super().__init__("NETWORK_ERROR", message)


class ProviderError(ReviewKitError):
    """
    Raised when a backend answers with a non-success HTTP status.

    Attributes:
        status: HTTP status code, or None when the backend gave none
        retry_after_ms: Server-supplied wait hint in milliseconds (429 only)
    """

    def __init__(
        self,
        message: str,
        status: int | None = None,
        retry_after_ms: int | None = None,
        provider: str | None = None,
    ) -> None:
        super().__init__("PROVIDER_ERROR", message)
        self.status = status
        self.retry_after_ms = retry_after_ms
        self.provider = provider

    @property
    def is_rate_limited(self) -> bool:
        return self.status == 429


class SchemaValidationError(ReviewKitError):
    """Raised when a backend payload does not match the expected schema."""

    def __init__(
        self,
        provider: str,
        endpoint: str,
        errors: list[dict[str, Any]] | None = None,
    ) -> None:
        self.provider = provider
        self.endpoint = endpoint
        self.errors = errors or []
        detail = f"{len(self.errors)} validation error(s)" if self.errors else "unexpected payload"
        super().__init__(
            "SCHEMA_VALIDATION_ERROR",
            f"{provider} response from {endpoint} failed validation: {detail}",
        )


class CapabilityError(ReviewKitError):
    """Raised when an operation is not supported by the selected backend."""

    def __init__(self, provider: str, operation: str) -> None:
        self.provider = provider
        self.operation = operation
        super().__init__(
            "UNSUPPORTED_OPERATION",
            f"{provider} does not support {operation}",
        )


class QueryCancelledError(ReviewKitError):
    """Raised to awaiters of a read whose result was discarded."""

    def __init__(self, key: Any) -> None:
        self.key = key
        super().__init__("QUERY_CANCELLED", f"query {key} was cancelled")
