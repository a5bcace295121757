"""
Async HTTP transport shared by all backend adapters.

Handles authentication, request/response logging and mapping of failures
onto the reviewkit error taxonomy. Retrying is the query engine's job, so
every request here is attempted exactly once.
"""

import time
from collections.abc import Generator, Mapping
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

import httpx

from reviewkit.exceptions import NetworkError, ProviderError, SchemaValidationError
from reviewkit.logging import log_http_request, log_http_response


class BearerAuth(httpx.Auth):
    """``Authorization: Bearer <token>`` authentication."""

    def __init__(self, token: str) -> None:
        self.token = token

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        request.headers["Authorization"] = f"Bearer {self.token}"
        yield request


class HeaderTokenAuth(httpx.Auth):
    """Sends the token verbatim in a custom header (e.g. ``PRIVATE-TOKEN``)."""

    def __init__(self, header: str, token: str) -> None:
        self.header = header
        self.token = token

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        request.headers[self.header] = self.token
        yield request


def parse_retry_after(
    headers: Mapping[str, str], now: datetime | None = None
) -> int | None:
    """
    Extract a server wait hint in milliseconds.

    Understands ``Retry-After`` as delta-seconds or an HTTP date, and the
    ``RateLimit-Reset`` epoch timestamp sent by GitLab.

    Args:
        headers: Response headers
        now: Reference time (default: current UTC time)

    Returns:
        Milliseconds to wait, or None if no usable hint is present
    """
    now = now or datetime.now(timezone.utc)

    retry_after = headers.get("Retry-After")
    if retry_after:
        retry_after = retry_after.strip()
        if retry_after.isdigit():
            return int(retry_after) * 1000
        try:
            when = parsedate_to_datetime(retry_after)
        except (TypeError, ValueError):
            when = None
        if when is not None:
            if when.tzinfo is None:
                when = when.replace(tzinfo=timezone.utc)
            return max(0, int((when - now).total_seconds() * 1000))

    reset = headers.get("RateLimit-Reset")
    if reset and reset.strip().isdigit():
        wait_seconds = int(reset) - now.timestamp()
        return max(0, int(wait_seconds * 1000))

    return None


class AsyncHTTPTransport:
    """
    Async HTTP transport for one backend.

    Handles:
    - Authentication via an ``httpx.Auth`` scheme
    - Network failures mapped to ``NetworkError``
    - Error statuses mapped to ``ProviderError`` with rate-limit hints
    - Undecodable bodies mapped to ``SchemaValidationError``
    """

    def __init__(
        self,
        base_url: str,
        auth: httpx.Auth,
        provider: str,
        headers: dict[str, str] | None = None,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the transport.

        Args:
            base_url: API root (e.g., "https://api.github.com")
            auth: Authentication scheme applied to every request
            provider: Backend name used in error messages
            headers: Headers sent with every request
            timeout: Request timeout in seconds
            http_client: Pre-built client (tests inject one backed by
                ``httpx.MockTransport``); the transport does not close it
        """
        self.base_url = base_url.rstrip("/")
        self.auth = auth
        self.provider = provider
        self.headers = dict(headers or {})
        self.timeout = timeout
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    async def close(self) -> None:
        """Close the HTTP client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "AsyncHTTPTransport":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    def url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    async def request(
        self,
        method: str,
        path: str,
        params: Mapping[str, Any] | list[tuple[str, Any]] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """
        Send a single request.

        Args:
            method: HTTP method
            path: Path relative to ``base_url``, or an absolute URL
            params: Query parameters
            json: JSON request body
            headers: Extra headers for this request

        Returns:
            The successful response

        Raises:
            NetworkError: If no response was received
            ProviderError: If the backend answered with a status >= 400
        """
        url = self.url(path)
        merged_headers = {**self.headers, **(headers or {})}
        log_http_request(method, url, merged_headers, json if isinstance(json, dict) else None)

        started = time.monotonic()
        try:
            response = await self._client.request(
                method,
                url,
                params=params,
                json=json,
                headers=merged_headers,
                auth=self.auth,
            )
        except httpx.RequestError as e:
            raise NetworkError(f"{method} {url} failed: {e}") from e

        log_http_response(response.status_code, url, (time.monotonic() - started) * 1000)

        if response.status_code >= 400:
            raise self._parse_error_response(response)
        return response

    async def get_json(
        self,
        path: str,
        params: Mapping[str, Any] | list[tuple[str, Any]] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        response = await self.request("GET", path, params=params, headers=headers)
        return self.decode_json(response, path)

    async def get_text(
        self,
        path: str,
        params: Mapping[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> str:
        response = await self.request("GET", path, params=params, headers=headers)
        return response.text

    async def send_json(
        self,
        method: str,
        path: str,
        body: Any = None,
        params: Mapping[str, Any] | None = None,
    ) -> Any:
        """Send a JSON body and decode the reply; empty replies decode to None."""
        response = await self.request(method, path, params=params, json=body)
        if not response.content:
            return None
        return self.decode_json(response, path)

    def decode_json(self, response: httpx.Response, endpoint: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise SchemaValidationError(
                self.provider,
                endpoint,
                [{"type": "json_invalid", "msg": str(e)}],
            ) from e

    def _parse_error_response(self, response: httpx.Response) -> ProviderError:
        """
        Parse an error response into a ProviderError.

        Args:
            response: HTTP response with error status

        Returns:
            ProviderError carrying the status and any rate-limit hint
        """
        try:
            data = response.json()
        except ValueError:
            data = {}

        message = f"HTTP {response.status_code}"
        if isinstance(data, dict):
            detail = data.get("message") or data.get("error")
            if isinstance(detail, dict):
                detail = detail.get("message")
            if isinstance(detail, str) and detail:
                message = f"{message}: {detail}"

        retry_after_ms = None
        if response.status_code == 429:
            retry_after_ms = parse_retry_after(response.headers)

        return ProviderError(
            f"{self.provider} {message}",
            status=response.status_code,
            retry_after_ms=retry_after_ms,
            provider=self.provider,
        )
