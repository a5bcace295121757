"""
reviewkit logging utilities.

All loggers live under ``reviewkit``:

* ``reviewkit.http``: one DEBUG line per request and response
* ``reviewkit.cache``: hits, fetches, optimistic writes, rollbacks,
  invalidations and cross-population
* ``reviewkit.providers.<name>`` and ``reviewkit.query``: warnings and errors

Access tokens and credential headers are masked before anything is written.
"""

import logging
import re
from typing import Any

_sdk_logger = logging.getLogger("reviewkit")
_http_logger = logging.getLogger("reviewkit.http")
_cache_logger = logging.getLogger("reviewkit.cache")

REDACTED = "[REDACTED]"
TOKEN_REDACTED = "[TOKEN_REDACTED]"

_SENSITIVE_PATTERNS = [
    (re.compile(r"(Bearer|Basic)\s+[A-Za-z0-9._~+/=-]+"), rf"\1 {REDACTED}"),
    (re.compile(r"\bgh[pousr]_[A-Za-z0-9]{20,}\b"), TOKEN_REDACTED),
    (re.compile(r"\bgithub_pat_[A-Za-z0-9_]{20,}\b"), TOKEN_REDACTED),
    (re.compile(r"\bglpat-[A-Za-z0-9_-]{20,}\b"), TOKEN_REDACTED),
    (
        re.compile(
            r"(private-token|token|password|secret|api_key)(['\"]?\s*[:=]\s*)['\"]?[^\s'\",&]+['\"]?",
            re.IGNORECASE,
        ),
        rf"\1\2{REDACTED}",
    ),
]

# Header and payload keys whose values are never logged. Matched as substrings
# of the lower-cased key, so "PRIVATE-TOKEN" and "access_token" are covered.
SENSITIVE_KEYS = frozenset(
    {"authorization", "token", "password", "secret", "api_key", "cookie"}
)

_TOKEN_TAIL = 4

_installed_handler: logging.Handler | None = None


def configure_logging(
    level: int = logging.INFO,
    http_level: int | None = None,
    cache_level: int | None = None,
    handler: logging.Handler | None = None,
    format_string: str | None = None,
) -> None:
    """
    Configure reviewkit logging.

    Calling this again replaces the handler installed by the previous call
    instead of adding a second one.

    Args:
        level: Default log level for all reviewkit loggers (default: INFO)
        http_level: Level for ``reviewkit.http`` (default: same as level)
        cache_level: Level for ``reviewkit.cache`` (default: same as level)
        handler: Handler to install (default: StreamHandler to stderr)
        format_string: Log format (default: timestamp, logger, level, message)

    Example:
        ```python
        import logging
        from reviewkit.logging import configure_logging

        # Watch optimistic writes and rollbacks
        configure_logging(level=logging.INFO, cache_level=logging.DEBUG)
        ```
    """
    global _installed_handler

    handler = handler or logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter(format_string or "%(asctime)s %(name)s [%(levelname)s] %(message)s")
    )
    if _installed_handler is not None:
        _sdk_logger.removeHandler(_installed_handler)
    _sdk_logger.addHandler(handler)
    _installed_handler = handler

    _sdk_logger.setLevel(level)
    _http_logger.setLevel(level if http_level is None else http_level)
    _cache_logger.setLevel(level if cache_level is None else cache_level)


def get_logger(name: str | None = None) -> logging.Logger:
    """
    Get a reviewkit logger.

    Args:
        name: Suffix below ``reviewkit`` (e.g. "http", "providers.github");
            None returns the package logger

    Returns:
        Logger instance
    """
    return _sdk_logger if name is None else logging.getLogger(f"reviewkit.{name}")


def mask_sensitive_data(text: str) -> str:
    """Mask access tokens and credential assignments in free text."""
    for pattern, replacement in _SENSITIVE_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def truncate_token(token: str) -> str:
    """Identify a token by its last few characters, e.g. "...a1b2"."""
    if len(token) <= _TOKEN_TAIL * 3:
        return REDACTED
    return f"...{token[-_TOKEN_TAIL:]}"


def _is_sensitive(key: Any, sensitive_keys: frozenset[str] | set[str]) -> bool:
    lowered = str(key).lower()
    return any(sensitive in lowered for sensitive in sensitive_keys)


def _mask_value(value: Any, sensitive_keys: frozenset[str] | set[str]) -> Any:
    if isinstance(value, dict):
        return safe_log_dict(value, sensitive_keys)
    if isinstance(value, (list, tuple)):
        return [_mask_value(item, sensitive_keys) for item in value]
    if isinstance(value, str):
        return mask_sensitive_data(value)
    return value


def safe_log_dict(
    data: dict[str, Any], sensitive_keys: frozenset[str] | set[str] | None = None
) -> dict[str, Any]:
    """
    Copy a header or payload mapping with credentials masked.

    Values under sensitive keys become ``"[REDACTED]"``; nested mappings and
    lists are masked recursively and token-shaped strings elsewhere are
    scrubbed with ``mask_sensitive_data``.

    Args:
        data: Mapping that may hold credentials
        sensitive_keys: Lower-cased key fragments to mask (default:
            ``SENSITIVE_KEYS``)

    Returns:
        A new dictionary safe to log
    """
    keys = SENSITIVE_KEYS if sensitive_keys is None else sensitive_keys
    return {
        key: REDACTED if _is_sensitive(key, keys) else _mask_value(value, keys)
        for key, value in data.items()
    }


def log_http_request(
    method: str,
    url: str,
    headers: dict[str, str] | None = None,
    body: dict[str, Any] | None = None,
) -> None:
    """
    Log an outgoing request at DEBUG level.

    Args:
        method: HTTP method
        url: Request URL
        headers: Request headers (optional)
        body: JSON body (optional)
    """
    if not _http_logger.isEnabledFor(logging.DEBUG):
        return
    line = f"{method} {mask_sensitive_data(url)}"
    if headers:
        line += f" | headers={safe_log_dict(headers)}"
    if body:
        line += f" | body={safe_log_dict(body)}"
    _http_logger.debug(line)


def log_http_response(status_code: int, url: str, elapsed_ms: float | None = None) -> None:
    """Log a response status (and timing, when known) at DEBUG level."""
    if not _http_logger.isEnabledFor(logging.DEBUG):
        return
    line = f"Response {status_code} from {mask_sensitive_data(url)}"
    if elapsed_ms is not None:
        line += f" | elapsed={elapsed_ms:.2f}ms"
    _http_logger.debug(line)


def log_cache_event(event: str, key: Any, detail: str | None = None) -> None:
    """
    Log a query cache event at DEBUG level.

    Args:
        event: "hit", "fetch", "discard", "cancel", "optimistic",
            "rollback", "invalidate" or "populate"
        key: The query key involved
        detail: Extra context (optional)
    """
    if not _cache_logger.isEnabledFor(logging.DEBUG):
        return
    if detail:
        _cache_logger.debug("%s: %s | %s", event, key, detail)
    else:
        _cache_logger.debug("%s: %s", event, key)


__all__ = [
    "REDACTED",
    "SENSITIVE_KEYS",
    "configure_logging",
    "get_logger",
    "mask_sensitive_data",
    "truncate_token",
    "safe_log_dict",
    "log_http_request",
    "log_http_response",
    "log_cache_event",
]
