"""Base client for external API interactions."""

from __future__ import annotations

import asyncio
import hashlib
import logging
import time
from typing import Any, Self

import httpx
from cachetools import TTLCache
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

DEFAULT_RETRY_AFTER = 10.0


class RateLimitedError(Exception):
    """Raised when a service answers 429 Too Many Requests.

    Attributes:
        retry_after: Seconds the service asked us to wait
    """

    def __init__(self, endpoint: str, retry_after: float) -> None:
        super().__init__(f"Rate limited on {endpoint}; retry after {retry_after:.1f}s")
        self.endpoint = endpoint
        self.retry_after = retry_after


def parse_retry_after(value: str | None, default: float = DEFAULT_RETRY_AFTER) -> float:
    """Parse a Retry-After header given in seconds."""
    if not value:
        return default
    try:
        seconds = float(value)
    except ValueError:
        return default
    return max(seconds, 0.0)


class RateLimiter:
    """Enforce a minimum interval between successive calls.

    Example:
        limiter = RateLimiter(0.35)
        await limiter.acquire()  # sleeps if the last call was under 0.35s ago
    """

    def __init__(self, min_interval: float) -> None:
        self.min_interval = min_interval
        self._last_call: float | None = None
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Wait until the next call is allowed."""
        async with self._lock:
            now = time.monotonic()
            if self._last_call is not None:
                remaining = self.min_interval - (now - self._last_call)
                if remaining > 0:
                    await asyncio.sleep(remaining)
            self._last_call = time.monotonic()


class BaseClient:
    """Base client with retry, rate limiting and caching.

    This base class provides:
    - HTTP client management with connection pooling
    - Automatic retry with exponential backoff for transient failures
    - Back-off for the service-indicated duration on 429 responses
    - A minimum delay between calls through a shared :class:`RateLimiter`
    - Per-client TTL caching for GET requests

    Subclasses implement specific API methods using ``_get()`` for cached
    requests, or ``_get_or_none()`` at capability boundaries that must not
    raise.
    """

    service_name = "api"

    def __init__(
        self,
        base_url: str,
        *,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        timeout: float = 30.0,
        cache_ttl: int = 300,
        max_retries: int = 3,
        rate_limiter: RateLimiter | None = None,
        max_rate_limit_wait: float = 60.0,
        backoff_base: float = 1.0,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: The base URL of the service
            headers: Headers sent with every request (authentication)
            params: Query parameters sent with every request
            timeout: Request timeout in seconds (default 30.0)
            cache_ttl: Cache time-to-live in seconds (default 300)
            max_retries: Maximum number of attempts per request (default 3)
            rate_limiter: Limiter shared between clients, if any
            max_rate_limit_wait: Cap on a service-indicated back-off in seconds
            backoff_base: Multiplier for exponential back-off (0 disables waiting)
        """
        self.base_url = base_url.rstrip("/")
        self.headers = headers or {}
        self.default_params = params or {}
        self.timeout = timeout
        self.cache_ttl = cache_ttl
        self.max_retries = max_retries
        self.rate_limiter = rate_limiter
        self.max_rate_limit_wait = max_rate_limit_wait
        self.backoff_base = backoff_base

        self._client: httpx.AsyncClient | None = None
        self._cache: TTLCache[str, Any] = TTLCache(maxsize=1000, ttl=cache_ttl)
        self._cache_lock = asyncio.Lock()

    async def __aenter__(self) -> Self:
        """Enter async context manager."""
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=self.headers,
            timeout=self.timeout,
        )
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Exit async context manager."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client, raising if not in context.

        Raises:
            RuntimeError: If called outside of async context manager
        """
        if self._client is None:
            raise RuntimeError("Client must be used within async context manager")
        return self._client

    def _make_cache_key(self, endpoint: str, params: dict[str, Any] | None) -> str:
        params_str = str(sorted((params or {}).items()))
        key_data = f"{endpoint}:{params_str}"
        return hashlib.sha256(key_data.encode()).hexdigest()[:16]

    async def _get(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        """Make a cached GET request.

        Args:
            endpoint: The API endpoint path
            params: Optional query parameters

        Returns:
            The JSON response data

        Raises:
            httpx.HTTPStatusError: On HTTP errors (after retries exhausted)
            RateLimitedError: If still rate limited after retries
        """
        cache_key = self._make_cache_key(endpoint, params)

        async with self._cache_lock:
            if cache_key in self._cache:
                logger.debug("Cache hit for %s", endpoint)
                return self._cache[cache_key]

        logger.debug("Cache miss for %s, fetching from %s", endpoint, self.service_name)
        data = await self._request_with_retry("GET", endpoint, params=params)

        async with self._cache_lock:
            self._cache[cache_key] = data

        return data

    async def _get_or_none(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        """Make a cached GET request, converting any failure into None.

        A not-found response is logged at DEBUG; transport failures, other
        HTTP errors and exhausted rate-limit retries are logged as warnings.
        """
        try:
            return await self._get(endpoint, params)
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                logger.debug("%s: not found: %s", self.service_name, endpoint)
            else:
                logger.warning(
                    "%s: HTTP %d for %s", self.service_name, e.response.status_code, endpoint
                )
        except RateLimitedError as e:
            logger.warning("%s: giving up: %s", self.service_name, e)
        except httpx.HTTPError as e:
            logger.warning("%s: request to %s failed: %s", self.service_name, endpoint, e)
        return None

    def _wait(self, retry_state: RetryCallState) -> float:
        """Back off for the service-indicated delay on 429, exponentially otherwise."""
        outcome = retry_state.outcome
        exc = outcome.exception() if outcome else None
        if isinstance(exc, RateLimitedError):
            return min(exc.retry_after, self.max_rate_limit_wait)
        if self.backoff_base <= 0:
            return 0.0
        backoff = wait_exponential(multiplier=self.backoff_base, min=self.backoff_base, max=10)
        return backoff(retry_state)

    async def _request_with_retry(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        """Make an HTTP request with retry logic.

        Retries on:
        - Connection errors
        - Timeouts
        - 429 (Too Many Requests), after the Retry-After delay
        - 5xx server errors

        Does NOT retry on:
        - 401 (Unauthorized) - fail fast
        - 404 (Not Found) - fail fast
        - Other 4xx client errors

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: The API endpoint path
            params: Optional query parameters
            json: Optional JSON body

        Returns:
            The JSON response data

        Raises:
            httpx.HTTPStatusError: On non-retryable HTTP errors
            RateLimitedError: If every attempt was rate limited
        """
        merged_params = {**self.default_params, **(params or {})}

        @retry(
            stop=stop_after_attempt(self.max_retries),
            wait=self._wait,
            retry=retry_if_exception_type(
                (
                    httpx.ConnectError,
                    httpx.ConnectTimeout,
                    httpx.ReadTimeout,
                    RateLimitedError,
                    _ServerError,
                )
            ),
            before_sleep=self._log_retry,
            reraise=True,
        )
        async def _do_request() -> Any:
            if self.rate_limiter is not None:
                await self.rate_limiter.acquire()

            response = await self.client.request(
                method,
                endpoint,
                params=merged_params or None,
                json=json,
            )

            if response.status_code == 429:
                retry_after = parse_retry_after(response.headers.get("Retry-After"))
                logger.warning(
                    "%s rate limited %s; backing off %.1fs",
                    self.service_name,
                    endpoint,
                    min(retry_after, self.max_rate_limit_wait),
                )
                raise RateLimitedError(endpoint, retry_after)

            if response.status_code >= 500:
                logger.warning("Retryable HTTP error %d for %s", response.status_code, endpoint)
                try:
                    response.raise_for_status()
                except httpx.HTTPStatusError as e:
                    raise _ServerError(str(e), request=e.request, response=e.response) from e

            response.raise_for_status()
            return response.json()

        return await _do_request()

    def _log_retry(self, retry_state: RetryCallState) -> None:
        logger.warning(
            "Retry attempt %d after error: %s",
            retry_state.attempt_number,
            retry_state.outcome.exception() if retry_state.outcome else "unknown",
        )

    async def clear_cache(self) -> int:
        """Clear all cached entries.

        Returns:
            The number of entries that were cleared
        """
        async with self._cache_lock:
            count = len(self._cache)
            self._cache.clear()
            return count


class _ServerError(httpx.HTTPStatusError):
    """A 5xx response, kept distinct so only server errors are retried."""
