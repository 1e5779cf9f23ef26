"""Tests for BaseClient retry, rate limiting and caching."""

from unittest.mock import AsyncMock, patch

import pytest
import respx
from httpx import ConnectError, ConnectTimeout, HTTPStatusError, ReadTimeout, Response

from curatarr.clients.base import BaseClient, RateLimitedError, RateLimiter, parse_retry_after
from curatarr.clients.radarr import RadarrClient
from curatarr.clients.tmdb import TmdbClient
from curatarr.models import MediaKind

MOVIE = {"id": 1, "title": "Movie Name", "year": 2019, "tmdbId": 11}


class TestCaching:
    """Tests for TTL caching functionality."""

    @respx.mock
    @pytest.mark.asyncio
    async def test_cache_hit_returns_cached_data(self) -> None:
        """Should return cached data on second call without making HTTP request."""
        route = respx.get("http://radarr:7878/api/v3/movie").mock(
            return_value=Response(200, json=[MOVIE])
        )

        async with RadarrClient("http://radarr:7878", "test-api-key") as client:
            first = await client.get_library_items()
            second = await client.get_library_items()

        assert route.call_count == 1
        assert first == second

    @respx.mock
    @pytest.mark.asyncio
    async def test_clear_cache(self) -> None:
        """Should fetch again after the cache is cleared."""
        route = respx.get("http://radarr:7878/api/v3/movie").mock(
            return_value=Response(200, json=[MOVIE])
        )

        async with RadarrClient("http://radarr:7878", "test-api-key") as client:
            await client.get_library_items()
            assert await client.clear_cache() == 1
            await client.get_library_items()

        assert route.call_count == 2

    @respx.mock
    @pytest.mark.asyncio
    async def test_different_params_not_cached(self) -> None:
        """Should make separate requests for different parameters."""
        route = respx.get("https://api.themoviedb.org/3/search/movie").mock(
            return_value=Response(200, json={"results": []})
        )

        async with TmdbClient("key") as client:
            await client.search("One", kind=MediaKind.MOVIE)
            await client.search("Two", kind=MediaKind.MOVIE)

        assert route.call_count == 2

    @pytest.mark.asyncio
    async def test_client_outside_context(self) -> None:
        """Should refuse requests outside the async context manager."""
        client = BaseClient("http://svc")
        with pytest.raises(RuntimeError, match="async context manager"):
            await client._get("/items")


class TestRetry:
    """Tests for retry functionality."""

    @respx.mock
    @pytest.mark.asyncio
    async def test_retry_on_connect_error(self) -> None:
        """Should retry on connection errors."""
        route = respx.get("http://svc/items")
        route.side_effect = [ConnectError("Connection refused"), Response(200, json=[])]

        async with BaseClient("http://svc", backoff_base=0) as client:
            assert await client._get("/items") == []
        assert route.call_count == 2

    @respx.mock
    @pytest.mark.asyncio
    async def test_retry_on_timeouts(self) -> None:
        """Should retry on connect and read timeouts."""
        route = respx.get("http://svc/items")
        route.side_effect = [
            ConnectTimeout("Timeout"),
            ReadTimeout("Read timeout"),
            Response(200, json={"ok": True}),
        ]

        async with BaseClient("http://svc", backoff_base=0) as client:
            assert await client._get("/items") == {"ok": True}
        assert route.call_count == 3

    @respx.mock
    @pytest.mark.asyncio
    async def test_retry_on_server_error(self) -> None:
        """Should retry 5xx responses."""
        route = respx.get("http://svc/items")
        route.side_effect = [Response(503), Response(200, json=[1])]

        async with BaseClient("http://svc", backoff_base=0) as client:
            assert await client._get("/items") == [1]
        assert route.call_count == 2

    @respx.mock
    @pytest.mark.asyncio
    async def test_server_error_exhausted(self) -> None:
        """Should raise the HTTP error once retries are exhausted."""
        route = respx.get("http://svc/items").mock(return_value=Response(500))

        async with BaseClient("http://svc", backoff_base=0, max_retries=3) as client:
            with pytest.raises(HTTPStatusError) as exc_info:
                await client._get("/items")

        assert exc_info.value.response.status_code == 500
        assert route.call_count == 3

    @respx.mock
    @pytest.mark.asyncio
    async def test_no_retry_on_404(self) -> None:
        """Should NOT retry on 404 Not Found - fail fast."""
        route = respx.get("http://svc/items").mock(return_value=Response(404))

        async with BaseClient("http://svc", backoff_base=0) as client:
            with pytest.raises(HTTPStatusError) as exc_info:
                await client._get("/items")

        assert exc_info.value.response.status_code == 404
        assert route.call_count == 1

    @respx.mock
    @pytest.mark.asyncio
    async def test_no_retry_on_401(self) -> None:
        """Should NOT retry on 401 Unauthorized - fail fast."""
        route = respx.get("http://svc/items").mock(return_value=Response(401))

        async with BaseClient("http://svc", backoff_base=0) as client:
            with pytest.raises(HTTPStatusError):
                await client._get("/items")

        assert route.call_count == 1


class TestRateLimiting:
    """Tests for 429 handling and the minimum call interval."""

    @respx.mock
    @pytest.mark.asyncio
    async def test_retry_after_429(self) -> None:
        """Should back off and retry after a 429."""
        route = respx.get("http://svc/items")
        route.side_effect = [
            Response(429, headers={"Retry-After": "0"}),
            Response(200, json=[]),
        ]

        async with BaseClient("http://svc") as client:
            assert await client._get("/items") == []
        assert route.call_count == 2

    @respx.mock
    @pytest.mark.asyncio
    async def test_retry_after_is_capped(self) -> None:
        """Should never wait longer than max_rate_limit_wait."""
        route = respx.get("http://svc/items")
        route.side_effect = [
            Response(429, headers={"Retry-After": "3600"}),
            Response(200, json=[]),
        ]

        async with BaseClient("http://svc", max_rate_limit_wait=0) as client:
            assert await client._get("/items") == []
        assert route.call_count == 2

    @respx.mock
    @pytest.mark.asyncio
    async def test_rate_limited_exhausted(self) -> None:
        """Should raise RateLimitedError when every attempt is throttled."""
        respx.get("http://svc/items").mock(
            return_value=Response(429, headers={"Retry-After": "7"})
        )

        async with BaseClient("http://svc", max_retries=2, max_rate_limit_wait=0) as client:
            with pytest.raises(RateLimitedError) as exc_info:
                await client._get("/items")

        assert exc_info.value.retry_after == 7.0

    @pytest.mark.asyncio
    async def test_rate_limiter_spaces_calls(self) -> None:
        """Should sleep when calls come faster than the minimum interval."""
        limiter = RateLimiter(10.0)

        with patch("curatarr.clients.base.asyncio.sleep", new_callable=AsyncMock) as sleep:
            await limiter.acquire()
            sleep.assert_not_called()
            await limiter.acquire()

        sleep.assert_awaited_once()
        assert 0 < sleep.await_args.args[0] <= 10.0

    @respx.mock
    @pytest.mark.asyncio
    async def test_limiter_used_per_request(self) -> None:
        """Should acquire the shared limiter before each attempt."""
        respx.get("http://svc/items").mock(return_value=Response(200, json=[]))
        limiter = RateLimiter(0)
        limiter.acquire = AsyncMock()  # type: ignore[method-assign]

        async with BaseClient("http://svc", rate_limiter=limiter) as client:
            await client._get("/items")

        limiter.acquire.assert_awaited_once()

    def test_parse_retry_after(self) -> None:
        """Should parse seconds and fall back to the default."""
        assert parse_retry_after("5") == 5.0
        assert parse_retry_after(None) == 10.0
        assert parse_retry_after("soon") == 10.0
        assert parse_retry_after("-3") == 0.0


class TestGetOrNone:
    """Tests for converting failures into None at capability boundaries."""

    @respx.mock
    @pytest.mark.asyncio
    async def test_not_found(self) -> None:
        """Should return None on 404."""
        respx.get("http://svc/items").mock(return_value=Response(404))

        async with BaseClient("http://svc") as client:
            assert await client._get_or_none("/items") is None

    @respx.mock
    @pytest.mark.asyncio
    async def test_transport_failure(self) -> None:
        """Should return None when the service is unreachable."""
        respx.get("http://svc/items").mock(side_effect=ConnectError("refused"))

        async with BaseClient("http://svc", backoff_base=0, max_retries=2) as client:
            assert await client._get_or_none("/items") is None

    @respx.mock
    @pytest.mark.asyncio
    async def test_throttled(self) -> None:
        """Should return None when still rate limited after retries."""
        respx.get("http://svc/items").mock(return_value=Response(429))

        async with BaseClient("http://svc", max_retries=2, max_rate_limit_wait=0) as client:
            assert await client._get_or_none("/items") is None
