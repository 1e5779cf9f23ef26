"""API clients for the local library managers, metadata catalogs and web search."""

from curatarr.clients.base import BaseClient, RateLimitedError, RateLimiter
from curatarr.clients.brave import BraveSearchClient
from curatarr.clients.radarr import RadarrClient
from curatarr.clients.sonarr import SonarrClient
from curatarr.clients.tmdb import TmdbClient
from curatarr.clients.tvdb import TvdbClient

__all__ = [
    "BaseClient",
    "BraveSearchClient",
    "RadarrClient",
    "RateLimitedError",
    "RateLimiter",
    "SonarrClient",
    "TmdbClient",
    "TvdbClient",
]
