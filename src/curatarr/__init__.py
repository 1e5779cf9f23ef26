"""curatarr - Identify, score and triage scene releases for Radarr/Sonarr.

A Python library for deciding, for each release title found in a feed, which
catalog item it is, whether it meets your quality policy, and whether it is a
new acquisition, an upgrade of something you already hold, or noise.

Quick Start
-----------
Parse and score a release title::

    from curatarr import QualityPolicy, parse_release, score

    parsed = parse_release("Movie.Name.2019.1080p.WEB-DL.DDP5.1.x264")
    print(parsed.resolution, parsed.codec, parsed.audio)
    print(score(parsed, QualityPolicy()))

Resolve a show name against the catalogs::

    from curatarr import IdentityResolver, MediaKind, ResolutionRequest
    from curatarr.clients import TmdbClient, TvdbClient

    async with TvdbClient("tvdb-key") as tvdb, TmdbClient("tmdb-key") as tmdb:
        resolver = IdentityResolver(primary=tvdb, secondary=tmdb)
        identity = await resolver.resolve(
            ResolutionRequest(name="Kurukshetra", kind=MediaKind.TV)
        )

Run a batch of feed items through the whole pipeline::

    from curatarr import ReleaseStore, SyncOrchestrator

    orchestrator = SyncOrchestrator(
        ReleaseStore(path), policy=policy, resolver=resolver, library=index
    )
    report = await orchestrator.run(feed_items)

CLI Usage
---------
::

    curatarr sync feed.json
    curatarr releases list --status NEW
    curatarr resolve "Kurukshetra" --kind tv

Classes
-------
IdentityResolver
    Waterfall identity resolution with cross-validation.
SyncOrchestrator
    Drives feed items through parsing, resolution, scoring and triage.
ReleaseStore
    JSON-file store of release records and the ignore list.
QualityPolicy
    Admissibility rules and scoring weights.
"""

from curatarr.library import LibraryIndex
from curatarr.models import FeedItem, MediaKind, ReleaseRecord, ReleaseStatus
from curatarr.parser import parse_release, parse_tv_title
from curatarr.policy import QualityPolicy
from curatarr.resolver import IdentityResolver, ResolutionRequest
from curatarr.scoring import score
from curatarr.store import ReleaseStore
from curatarr.sync import SyncOrchestrator, SyncReport

__version__ = "0.1.0"

__all__ = [
    "FeedItem",
    "IdentityResolver",
    "LibraryIndex",
    "MediaKind",
    "QualityPolicy",
    "ReleaseRecord",
    "ReleaseStatus",
    "ReleaseStore",
    "ResolutionRequest",
    "SyncOrchestrator",
    "SyncReport",
    "__version__",
    "parse_release",
    "parse_tv_title",
    "score",
]
