"""Public interface definitions for storage backends and upstream providers.

Every cache backend and upstream statistics source is accessed through the
abstract base classes defined here.  Concrete adapters live in
``src/providers/`` and are chosen in ``src/main.py`` at startup, so unit
tests can inject fakes without touching the network.

CONCRETE PROVIDER MAP:
    Interface              ->  Concrete implementations (in src/providers/)
    ─────────────────────────────────────────────────────────────────────
    ICacheProvider         ->  MemoryCacheProvider, FileCacheProvider,
                               RedisCacheProvider
    IMatchDataProvider     ->  OpenDotaClient, FixtureStatsClient
    ITeamPageProvider      ->  DotabuffClient, FixtureStatsClient
    ITeamPageParser        ->  DotabuffParser
"""

from src.interfaces.cache_provider import ICacheProvider
from src.interfaces.page_parser import ITeamPageParser
from src.interfaces.stats_provider import IMatchDataProvider, ITeamPageProvider

__all__ = [
    "ICacheProvider",
    "IMatchDataProvider",
    "ITeamPageParser",
    "ITeamPageProvider",
]
