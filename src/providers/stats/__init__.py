"""Upstream statistics clients.

    OpenDotaClient      -- JSON match and player payloads (IMatchDataProvider)
    DotabuffClient      -- paginated HTML team match listings (ITeamPageProvider)
    FixtureStatsClient  -- canned payloads from disk for offline mode (both)
"""

from src.providers.stats.dotabuff_client import DotabuffClient
from src.providers.stats.fixture_client import FixtureStatsClient
from src.providers.stats.opendota_client import OpenDotaClient

__all__ = ["DotabuffClient", "FixtureStatsClient", "OpenDotaClient"]
