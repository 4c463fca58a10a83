"""Cache entry model and cache-key helpers.

Every cached payload is wrapped in a :class:`CacheEntry` recording when it
was stored and for how long it should be served.  Two expiry horizons apply:

* **soft expiry** (``ttl``) -- once elapsed, ``CacheService.get`` treats the
  entry as absent, but it stays retrievable through ``get_entry`` so a
  caller can serve it stale while a refresh runs.
* **hard ceiling** (``max_age``, owned by the backend) -- once elapsed, the
  entry is purged regardless of its ttl.

Keys follow ``{provider}:{resourceType}:{resourceId}[:qualifier]`` so that
teams, matches and players never collide and invalidating one resource
type never touches another.
"""

from __future__ import annotations

import time
from typing import Any

from pydantic import BaseModel, ConfigDict

# Resource types that get their own directory in the file backend.  Any
# other resource type lands in "misc".
RESOURCE_DIRECTORIES: dict[str, str] = {
    "player": "players",
    "match": "matches",
    "heroes": "heroes",
    "team": "teams",
    "league": "leagues",
}
MISC_DIRECTORY = "misc"


class CacheEntry(BaseModel):
    """A cached payload plus the metadata needed to expire it.

    ``data`` is opaque: parsed JSON structures, validated model dumps, or
    raw text such as provider HTML, stored exactly as given.
    """

    model_config = ConfigDict(frozen=True)

    data: Any
    stored_at: float
    ttl: float | None = None

    def age(self, now: float | None = None) -> float:
        return (time.time() if now is None else now) - self.stored_at

    def is_fresh(self, now: float | None = None) -> bool:
        """Return ``True`` while the soft ttl has not elapsed.

        Entries stored without a ttl stay fresh until the backend's hard
        ceiling purges them.
        """
        if self.ttl is None:
            return True
        return self.age(now) < self.ttl

    def is_expired(self, max_age: float, now: float | None = None) -> bool:
        """Return ``True`` once the entry is past the hard ceiling."""
        return self.age(now) > max_age


# ---------------------------------------------------------------------------
# Key helpers
# ---------------------------------------------------------------------------


def make_key(provider: str, resource_type: str, resource_id: str | int, qualifier: str | None = None) -> str:
    """Compose a cache key, rejecting parts that would break the format."""
    parts = [provider, resource_type, str(resource_id)]
    if qualifier:
        parts.append(qualifier)
    for part in parts:
        if not part or ":" in part:
            raise ValueError(f"Invalid cache key part: {part!r}")
    return ":".join(parts)


def team_key(team_id: str | int, provider: str = "dotabuff") -> str:
    return make_key(provider, "team", team_id, "matches")


def match_key(match_id: str | int, provider: str = "opendota") -> str:
    return make_key(provider, "match", match_id)


def player_key(account_id: str | int, provider: str = "opendota") -> str:
    return make_key(provider, "player", account_id)


def resource_type_of(key: str) -> str:
    """Return the resource type segment of *key*, or ``""`` if it has none."""
    parts = key.split(":")
    return parts[1] if len(parts) >= 3 else ""


def directory_for(key: str) -> str:
    """Return the file-backend subdirectory for *key*."""
    return RESOURCE_DIRECTORIES.get(resource_type_of(key), MISC_DIRECTORY)
