"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK (Junior Developer Guide) ───────────────────────
#
# This class uses pydantic-settings to read configuration from TWO
# sources (in priority order):
#
#   1. **Environment variables** -- e.g., REDIS_URL=redis://localhost:6379/0
#      (highest priority -- always wins)
#   2. **.env file** -- key=value lines in the project root .env file
#      (lower priority -- used for local development)
#
# The mapping is automatic: field name `redis_url` maps to env var
# `REDIS_URL` (pydantic-settings uppercases and matches).
#
# Per-provider rate limits are structured data and live in
# config/config.yaml instead (see src/config/loader.py).
# ──────────────────────────────────────────────────────────────────────
"""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Stats orchestrator settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    # === Cache Store ===
    # Empty redis_url = "not configured" -> "auto" selection skips redis and
    # falls through to the file backend.
    redis_url: str = ""
    cache_backend: Literal["auto", "redis", "file", "memory"] = "auto"
    cache_dir: str = "data/cache"
    cache_max_age_seconds: int = 60 * 60 * 24 * 14  # hard ceiling for every entry
    cache_max_entries: int = 5000

    # === Resource TTLs (soft expiry) ===
    team_ttl_seconds: int = 60 * 60 * 2
    match_ttl_seconds: int = 60 * 60 * 24 * 14
    player_ttl_seconds: int = 60 * 60 * 24

    # === Upstream providers ===
    opendota_base_url: str = "https://api.opendota.com/api"
    dotabuff_base_url: str = "https://www.dotabuff.com"
    http_timeout_seconds: float = 30.0
    job_timeout_seconds: float = 60.0  # per-executor timeout, 0 disables

    # === Offline mode ===
    use_mock_api: bool = False
    mock_data_dir: str = "mock-data"
    mock_rate_limit: int = 1000  # requests per minute for every provider

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"
