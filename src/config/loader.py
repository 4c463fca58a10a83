"""YAML configuration loader with environment variable overrides.

# ─── CONFIGURATION HIERARCHY (Junior Developer Guide) ──────────────────
#
# Configuration is loaded in layers (later layers override earlier):
#
#   1. config/config.yaml  -- Static defaults checked into the repo
#   2. .env file           -- Local developer overrides (not committed)
#   3. Environment vars    -- Set at deploy time
#
# load_config() reads the YAML file first, then deep-merges the values
# Settings resolved from the environment on top.  Per-provider rate
# limits only exist in YAML; rate_limit_configs() turns that section into
# RateLimitConfig objects (or, in offline mode, one uniform mock limit).
# ──────────────────────────────────────────────────────────────────────
"""

from pathlib import Path

import yaml

from src.config.settings import Settings
from src.models.queue import RateLimitConfig

# Used when config.yaml is missing or omits the rate_limits section.
DEFAULT_RATE_LIMITS: dict[str, dict[str, float]] = {
    "opendota": {"max_requests": 60, "window_seconds": 60, "delay_seconds": 1.0},
    "dotabuff": {"max_requests": 30, "window_seconds": 60, "delay_seconds": 2.0},
    "stratz": {"max_requests": 30, "window_seconds": 60, "delay_seconds": 1.0},
    "d2pt": {"max_requests": 30, "window_seconds": 60, "delay_seconds": 1.0},
    "default": {"max_requests": 30, "window_seconds": 60, "delay_seconds": 1.0},
}


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Environment variables (via Settings) override YAML values where keys overlap.

    Args:
        path: Path to the YAML configuration file.
        settings: Already-resolved settings; a fresh ``Settings()`` when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
        "cache": {
            "backend": settings.cache_backend,
            "dir": settings.cache_dir,
            "max_age_seconds": settings.cache_max_age_seconds,
            "max_entries": settings.cache_max_entries,
            "redis_url": settings.redis_url,
        },
        "ttl": {
            "team_seconds": settings.team_ttl_seconds,
            "match_seconds": settings.match_ttl_seconds,
            "player_seconds": settings.player_ttl_seconds,
        },
        "orchestration": {
            "job_timeout_seconds": settings.job_timeout_seconds,
        },
        "mock": {
            "enabled": settings.use_mock_api,
            "data_dir": settings.mock_data_dir,
            "rate_limit": settings.mock_rate_limit,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    yaml_config.setdefault("rate_limits", {})
    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def rate_limit_configs(config: dict) -> dict[str, RateLimitConfig]:
    """Build per-provider rate limits from a resolved config dictionary.

    In offline mode every known provider gets ``mock.rate_limit`` requests
    per minute, spaced ``60 / mock.rate_limit`` seconds apart.
    """
    limits: dict[str, dict] = {name: dict(values) for name, values in DEFAULT_RATE_LIMITS.items()}
    _deep_merge(limits, config.get("rate_limits") or {})

    mock = config.get("mock") or {}
    if mock.get("enabled"):
        per_minute = max(int(mock.get("rate_limit") or 1000), 1)
        return {
            name: RateLimitConfig(
                max_requests=per_minute,
                window_seconds=60.0,
                delay_seconds=60.0 / per_minute,
            )
            for name in limits
        }

    return {name: RateLimitConfig(**values) for name, values in limits.items()}


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
