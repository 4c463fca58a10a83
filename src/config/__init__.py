"""Configuration module -- exports Settings and the YAML loader helpers."""

from src.config.loader import load_config, rate_limit_configs
from src.config.settings import Settings

__all__ = ["Settings", "load_config", "rate_limit_configs"]
