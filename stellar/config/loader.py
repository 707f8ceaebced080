"""YAML configuration loader with environment variable overrides.

# ─── CONFIGURATION HIERARCHY ──────────────────────────────────────────
#
# Configuration is loaded in layers (later layers override earlier):
#
#   1. config/config.yaml  - Static defaults checked into the repo
#   2. .env file           - Local developer overrides (not committed)
#   3. Environment vars    - Set at deploy time
#
# load_config() reads the YAML file first, then deep-merges the
# Settings-backed sections (providers, fetch, run, app, logging) on top.
# The ``engine:`` section has no env counterpart and passes through as-is.
#
#   base = {"fetch": {"max_concurrent": 3}}
#   overrides = {"fetch": {"delay_ms": 300}}
#   result = {"fetch": {"max_concurrent": 3, "delay_ms": 300}}
# ──────────────────────────────────────────────────────────────────────
"""

from pathlib import Path

import yaml

from stellar.config.settings import Settings


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Environment variables (via Settings) override YAML values where keys overlap.

    Args:
        path: Path to the YAML configuration file.
        settings: Pre-built settings; a fresh ``Settings()`` is read when omitted.

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
            "env": settings.app_env,
        },
        "providers": {
            "lastfm_api_key": settings.lastfm_api_key,
            "lastfm_base_url": settings.lastfm_base_url,
            "deezer_base_url": settings.deezer_base_url,
            "http_timeout_seconds": settings.http_timeout_seconds,
        },
        "fetch": {
            "max_concurrent": settings.fetch_max_concurrent,
            "delay_ms": settings.fetch_delay_ms,
            "rate_limit_backoff_ms": settings.fetch_rate_limit_backoff_ms,
            "max_rate_limit_retries": settings.fetch_max_rate_limit_retries,
        },
        "run": {
            "timeout_seconds": settings.run_timeout_seconds,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
