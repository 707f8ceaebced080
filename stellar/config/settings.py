"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK ────────────────────────────────────────────────
#
# pydantic-settings reads configuration from two sources (in priority
# order):
#
#   1. **Environment variables** - e.g., LASTFM_API_KEY=abc123
#   2. **.env file** - key=value lines in the project root .env file
#
# Field ``lastfm_api_key`` maps to env var ``LASTFM_API_KEY``.  Defaults
# apply when neither source sets a field.
#
# Only deployment concerns live here (keys, URLs, timeouts, fetch budget).
# Algorithm tunables live in the ``engine:`` section of config/config.yaml
# and are validated by :class:`stellar.config.engine_config.EngineConfig`.
# ──────────────────────────────────────────────────────────────────────
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Stellar application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # === Similarity provider (Last.fm) ===
    # Empty string = "not configured"; build_engine refuses to start without it.
    lastfm_api_key: str = ""
    lastfm_base_url: str = "https://ws.audioscrobbler.com/2.0/"

    # === Enrichment provider (Deezer, no key required) ===
    deezer_base_url: str = "https://api.deezer.com"

    # === HTTP ===
    http_timeout_seconds: float = 10.0

    # === Fetch queue (shared provider-call budget) ===
    fetch_max_concurrent: int = 3
    fetch_delay_ms: int = 300
    fetch_rate_limit_backoff_ms: int = 2000
    fetch_max_rate_limit_retries: int = 3

    # === Runs ===
    run_timeout_seconds: float = 180.0

    # === App Config ===
    app_env: str = "development"
    log_level: str = "INFO"

    def has_similarity_provider(self) -> bool:
        """Return ``True`` when a Last.fm API key is configured."""
        return bool(self.lastfm_api_key)
