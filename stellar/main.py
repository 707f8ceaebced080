"""Dependency assembly for the Stellar engine.

Wires providers, the shared fetch queue and the engine together from
``.env`` / environment settings and ``config/config.yaml``.  Library
callers and the CLI both go through :func:`build_engine`; tests construct
:class:`GalaxyEngine` directly with fake providers.
"""

from __future__ import annotations

from typing import Any

import httpx

from stellar.config.engine_config import EngineConfig
from stellar.config.loader import load_config
from stellar.config.settings import Settings
from stellar.pipeline.fetch_queue import FetchQueue
from stellar.pipeline.galaxy_pipeline import GalaxyEngine
from stellar.pipeline.progress_tracker import ProgressTracker
from stellar.providers.enrichment.deezer_provider import DeezerEnrichmentProvider
from stellar.providers.similarity.lastfm_provider import LastFmSimilarityProvider
from stellar.utils.errors import ConfigurationError
from stellar.utils.logging import configure_logging, get_logger


def build_engine(
    config_path: str = "config/config.yaml",
    settings: Settings | None = None,
    http_client: httpx.AsyncClient | None = None,
    configure_logs: bool = True,
) -> GalaxyEngine:
    """Construct a ready-to-use :class:`GalaxyEngine`.

    Parameters
    ----------
    config_path:
        YAML file with the ``engine:`` tunables.
    settings:
        Deployment settings; read from the environment when omitted.
    http_client:
        Shared HTTP client.  When omitted the engine creates one and
        closes it in :meth:`GalaxyEngine.aclose`.
    configure_logs:
        Set up structlog from the resolved log level.  The CLI passes
        ``False`` in quiet mode after redirecting logs itself.

    Raises
    ------
    ConfigurationError
        When no Last.fm API key is configured or the engine section is invalid.
    """
    settings = settings or Settings()
    config: dict[str, Any] = load_config(config_path, settings)

    if configure_logs:
        configure_logging(log_level=config.get("logging", {}).get("level", settings.log_level))
    logger = get_logger(__name__)

    if not settings.has_similarity_provider():
        raise ConfigurationError("LASTFM_API_KEY is not set", provider_name="lastfm")

    try:
        engine_config = EngineConfig(**(config.get("engine") or {}))
    except ValueError as exc:
        raise ConfigurationError(f"Invalid engine configuration: {exc}") from exc

    owns_client = http_client is None
    client = http_client or httpx.AsyncClient(timeout=settings.http_timeout_seconds)

    similarity = LastFmSimilarityProvider(
        http_client=client,
        api_key=settings.lastfm_api_key,
        base_url=settings.lastfm_base_url,
        timeout=settings.http_timeout_seconds,
    )
    enrichment = DeezerEnrichmentProvider(
        http_client=client,
        base_url=settings.deezer_base_url,
        timeout=settings.http_timeout_seconds,
        batch_size=engine_config.enrichment_batch_size,
    )

    engine = GalaxyEngine(
        similarity=similarity,
        enrichment=enrichment,
        config=engine_config,
        queue=FetchQueue(
            settings.fetch_max_concurrent,
            settings.fetch_delay_ms,
            rate_limit_backoff_ms=settings.fetch_rate_limit_backoff_ms,
            max_rate_limit_retries=settings.fetch_max_rate_limit_retries,
        ),
        tracker=ProgressTracker(),
        run_timeout_seconds=settings.run_timeout_seconds,
        http_client=client if owns_client else None,
    )

    logger.info(
        "engine_built",
        similarity=similarity.get_provider_name(),
        enrichment=enrichment.get_provider_name(),
        max_concurrent=settings.fetch_max_concurrent,
        delay_ms=settings.fetch_delay_ms,
    )
    return engine
