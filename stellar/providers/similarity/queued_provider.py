"""Queue-routed, per-run cached decorator around any similarity provider.

:class:`QueuedSimilarityProvider` is the only way the discovery and
clustering services talk to a similarity source.  Every call it forwards:

    1. checks the run's cancellation flag;
    2. is answered from the run's cache when possible;
    3. otherwise goes through the engine's shared :class:`FetchQueue`;
    4. degrades to an empty result (logged) when the provider fails; a
       rate-limited call only gets here once the queue has run out of
       retries for it.

A :class:`RunCancelledError` is never degraded; it propagates so the run
stops.
"""

from __future__ import annotations

import structlog

from stellar.interfaces.similarity_provider import ISimilarityProvider
from stellar.models.artist import ArtistTag, SimilarArtist, TagArtist
from stellar.pipeline.run_context import RunContext
from stellar.utils.errors import ProviderError
from stellar.utils.logging import get_logger
from stellar.utils.text_normalizer import name_key, normalize_tag


class QueuedSimilarityProvider(ISimilarityProvider):
    """Decorates *inner* with the fetch queue, run cache and failure policy.

    Parameters
    ----------
    inner:
        The concrete similarity provider (e.g. Last.fm).
    context:
        The run this wrapper belongs to.
    """

    def __init__(self, inner: ISimilarityProvider, context: RunContext) -> None:
        self._inner = inner
        self._context = context
        self._logger: structlog.BoundLogger = get_logger(__name__).bind(run_id=context.run_id)

    @property
    def context(self) -> RunContext:
        return self._context

    # ------------------------------------------------------------------
    # ISimilarityProvider implementation
    # ------------------------------------------------------------------

    async def get_similar_artists(self, name: str, limit: int = 100) -> list[SimilarArtist]:
        """Similar artists for *name*, served from cache when a large enough
        result was fetched earlier in this run."""
        cache_key = f"similar:{name_key(name)}"
        cached = await self._context.cache.get(cache_key)
        if cached is not None:
            cached_limit, cached_results = cached
            if cached_limit >= limit or len(cached_results) < cached_limit:
                return list(cached_results[:limit])

        try:
            results = await self._context.submit(
                lambda: self._inner.get_similar_artists(name, limit)
            )
        except ProviderError as exc:
            self._log_failure("get_similar_artists", name, exc)
            results = []

        await self._context.cache.set(cache_key, (limit, list(results)))
        return list(results[:limit])

    async def get_artist_tags(self, name: str, limit: int = 10) -> list[ArtistTag]:
        cache_key = f"tags:{name_key(name)}:{limit}"
        cached = await self._context.cache.get(cache_key)
        if cached is not None:
            return list(cached)

        try:
            tags = await self._context.submit(lambda: self._inner.get_artist_tags(name, limit))
        except ProviderError as exc:
            self._log_failure("get_artist_tags", name, exc)
            tags = []

        await self._context.cache.set(cache_key, list(tags))
        return list(tags)

    async def get_artist_listener_count(self, name: str) -> int:
        cache_key = f"listeners:{name_key(name)}"
        cached = await self._context.cache.get(cache_key)
        if cached is not None:
            return cached

        try:
            listeners = await self._context.submit(
                lambda: self._inner.get_artist_listener_count(name)
            )
        except ProviderError as exc:
            self._log_failure("get_artist_listener_count", name, exc)
            listeners = 0

        await self._context.cache.set(cache_key, listeners)
        return listeners

    async def get_top_artists_by_tag(self, tag: str, limit: int = 30) -> list[TagArtist]:
        cache_key = f"tag_top:{normalize_tag(tag)}:{limit}"
        cached = await self._context.cache.get(cache_key)
        if cached is not None:
            return list(cached)

        try:
            artists = await self._context.submit(
                lambda: self._inner.get_top_artists_by_tag(tag, limit)
            )
        except ProviderError as exc:
            self._log_failure("get_top_artists_by_tag", tag, exc)
            artists = []

        await self._context.cache.set(cache_key, list(artists))
        return list(artists)

    def get_provider_name(self) -> str:
        return self._inner.get_provider_name()

    def is_available(self) -> bool:
        return self._inner.is_available()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _log_failure(self, operation: str, subject: str, exc: ProviderError) -> None:
        self._logger.warning(
            "similarity_lookup_failed",
            operation=operation,
            subject=subject,
            provider=exc.provider_name or self._inner.get_provider_name(),
            error=exc.message,
        )
