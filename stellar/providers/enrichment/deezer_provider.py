"""Deezer enrichment provider: ids, images, fan counts and profile links.

Resolves similarity-provider artist names to Deezer artists with
``/search/artist``.  An exact case-insensitive name match is preferred;
otherwise the best rapidfuzz ``token_sort_ratio`` match among the search
results is used, falling back to Deezer's top hit.

Lookups run in concurrent batches of five.  A failed lookup only leaves
that artist unenriched; :meth:`enrich_artists` never raises for it.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx

from stellar.interfaces.enrichment_provider import IArtistEnrichmentProvider
from stellar.models.artist import ArtistEnrichment
from stellar.utils.errors import ProviderError, ProviderUnavailableError, RateLimitError
from stellar.utils.logging import get_logger
from stellar.utils.text_normalizer import fuzzy_match, name_key

_PROVIDER_NAME = "deezer"
_DEFAULT_BASE_URL = "https://api.deezer.com"
_SEARCH_LIMIT = 5
_QUOTA_ERROR_CODE = 4
_FUZZY_THRESHOLD = 0.6


def _map_artist(artist: dict[str, Any]) -> ArtistEnrichment:
    artist_id = str(artist["id"])
    return ArtistEnrichment(
        id=artist_id,
        nb_fan=int(artist.get("nb_fan") or 0),
        image=artist.get("picture_medium") or artist.get("picture") or None,
        image_large=artist.get("picture_big") or artist.get("picture_xl") or None,
        external_url=artist.get("link") or f"https://www.deezer.com/artist/{artist_id}",
    )


class DeezerEnrichmentProvider(IArtistEnrichmentProvider):
    """Enrichment provider backed by the public Deezer API.

    Parameters
    ----------
    http_client:
        Injected ``httpx.AsyncClient``.
    base_url:
        API root (``https://api.deezer.com``).
    timeout:
        Per-request timeout in seconds.
    batch_size:
        Number of concurrent searches per batch.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str = _DEFAULT_BASE_URL,
        timeout: float = 10.0,
        batch_size: int = 5,
    ) -> None:
        self._http = http_client
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._batch_size = max(1, batch_size)
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # IArtistEnrichmentProvider implementation
    # ------------------------------------------------------------------

    async def enrich_artists(self, names: list[str]) -> dict[str, ArtistEnrichment]:
        enriched: dict[str, ArtistEnrichment] = {}
        for start in range(0, len(names), self._batch_size):
            batch = names[start:start + self._batch_size]
            results = await asyncio.gather(*(self.find_artist(name) for name in batch))
            for name, result in zip(batch, results):
                if result is not None:
                    enriched[name_key(name)] = result

        self._logger.debug("deezer_enrichment_complete", requested=len(names), found=len(enriched))
        return enriched

    def get_provider_name(self) -> str:
        return _PROVIDER_NAME

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def find_artist(self, name: str) -> ArtistEnrichment | None:
        """Return the Deezer artist best matching *name*, or ``None``."""
        if not name.strip():
            return None

        try:
            results = await self._search(name)
        except ProviderError as exc:
            self._logger.warning("deezer_lookup_failed", artist=name, error=str(exc))
            return None

        if not results:
            return None

        chosen = self._pick_match(name, results)
        try:
            return _map_artist(chosen)
        except (KeyError, TypeError, ValueError) as exc:
            self._logger.warning("deezer_malformed_artist", artist=name, error=str(exc))
            return None

    @staticmethod
    def _pick_match(name: str, results: list[dict[str, Any]]) -> dict[str, Any]:
        key = name_key(name)
        for result in results:
            if name_key(str(result.get("name") or "")) == key:
                return result

        names = [str(result.get("name") or "") for result in results]
        match = fuzzy_match(name, names, threshold=_FUZZY_THRESHOLD)
        if match is not None:
            return results[names.index(match[0])]
        return results[0]

    async def _search(self, name: str) -> list[dict[str, Any]]:
        try:
            response = await self._http.get(
                f"{self._base_url}/search/artist",
                params={"q": name, "limit": str(_SEARCH_LIMIT)},
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            raise ProviderUnavailableError(
                f"Deezer search failed: {exc}", provider_name=_PROVIDER_NAME
            ) from exc

        if response.status_code == 429:
            raise RateLimitError("Deezer rate limit exceeded", provider_name=_PROVIDER_NAME)
        if response.status_code >= 400:
            raise ProviderError(
                f"Deezer API error: {response.status_code}", provider_name=_PROVIDER_NAME
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderError("Deezer returned non-JSON body", provider_name=_PROVIDER_NAME) from exc

        if not isinstance(data, dict):
            raise ProviderError("Deezer returned an unexpected payload", provider_name=_PROVIDER_NAME)

        error = data.get("error")
        if error:
            code = error.get("code") if isinstance(error, dict) else None
            message = (
                error.get("message") if isinstance(error, dict) else None
            ) or f"Deezer error {code}"
            if code == _QUOTA_ERROR_CODE:
                raise RateLimitError(message, provider_name=_PROVIDER_NAME)
            raise ProviderError(message, provider_name=_PROVIDER_NAME)

        return [item for item in data.get("data") or [] if isinstance(item, dict) and "id" in item]
