"""Last.fm similarity provider using the public 2.0 REST API.

Implements :class:`ISimilarityProvider` with four Last.fm methods:

    artist.getSimilar     → get_similar_artists
    artist.getTopTags     → get_artist_tags
    artist.getInfo        → get_artist_listener_count
    tag.getTopArtists     → get_top_artists_by_tag

Last.fm quirks handled here:
    - errors arrive inside HTTP 200 bodies as ``{"error": N, "message": ...}``
      (error 29 is the rate limit);
    - a list with one element is sometimes returned as a bare object;
    - numbers arrive as strings, tag counts may be missing (treated as 100);
    - user-noise tags ("seen live", "favorites", ...) are not genres.

Uses an injected ``httpx.AsyncClient``.  Throttling is not done here: the
engine routes every call through its shared fetch queue.
"""

from __future__ import annotations

from typing import Any

import httpx

from stellar.interfaces.similarity_provider import ISimilarityProvider
from stellar.models.artist import ArtistTag, SimilarArtist, TagArtist
from stellar.utils.errors import ProviderError, ProviderUnavailableError, RateLimitError
from stellar.utils.logging import get_logger
from stellar.utils.text_normalizer import normalize_tag

_PROVIDER_NAME = "lastfm"
_DEFAULT_BASE_URL = "https://ws.audioscrobbler.com/2.0/"
_RATE_LIMIT_ERROR_CODE = 29

# Tags that are user noise, not real genres.
TAG_BLACKLIST: frozenset[str] = frozenset({
    "seen live", "favorites", "favourite", "my music", "check out",
    "awesome", "love", "beautiful", "cool", "amazing", "epic",
    "under 2000 listeners", "spotify", "all", "albums i own",
})


def _retry_after(response: httpx.Response) -> float | None:
    """Seconds from a numeric ``Retry-After`` header, if present."""
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


def _as_list(value: Any) -> list[dict[str, Any]]:
    """Normalize Last.fm's object-or-list payloads to a list of dicts."""
    if value is None:
        return []
    if isinstance(value, dict):
        return [value]
    if isinstance(value, list):
        return [item for item in value if isinstance(item, dict)]
    return []


def _to_int(value: Any, default: int = 0) -> int:
    if value is None or value == "":
        return default
    return int(float(value))


class LastFmSimilarityProvider(ISimilarityProvider):
    """Similarity provider backed by the Last.fm web API.

    Parameters
    ----------
    http_client:
        Injected ``httpx.AsyncClient`` for connection pooling and testability.
    api_key:
        Last.fm API key.
    base_url:
        API root (``https://ws.audioscrobbler.com/2.0/``).
    timeout:
        Per-request timeout in seconds.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_key: str,
        base_url: str = _DEFAULT_BASE_URL,
        timeout: float = 10.0,
    ) -> None:
        self._http = http_client
        self._api_key = api_key
        self._base_url = base_url
        self._timeout = timeout
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # ISimilarityProvider implementation
    # ------------------------------------------------------------------

    async def get_similar_artists(self, name: str, limit: int = 100) -> list[SimilarArtist]:
        data = await self._request("artist.getSimilar", artist=name, limit=str(limit))
        try:
            raw = _as_list((data.get("similarartists") or {}).get("artist"))
            results = [
                SimilarArtist(
                    name=item["name"],
                    match_score=min(1.0, max(0.0, float(item.get("match") or 0))),
                    mbid=item.get("mbid") or None,
                    external_url=item.get("url") or None,
                )
                for item in raw
                if item.get("name")
            ]
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise ProviderError(
                f"Malformed artist.getSimilar response for {name!r}: {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc

        return results[:limit]

    async def get_artist_tags(self, name: str, limit: int = 10) -> list[ArtistTag]:
        data = await self._request("artist.getTopTags", artist=name)
        try:
            raw = _as_list((data.get("toptags") or {}).get("tag"))
            tags: list[ArtistTag] = []
            for item in raw:
                tag_name = normalize_tag(str(item.get("name") or ""))
                if not tag_name or tag_name in TAG_BLACKLIST:
                    continue
                count = _to_int(item.get("count"), default=100)
                if "count" in item and count <= 0:
                    continue
                tags.append(ArtistTag(name=tag_name, count=count))
                if len(tags) >= limit:
                    break
        except (AttributeError, TypeError, ValueError) as exc:
            raise ProviderError(
                f"Malformed artist.getTopTags response for {name!r}: {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc

        return tags

    async def get_artist_listener_count(self, name: str) -> int:
        data = await self._request("artist.getInfo", artist=name)
        try:
            stats = (data.get("artist") or {}).get("stats") or {}
            return _to_int(stats.get("listeners"))
        except (AttributeError, TypeError, ValueError) as exc:
            raise ProviderError(
                f"Malformed artist.getInfo response for {name!r}: {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc

    async def get_top_artists_by_tag(self, tag: str, limit: int = 30) -> list[TagArtist]:
        data = await self._request("tag.getTopArtists", tag=tag, limit=str(limit))
        try:
            raw = _as_list((data.get("topartists") or {}).get("artist"))
            artists = [
                TagArtist(
                    name=item["name"],
                    listeners=_to_int(
                        (item.get("stats") or {}).get("listeners") or item.get("listeners")
                    ),
                    mbid=item.get("mbid") or None,
                )
                for item in raw
                if item.get("name")
            ]
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise ProviderError(
                f"Malformed tag.getTopArtists response for {tag!r}: {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc

        return artists[:limit]

    def get_provider_name(self) -> str:
        return _PROVIDER_NAME

    def is_available(self) -> bool:
        return bool(self._api_key)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _request(self, method: str, **params: str) -> dict[str, Any]:
        """GET one Last.fm method and return the decoded JSON body.

        Raises
        ------
        RateLimitError
            HTTP 429 or Last.fm error 29.
        ProviderUnavailableError
            Network failure or timeout.
        ProviderError
            Any other API error or a non-JSON body.
        """
        query = {
            "method": method,
            **params,
            "api_key": self._api_key,
            "format": "json",
        }

        try:
            response = await self._http.get(self._base_url, params=query, timeout=self._timeout)
        except httpx.HTTPError as exc:
            self._logger.warning("lastfm_http_error", method=method, error=str(exc))
            raise ProviderUnavailableError(
                f"Last.fm request failed for {method}: {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc

        if response.status_code == 429:
            raise RateLimitError(
                "Last.fm rate limit exceeded",
                provider_name=_PROVIDER_NAME,
                retry_after=_retry_after(response),
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderError(
                f"Last.fm returned non-JSON body (status {response.status_code})",
                provider_name=_PROVIDER_NAME,
            ) from exc

        if not isinstance(data, dict):
            raise ProviderError("Last.fm returned an unexpected payload", provider_name=_PROVIDER_NAME)

        if "error" in data:
            code = data.get("error")
            message = data.get("message") or f"Last.fm error {code}"
            if code == _RATE_LIMIT_ERROR_CODE:
                raise RateLimitError(message, provider_name=_PROVIDER_NAME)
            raise ProviderError(message, provider_name=_PROVIDER_NAME)

        if response.status_code >= 400:
            raise ProviderError(
                f"Last.fm API error: {response.status_code}",
                provider_name=_PROVIDER_NAME,
            )

        return data
