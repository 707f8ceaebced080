"""Abstract base class for artist similarity / tag data providers.

Defines the four lookups the discovery pipeline and the universe clustering
need from a similarity source (Last.fm in production).  The engine only
depends on this contract; every call an implementation receives has
already passed through the shared fetch queue when it is wrapped in
:class:`stellar.providers.similarity.queued_provider.QueuedSimilarityProvider`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from stellar.models.artist import ArtistTag, SimilarArtist, TagArtist


class ISimilarityProvider(ABC):
    """Contract for similarity, tag and listener-count lookups.

    Implementations may raise :class:`stellar.utils.errors.ProviderError`
    subclasses on failure; the queued wrapper turns those into empty
    results so one bad lookup never aborts a run.
    """

    @abstractmethod
    async def get_similar_artists(self, name: str, limit: int = 100) -> list[SimilarArtist]:
        """Return up to *limit* artists similar to *name*.

        Parameters
        ----------
        name:
            The artist to look up.
        limit:
            Maximum number of results.

        Returns
        -------
        list[SimilarArtist]
            Ranked by descending ``match_score`` in [0, 1].
        """

    @abstractmethod
    async def get_artist_tags(self, name: str, limit: int = 10) -> list[ArtistTag]:
        """Return the top tags for *name*, noise tags removed.

        Parameters
        ----------
        name:
            The artist to look up.
        limit:
            Maximum number of tags.

        Returns
        -------
        list[ArtistTag]
            Lowercased tag names with counts in 0–100.
        """

    @abstractmethod
    async def get_artist_listener_count(self, name: str) -> int:
        """Return the listener count for *name*, or ``0`` when unknown."""

    @abstractmethod
    async def get_top_artists_by_tag(self, tag: str, limit: int = 30) -> list[TagArtist]:
        """Return the most-listened artists carrying *tag*.

        Parameters
        ----------
        tag:
            Genre tag, e.g. ``"post-rock"``.
        limit:
            Maximum number of results.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier for this provider (e.g. ``"lastfm"``)."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured and usable."""
