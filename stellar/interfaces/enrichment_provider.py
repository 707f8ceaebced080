"""Abstract base class for artist image / popularity enrichment providers.

Similarity sources return names and match scores only.  An enrichment
provider (Deezer in production) resolves those names to stable ids,
images, fan counts and profile links.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from stellar.models.artist import ArtistEnrichment


class IArtistEnrichmentProvider(ABC):
    """Contract for batch artist enrichment."""

    @abstractmethod
    async def enrich_artists(self, names: list[str]) -> dict[str, ArtistEnrichment]:
        """Look up enrichment data for each name in *names*.

        Parameters
        ----------
        names:
            Artist names as returned by the similarity provider.

        Returns
        -------
        dict[str, ArtistEnrichment]
            Keyed by :func:`stellar.utils.text_normalizer.name_key` of the
            requested name.  Names the provider could not resolve are
            simply absent; implementations must not raise for a single
            failed lookup.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier for this provider (e.g. ``"deezer"``)."""
