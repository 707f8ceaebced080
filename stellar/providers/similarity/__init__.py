"""Similarity providers."""

from stellar.providers.similarity.lastfm_provider import LastFmSimilarityProvider
from stellar.providers.similarity.queued_provider import QueuedSimilarityProvider

__all__ = ["LastFmSimilarityProvider", "QueuedSimilarityProvider"]
