"""Public interface definitions for all external service providers.

The engine reaches similarity data, enrichment data and caches only
through the abstract base classes defined here.  Concrete adapters live in
``stellar/providers/`` and are wired together in ``stellar/main.py``; tests
inject in-memory fakes instead.

CONCRETE PROVIDER MAP:
    Interface                  →  Concrete implementations (in stellar/providers/)
    ─────────────────────────────────────────────────────────────────────
    ISimilarityProvider        →  LastFmSimilarityProvider,
                                  QueuedSimilarityProvider (decorator)
    IArtistEnrichmentProvider  →  DeezerEnrichmentProvider
    ICacheProvider             →  MemoryCacheProvider
"""

from stellar.interfaces.cache_provider import ICacheProvider
from stellar.interfaces.enrichment_provider import IArtistEnrichmentProvider
from stellar.interfaces.similarity_provider import ISimilarityProvider

__all__ = [
    "IArtistEnrichmentProvider",
    "ICacheProvider",
    "ISimilarityProvider",
]
