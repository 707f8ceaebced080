"""Artist enrichment providers."""

from stellar.providers.enrichment.deezer_provider import DeezerEnrichmentProvider

__all__ = ["DeezerEnrichmentProvider"]
