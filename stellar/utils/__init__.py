"""Utility modules for Stellar.

Available utility modules:

- **errors** -- Domain-specific exception hierarchy rooted at StellarError;
  provider failures, run-level failures and cancellation each get their own
  subclass so callers can handle them without broad ``except`` blocks.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
- **text_normalizer** -- Artist-name keys, tag normalization and rapidfuzz
  fuzzy matching for cross-provider lookups.
- **colors** (not re-exported here) -- Genre → HSL table and the string hash
  shared by cluster coloring and layout seeding.
"""

# -- Domain exception hierarchy --------------------------------------------
from stellar.utils.errors import (
    ConfigurationError,
    DiscoveryError,
    InsufficientDataError,
    ProviderError,
    ProviderUnavailableError,
    RateLimitError,
    RunCancelledError,
    StellarError,
)

# -- Structured logging setup ----------------------------------------------
from stellar.utils.logging import configure_logging, get_logger

# -- Text normalization (artist names, tags, fuzzy matching) ---------------
from stellar.utils.text_normalizer import fuzzy_match, name_key, normalize_tag

__all__ = [
    "ConfigurationError",
    "DiscoveryError",
    "InsufficientDataError",
    "ProviderError",
    "ProviderUnavailableError",
    "RateLimitError",
    "RunCancelledError",
    "StellarError",
    "configure_logging",
    "fuzzy_match",
    "get_logger",
    "name_key",
    "normalize_tag",
]
