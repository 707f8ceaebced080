"""Text normalization utilities for artist names and tags.

Two providers describe the same artist with different spellings and casing
(Last.fm returns "Boards of Canada", Deezer may return "Boards Of Canada"),
so every cross-source lookup goes through :func:`name_key`.  Fuzzy matching
via rapidfuzz is used when the enrichment provider's search results contain
no exact match.
"""

import re

from rapidfuzz import fuzz, process

_WHITESPACE_RE = re.compile(r"\s+")


def name_key(name: str) -> str:
    """Return the case- and whitespace-insensitive key for an artist name.

    Args:
        name: Raw artist name string.

    Returns:
        Lowercased, trimmed name with internal whitespace collapsed.
    """
    return _WHITESPACE_RE.sub(" ", name.strip().lower())


def normalize_tag(tag: str) -> str:
    """Normalize a provider tag ("Post-Rock " -> "post-rock")."""
    return _WHITESPACE_RE.sub(" ", tag.strip().lower())


def title_case_tag(tag: str) -> str:
    """Capitalize each space-separated word of a tag for cluster labels.

    Unlike ``str.title`` this leaves characters after hyphens untouched,
    so "hip-hop" becomes "Hip-hop" and "r&b" becomes "R&b".
    """
    return " ".join(word[:1].upper() + word[1:] for word in tag.split(" "))


def fuzzy_match(
    query: str,
    candidates: list[str],
    threshold: float = 0.8,
) -> tuple[str, float] | None:
    """Find the best fuzzy match for a query among candidates.

    Uses rapidfuzz ``token_sort_ratio`` which sorts tokens alphabetically
    before comparing, so "Canada Boards of" still matches "Boards of Canada".

    Args:
        query: The string to match.
        candidates: List of candidate strings to match against.
        threshold: Minimum similarity score (0.0--1.0) to accept a match.

    Returns:
        A (best_match, score) tuple if a match meets the threshold, else None.
    """
    if not candidates:
        return None

    result = process.extractOne(
        name_key(query),
        candidates,
        scorer=fuzz.token_sort_ratio,
        processor=name_key,
        score_cutoff=threshold * 100,
    )

    if result is None:
        return None

    match_str, score, _ = result
    return (match_str, score / 100.0)
