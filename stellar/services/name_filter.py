"""Name-collision filter for similarity results.

Similarity sources occasionally return lexical neighbours that share a
name fragment with the query but not its music ("10 Years" →
"10,000 Maniacs", "Superheaven" → "Super Cat").  This module decides, from
the two names alone, whether a candidate looks like such a false positive.
The rules are deterministic and involve no I/O.
"""

from __future__ import annotations

import re

FILLER_WORDS: frozenset[str] = frozenset({
    "the", "a", "an", "of", "and", "&", "de", "la", "el", "le",
    "los", "las", "les", "von", "van", "der", "die", "das",
})

_SPLIT_RE = re.compile(r"[\s\-_.,!?&]+")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")


def _tokenize(name: str) -> list[str]:
    tokens = (_NON_ALNUM_RE.sub("", part) for part in _SPLIT_RE.split(name))
    return [t for t in tokens if t and t not in FILLER_WORDS]


def _is_weak_token(token: str) -> bool:
    return len(token) <= 2 or token.isdigit()


def is_likely_name_only_match(seed_name: str, candidate_name: str) -> bool:
    """Return ``True`` when *candidate_name* should be rejected as a name collision.

    Rules, in order:

    1. Identical names, or one name containing the other, are kept.
    2. Names are tokenized (filler words removed).  With no shared tokens
       the candidate is a genuine similarity hit and is kept.
    3. A candidate token is a partial match when it is a prefix of, or has
       as prefix, a seed token of at least 4 characters, and is itself at
       least 3 characters long.
    4. If every shared token is weak (≤2 characters or numeric), reject.
    5. If the candidate has at least one unshared token, at most one exact
       and at most one partial match, and shared characters make up less
       than half of the longer name's token characters, reject.  Measuring
       against the longer name catches a short candidate fragment of a
       long single-word seed ("Super Cat" against "Superheaven").

    Examples
    --------
    >>> is_likely_name_only_match("Superheaven", "Super Cat")
    True
    >>> is_likely_name_only_match("Radiohead", "Thom Yorke")
    False
    """
    seed = seed_name.lower().strip()
    candidate = candidate_name.lower().strip()

    if seed == candidate:
        return False
    if candidate in seed or seed in candidate:
        return False

    seed_tokens = _tokenize(seed)
    candidate_tokens = _tokenize(candidate)
    if not seed_tokens or not candidate_tokens:
        return False

    shared_exact = [t for t in seed_tokens if t in candidate_tokens]
    shared_partial = [
        ct for ct in candidate_tokens
        if ct not in shared_exact
        and any(
            len(st) >= 4 and len(ct) >= 3 and (st.startswith(ct) or ct.startswith(st))
            for st in seed_tokens
        )
    ]

    shared = shared_exact + shared_partial
    if not shared:
        return False

    if all(_is_weak_token(t) for t in shared):
        return True

    non_shared = [ct for ct in candidate_tokens if ct not in shared_exact and ct not in shared_partial]
    if non_shared and len(shared_exact) <= 1 and len(shared_partial) <= 1:
        shared_chars = sum(len(t) for t in shared)
        total_chars = max(
            sum(len(t) for t in candidate_tokens),
            sum(len(t) for t in seed_tokens),
        )
        if shared_chars / total_chars < 0.5:
            return True

    return False
