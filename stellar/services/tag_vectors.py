"""Tag-vector construction for universe clustering.

A shared vocabulary is built from every corpus artist's tags: tags used by
at least two artists (one, when the corpus has 30 or fewer distinct tags),
ordered by how many artists use them, capped at 100 dimensions.  Each
artist becomes a float64 numpy vector over that vocabulary with weight
``count / 100`` per tag, L2-normalized.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

import numpy as np

from stellar.models.artist import ArtistTag

_SMALL_VOCABULARY = 30


@dataclass(frozen=True)
class TagSpace:
    """Vocabulary plus one normalized vector per artist (corpus order)."""

    vocabulary: list[str]
    vectors: dict[str, np.ndarray]

    @property
    def dimensions(self) -> int:
        return len(self.vocabulary)

    def matrix(self) -> tuple[list[str], np.ndarray]:
        """Artist names and their vectors stacked row-wise."""
        names = list(self.vectors)
        if not names:
            return names, np.zeros((0, self.dimensions))
        return names, np.vstack([self.vectors[n] for n in names])


def build_vocabulary(artist_tags: Mapping[str, Sequence[ArtistTag]], max_size: int = 100) -> list[str]:
    frequency: Counter[str] = Counter()
    for tags in artist_tags.values():
        frequency.update(dict.fromkeys(tag.name for tag in tags).keys())

    min_count = 1 if len(frequency) <= _SMALL_VOCABULARY else 2
    # most_common keeps first-seen order among equal counts.
    return [tag for tag, count in frequency.most_common() if count >= min_count][:max_size]


def l2_normalize(vector: np.ndarray) -> np.ndarray:
    norm = float(np.linalg.norm(vector))
    if norm > 0:
        return vector / norm
    return vector


def build_tag_vectors(
    artist_tags: Mapping[str, Sequence[ArtistTag]],
    max_vocabulary: int = 100,
) -> TagSpace:
    """Build the vocabulary and per-artist vectors for *artist_tags*.

    Parameters
    ----------
    artist_tags:
        Artist name -> its tags, in corpus order.
    max_vocabulary:
        Maximum number of dimensions.

    Returns
    -------
    TagSpace
        Vectors with L2 norm 1, or all zeros for an artist with no
        vocabulary tag.
    """
    vocabulary = build_vocabulary(artist_tags, max_vocabulary)
    index = {tag: i for i, tag in enumerate(vocabulary)}

    vectors: dict[str, np.ndarray] = {}
    for name, tags in artist_tags.items():
        vector = np.zeros(len(vocabulary), dtype=np.float64)
        for tag in tags:
            position = index.get(tag.name)
            if position is not None:
                vector[position] = tag.count / 100
        vectors[name] = l2_normalize(vector)

    return TagSpace(vocabulary=vocabulary, vectors=vectors)
