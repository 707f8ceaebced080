"""k-means++ clustering of artist tag vectors.

Euclidean distance, k-means++ seeding and at most ``max_iterations``
Lloyd iterations, stopping early once no assignment changes.  Corpora of
three or fewer artists, or with an empty vocabulary, are not clustered:
they form a single cluster with no centroid.

The random generator is injected so tests can pin the seeding.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

_MIN_CLUSTERABLE = 4


@dataclass(frozen=True)
class RawCluster:
    """Cluster members (artist names) and their centroid, if any."""

    members: list[str]
    centroid: np.ndarray | None


def auto_k(n: int) -> int:
    """Default cluster count: clamp(round(sqrt(n / 2)), 2, 8), at most *n*."""
    k = max(2, min(8, int(math.floor(math.sqrt(n / 2) + 0.5))))
    return min(k, n)


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    denominator = float(np.linalg.norm(a) * np.linalg.norm(b))
    if denominator <= 0:
        return 0.0
    return float(np.dot(a, b) / denominator)


def kmeans_plus_plus_init(data: np.ndarray, k: int, rng: np.random.Generator) -> np.ndarray:
    """Pick *k* initial centroids, each new one weighted by squared distance."""
    n = data.shape[0]
    centroids = [data[int(rng.integers(n))].copy()]
    for _ in range(1, k):
        stacked = np.vstack(centroids)
        distances = np.linalg.norm(data[:, None, :] - stacked[None, :, :], axis=2)
        weights = distances.min(axis=1) ** 2
        total = float(weights.sum())
        if total > 0:
            index = int(rng.choice(n, p=weights / total))
        else:
            index = int(rng.integers(n))
        centroids.append(data[index].copy())
    return np.vstack(centroids)


def kmeans(
    names: Sequence[str],
    data: np.ndarray,
    k: int | None = None,
    max_iterations: int = 50,
    rng: np.random.Generator | None = None,
) -> list[RawCluster]:
    """Cluster the rows of *data* (one per name in *names*).

    Returns non-empty clusters in centroid order.  Empty clusters keep
    their previous centroid during iteration and are dropped at the end.
    """
    n = len(names)
    if n == 0:
        return []
    if n < _MIN_CLUSTERABLE or data.ndim != 2 or data.shape[1] == 0:
        return [RawCluster(members=list(names), centroid=None)]

    rng = rng or np.random.default_rng()
    k = min(k, n) if k else auto_k(n)

    centroids = kmeans_plus_plus_init(data, k, rng)
    assignments = np.full(n, -1, dtype=np.int64)

    for _ in range(max_iterations):
        distances = np.linalg.norm(data[:, None, :] - centroids[None, :, :], axis=2)
        updated = distances.argmin(axis=1)
        if np.array_equal(updated, assignments):
            break
        assignments = updated
        for c in range(k):
            mask = assignments == c
            if mask.any():
                centroids[c] = data[mask].mean(axis=0)

    clusters = []
    for c in range(k):
        members = [names[i] for i in range(n) if assignments[i] == c]
        if members:
            clusters.append(RawCluster(members=members, centroid=centroids[c].copy()))
    return clusters
