"""Labels, colors, recommendations and connectors for universe clusters.

Pure helpers (labels, colors, chain-link selection, bridge detection)
are module functions.  The steps that need the similarity provider live
on :class:`ClusterEnrichmentService`.
"""

from __future__ import annotations

import asyncio
import math
from collections.abc import Collection, Mapping, Sequence
from dataclasses import dataclass

import numpy as np

from stellar.config.engine_config import EngineConfig
from stellar.interfaces.similarity_provider import ISimilarityProvider
from stellar.models.universe import (
    BridgeArtist,
    ChainLink,
    Cluster,
    ClusterRecommendation,
    HSLColor,
)
from stellar.services.clustering import RawCluster, cosine_similarity
from stellar.utils.colors import DEFAULT_COLOR, color_for_tag
from stellar.utils.logging import get_logger
from stellar.utils.text_normalizer import name_key, title_case_tag

logger = get_logger(__name__)

_LABEL_MIN_WEIGHT = 0.01
_TOP_TAG_MIN_WEIGHT = 0.05
_TOP_TAG_COUNT = 5
_SUPPORT_BOOST = 0.3
_WEAK_MATCH = 0.4


# ---------------------------------------------------------------------------
# Labels & colors
# ---------------------------------------------------------------------------

def _weighted_tags(centroid: np.ndarray, vocabulary: Sequence[str], min_weight: float) -> list[str]:
    weighted = [(tag, float(centroid[i])) for i, tag in enumerate(vocabulary) if centroid[i] > min_weight]
    weighted.sort(key=lambda item: -item[1])
    return [tag for tag, _ in weighted]


def label_cluster(centroid: np.ndarray | None, vocabulary: Sequence[str]) -> str:
    """Human-readable label from the centroid's strongest tags.

    >>> label_cluster(np.array([0.9, 0.4]), ["rock", "electronic"])
    'Rock & Electronic'
    """
    if centroid is None or not vocabulary:
        return "Mixed"
    tags = [title_case_tag(t) for t in _weighted_tags(centroid, vocabulary, _LABEL_MIN_WEIGHT)[:3]]
    if not tags:
        return "Mixed"
    if len(tags) == 1:
        return tags[0]
    if len(tags) == 2:
        return f"{tags[0]} & {tags[1]}"
    return f"{tags[0]}, {tags[1]} & more"


def cluster_color(centroid: np.ndarray | None, vocabulary: Sequence[str]) -> HSLColor:
    if centroid is None or not vocabulary:
        return DEFAULT_COLOR
    return color_for_tag(vocabulary[int(np.argmax(centroid[: len(vocabulary)]))])


def top_tags(centroid: np.ndarray | None, vocabulary: Sequence[str]) -> list[str]:
    if centroid is None or not vocabulary:
        return []
    return _weighted_tags(centroid, vocabulary, _TOP_TAG_MIN_WEIGHT)[:_TOP_TAG_COUNT]


# ---------------------------------------------------------------------------
# Recommendation aggregation
# ---------------------------------------------------------------------------

@dataclass
class _Support:
    name: str
    total: float
    suggested_by: list[str]
    count: int = 1


def aggregate_recommendations(
    similar_by_member: Sequence[tuple[str, Sequence]],
    excluded: Collection[str],
) -> list[ClusterRecommendation]:
    """Merge members' similarity lists into one ranked candidate pool.

    ``similar_by_member`` pairs a member name with its similar artists.
    Score = mean match * (1 + 0.3 * (supporting members - 1)).
    """
    support: dict[str, _Support] = {}
    for member, similar in similar_by_member:
        for artist in similar:
            key = name_key(artist.name)
            if key in excluded:
                continue
            entry = support.get(key)
            if entry is None:
                support[key] = _Support(artist.name, artist.match_score, [member])
                continue
            entry.total += artist.match_score
            entry.count += 1
            if member not in entry.suggested_by:
                entry.suggested_by.append(member)

    pool = []
    for entry in support.values():
        mean = entry.total / entry.count
        pool.append(ClusterRecommendation(
            name=entry.name,
            score=mean * (1 + (entry.count - 1) * _SUPPORT_BOOST),
            match_score=mean,
            overlap_count=entry.count,
            suggested_by=entry.suggested_by,
        ))
    pool.sort(key=lambda r: -r.score)
    return pool


def listener_threshold(listener_counts: Sequence[int], default: int = 100_000, percentile: float = 0.30) -> int:
    positive = sorted(c for c in listener_counts if c > 0)
    if not positive:
        return default
    return positive[int(math.floor(len(positive) * percentile))]


def is_hidden_gem(rec: ClusterRecommendation, threshold: int) -> bool:
    listeners = rec.listeners or 0
    low_listeners = 0 < listeners < threshold
    weak_single = len(rec.suggested_by) <= 1 and rec.match_score < _WEAK_MATCH
    return low_listeners or weak_single


# ---------------------------------------------------------------------------
# Chain links & bridges
# ---------------------------------------------------------------------------

def discover_chain_links(
    clusters: Sequence[Cluster],
    pools: Mapping[int, Sequence[ClusterRecommendation]],
    fraction: float = 0.10,
) -> list[ChainLink]:
    """Select candidates shared by two or more clusters' pools.

    At most ``max(1, floor(fraction * nodes))`` links, best average score
    first, skipping candidates whose cluster pair is already connected.
    """
    total_nodes = sum(len(c.members) + len(c.recommendations) for c in clusters)
    max_links = max(1, int(math.floor(total_nodes * fraction)))

    appearances: dict[str, list[tuple[int, ClusterRecommendation]]] = {}
    for cluster_id, pool in pools.items():
        for rec in pool:
            appearances.setdefault(name_key(rec.name), []).append((cluster_id, rec))

    crossing = []
    for entries in appearances.values():
        if len(entries) < 2:
            continue
        avg = sum(rec.score for _, rec in entries) / len(entries)
        suggested: list[str] = []
        for _, rec in entries:
            suggested.extend(s for s in rec.suggested_by if s not in suggested)
        crossing.append((avg, entries, suggested))
    crossing.sort(key=lambda item: -item[0])

    links: list[ChainLink] = []
    used_pairs: set[tuple[int, int]] = set()
    for avg, entries, suggested in crossing:
        if len(links) >= max_links:
            break
        cluster_ids = [cid for cid, _ in entries]
        ordered = sorted(cluster_ids)
        pair = (ordered[0], ordered[1])
        if pair in used_pairs and links:
            continue
        used_pairs.add(pair)

        home, best = cluster_ids[0], 0.0
        for cid, rec in entries:
            if rec.score > best:
                home, best = cid, rec.score

        links.append(ChainLink(
            name=entries[0][1].name,
            home_cluster_id=home,
            remote_clusters=[cid for cid in cluster_ids if cid != home],
            all_clusters=cluster_ids,
            avg_score=avg,
            suggested_by=suggested,
        ))

    logger.info("chain_links_selected", candidates=len(crossing), selected=len(links), max_links=max_links)
    return links


def apply_chain_links(
    clusters: Sequence[Cluster],
    pools: Mapping[int, Sequence[ClusterRecommendation]],
    chain_links: Sequence[ChainLink],
) -> list[Cluster]:
    """Mark chain links in their home clusters, injecting them from the pool if absent."""
    by_id = {c.id: c for c in clusters}
    recs_by_cluster = {c.id: list(c.recommendations) for c in clusters}

    for link in chain_links:
        if link.home_cluster_id not in by_id:
            continue
        recs = recs_by_cluster[link.home_cluster_id]
        key = name_key(link.name)
        index = next((i for i, r in enumerate(recs) if name_key(r.name) == key), None)
        if index is None:
            pooled = next((r for r in pools.get(link.home_cluster_id, ()) if name_key(r.name) == key), None)
            if pooled is None:
                continue
            recs.append(pooled)
            index = len(recs) - 1
        recs[index] = recs[index].model_copy(update={
            "is_chain_link": True,
            "chain_clusters": list(link.all_clusters),
            "remote_clusters": list(link.remote_clusters),
        })

    return [c.model_copy(update={"recommendations": recs_by_cluster[c.id]}) for c in clusters]


def detect_bridges(
    raw_clusters: Sequence[RawCluster],
    vectors: Mapping[str, np.ndarray],
    threshold: float = 0.3,
) -> list[BridgeArtist]:
    """Corpus artists whose vector is close to two or more centroids."""
    bridges = []
    for name, vector in vectors.items():
        strong = []
        for index, cluster in enumerate(raw_clusters):
            if cluster.centroid is None:
                continue
            similarity = cosine_similarity(vector, cluster.centroid)
            if similarity >= threshold:
                strong.append((index, similarity))
        if len(strong) >= 2:
            bridges.append(BridgeArtist(
                name=name,
                clusters=[i for i, _ in strong],
                strength=sum(s for _, s in strong) / len(strong),
            ))
    bridges.sort(key=lambda b: -b.strength)
    return bridges


# ---------------------------------------------------------------------------
# Provider-backed steps
# ---------------------------------------------------------------------------

class ClusterEnrichmentService:
    """Fetches per-cluster recommendations and listener counts."""

    def __init__(self, similarity: ISimilarityProvider, config: EngineConfig) -> None:
        self._similarity = similarity
        self._config = config

    async def cluster_recommendations(
        self,
        members: Sequence[str],
        excluded: Collection[str],
    ) -> tuple[list[ClusterRecommendation], list[ClusterRecommendation]]:
        """Return ``(top recommendations, full candidate pool)`` for one cluster."""
        queried = list(members[: self._config.cluster_query_members])
        similar = await asyncio.gather(*(
            self._similarity.get_similar_artists(member, self._config.cluster_similar_limit)
            for member in queried
        ))
        pool = aggregate_recommendations(list(zip(queried, similar)), excluded)
        return pool[: self._config.cluster_top_recommendations], pool

    async def classify_hidden_gems(self, clusters: Sequence[Cluster]) -> list[Cluster]:
        """Attach listener counts and gem flags to every cluster recommendation."""
        names = sorted({name_key(r.name): r.name for c in clusters for r in c.recommendations}.items())
        if not names:
            return list(clusters)

        counts = await asyncio.gather(*(
            self._similarity.get_artist_listener_count(name) for _, name in names
        ))
        listeners = {key: count for (key, _), count in zip(names, counts)}
        threshold = listener_threshold(
            list(listeners.values()), self._config.default_gem_listener_threshold
        )

        classified = []
        gems = 0
        for cluster in clusters:
            recs = []
            for rec in cluster.recommendations:
                with_listeners = rec.model_copy(update={"listeners": listeners.get(name_key(rec.name), 0)})
                gem = is_hidden_gem(with_listeners, threshold)
                gems += gem
                recs.append(with_listeners.model_copy(update={"is_hidden_gem": gem}))
            classified.append(cluster.model_copy(update={"recommendations": recs}))

        logger.info("hidden_gems_classified", threshold=threshold, gems=gems, recommendations=len(names))
        return classified
