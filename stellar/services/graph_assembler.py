"""Assemble the galaxy graph from seeds and selected recommendations.

Link strengths:

    recommendation -> related seed   popular     0.2 + score * 0.5
                                     hidden gem  0.1 + score * 0.3
    deep cut -> intermediate         0.1
    chain member -> next member      0.25
    seed <-> seed (shared recs)      min(0.8, 0.1 + shared * 0.05)
    isolated seed -> hub seed        0.05 (synthetic)

The post-pass guarantees no seed is left with degree zero when there are
at least two seeds.
"""

from __future__ import annotations

import itertools
from collections.abc import Sequence

from stellar.models.artist import (
    Artist,
    BridgeProvenance,
    ChainBridgeProvenance,
    DeepCutProvenance,
    DiscoveryMethod,
    ScoredRecommendation,
    Tier,
)
from stellar.models.graph import GalaxyGraph, GalaxyLink, GalaxyNode
from stellar.utils.logging import get_logger
from stellar.utils.text_normalizer import name_key

logger = get_logger(__name__)

DEEP_CUT_LINK_STRENGTH = 0.1
CHAIN_LINK_STRENGTH = 0.25
SYNTHETIC_LINK_STRENGTH = 0.05


def recommendation_link_strength(rec: ScoredRecommendation) -> float:
    if rec.tier is Tier.POPULAR:
        return min(1.0, 0.2 + rec.composite_score * 0.5)
    return min(1.0, 0.1 + rec.composite_score * 0.3)


def seed_link_strength(shared_count: int) -> float:
    return min(0.8, 0.1 + shared_count * 0.05)


def _seed_node(seed: Artist) -> GalaxyNode:
    return GalaxyNode(
        id=seed.id,
        type="seed",
        name=seed.name,
        genres=list(seed.genres),
        popularity=seed.popularity,
        nb_fan=seed.nb_fan,
        image=seed.image,
        image_large=seed.image_large,
        external_url=seed.external_url,
        composite_score=1.0,
    )


def _recommendation_node(rec: ScoredRecommendation) -> GalaxyNode:
    artist = rec.artist
    provenance = rec.candidate.provenance
    extra: dict = {}
    if isinstance(provenance, DeepCutProvenance):
        extra["discovered_via"] = provenance.discovered_via
        extra["discovered_via_name"] = provenance.discovered_via_name
    elif isinstance(provenance, BridgeProvenance):
        extra["bridges_between"] = list(provenance.bridges_between)
    elif isinstance(provenance, ChainBridgeProvenance):
        extra["bridges_between"] = list(provenance.bridges_between)
        extra["chain"] = list(provenance.chain)

    return GalaxyNode(
        id=artist.id,
        type="recommendation",
        name=artist.name,
        genres=list(artist.genres),
        popularity=artist.popularity,
        nb_fan=artist.nb_fan,
        image=artist.image,
        image_large=artist.image_large,
        external_url=artist.external_url,
        composite_score=rec.composite_score,
        overlap_score=rec.overlap_score,
        overlap_count=rec.overlap_count,
        match_score=artist.match_score,
        tier=rec.tier,
        discovery_method=rec.method,
        related_to_seeds=sorted(rec.candidate.related_to_seeds),
        related_seed_names=list(rec.related_seed_names),
        **extra,
    )


class _LinkSet:
    """Undirected link accumulator that ignores duplicates and self-loops."""

    def __init__(self) -> None:
        self.links: list[GalaxyLink] = []
        self._pairs: set[frozenset[str]] = set()
        self.degree: dict[str, int] = {}

    def add(self, source: str, target: str, strength: float, **flags) -> bool:
        pair = frozenset((source, target))
        if source == target or pair in self._pairs:
            return False
        self._pairs.add(pair)
        self.links.append(GalaxyLink(source=source, target=target, strength=strength, **flags))
        self.degree[source] = self.degree.get(source, 0) + 1
        self.degree[target] = self.degree.get(target, 0) + 1
        return True


def build_graph(
    seeds: Sequence[Artist],
    recommendations: Sequence[ScoredRecommendation],
) -> GalaxyGraph:
    """Build the ``{nodes, links}`` galaxy for *seeds* and *recommendations*."""
    nodes = [_seed_node(s) for s in seeds]
    node_ids = {s.id for s in seeds}
    for rec in recommendations:
        if rec.id in node_ids:
            continue
        nodes.append(_recommendation_node(rec))
        node_ids.add(rec.id)

    links = _LinkSet()

    for rec in recommendations:
        strength = recommendation_link_strength(rec)
        is_bridge = rec.method in (DiscoveryMethod.BRIDGE, DiscoveryMethod.CHAIN_BRIDGE)
        for seed_id in sorted(rec.candidate.related_to_seeds):
            if seed_id in node_ids:
                links.add(rec.id, seed_id, strength, is_bridge_link=is_bridge)

    for rec in recommendations:
        provenance = rec.candidate.provenance
        if isinstance(provenance, DeepCutProvenance) and provenance.discovered_via in node_ids:
            links.add(rec.id, provenance.discovered_via, DEEP_CUT_LINK_STRENGTH, is_deep_cut_link=True)

    _add_chain_links(recommendations, seeds, node_ids, links)

    for seed_a, seed_b in itertools.combinations(seeds, 2):
        shared = sum(
            1 for rec in recommendations
            if seed_a.id in rec.candidate.related_to_seeds and seed_b.id in rec.candidate.related_to_seeds
        )
        if shared >= 1:
            links.add(seed_a.id, seed_b.id, seed_link_strength(shared))

    synthetic = _connect_isolated_seeds(seeds, links)

    logger.info(
        "graph_assembled",
        nodes=len(nodes),
        links=len(links.links),
        synthetic_links=synthetic,
    )
    return GalaxyGraph(nodes=nodes, links=links.links)


def _add_chain_links(
    recommendations: Sequence[ScoredRecommendation],
    seeds: Sequence[Artist],
    node_ids: set[str],
    links: _LinkSet,
) -> None:
    """Link consecutive members of every chain bridge present in the graph."""
    ids_by_key = {s.key: s.id for s in seeds}
    ids_by_key.update({rec.artist.key: rec.id for rec in recommendations})

    seen_chains: set[tuple[str, ...]] = set()
    for rec in recommendations:
        provenance = rec.candidate.provenance
        if not isinstance(provenance, ChainBridgeProvenance) or provenance.chain in seen_chains:
            continue
        seen_chains.add(provenance.chain)

        chain_ids = [ids_by_key.get(name_key(name)) for name in provenance.chain]
        for position, (left, right) in enumerate(zip(chain_ids, chain_ids[1:]), start=1):
            if left is None or right is None or left not in node_ids or right not in node_ids:
                continue
            links.add(
                left,
                right,
                CHAIN_LINK_STRENGTH,
                is_chain_link=True,
                chain_position=position,
                chain_length=provenance.chain_length,
            )


def _connect_isolated_seeds(seeds: Sequence[Artist], links: _LinkSet) -> int:
    """Give every zero-degree seed a synthetic link to the current hub seed."""
    if len(seeds) < 2:
        return 0

    added = 0
    while True:
        isolated = [s for s in seeds if links.degree.get(s.id, 0) == 0]
        if not isolated:
            return added
        orphan = isolated[0]
        hub = max(
            (s for s in seeds if s.id != orphan.id),
            key=lambda s: links.degree.get(s.id, 0),
        )
        links.add(orphan.id, hub.id, SYNTHETIC_LINK_STRENGTH, is_synthetic=True)
        added += 1
        logger.debug("isolated_seed_connected", seed=orphan.name, hub=hub.name)
