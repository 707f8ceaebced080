"""Drift expansion: genre-adjacent outliers for an existing galaxy.

Drift nodes form the outer orbit of a galaxy.  They are found through tag
lookups rather than similarity chains:

    1. count genre tags across the galaxy's nodes, keep the top 8;
    2. fetch the top 30 artists for each tag, skipping anything already
       in the galaxy;
    3. score = 0.7 * (tags matched / tags queried) + 0.3 * listener bonus,
       where the bonus favours the mid-popularity band around the median;
    4. keep max(10, 25% of the node count), enrich, and attach each with a
       weak link to the seed whose genres overlap its tags most.
"""

from __future__ import annotations

import asyncio
import math
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field

from stellar.config.engine_config import EngineConfig
from stellar.interfaces.enrichment_provider import IArtistEnrichmentProvider
from stellar.interfaces.similarity_provider import ISimilarityProvider
from stellar.models.artist import Artist, DiscoveryMethod
from stellar.models.graph import GalaxyGraph, GalaxyLink, GalaxyNode
from stellar.models.progress import RunPhase
from stellar.pipeline.run_context import RunContext
from stellar.utils.logging import get_logger
from stellar.utils.text_normalizer import name_key, normalize_tag

_GENRE_LOOKUP_LIMIT = 5
_DEFAULT_MEDIAN_LISTENERS = 50_000
_DRIFT_STEPS = 3


@dataclass
class DriftCandidate:
    name: str
    listeners: int
    mbid: str | None = None
    tags: list[str] = field(default_factory=list)
    score: float = 0.0

    @property
    def tag_count(self) -> int:
        return len(self.tags)


def listener_score(listeners: int, median: int) -> float:
    """Mid-popularity bonus: peaks between 0.3x and 3x the median."""
    if listeners <= 0 or median <= 0:
        return 0.0
    ratio = listeners / median
    if 0.3 <= ratio <= 3:
        return 0.8
    if 3 < ratio <= 10:
        return 0.5
    if 0.1 < ratio < 0.3:
        return 0.6
    return 0.3


def median_listeners(candidates: Sequence[DriftCandidate]) -> int:
    positive = sorted(c.listeners for c in candidates if c.listeners > 0)
    if not positive:
        return _DEFAULT_MEDIAN_LISTENERS
    return positive[len(positive) // 2]


def top_tags(nodes: Sequence[GalaxyNode], limit: int) -> list[str]:
    """Most frequent genre tags across *nodes*, first-seen order breaking ties."""
    counts: Counter[str] = Counter()
    for node in nodes:
        for genre in node.genres:
            tag = normalize_tag(genre)
            if tag:
                counts[tag] += 1
    return [tag for tag, _ in counts.most_common(limit)]


def drift_target(node_count: int, config: EngineConfig) -> int:
    return max(config.drift_min_count, int(math.floor(node_count * config.drift_fraction + 0.5)))


class DriftService:
    """Expands a galaxy with drift nodes for one run."""

    def __init__(
        self,
        similarity: ISimilarityProvider,
        enrichment: IArtistEnrichmentProvider,
        config: EngineConfig,
        context: RunContext,
    ) -> None:
        self._similarity = similarity
        self._enrichment = enrichment
        self._config = config
        self._context = context
        self._logger = get_logger(__name__).bind(run_id=context.run_id)

    async def expand(self, graph: GalaxyGraph, seeds: Sequence[Artist]) -> GalaxyGraph:
        """Return *graph* plus drift nodes and their links (a new graph)."""
        await self._context.report(RunPhase.DRIFT, 0, _DRIFT_STEPS, "Analyzing genre landscape...")

        nodes = await self._with_genres(graph.nodes)
        seed_nodes = [n for n in nodes if n.type == "seed"]
        tags = top_tags(nodes, self._config.drift_tags_to_query)
        if not tags or not seed_nodes:
            self._logger.warning("drift_no_tags", nodes=len(nodes))
            return graph.model_copy(update={"nodes": nodes})

        await self._context.report(RunPhase.DRIFT, 1, _DRIFT_STEPS, f"Exploring {len(tags)} genres...")
        candidates = await self._collect(tags, nodes, seeds)
        if not candidates:
            return graph.model_copy(update={"nodes": nodes})

        median = median_listeners(candidates)
        for candidate in candidates:
            candidate.score = (
                candidate.tag_count / len(tags) * 0.7
                + listener_score(candidate.listeners, median) * 0.3
            )
        candidates.sort(key=lambda c: (-c.score, -c.tag_count))
        selected = candidates[: drift_target(len(nodes), self._config)]

        await self._context.report(
            RunPhase.DRIFT, 2, _DRIFT_STEPS, f"Loading {len(selected)} drift artists..."
        )
        self._context.check_cancelled()
        enrichment = await self._enrichment.enrich_artists([c.name for c in selected])

        existing_ids = {n.id for n in nodes}
        drift_nodes: list[GalaxyNode] = []
        drift_links: list[GalaxyLink] = []
        for candidate in selected:
            enriched = enrichment.get(name_key(candidate.name))
            node_id = (enriched.id if enriched and enriched.id else None) or f"drift-{candidate.name}"
            if node_id in existing_ids:
                continue
            existing_ids.add(node_id)

            best_seed = self._best_seed(candidate, seed_nodes)
            drift_nodes.append(GalaxyNode(
                id=node_id,
                type="recommendation",
                name=candidate.name,
                genres=list(enriched.genres) if enriched and enriched.genres else list(candidate.tags),
                nb_fan=(enriched.nb_fan if enriched and enriched.nb_fan else None) or candidate.listeners,
                image=enriched.image if enriched else None,
                image_large=enriched.image_large if enriched else None,
                external_url=enriched.external_url if enriched else None,
                composite_score=min(1.0, candidate.score),
                tier="drift",
                discovery_method=DiscoveryMethod.DRIFT,
                related_to_seeds=[best_seed.id],
                related_seed_names=[best_seed.name],
            ))
            drift_links.append(GalaxyLink(
                source=node_id,
                target=best_seed.id,
                strength=min(1.0, 0.08 + candidate.score * 0.12),
                is_drift_link=True,
            ))

        await self._context.report(
            RunPhase.DRIFT, 3, _DRIFT_STEPS, f"Found {len(drift_nodes)} drift artists"
        )
        self._logger.info(
            "drift_expansion_complete",
            tags=tags,
            candidates=len(candidates),
            added=len(drift_nodes),
        )
        return GalaxyGraph(nodes=nodes + drift_nodes, links=list(graph.links) + drift_links)

    async def _with_genres(self, nodes: Sequence[GalaxyNode]) -> list[GalaxyNode]:
        """Fill in genres from provider tags for nodes that have none."""
        missing = [n for n in nodes if not n.genres]
        if not missing:
            return list(nodes)

        tag_lists = await asyncio.gather(*(
            self._similarity.get_artist_tags(n.name, _GENRE_LOOKUP_LIMIT) for n in missing
        ))
        genres = {n.id: [t.name for t in tags] for n, tags in zip(missing, tag_lists)}
        return [
            n.model_copy(update={"genres": genres[n.id]}) if genres.get(n.id) else n
            for n in nodes
        ]

    async def _collect(
        self,
        tags: list[str],
        nodes: Sequence[GalaxyNode],
        seeds: Sequence[Artist],
    ) -> list[DriftCandidate]:
        excluded = {name_key(n.name) for n in nodes} | {s.key for s in seeds}
        results = await asyncio.gather(*(
            self._similarity.get_top_artists_by_tag(tag, self._config.drift_artists_per_tag)
            for tag in tags
        ))

        found: dict[str, DriftCandidate] = {}
        for tag, artists in zip(tags, results):
            for artist in artists:
                key = name_key(artist.name)
                if not key or key in excluded:
                    continue
                candidate = found.get(key)
                if candidate is None:
                    found[key] = DriftCandidate(
                        name=artist.name, listeners=artist.listeners, mbid=artist.mbid, tags=[tag]
                    )
                    continue
                if tag not in candidate.tags:
                    candidate.tags.append(tag)
                candidate.listeners = max(candidate.listeners, artist.listeners)
        return list(found.values())

    @staticmethod
    def _best_seed(candidate: DriftCandidate, seed_nodes: Sequence[GalaxyNode]) -> GalaxyNode:
        tags = {normalize_tag(t) for t in candidate.tags}
        best = seed_nodes[0]
        best_overlap = 0
        for seed in seed_nodes:
            overlap = len(tags & {normalize_tag(g) for g in seed.genres})
            if overlap > best_overlap:
                best, best_overlap = seed, overlap
        return best
