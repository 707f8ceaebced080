"""Universe computation: cluster a user's whole corpus and recommend per cluster.

Phases (reported as progress):

    TAGS             fetch up to 10 tags per corpus artist
    CLUSTERING       build tag vectors and run k-means++
    RECOMMENDATIONS  label/color clusters, query similarity per cluster
    GEMS             listener counts and hidden-gem flags
    LAYOUT           chain links, bridges and the 2D mini-map

Numeric work runs in a worker thread so other runs keep their event loop.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone

import numpy as np

from stellar.config.engine_config import EngineConfig
from stellar.interfaces.similarity_provider import ISimilarityProvider
from stellar.models.progress import RunPhase
from stellar.models.universe import Cluster, CorpusArtist, UniverseResult
from stellar.pipeline.run_context import RunContext
from stellar.services import cluster_enrichment_service as enrichment
from stellar.services.cluster_enrichment_service import ClusterEnrichmentService
from stellar.services.clustering import kmeans
from stellar.services.layout_service import build_visualization
from stellar.services.tag_vectors import build_tag_vectors
from stellar.utils.errors import InsufficientDataError
from stellar.utils.logging import get_logger
from stellar.utils.text_normalizer import name_key

NOT_ENOUGH_ARTISTS = "Need at least {minimum} artists (favorites + discoveries) to build your universe."
NOT_ENOUGH_TAGS = "Could not fetch enough tag data. Try adding more well-known artists."


def dedupe_corpus(corpus: Iterable[CorpusArtist | str]) -> list[CorpusArtist]:
    """Corpus artists in first-seen order, one per normalized name."""
    artists: list[CorpusArtist] = []
    seen: set[str] = set()
    for entry in corpus:
        artist = entry if isinstance(entry, CorpusArtist) else CorpusArtist(name=entry)
        key = name_key(artist.name)
        if key and key not in seen:
            seen.add(key)
            artists.append(artist)
    return artists


class UniverseService:
    """Computes one universe for one run."""

    def __init__(
        self,
        similarity: ISimilarityProvider,
        config: EngineConfig,
        context: RunContext,
        rng: np.random.Generator,
    ) -> None:
        self._similarity = similarity
        self._config = config
        self._context = context
        self._rng = rng
        self._enrichment = ClusterEnrichmentService(similarity, config)
        self._logger = get_logger(__name__).bind(run_id=context.run_id)

    async def compute(
        self,
        corpus: Sequence[CorpusArtist | str],
        dislikes: Iterable[str] = (),
    ) -> UniverseResult:
        artists = dedupe_corpus(corpus)
        minimum = self._config.min_corpus_artists
        if len(artists) < minimum:
            raise InsufficientDataError(NOT_ENOUGH_ARTISTS.format(minimum=minimum))

        # --- Tags ---
        await self._context.report(RunPhase.TAGS, 0, len(artists), f"Fetching tags for {len(artists)} artists...")
        tag_lists = await asyncio.gather(*(
            self._similarity.get_artist_tags(a.name, self._config.tags_per_artist) for a in artists
        ))
        tagged = {a.name: tags for a, tags in zip(artists, tag_lists) if tags}
        await self._context.report(
            RunPhase.TAGS, len(artists), len(artists), f"Tagged {len(tagged)} of {len(artists)} artists"
        )
        if len(tagged) < minimum:
            raise InsufficientDataError(NOT_ENOUGH_TAGS)

        # --- Clustering ---
        await self._context.report(RunPhase.CLUSTERING, 0, 1, f"Clustering {len(tagged)} artists...")
        space = await asyncio.to_thread(build_tag_vectors, tagged, self._config.max_vocabulary)
        names, matrix = space.matrix()
        raw_clusters = await asyncio.to_thread(
            kmeans,
            names,
            matrix,
            self._config.cluster_k,
            self._config.kmeans_max_iterations,
            self._rng,
        )
        await self._context.report(RunPhase.CLUSTERING, 1, 1, f"Found {len(raw_clusters)} clusters")

        # --- Recommendations ---
        by_name = {a.name: a for a in artists}
        excluded = {name_key(a.name) for a in artists} | {name_key(d) for d in dislikes}

        clusters: list[Cluster] = []
        pools = {}
        for index, raw in enumerate(raw_clusters):
            label = enrichment.label_cluster(raw.centroid, space.vocabulary)
            await self._context.report(
                RunPhase.RECOMMENDATIONS, index, len(raw_clusters), f"Finding artists for {label}..."
            )
            top, pool = await self._enrichment.cluster_recommendations(raw.members, excluded)
            pools[index] = pool
            clusters.append(Cluster(
                id=index,
                label=label,
                color=enrichment.cluster_color(raw.centroid, space.vocabulary),
                members=[by_name[m] for m in raw.members],
                recommendations=top,
                top_tags=enrichment.top_tags(raw.centroid, space.vocabulary),
                centroid=raw.centroid.tolist() if raw.centroid is not None else None,
            ))
            self._logger.debug("cluster_enriched", cluster=index, label=label, members=len(raw.members), pool=len(pool))
        await self._context.report(
            RunPhase.RECOMMENDATIONS, len(raw_clusters), len(raw_clusters), "Cluster recommendations ready"
        )

        # --- Hidden gems ---
        await self._context.report(RunPhase.GEMS, 0, 1, "Looking for hidden gems...")
        clusters = await self._enrichment.classify_hidden_gems(clusters)
        await self._context.report(RunPhase.GEMS, 1, 1, "Hidden gems classified")

        # --- Connectors & layout ---
        await self._context.report(RunPhase.LAYOUT, 0, 1, "Mapping your universe...")
        chain_links = enrichment.discover_chain_links(clusters, pools, self._config.chain_link_fraction)
        clusters = enrichment.apply_chain_links(clusters, pools, chain_links)
        bridges = enrichment.detect_bridges(raw_clusters, space.vectors, self._config.bridge_cosine_threshold)
        visualization = await asyncio.to_thread(
            build_visualization,
            clusters,
            bridges,
            self._rng,
            self._config.canvas_size,
            self._config.layout_iterations,
        )
        await self._context.report(RunPhase.LAYOUT, 1, 1, "Universe ready")

        self._logger.info(
            "universe_computed",
            artists=len(artists),
            tagged=len(tagged),
            clusters=len(clusters),
            bridges=len(bridges),
            chain_links=len(chain_links),
        )
        return UniverseResult(
            clusters=clusters,
            bridges=bridges[: self._config.max_universe_bridges],
            chain_links=chain_links,
            visualization=visualization,
            artist_count=len(artists),
            computed_at=datetime.now(timezone.utc),
        )
