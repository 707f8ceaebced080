"""Unit tests for the universe layout and UniverseService."""

from __future__ import annotations

import numpy as np
import pytest

from stellar.config.engine_config import EngineConfig
from stellar.models.progress import RunPhase
from stellar.models.universe import BridgeArtist, Cluster, ClusterRecommendation, CorpusArtist
from stellar.providers.similarity.queued_provider import QueuedSimilarityProvider
from stellar.services.layout_service import (
    build_visualization,
    cluster_weight,
    initial_position,
    relax_cluster_positions,
)
from stellar.services.universe_service import UniverseService, dedupe_corpus
from stellar.utils.colors import DEFAULT_COLOR
from stellar.utils.errors import InsufficientDataError


def _cluster(cluster_id: int, label: str, members: list[str], recs: list[str] = ()) -> Cluster:
    return Cluster(
        id=cluster_id,
        label=label,
        color=DEFAULT_COLOR,
        members=[CorpusArtist(name=m) for m in members],
        recommendations=[
            ClusterRecommendation(name=r, score=0.5, match_score=0.5, suggested_by=[members[0]]) for r in recs
        ],
    )


# ======================================================================
# Layout
# ======================================================================


class TestLayout:
    def test_initial_position_is_deterministic_and_near_center(self) -> None:
        first = initial_position("Post-rock & Ambient", 500)
        second = initial_position("Post-rock & Ambient", 500)

        assert first == second
        distance = np.hypot(first.x - 500, first.y - 500)
        assert 50 <= distance <= 120 + 1e-9

    def test_cluster_weight(self) -> None:
        assert cluster_weight(_cluster(0, "A", ["a", "b"], ["r"])) == 50 + 16 + 4

    def test_single_cluster_sits_at_center(self) -> None:
        [point] = relax_cluster_positions([_cluster(0, "Solo", ["a"])], 500)
        assert (point.x, point.y) == (500, 500)

    def test_no_clusters(self) -> None:
        assert relax_cluster_positions([], 500) == []

    def test_relaxation_separates_overlapping_clusters(self) -> None:
        clusters = [
            _cluster(i, f"Cluster {i}", [f"m{i}-{j}" for j in range(10)], [f"r{i}-{j}" for j in range(20)])
            for i in range(4)
        ]

        positions = relax_cluster_positions(clusters, 500)

        start = [initial_position(c.label, 500) for c in clusters]
        spread_before = min(np.hypot(a.x - b.x, a.y - b.y) for i, a in enumerate(start) for b in start[i + 1:])
        spread_after = min(
            np.hypot(a.x - b.x, a.y - b.y) for i, a in enumerate(positions) for b in positions[i + 1:]
        )
        assert spread_after > spread_before

    def test_visualization_counts(self) -> None:
        clusters = [
            _cluster(0, "Shoegaze", ["Slowdive", "Ride"], ["Lush", "Chapterhouse"]),
            _cluster(1, "Idm", ["Autechre", "Aphex Twin", "Boards of Canada"], ["Plaid"]),
        ]
        bridges = [BridgeArtist(name="Boards of Canada", clusters=[0, 1], strength=0.5)]

        viz = build_visualization(clusters, bridges, np.random.default_rng(0))

        assert len(viz.nodes) == 5 + 3
        assert len([n for n in viz.nodes if n.is_recommendation]) == 3
        assert len(viz.rec_links) == 3
        assert len(viz.bridge_links) == 1
        assert viz.total_recs == 3
        assert [c.member_count for c in viz.cluster_centers] == [2, 3]
        assert (viz.width, viz.height) == (1000, 1000)

    def test_visualization_jitter_reproducible(self) -> None:
        clusters = [_cluster(0, "Solo", ["a", "b", "c"], ["r"])]
        first = build_visualization(clusters, [], np.random.default_rng(3))
        second = build_visualization(clusters, [], np.random.default_rng(3))
        assert first == second


# ======================================================================
# UniverseService
# ======================================================================


def _universe_similarity(similarity_factory):
    tags = {}
    similar = {}
    listeners = {}
    for group, tag in (("rock", "post-rock"), ("elec", "idm")):
        for i in range(4):
            name = f"{group} artist {i}"
            tags[name] = [(tag, 100), ("instrumental", 40)]
            similar[name] = [(f"{group} rec {j}", 0.9 - j / 10) for j in range(3)] + [("Shared Connector", 0.6)]
        for j in range(3):
            listeners[f"{group} rec {j}"] = 10_000 * (j + 1)
    listeners["Shared Connector"] = 900_000
    return similarity_factory(similar=similar, tags=tags, listeners=listeners)


class TestUniverseService:
    def test_dedupe_corpus(self) -> None:
        artists = dedupe_corpus(["Low", "low ", CorpusArtist(name="Slint", source="discovered"), ""])
        assert [a.name for a in artists] == ["Low", "Slint"]
        assert artists[1].source == "discovered"

    @pytest.mark.asyncio
    async def test_too_few_artists(self, similarity_factory, engine_config, run_context) -> None:
        service = UniverseService(similarity_factory(), engine_config, run_context, np.random.default_rng(0))

        with pytest.raises(InsufficientDataError, match="Need at least 4 artists"):
            await service.compute(["A", "B", "C"])

    @pytest.mark.asyncio
    async def test_too_few_tagged_artists(self, similarity_factory, engine_config, run_context) -> None:
        similarity = similarity_factory(tags={"A": [("rock", 100)]})
        service = UniverseService(similarity, engine_config, run_context, np.random.default_rng(0))

        with pytest.raises(InsufficientDataError, match="tag data"):
            await service.compute(["A", "B", "C", "D"])

    @pytest.mark.asyncio
    async def test_two_tag_groups_become_two_clusters(
        self, similarity_factory, engine_config, run_context, tracker
    ) -> None:
        events = []
        tracker.register_listener(run_context.run_id, events.append)
        similarity = QueuedSimilarityProvider(_universe_similarity(similarity_factory), run_context)
        service = UniverseService(similarity, engine_config, run_context, np.random.default_rng(7))
        corpus = [f"{group} artist {i}" for group in ("rock", "elec") for i in range(4)]

        result = await service.compute(corpus, dislikes=["rock rec 2"])

        assert result.artist_count == 8
        assert len(result.clusters) == 2
        labels = sorted(c.label for c in result.clusters)
        assert labels == ["Idm & Instrumental", "Post-rock & Instrumental"]

        for cluster in result.clusters:
            names = {r.name for r in cluster.recommendations}
            assert not names & set(corpus)
            assert "rock rec 2" not in names
            assert cluster.centroid is not None

        links = result.chain_links
        assert [link.name for link in links] == ["Shared Connector"]
        assert sorted(links[0].all_clusters) == [0, 1]

        assert result.computed_at is not None
        assert result.visualization.total_recs == sum(len(c.recommendations) for c in result.clusters)
        phases = [e.phase for e in events]
        assert phases[0] is RunPhase.TAGS
        assert phases[-1] is RunPhase.LAYOUT

    @pytest.mark.asyncio
    async def test_small_tagged_corpus_single_cluster(self, similarity_factory, run_context) -> None:
        similarity = similarity_factory(tags={name: [("folk", 100)] for name in "ABCD"})
        config = EngineConfig(min_corpus_artists=3)
        service = UniverseService(similarity, config, run_context, np.random.default_rng(0))

        result = await service.compute(["A", "B", "C"])

        assert len(result.clusters) == 1
        assert result.clusters[0].label == "Mixed"
        assert result.clusters[0].centroid is None
        assert result.bridges == []
