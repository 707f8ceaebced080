"""Unit tests for taste collisions: zones, frontier diversity, links and tags."""

from __future__ import annotations

import pytest

from stellar.config.engine_config import EngineConfig
from stellar.models.artist import SimilarArtist
from stellar.models.collision import CollisionLinkType, CollisionZone
from stellar.models.progress import RunPhase
from stellar.models.universe import CorpusArtist
from stellar.providers.similarity.queued_provider import QueuedSimilarityProvider
from stellar.services.collision_service import (
    CollisionService,
    FrontierCandidate,
    SimilarityIndex,
    build_zones,
    collision_hash,
    frontier_limits,
    rank_tags,
    select_frontier,
    taste_set,
)
from stellar.utils.text_normalizer import name_key

CONFIG = EngineConfig()


def _similar(table: dict[str, list[tuple[str, float]]]) -> dict[str, list[SimilarArtist]]:
    return {name_key(k): [SimilarArtist(name=n, match_score=m) for n, m in v] for k, v in table.items()}


def _corpus(*names: str) -> list[CorpusArtist]:
    return [CorpusArtist(name=n) for n in names]


def _candidate(name: str, *sources: tuple[str, float]) -> FrontierCandidate:
    return FrontierCandidate(name=name, key=name_key(name), sources=list(sources))


# Radiohead and Burial are shared.  Massive Attack (friend) lists Burial;
# Radiohead lists Low (yours), which reaches the friend through the reverse
# index.  Enya and Slayer connect to nothing.
USER = _corpus("Radiohead", "Burial", "Low", "Enya")
FRIEND = _corpus("radiohead", "Burial", "Massive Attack", "Slayer")
SIMILAR = {
    "Radiohead": [("Thom Yorke", 0.9), ("Burial", 0.6), ("Low", 0.3)],
    "Burial": [("Kode9", 0.8), ("Thom Yorke", 0.7)],
    "Massive Attack": [("Burial", 0.5)],
}


# ======================================================================
# Taste sets and hash
# ======================================================================


class TestTasteSet:
    def test_favorites_before_discoveries_and_deduped(self) -> None:
        corpus = [
            CorpusArtist(name="Grouper", source="discovered"),
            CorpusArtist(name="Low", source="favorite"),
            CorpusArtist(name="grouper", source="favorite"),
            "Codeine",
        ]

        artists = taste_set(corpus)

        assert [(a.name, a.source) for a in artists] == [
            ("Low", "favorite"),
            ("grouper", "favorite"),
            ("Codeine", "favorite"),
        ]


class TestCollisionHash:
    def test_order_and_case_insensitive(self) -> None:
        first = collision_hash(["Low", "Burial"], ["Enya"])
        second = collision_hash(["burial", " LOW "], ["enya"])

        assert first == second
        assert len(first) == 64

    def test_sides_matter(self) -> None:
        assert collision_hash(["Low"], ["Enya"]) != collision_hash(["Enya"], ["Low"])


# ======================================================================
# Similarity index
# ======================================================================


class TestSimilarityIndex:
    def test_forward_and_reverse_connections(self) -> None:
        display = {"radiohead": "Radiohead", "low": "Low", "burial": "Burial"}
        index = SimilarityIndex(_similar(SIMILAR), display, min_match=0.15)

        assert index.connected_names("low", {"radiohead"}) == ["Radiohead"]
        assert index.connected_names("radiohead", {"low", "burial"}) == ["Burial", "Low"]

    def test_weak_matches_ignored_both_ways(self) -> None:
        index = SimilarityIndex(_similar({"A": [("B", 0.1)]}), {"a": "A", "b": "B"}, min_match=0.15)

        assert index.connected_names("a", {"b"}) == []
        assert index.connected_names("b", {"a"}) == []
        assert [c.name for c in index.connections("a", 0.05)] == ["B"]


# ======================================================================
# Zone split
# ======================================================================


class TestZoneSplit:
    def test_every_artist_lands_in_one_zone(self) -> None:
        zones, _ = build_zones(USER, FRIEND, _similar(SIMILAR), CONFIG)

        assert [a.name for a in zones.core_overlap] == ["Radiohead", "Burial"]
        assert [(a.name, a.connected_to) for a in zones.your_exploration] == [("Massive Attack", ["Burial"])]
        assert [(a.name, a.connected_to) for a in zones.friend_exploration] == [("Low", ["Radiohead"])]
        assert [a.name for a in zones.your_artists] == ["Enya"]
        assert [a.name for a in zones.friend_artists] == ["Slayer"]
        assert zones.total() == 8

    def test_zone_tags_match_lists(self) -> None:
        zones, _ = build_zones(USER, FRIEND, _similar(SIMILAR), CONFIG)

        assert {a.zone for a in zones.core_overlap} == {CollisionZone.CORE_OVERLAP}
        assert {a.zone for a in zones.your_exploration} == {CollisionZone.YOUR_EXPLORATION}
        assert {a.zone for a in zones.shared_frontier} == {CollisionZone.SHARED_FRONTIER}

    def test_frontier_excludes_owned_artists_and_rewards_breadth(self) -> None:
        zones, _ = build_zones(USER, FRIEND, _similar(SIMILAR), CONFIG)

        frontier = zones.shared_frontier
        assert [a.name for a in frontier] == ["Thom Yorke", "Kode9"]
        assert frontier[0].suggested_by == ["Radiohead", "Burial"]
        assert frontier[0].score == pytest.approx(0.8 * 1.3)
        assert frontier[1].score == pytest.approx(0.8)

    def test_links_by_type(self) -> None:
        _, links = build_zones(USER, FRIEND, _similar(SIMILAR), CONFIG)

        by_type = {
            kind: sorted((link.source, link.target, round(link.strength, 2)) for link in links if link.type is kind)
            for kind in CollisionLinkType
        }
        assert by_type[CollisionLinkType.CORE] == [("Radiohead", "Burial", 0.6)]
        assert by_type[CollisionLinkType.EXPLORATION] == [
            ("Low", "Radiohead", 0.3),
            ("Massive Attack", "Burial", 0.3),
        ]
        assert by_type[CollisionLinkType.FRONTIER] == [
            ("Kode9", "Burial", 0.8),
            ("Thom Yorke", "Burial", 1.04),
            ("Thom Yorke", "Radiohead", 1.04),
        ]

    def test_no_overlap_means_no_frontier(self) -> None:
        zones, links = build_zones(_corpus("Low"), _corpus("Enya"), _similar({"Low": [("Codeine", 0.9)]}), CONFIG)

        assert zones.core_overlap == []
        assert zones.shared_frontier == []
        assert [a.name for a in zones.your_artists] == ["Low"]
        assert [a.name for a in zones.friend_artists] == ["Enya"]
        assert links == []


# ======================================================================
# Frontier diversity
# ======================================================================


class TestFrontierLimits:
    @pytest.mark.parametrize(
        ("total", "core", "expected"),
        [
            (6, 2, (5, 3)),      # floor of 5
            (40, 2, (10, 5)),    # 25% of 40
            (40, 10, (10, 3)),   # per-source floor of 3
            (10, 0, (5, 5)),
            (22, 1, (6, 6)),     # 5.5 rounds half up
        ],
    )
    def test_limits(self, total: int, core: int, expected: tuple[int, int]) -> None:
        assert frontier_limits(total, core, CONFIG) == expected


class TestSelectFrontier:
    def test_per_source_cap_spreads_picks(self) -> None:
        ranked = [_candidate(f"A{i}", ("A", 0.9 - i / 100)) for i in range(10)]
        ranked += [_candidate("B0", ("B", 0.3)), _candidate("B1", ("B", 0.2))]

        picked = select_frontier(ranked, limit=5, max_per_source=3)

        assert [c.name for c in picked] == ["A0", "A1", "A2", "B0", "B1"]

    def test_cap_relaxed_to_fill_limit(self) -> None:
        ranked = [_candidate(f"A{i}", ("A", 0.9 - i / 100)) for i in range(10)]
        ranked.append(_candidate("B0", ("B", 0.3)))

        picked = select_frontier(ranked, limit=5, max_per_source=3)

        assert [c.name for c in picked] == ["A0", "A1", "A2", "B0", "A3"]

    def test_multi_source_candidates_first(self) -> None:
        ranked = sorted(
            [
                _candidate("Solo", ("A", 0.95)),
                _candidate("Shared", ("A", 0.4), ("B", 0.4)),
            ],
            key=lambda c: -c.score,
        )

        picked = select_frontier(ranked, limit=1, max_per_source=3)

        assert [c.name for c in picked] == ["Shared"]

    def test_multi_source_picks_count_against_cap(self) -> None:
        ranked = [
            _candidate("Shared", ("A", 0.9), ("B", 0.9)),
            _candidate("A0", ("A", 0.8)),
            _candidate("A1", ("A", 0.7)),
            _candidate("B0", ("B", 0.6)),
        ]

        picked = select_frontier(ranked, limit=3, max_per_source=1)

        assert [c.name for c in picked] == ["Shared", "A0", "A1"]

    def test_breadth_bonus(self) -> None:
        candidate = _candidate("X", ("A", 0.5), ("B", 0.7), ("C", 0.6))

        assert candidate.score == pytest.approx(0.6 * 1.6)


class TestRankTags:
    def test_summed_counts_with_stable_ties(self) -> None:
        tag_lists = [
            [("Alternative", 100), ("rock", 80)],
            [("dubstep", 100), ("electronic", 90), ("Rock", 30)],
        ]

        assert rank_tags(tag_lists, 3) == ["rock", "alternative", "dubstep"]


# ======================================================================
# Service and engine
# ======================================================================


def _collision_similarity(similarity_factory):
    return similarity_factory(
        similar=SIMILAR,
        tags={
            "Radiohead": [("alternative", 100), ("rock", 80)],
            "Burial": [("dubstep", 100), ("electronic", 90), ("rock", 30)],
        },
    )


class TestCollisionService:
    @pytest.mark.asyncio
    async def test_compute(self, similarity_factory, engine_config, run_context) -> None:
        events = []
        run_context.tracker.register_listener(run_context.run_id, events.append)
        similarity = _collision_similarity(similarity_factory)
        service = CollisionService(QueuedSimilarityProvider(similarity, run_context), engine_config, run_context)

        result = await service.compute(USER, FRIEND)

        assert result.top_tags == ["rock", "alternative", "dubstep", "electronic"]
        assert result.stats.total_artists == 8
        assert result.stats.core_overlap_count == 2
        assert result.stats.your_artist_count == 4
        assert result.stats.friend_artist_count == 4
        assert result.stats.shared_frontier_count == 2
        assert result.collision_hash == collision_hash(USER, FRIEND)
        assert result.computed_at is not None

        sampled = [subject for op, subject in similarity.calls if op == "similar"]
        assert len(sampled) == 6
        assert [subject for op, subject in similarity.calls if op == "tags"] == ["Radiohead", "Burial"]
        assert [e.phase for e in events][0] is RunPhase.SAMPLING
        assert {RunPhase.ZONES, RunPhase.TAGS} <= {e.phase for e in events}

    @pytest.mark.asyncio
    async def test_sample_capped(self, similarity_factory, run_context) -> None:
        similarity = similarity_factory()
        config = EngineConfig(collision_sample_size=3, collision_batch_size=2)
        service = CollisionService(QueuedSimilarityProvider(similarity, run_context), config, run_context)

        await service.compute(USER, FRIEND)

        assert [subject for op, subject in similarity.calls if op == "similar"] == ["Radiohead", "Burial", "Low"]
