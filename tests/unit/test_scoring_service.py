"""Unit tests for tiering, composite scoring and slot allocation."""

from __future__ import annotations

import pytest

from stellar.config.engine_config import EngineConfig
from stellar.models.artist import (
    Artist,
    BridgeProvenance,
    Candidate,
    CandidatePool,
    ChainBridgeProvenance,
    DeepCutProvenance,
    Tier,
)
from stellar.services.scoring_service import (
    ScoringService,
    allocate_slots,
    classify_tier,
    composite_score,
    fan_threshold,
)


def _make_candidate(
    name: str,
    match: float = 0.5,
    fans: int = 1000,
    seeds: tuple[str, ...] = ("s1",),
    provenance=None,
) -> Candidate:
    kwargs = {"provenance": provenance} if provenance is not None else {}
    return Candidate(
        artist=Artist(id=f"id-{name}", name=name, nb_fan=fans, match_score=match),
        related_to_seeds=frozenset(seeds),
        **kwargs,
    )


_DEEP_CUT = DeepCutProvenance(discovered_via="id-hub", discovered_via_name="Hub")
_BRIDGE = BridgeProvenance(bridges_between=("s1", "s2"), bridge_seed_names=("A", "B"))


# ======================================================================
# Pure functions
# ======================================================================


class TestFanThreshold:
    def test_thirtieth_percentile(self) -> None:
        assert fan_threshold([100, 10, 90, 20, 80, 30, 70, 40, 60, 50]) == 40

    def test_empty_is_zero(self) -> None:
        assert fan_threshold([]) == 0


class TestClassifyTier:
    def test_outer_orbit_methods_always_gems(self) -> None:
        chain = ChainBridgeProvenance(chain=("A", "X", "B"), chain_position=1, bridges_between=("s1", "s2"))
        for provenance in (_DEEP_CUT, _BRIDGE, chain):
            candidate = _make_candidate("X", match=1.0, fans=10**7, provenance=provenance)
            assert classify_tier(candidate, threshold=0) is Tier.HIDDEN_GEM

    def test_strong_match_with_fans_is_popular(self) -> None:
        assert classify_tier(_make_candidate("P", match=0.25, fans=5000), threshold=1000) is Tier.POPULAR

    def test_shared_candidate_with_fans_is_popular(self) -> None:
        candidate = _make_candidate("P", match=0.35, fans=5000, seeds=("s1", "s2"))
        assert classify_tier(candidate, threshold=1000) is Tier.POPULAR

    def test_below_fan_threshold_is_gem(self) -> None:
        assert classify_tier(_make_candidate("G", match=0.9, fans=10), threshold=1000) is Tier.HIDDEN_GEM

    def test_weak_match_is_gem(self) -> None:
        assert classify_tier(_make_candidate("G", match=0.1, fans=10**6), threshold=1000) is Tier.HIDDEN_GEM


class TestCompositeScore:
    def test_popular_formula(self) -> None:
        candidate = _make_candidate("P", match=0.5)
        assert composite_score(candidate, Tier.POPULAR, overlap=1.0) == pytest.approx(0.8)

    def test_bridge_gem_formula(self) -> None:
        candidate = _make_candidate("B", match=0.4, fans=0, provenance=_BRIDGE)
        assert composite_score(candidate, Tier.HIDDEN_GEM, overlap=1.0) == pytest.approx(0.78)

    def test_deep_cut_bonus_and_rarity(self) -> None:
        candidate = _make_candidate("D", match=0.5, fans=250_000, provenance=_DEEP_CUT)
        expected = 0.2 * 0.5 + 0.2 * 0.5 + 0.2 + 0.5 * 0.1
        assert composite_score(candidate, Tier.HIDDEN_GEM, overlap=0.5) == pytest.approx(expected)

    def test_clamped_to_one(self) -> None:
        candidate = _make_candidate("P", match=1.0)
        assert composite_score(candidate, Tier.POPULAR, overlap=2.0) == 1.0


class TestAllocateSlots:
    @pytest.mark.parametrize(
        ("popular", "gems", "expected_popular", "expected_gems"),
        [
            (100, 100, 28, 22),   # gem cap applies while popular remains
            (10, 100, 10, 40),    # scarce popular: gems expand
            (100, 5, 45, 5),      # scarce gems: popular fills the rest
            (100, 15, 35, 15),    # exactly the gem floor
            (3, 2, 3, 2),         # small pools are taken whole
        ],
    )
    def test_budget_split(self, popular: int, gems: int, expected_popular: int, expected_gems: int) -> None:
        slots = allocate_slots(popular, gems, 50)
        assert (slots.popular, slots.hidden_gem) == (expected_popular, expected_gems)

    @pytest.mark.parametrize("popular", [0, 10, 40, 200])
    @pytest.mark.parametrize("gems", [0, 14, 15, 30, 200])
    def test_invariants(self, popular: int, gems: int) -> None:
        slots = allocate_slots(popular, gems, 50)
        assert slots.total <= 50
        assert slots.popular <= popular
        assert slots.hidden_gem <= gems
        if gems >= 15:
            assert slots.hidden_gem >= 15


# ======================================================================
# ScoringService
# ======================================================================


class TestScoringService:
    def _pool(self, popular: int, gems: int) -> CandidatePool:
        candidates = [_make_candidate(f"Pop {i:03d}", match=0.9, fans=10**6) for i in range(popular)]
        candidates += [
            _make_candidate(f"Gem {i:03d}", match=0.3, fans=100, provenance=_DEEP_CUT) for i in range(gems)
        ]
        return CandidatePool({c.id: c for c in candidates})

    def test_selection_honours_budget_and_gem_floor(self) -> None:
        service = ScoringService(EngineConfig())
        seeds = [Artist(id="s1", name="Seed")]

        selected = service.score_and_select(self._pool(60, 60), seeds)

        gems = [r for r in selected if r.tier is Tier.HIDDEN_GEM]
        assert len(selected) == 50
        assert len(gems) == 22
        assert len(gems) >= 15

    def test_selection_sorted_by_composite(self) -> None:
        service = ScoringService(EngineConfig())
        selected = service.score_and_select(self._pool(5, 5), [Artist(id="s1", name="Seed")])

        scores = [r.composite_score for r in selected]
        assert scores == sorted(scores, reverse=True)

    def test_overlap_and_seed_names(self) -> None:
        service = ScoringService(EngineConfig())
        seeds = [Artist(id="s1", name="Radiohead"), Artist(id="s2", name="Boards of Canada")]
        candidate = _make_candidate("Shared", match=0.5, seeds=("s1", "s2"))

        [scored] = service.score(CandidatePool({candidate.id: candidate}), seeds)

        assert scored.overlap_count == 2
        assert scored.overlap_score == 1.0
        assert scored.related_seed_names == ["Boards of Canada", "Radiohead"]
