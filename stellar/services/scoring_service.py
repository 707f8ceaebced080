"""Tier classification, composite scoring and slot allocation.

Every merged candidate is placed in one of two tiers and given a
composite score in [0, 1]:

    overlap   = |related_to_seeds| / seed_count
    threshold = 30th percentile of candidate fan counts in this run

    Tier
        deep_cut / bridge / chain_bridge  -> always hidden_gem
        (match >= 0.3 and fans >= threshold and overlap_count >= 2)
        or (match >= 0.2 and fans >= threshold)     -> popular
        otherwise                                    -> hidden_gem

    Composite
        popular    = 0.6 * overlap + 0.4 * match
        hidden_gem = 0.2 * overlap + 0.2 * match
                     + 0.4 (bridge, chain_bridge) + 0.2 (deep_cut)
                     + 0.1 * (1 - min(fans / 500000, 1))
                     clamped to 1.0

The recommendation budget reserves at least 30% of slots for gems
whenever enough gems exist, and never more than 45% unless popular
candidates run out.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from stellar.config.engine_config import EngineConfig
from stellar.models.artist import (
    Artist,
    Candidate,
    CandidatePool,
    DiscoveryMethod,
    ScoredRecommendation,
    Tier,
)
from stellar.utils.logging import get_logger

logger = get_logger(__name__)

_ALWAYS_GEM = frozenset({DiscoveryMethod.DEEP_CUT, DiscoveryMethod.BRIDGE, DiscoveryMethod.CHAIN_BRIDGE})
_BRIDGE_BONUS = 0.4
_DEEP_CUT_BONUS = 0.2
_RARITY_WEIGHT = 0.1


@dataclass(frozen=True)
class SlotAllocation:
    """Number of slots granted to each tier."""

    popular: int
    hidden_gem: int

    @property
    def total(self) -> int:
        return self.popular + self.hidden_gem


def fan_threshold(fan_counts: Sequence[int], percentile: float = 0.30) -> int:
    """Fan count at *percentile* of the sorted counts (0 for an empty run)."""
    if not fan_counts:
        return 0
    ordered = sorted(fan_counts)
    index = min(len(ordered) - 1, int(math.floor(len(ordered) * percentile)))
    return ordered[index]


def classify_tier(candidate: Candidate, threshold: int) -> Tier:
    if candidate.method in _ALWAYS_GEM:
        return Tier.HIDDEN_GEM

    match = candidate.match_score
    fans = candidate.artist.nb_fan
    overlap_count = len(candidate.related_to_seeds)
    if match >= 0.3 and fans >= threshold and overlap_count >= 2:
        return Tier.POPULAR
    if match >= 0.2 and fans >= threshold:
        return Tier.POPULAR
    return Tier.HIDDEN_GEM


def composite_score(
    candidate: Candidate,
    tier: Tier,
    overlap: float,
    rarity_fan_cap: int = 500_000,
) -> float:
    match = candidate.match_score
    if tier is Tier.POPULAR:
        return min(1.0, 0.6 * overlap + 0.4 * match)

    score = 0.2 * overlap + 0.2 * match
    if candidate.method in (DiscoveryMethod.BRIDGE, DiscoveryMethod.CHAIN_BRIDGE):
        score += _BRIDGE_BONUS
    elif candidate.method is DiscoveryMethod.DEEP_CUT:
        score += _DEEP_CUT_BONUS
    score += (1 - min(candidate.artist.nb_fan / rarity_fan_cap, 1.0)) * _RARITY_WEIGHT
    return min(1.0, score)


def allocate_slots(
    popular_available: int,
    gem_available: int,
    max_recommendations: int,
    min_gem_ratio: float = 0.30,
    max_gem_ratio: float = 0.45,
) -> SlotAllocation:
    """Split the recommendation budget between the two tiers.

    Gems get ``floor(max * max_ratio)`` slots at most while popular
    candidates remain; if popular is scarce the leftover goes back to gems.
    The gem floor ``ceil(max * min_ratio)`` is always honoured when that
    many gems exist.
    """
    min_gems = min(max_recommendations, math.ceil(max_recommendations * min_gem_ratio))
    max_gems = max(min_gems, math.floor(max_recommendations * max_gem_ratio))

    gems = min(gem_available, max_gems)
    popular = min(popular_available, max_recommendations - gems)
    leftover = max_recommendations - gems - popular
    if leftover > 0:
        gems = min(gem_available, gems + leftover)
    return SlotAllocation(popular=popular, hidden_gem=gems)


class ScoringService:
    """Turns a candidate pool into the run's ranked recommendations."""

    def __init__(self, config: EngineConfig) -> None:
        self._config = config

    def score(
        self,
        pool: CandidatePool,
        seeds: Sequence[Artist],
    ) -> list[ScoredRecommendation]:
        """Score every candidate in *pool* (no budget applied)."""
        seed_count = max(1, len(seeds))
        seed_names: Mapping[str, str] = {s.id: s.name for s in seeds}
        threshold = fan_threshold(
            [c.artist.nb_fan for c in pool.values()], self._config.fan_percentile
        )

        scored: list[ScoredRecommendation] = []
        for candidate in pool.values():
            overlap_count = len(candidate.related_to_seeds)
            overlap = overlap_count / seed_count
            tier = classify_tier(candidate, threshold)
            scored.append(ScoredRecommendation(
                candidate=candidate,
                composite_score=composite_score(candidate, tier, overlap, self._config.rarity_fan_cap),
                tier=tier,
                overlap_score=min(1.0, overlap),
                overlap_count=overlap_count,
                related_seed_names=sorted(
                    seed_names[sid] for sid in candidate.related_to_seeds if sid in seed_names
                ),
            ))

        logger.debug("candidates_scored", candidates=len(scored), fan_threshold=threshold)
        return scored

    def select(self, scored: Sequence[ScoredRecommendation]) -> list[ScoredRecommendation]:
        """Apply the slot budget and return the final recommendations."""
        popular = _ranked([r for r in scored if r.tier is Tier.POPULAR])
        gems = _ranked([r for r in scored if r.tier is Tier.HIDDEN_GEM])

        slots = allocate_slots(
            len(popular),
            len(gems),
            self._config.max_recommendations,
            self._config.min_gem_ratio,
            self._config.max_gem_ratio,
        )
        selected = _ranked(popular[: slots.popular] + gems[: slots.hidden_gem])

        logger.info(
            "recommendations_selected",
            popular_available=len(popular),
            gems_available=len(gems),
            popular=slots.popular,
            hidden_gems=slots.hidden_gem,
        )
        return selected

    def score_and_select(
        self,
        pool: CandidatePool,
        seeds: Sequence[Artist],
    ) -> list[ScoredRecommendation]:
        return self.select(self.score(pool, seeds))


def _ranked(items: list[ScoredRecommendation]) -> list[ScoredRecommendation]:
    return sorted(items, key=lambda r: (-r.composite_score, r.artist.key))
