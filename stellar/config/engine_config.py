"""Tunable constants for discovery, scoring, drift, universe clustering and collisions.

Every constant here is an empirically tuned default rather than a derived
value, so each one can be overridden from the ``engine:`` section of
``config/config.yaml``.  Validation (bounds, list shapes) happens once at
startup; services read the frozen instance without re-checking.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator


class EngineConfig(BaseModel):
    """Validated engine tunables with production defaults."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    # === Standard discovery ===
    similar_limit: int = Field(default=100, ge=1)       # Similar artists fetched per seed
    top_per_seed: int = Field(default=25, ge=1)         # Kept per seed after filtering
    enrichment_batch_size: int = Field(default=5, ge=1)
    genre_tag_limit: int = Field(default=5, ge=1)      # Provider tags kept as genres

    # === Deep cuts ===
    deep_cut_intermediates: int = Field(default=5, ge=0)
    deep_cut_similar_limit: int = Field(default=30, ge=1)
    deep_cut_limit: int = Field(default=15, ge=0)

    # === Bridges ===
    bridge_limit: int = Field(default=8, ge=0)          # Bridges kept per seed pair
    max_bridge_pairs: int = Field(default=10, ge=0)

    # === Chain bridges ===
    max_chain_bridge_pairs: int = Field(default=8, ge=0)
    chain_bridge_max_hops: int = Field(default=4, ge=1)
    chain_bridge_branch_limits: tuple[int, ...] = (20, 15, 10, 8)

    # === Scoring & slot allocation ===
    max_recommendations: int = Field(default=50, ge=1)
    min_gem_ratio: float = Field(default=0.30, ge=0.0, le=1.0)
    max_gem_ratio: float = Field(default=0.45, ge=0.0, le=1.0)
    fan_percentile: float = Field(default=0.30, ge=0.0, le=1.0)
    rarity_fan_cap: int = Field(default=500_000, ge=1)

    # === Drift ===
    drift_tags_to_query: int = Field(default=8, ge=1)
    drift_artists_per_tag: int = Field(default=30, ge=1)
    drift_min_count: int = Field(default=10, ge=0)
    drift_fraction: float = Field(default=0.25, ge=0.0)

    # === Universe ===
    min_corpus_artists: int = Field(default=4, ge=1)
    tags_per_artist: int = Field(default=10, ge=1)
    max_vocabulary: int = Field(default=100, ge=1)
    cluster_k: int | None = Field(default=None, ge=1)   # None = auto clamp(round(sqrt(n/2)), 2, 8)
    kmeans_max_iterations: int = Field(default=50, ge=1)
    cluster_query_members: int = Field(default=12, ge=1)
    cluster_similar_limit: int = Field(default=50, ge=1)
    cluster_top_recommendations: int = Field(default=20, ge=1)
    default_gem_listener_threshold: int = Field(default=100_000, ge=0)
    chain_link_fraction: float = Field(default=0.10, ge=0.0, le=1.0)
    bridge_cosine_threshold: float = Field(default=0.3, ge=0.0, le=1.0)
    max_universe_bridges: int = Field(default=10, ge=0)

    # === Collision ===
    collision_sample_size: int = Field(default=40, ge=1)      # Taste-set artists queried for similarity
    collision_similar_limit: int = Field(default=40, ge=1)
    collision_batch_size: int = Field(default=5, ge=1)
    collision_min_match: float = Field(default=0.15, ge=0.0, le=1.0)
    frontier_min_match: float = Field(default=0.10, ge=0.0, le=1.0)
    frontier_breadth_bonus: float = Field(default=0.3, ge=0.0)  # Per extra core artist
    frontier_fraction: float = Field(default=0.25, ge=0.0)
    frontier_min: int = Field(default=5, ge=0)
    frontier_min_per_source: int = Field(default=3, ge=1)
    collision_core_link_limit: int = Field(default=15, ge=0)
    exploration_link_strength: float = Field(default=0.3, ge=0.0)
    exploration_links_per_artist: int = Field(default=2, ge=0)
    collision_tag_sample: int = Field(default=10, ge=0)
    collision_top_tags: int = Field(default=5, ge=0)

    # === Layout ===
    layout_iterations: int = Field(default=80, ge=1)
    canvas_size: int = Field(default=1000, ge=100)

    # Seed for the k-means++ / layout jitter generator; None = nondeterministic.
    random_seed: int | None = None

    @model_validator(mode="after")
    def _check_ranges(self) -> EngineConfig:
        if self.min_gem_ratio > self.max_gem_ratio:
            raise ValueError("min_gem_ratio must not exceed max_gem_ratio")
        if not self.chain_bridge_branch_limits:
            raise ValueError("chain_bridge_branch_limits must not be empty")
        if any(limit < 1 for limit in self.chain_bridge_branch_limits):
            raise ValueError("chain_bridge_branch_limits entries must be >= 1")
        return self

    def branch_limit(self, hop: int, limits: tuple[int, ...] | None = None) -> int:
        """Branch factor for BFS *hop* (0-based); the last entry repeats."""
        table = limits or self.chain_bridge_branch_limits
        return table[min(hop, len(table) - 1)]
