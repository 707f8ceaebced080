"""Galaxy graph models returned by ``discover_galaxy``.

A galaxy is a flat ``{nodes, links}`` structure ready for a force-directed
renderer.  Seed nodes carry a composite score of 1.0; recommendation nodes
carry their tier, discovery method and score.  Links carry a strength in
[0, 1] plus flags telling the renderer how to style them.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from stellar.models.artist import DiscoveryMethod, Tier


class GalaxyNode(BaseModel):
    """A single node in the galaxy graph."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: Literal["seed", "recommendation"]
    name: str
    genres: list[str] = Field(default_factory=list)
    popularity: int = 0
    nb_fan: int = 0
    image: str | None = None
    image_large: str | None = None
    external_url: str | None = None
    composite_score: float = 1.0
    overlap_score: float = 0.0
    overlap_count: int = 0
    match_score: float | None = None
    tier: Tier | Literal["drift"] | None = None
    discovery_method: DiscoveryMethod | None = None
    related_to_seeds: list[str] = Field(default_factory=list)
    related_seed_names: list[str] = Field(default_factory=list)
    # Deep cuts only: the intermediate candidate that surfaced this node.
    discovered_via: str | None = None
    discovered_via_name: str | None = None
    # Bridges and chain bridges: the seed pair they connect.
    bridges_between: list[str] = Field(default_factory=list)
    chain: list[str] = Field(default_factory=list)


class GalaxyLink(BaseModel):
    """An undirected weighted edge between two galaxy nodes."""

    model_config = ConfigDict(frozen=True)

    source: str
    target: str
    strength: float = Field(ge=0.0, le=1.0)
    is_bridge_link: bool = False
    is_deep_cut_link: bool = False
    is_chain_link: bool = False
    is_drift_link: bool = False
    # Added by the connectivity post-pass, not backed by discovery evidence.
    is_synthetic: bool = False
    chain_position: int | None = None
    chain_length: int | None = None


class GalaxyGraph(BaseModel):
    """The complete galaxy response."""

    model_config = ConfigDict(frozen=True)

    nodes: list[GalaxyNode] = Field(default_factory=list)
    links: list[GalaxyLink] = Field(default_factory=list)

    def degree(self, node_id: str) -> int:
        """Number of links touching *node_id*."""
        return sum(1 for link in self.links if node_id in (link.source, link.target))

    def seed_nodes(self) -> list[GalaxyNode]:
        return [n for n in self.nodes if n.type == "seed"]

    def recommendation_nodes(self) -> list[GalaxyNode]:
        return [n for n in self.nodes if n.type == "recommendation"]


class ChainBridge(BaseModel):
    """Result of ``find_chain_bridge``: a path of names from seed A to seed B.

    ``hops`` counts the intermediate artists, so a direct A-X-B path has
    ``hops == 1``.
    """

    model_config = ConfigDict(frozen=True)

    chain: list[str]
    hops: int
    score: float = 0.0
