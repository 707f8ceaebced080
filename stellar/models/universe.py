"""Universe models returned by ``compute_universe``.

The universe is the clustered view of a user's whole artist corpus:
clusters of corpus artists grouped by tag vectors, per-cluster
recommendations, cross-cluster chain links, and a precomputed 2D layout.

Centroids and tag vectors are numpy arrays inside the services; these
models hold plain lists so a UniverseResult serializes straight to JSON.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class HSLColor(BaseModel):
    """An HSL color (hue in degrees, saturation/lightness in percent)."""

    model_config = ConfigDict(frozen=True)

    h: float
    s: float
    l: float  # noqa: E741

    def to_css(self, alpha: float = 1.0) -> str:
        return f"hsla({self.h:g}, {self.s:g}%, {self.l:g}%, {alpha:g})"


class CorpusArtist(BaseModel):
    """An artist in the user's accumulated corpus (favorite or discovery)."""

    model_config = ConfigDict(frozen=True)

    name: str
    source: str = "favorite"   # "favorite" | "discovered"
    image: str | None = None


class ClusterRecommendation(BaseModel):
    """An artist recommended for a cluster, aggregated across its members.

    ``score`` is the mean match boosted by the number of supporting members;
    ``listeners`` and ``is_hidden_gem`` are filled in by gem classification.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    score: float
    match_score: float
    overlap_count: int = 1
    suggested_by: list[str] = Field(default_factory=list)
    listeners: int | None = None
    is_hidden_gem: bool = False
    is_chain_link: bool = False
    chain_clusters: list[int] = Field(default_factory=list)
    remote_clusters: list[int] = Field(default_factory=list)


class Cluster(BaseModel):
    """One labeled, colored group of corpus artists."""

    model_config = ConfigDict(frozen=True)

    id: int
    label: str
    color: HSLColor
    members: list[CorpusArtist] = Field(default_factory=list)
    recommendations: list[ClusterRecommendation] = Field(default_factory=list)
    top_tags: list[str] = Field(default_factory=list)
    centroid: list[float] | None = None


class ChainLink(BaseModel):
    """A candidate that appears in two or more clusters' recommendation pools."""

    model_config = ConfigDict(frozen=True)

    name: str
    home_cluster_id: int
    remote_clusters: list[int] = Field(default_factory=list)
    all_clusters: list[int] = Field(default_factory=list)
    avg_score: float = 0.0
    suggested_by: list[str] = Field(default_factory=list)


class BridgeArtist(BaseModel):
    """A corpus artist whose tag vector sits close to several cluster centroids."""

    model_config = ConfigDict(frozen=True)

    name: str
    clusters: list[int]
    strength: float


# ---------------------------------------------------------------------------
# Visualization
# ---------------------------------------------------------------------------

class Point(BaseModel):
    model_config = ConfigDict(frozen=True)

    x: float
    y: float


class VizNode(BaseModel):
    """A positioned member or recommendation node."""

    model_config = ConfigDict(frozen=True)

    x: float
    y: float
    cluster_id: int
    name: str
    is_recommendation: bool = False
    source: str | None = None
    image: str | None = None
    score: float | None = None
    match_score: float | None = None
    suggested_by: list[str] = Field(default_factory=list)
    size: float = 4.0


class ClusterCenter(BaseModel):
    model_config = ConfigDict(frozen=True)

    x: float
    y: float
    label: str
    color: HSLColor
    member_count: int
    rec_count: int


class VizLink(BaseModel):
    """A straight segment between two positioned points."""

    model_config = ConfigDict(frozen=True)

    start: Point
    end: Point
    strength: float
    name: str | None = None


class Visualization(BaseModel):
    """Precomputed 2D layout for the universe mini-map."""

    model_config = ConfigDict(frozen=True)

    nodes: list[VizNode] = Field(default_factory=list)
    cluster_centers: list[ClusterCenter] = Field(default_factory=list)
    bridge_links: list[VizLink] = Field(default_factory=list)
    rec_links: list[VizLink] = Field(default_factory=list)
    width: int = 1000
    height: int = 1000
    total_recs: int = 0


class UniverseResult(BaseModel):
    """The complete universe response."""

    model_config = ConfigDict(frozen=True)

    clusters: list[Cluster] = Field(default_factory=list)
    bridges: list[BridgeArtist] = Field(default_factory=list)
    chain_links: list[ChainLink] = Field(default_factory=list)
    visualization: Visualization = Field(default_factory=Visualization)
    artist_count: int = 0
    computed_at: datetime | None = None
