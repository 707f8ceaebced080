"""Pydantic v2 data models for the Stellar discovery engine.

Re-exports every public model so callers can write
``from stellar.models import GalaxyGraph`` instead of reaching into the
individual modules.
"""

from stellar.models.artist import (
    Artist,
    ArtistEnrichment,
    ArtistTag,
    BridgeProvenance,
    Candidate,
    CandidatePool,
    ChainBridgeProvenance,
    DeepCutProvenance,
    DiscoveryMethod,
    DriftProvenance,
    Provenance,
    ScoredRecommendation,
    SimilarArtist,
    StandardProvenance,
    TagArtist,
    Tier,
)
from stellar.models.collision import (
    CollisionArtist,
    CollisionLink,
    CollisionLinkType,
    CollisionResult,
    CollisionStats,
    CollisionZone,
    CollisionZones,
)
from stellar.models.graph import ChainBridge, GalaxyGraph, GalaxyLink, GalaxyNode
from stellar.models.progress import ProgressEvent, RunPhase
from stellar.models.universe import (
    BridgeArtist,
    ChainLink,
    Cluster,
    ClusterCenter,
    ClusterRecommendation,
    CorpusArtist,
    HSLColor,
    Point,
    UniverseResult,
    Visualization,
    VizLink,
    VizNode,
)

__all__ = [
    "Artist",
    "ArtistEnrichment",
    "ArtistTag",
    "BridgeArtist",
    "BridgeProvenance",
    "Candidate",
    "CandidatePool",
    "ChainBridge",
    "ChainBridgeProvenance",
    "ChainLink",
    "Cluster",
    "ClusterCenter",
    "ClusterRecommendation",
    "CollisionArtist",
    "CollisionLink",
    "CollisionLinkType",
    "CollisionResult",
    "CollisionStats",
    "CollisionZone",
    "CollisionZones",
    "CorpusArtist",
    "DeepCutProvenance",
    "DiscoveryMethod",
    "DriftProvenance",
    "GalaxyGraph",
    "GalaxyLink",
    "GalaxyNode",
    "HSLColor",
    "Point",
    "ProgressEvent",
    "Provenance",
    "RunPhase",
    "ScoredRecommendation",
    "SimilarArtist",
    "StandardProvenance",
    "TagArtist",
    "Tier",
    "UniverseResult",
    "Visualization",
    "VizLink",
    "VizNode",
]
