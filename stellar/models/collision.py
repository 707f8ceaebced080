"""Collision models returned by ``compute_collision``.

A collision compares two users' taste sets (favorites plus discoveries)
and sorts every artist into one of six zones:

    core_overlap        artists both users have
    your_artists        yours only, with no link to the friend's taste
    friend_artists      the friend's only, with no link to yours
    your_exploration    the friend's artists that connect to yours
    friend_exploration  your artists that connect to the friend's
    shared_frontier     artists neither has, similar to the core overlap
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class CollisionZone(str, Enum):  # noqa: UP042 - StrEnum requires Python 3.11+
    CORE_OVERLAP = "core_overlap"
    YOUR_ARTISTS = "your_artists"
    FRIEND_ARTISTS = "friend_artists"
    SHARED_FRONTIER = "shared_frontier"
    YOUR_EXPLORATION = "your_exploration"
    FRIEND_EXPLORATION = "friend_exploration"


class CollisionLinkType(str, Enum):  # noqa: UP042 - StrEnum requires Python 3.11+
    CORE = "core"
    EXPLORATION = "exploration"
    FRONTIER = "frontier"


class CollisionArtist(BaseModel):
    """An artist placed in a collision zone.

    ``connected_to`` is set for exploration zones (the other side's artists
    it is similar to); ``score`` and ``suggested_by`` for the shared
    frontier (composite score and the core artists that surfaced it).
    """

    model_config = ConfigDict(frozen=True)

    name: str
    zone: CollisionZone
    image: str | None = None
    connected_to: list[str] = Field(default_factory=list)
    score: float | None = None
    suggested_by: list[str] = Field(default_factory=list)


class CollisionLink(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: str
    target: str
    strength: float
    type: CollisionLinkType


class CollisionZones(BaseModel):
    model_config = ConfigDict(frozen=True)

    core_overlap: list[CollisionArtist] = Field(default_factory=list)
    your_artists: list[CollisionArtist] = Field(default_factory=list)
    friend_artists: list[CollisionArtist] = Field(default_factory=list)
    shared_frontier: list[CollisionArtist] = Field(default_factory=list)
    your_exploration: list[CollisionArtist] = Field(default_factory=list)
    friend_exploration: list[CollisionArtist] = Field(default_factory=list)

    def total(self) -> int:
        return (
            len(self.core_overlap)
            + len(self.your_artists)
            + len(self.friend_artists)
            + len(self.shared_frontier)
            + len(self.your_exploration)
            + len(self.friend_exploration)
        )


class CollisionStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_artists: int = 0
    core_overlap_count: int = 0
    your_artist_count: int = 0
    friend_artist_count: int = 0
    shared_frontier_count: int = 0


class CollisionResult(BaseModel):
    """The complete collision response.

    ``collision_hash`` fingerprints both inputs so callers can tell when a
    stored collision is stale.
    """

    model_config = ConfigDict(frozen=True)

    zones: CollisionZones = Field(default_factory=CollisionZones)
    links: list[CollisionLink] = Field(default_factory=list)
    top_tags: list[str] = Field(default_factory=list)
    stats: CollisionStats = Field(default_factory=CollisionStats)
    collision_hash: str = ""
    computed_at: datetime | None = None
