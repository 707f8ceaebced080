"""Progress reporting models for galaxy and universe runs.

Progress is a reporting side channel only: the engine never reads it back
and a failing callback never affects the run.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class RunPhase(str, Enum):  # noqa: UP042 - StrEnum requires Python 3.11+
    """Coarse milestones reported to progress callbacks.

    Galaxy runs go DISCOVER → DETAILS → DEEP_CUTS → BRIDGES → CHAIN_BRIDGES
    → SCORING → BUILDING (→ DRIFT when requested).  Universe runs go TAGS →
    CLUSTERING → RECOMMENDATIONS → GEMS → LAYOUT.  Collision runs go
    SAMPLING → ZONES → TAGS.
    """

    DISCOVER = "discover"
    DETAILS = "details"
    DEEP_CUTS = "deep_cuts"
    BRIDGES = "bridges"
    CHAIN_BRIDGES = "chain_bridges"
    SCORING = "scoring"
    BUILDING = "building"
    DRIFT = "drift"
    TAGS = "tags"
    CLUSTERING = "clustering"
    RECOMMENDATIONS = "recommendations"
    GEMS = "gems"
    LAYOUT = "layout"
    SAMPLING = "sampling"
    ZONES = "zones"


class ProgressEvent(BaseModel):
    """A single ``{phase, current, total, message}`` progress update."""

    model_config = ConfigDict(frozen=True)

    phase: RunPhase
    current: int = Field(default=0, ge=0)
    total: int = Field(default=1, ge=0)
    message: str = ""

    @property
    def fraction(self) -> float:
        """Completion of the current phase in [0, 1]."""
        if self.total <= 0:
            return 1.0
        return min(1.0, self.current / self.total)
