"""Artist, candidate, and recommendation models for the discovery pipeline.

Defines enums and Pydantic v2 models for the values that flow through a
galaxy run.  All models use frozen config so a discovery phase can never
mutate a previous phase's output; phases produce new
:class:`CandidatePool` instances via the builder functions in
``stellar/services/discovery_service.py``.

Key relationships:
    - Candidate wraps an Artist plus the seed ids that surfaced it
    - Candidate.provenance is a tagged union keyed by ``method``; each
      variant carries only the fields its discovery strategy produces
    - ScoredRecommendation wraps a Candidate after tiering and scoring
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from stellar.utils.text_normalizer import name_key


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class DiscoveryMethod(str, Enum):  # noqa: UP042 - StrEnum requires Python 3.11+
    """How a candidate entered the pool.

    Standard candidates come straight from a seed's similarity list.  The
    other methods are the "outer orbit" strategies that run after it.
    """

    STANDARD = "standard"          # Direct similarity to a seed
    DEEP_CUT = "deep_cut"          # Second hop via an intermediate candidate
    BRIDGE = "bridge"              # Similar to both seeds of a disconnected pair
    CHAIN_BRIDGE = "chain_bridge"  # On a multi-hop path between two seeds
    DRIFT = "drift"                # Genre-adjacent via tag lookup


class Tier(str, Enum):  # noqa: UP042
    """Recommendation tier assigned by the scoring service."""

    POPULAR = "popular"
    HIDDEN_GEM = "hidden_gem"


# ---------------------------------------------------------------------------
# Artist
# ---------------------------------------------------------------------------

class Artist(BaseModel):
    """An artist as known to the engine at some point in a run.

    ``id`` is the enrichment provider's id when one was resolved, otherwise a
    synthesized ``"lastfm-<mbid or name>"`` key so unenriched artists can
    still be deduplicated and merged once an id is found.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    genres: list[str] = Field(default_factory=list)
    popularity: int = 0
    nb_fan: int = 0                       # Fan / listener count used for tiering
    image: str | None = None
    image_large: str | None = None
    external_url: str | None = None
    mbid: str | None = None
    # Similarity strength to the artist that surfaced this one.
    match_score: float | None = Field(default=None, ge=0.0, le=1.0)

    @property
    def key(self) -> str:
        """Normalized name used for cross-source deduplication."""
        return name_key(self.name)

    @classmethod
    def synthesize_id(cls, name: str, mbid: str | None = None) -> str:
        """Build the fallback id for an artist with no enrichment match."""
        return f"lastfm-{mbid or name}"


class SimilarArtist(BaseModel):
    """One entry of a similarity provider's ``get_similar_artists`` result."""

    model_config = ConfigDict(frozen=True)

    name: str
    match_score: float = Field(default=0.0, ge=0.0, le=1.0)
    mbid: str | None = None
    external_url: str | None = None


class ArtistTag(BaseModel):
    """A provider tag with its relative weight (Last.fm counts are 0-100)."""

    model_config = ConfigDict(frozen=True)

    name: str
    count: int = 100


class TagArtist(BaseModel):
    """An artist returned by a top-artists-by-tag lookup."""

    model_config = ConfigDict(frozen=True)

    name: str
    listeners: int = 0
    mbid: str | None = None


class ArtistEnrichment(BaseModel):
    """Image/popularity data returned by the enrichment collaborator.

    Fields the provider could not resolve stay ``None`` so merging an
    enrichment never overwrites known values with blanks.
    """

    model_config = ConfigDict(frozen=True)

    id: str | None = None
    image: str | None = None
    image_large: str | None = None
    nb_fan: int | None = None
    external_url: str | None = None
    genres: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Provenance - tagged union keyed by ``method``
# ---------------------------------------------------------------------------

class StandardProvenance(BaseModel):
    model_config = ConfigDict(frozen=True)

    method: Literal[DiscoveryMethod.STANDARD] = DiscoveryMethod.STANDARD


class DeepCutProvenance(BaseModel):
    """Second-hop candidate; points back to the intermediate that found it."""

    model_config = ConfigDict(frozen=True)

    method: Literal[DiscoveryMethod.DEEP_CUT] = DiscoveryMethod.DEEP_CUT
    discovered_via: str
    discovered_via_name: str


class BridgeProvenance(BaseModel):
    """Artist similar to both seeds of a pair with no shared candidates."""

    model_config = ConfigDict(frozen=True)

    method: Literal[DiscoveryMethod.BRIDGE] = DiscoveryMethod.BRIDGE
    bridges_between: tuple[str, str]
    bridge_seed_names: tuple[str, str]


class ChainBridgeProvenance(BaseModel):
    """Intermediate artist on a multi-hop chain between two seeds.

    ``chain`` holds the full path of names, seed A first and seed B last.
    ``chain_position`` is this artist's index within it.
    """

    model_config = ConfigDict(frozen=True)

    method: Literal[DiscoveryMethod.CHAIN_BRIDGE] = DiscoveryMethod.CHAIN_BRIDGE
    chain: tuple[str, ...]
    chain_position: int
    bridges_between: tuple[str, str]

    @property
    def chain_length(self) -> int:
        return len(self.chain)


class DriftProvenance(BaseModel):
    """Genre-adjacent outlier found through tag lookups."""

    model_config = ConfigDict(frozen=True)

    method: Literal[DiscoveryMethod.DRIFT] = DiscoveryMethod.DRIFT
    tags: tuple[str, ...] = ()


Provenance = Annotated[
    Union[
        StandardProvenance,
        DeepCutProvenance,
        BridgeProvenance,
        ChainBridgeProvenance,
        DriftProvenance,
    ],
    Field(discriminator="method"),
]


# ---------------------------------------------------------------------------
# Candidate & pool
# ---------------------------------------------------------------------------

class Candidate(BaseModel):
    """A provisional artist under consideration in one galaxy run."""

    model_config = ConfigDict(frozen=True)

    artist: Artist
    related_to_seeds: frozenset[str] = frozenset()
    provenance: Provenance = Field(default_factory=StandardProvenance)

    @property
    def id(self) -> str:
        return self.artist.id

    @property
    def method(self) -> DiscoveryMethod:
        return self.provenance.method

    @property
    def match_score(self) -> float:
        return self.artist.match_score or 0.0


class CandidatePool(Mapping[str, Candidate]):
    """Immutable, insertion-ordered mapping of artist id -> Candidate.

    A pool is never mutated after construction; discovery phases hand back
    a new pool from ``merge_discovered`` so each phase's merge can be
    inspected and tested on its own.
    """

    __slots__ = ("_items", "_by_key")

    def __init__(self, items: Mapping[str, Candidate] | None = None) -> None:
        self._items: dict[str, Candidate] = dict(items or {})
        self._by_key: dict[str, str] = {c.artist.key: cid for cid, c in self._items.items()}

    def __getitem__(self, candidate_id: str) -> Candidate:
        return self._items[candidate_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"CandidatePool({len(self._items)} candidates)"

    def id_for_name(self, name: str) -> str | None:
        """Return the candidate id registered for *name*, if any."""
        return self._by_key.get(name_key(name))

    def names(self) -> set[str]:
        """Normalized names of every candidate in the pool."""
        return set(self._by_key)

    def candidates(self) -> list[Candidate]:
        return list(self._items.values())


# ---------------------------------------------------------------------------
# Scored recommendation
# ---------------------------------------------------------------------------

class ScoredRecommendation(BaseModel):
    """A tiered, scored candidate selected for the galaxy.

    Immutable once produced; its lifecycle ends when the graph is returned.
    """

    model_config = ConfigDict(frozen=True)

    candidate: Candidate
    composite_score: float = Field(ge=0.0, le=1.0)
    tier: Tier
    overlap_score: float = 0.0
    overlap_count: int = 0
    related_seed_names: list[str] = Field(default_factory=list)

    @property
    def id(self) -> str:
        return self.candidate.id

    @property
    def artist(self) -> Artist:
        return self.candidate.artist

    @property
    def method(self) -> DiscoveryMethod:
        return self.candidate.method
