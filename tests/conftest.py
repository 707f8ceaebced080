"""Shared pytest fixtures for the Stellar test suite.

The fakes here stand in for Last.fm and Deezer: a similarity provider
backed by an in-memory adjacency map, and an enrichment provider that
resolves every name to a deterministic id and fan count.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

import pytest

from stellar.config.engine_config import EngineConfig
from stellar.interfaces.enrichment_provider import IArtistEnrichmentProvider
from stellar.interfaces.similarity_provider import ISimilarityProvider
from stellar.models.artist import ArtistEnrichment, ArtistTag, SimilarArtist, TagArtist
from stellar.pipeline.fetch_queue import FetchQueue
from stellar.pipeline.progress_tracker import ProgressTracker
from stellar.pipeline.run_context import RunContext
from stellar.utils.errors import ProviderUnavailableError
from stellar.utils.text_normalizer import name_key


def artist_id(name: str) -> str:
    """Deterministic enrichment id used by :class:`FakeEnrichmentProvider`."""
    return "dz-" + name_key(name).replace(" ", "-")


# ---------------------------------------------------------------------------
# Fake providers
# ---------------------------------------------------------------------------


class FakeSimilarityProvider(ISimilarityProvider):
    """In-memory similarity graph.

    ``similar`` maps an artist name to ``[(name, match), ...]``.  Edges are
    NOT mirrored automatically so tests control both directions.
    """

    def __init__(
        self,
        similar: Mapping[str, Iterable[tuple[str, float]]] | None = None,
        tags: Mapping[str, Iterable[tuple[str, int]]] | None = None,
        listeners: Mapping[str, int] | None = None,
        tag_artists: Mapping[str, Iterable[tuple[str, int]]] | None = None,
        failing: Iterable[str] = (),
    ) -> None:
        self.similar = {name_key(k): list(v) for k, v in (similar or {}).items()}
        self.tags = {name_key(k): list(v) for k, v in (tags or {}).items()}
        self.listeners = {name_key(k): v for k, v in (listeners or {}).items()}
        self.tag_artists = {k.lower(): list(v) for k, v in (tag_artists or {}).items()}
        self.failing = {name_key(n) for n in failing}
        self.calls: list[tuple[str, str]] = []

    def _check(self, operation: str, subject: str) -> None:
        self.calls.append((operation, subject))
        if name_key(subject) in self.failing:
            raise ProviderUnavailableError(f"{subject} lookup failed", provider_name="fake")

    async def get_similar_artists(self, name: str, limit: int = 100) -> list[SimilarArtist]:
        self._check("similar", name)
        pairs = sorted(self.similar.get(name_key(name), []), key=lambda p: -p[1])
        return [SimilarArtist(name=n, match_score=m) for n, m in pairs[:limit]]

    async def get_artist_tags(self, name: str, limit: int = 10) -> list[ArtistTag]:
        self._check("tags", name)
        return [ArtistTag(name=t, count=c) for t, c in self.tags.get(name_key(name), [])[:limit]]

    async def get_artist_listener_count(self, name: str) -> int:
        self._check("listeners", name)
        return self.listeners.get(name_key(name), 0)

    async def get_top_artists_by_tag(self, tag: str, limit: int = 30) -> list[TagArtist]:
        self._check("tag_top", tag)
        return [TagArtist(name=n, listeners=count) for n, count in self.tag_artists.get(tag.lower(), [])[:limit]]

    def get_provider_name(self) -> str:
        return "fake"

    def is_available(self) -> bool:
        return True


class FakeEnrichmentProvider(IArtistEnrichmentProvider):
    """Resolves every name to ``dz-<slug>`` with a configurable fan count."""

    def __init__(self, fans: Mapping[str, int] | None = None, default_fans: int = 1000) -> None:
        self.fans = {name_key(k): v for k, v in (fans or {}).items()}
        self.default_fans = default_fans
        self.requested: list[str] = []

    async def enrich_artists(self, names: list[str]) -> dict[str, ArtistEnrichment]:
        self.requested.extend(names)
        return {
            name_key(name): ArtistEnrichment(
                id=artist_id(name),
                nb_fan=self.fans.get(name_key(name), self.default_fans),
                image=f"https://img.example/{artist_id(name)}.jpg",
                external_url=f"https://music.example/{artist_id(name)}",
            )
            for name in names
        }

    def get_provider_name(self) -> str:
        return "fake-enrichment"


# ---------------------------------------------------------------------------
# Engine plumbing fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def engine_config() -> EngineConfig:
    """Default tunables with a pinned random seed."""
    return EngineConfig(random_seed=7)


@pytest.fixture
def fast_queue() -> FetchQueue:
    """A queue with the production concurrency cap but no pacing delay."""
    return FetchQueue(max_concurrent=3, delay_ms=0)


@pytest.fixture
def tracker() -> ProgressTracker:
    return ProgressTracker()


@pytest.fixture
def run_context(fast_queue: FetchQueue, tracker: ProgressTracker) -> RunContext:
    return RunContext(fast_queue, tracker, run_id="test-run")


@pytest.fixture
def fake_enrichment() -> FakeEnrichmentProvider:
    return FakeEnrichmentProvider()


@pytest.fixture
def similarity_factory() -> type[FakeSimilarityProvider]:
    """The in-memory similarity provider class, for tests that build their own graph."""
    return FakeSimilarityProvider


@pytest.fixture
def enrichment_factory() -> type[FakeEnrichmentProvider]:
    return FakeEnrichmentProvider


@pytest.fixture
def id_for() -> object:
    """The enrichment id the fake provider assigns to a name."""
    return artist_id
