"""Taste collision between two users' corpora.

Each side's taste set is its favorites followed by its discoveries, one
entry per normalized name.  The zones are built from one similarity
sample covering both sides (the first 40 unique artists, queried in
batches of five):

    core overlap       names in both taste sets
    exploration        an artist exclusive to one side that connects to the
                       other side's exclusive or core artists, by its own
                       similarity list (forward) or by a sampled artist
                       listing it (reverse index; similarity is not
                       symmetric)
    shared frontier    artists neither side has that core artists list as
                       similar; multi-core candidates get a breadth bonus,
                       and picks are spread across core artists by a
                       per-source cap that is relaxed only to fill the limit
    your / friend      exclusive artists left over after exploration

Zone and link building is pure and runs in a worker thread; only the
similarity sample and the core-overlap tag lookup touch the provider.
"""

from __future__ import annotations

import asyncio
import hashlib
import math
from collections import Counter
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone

from stellar.config.engine_config import EngineConfig
from stellar.interfaces.similarity_provider import ISimilarityProvider
from stellar.models.artist import SimilarArtist
from stellar.models.collision import (
    CollisionArtist,
    CollisionLink,
    CollisionLinkType,
    CollisionResult,
    CollisionStats,
    CollisionZone,
    CollisionZones,
)
from stellar.models.progress import RunPhase
from stellar.models.universe import CorpusArtist
from stellar.pipeline.run_context import RunContext
from stellar.services.universe_service import dedupe_corpus
from stellar.utils.logging import get_logger
from stellar.utils.text_normalizer import name_key, normalize_tag


# ---------------------------------------------------------------------------
# Taste sets
# ---------------------------------------------------------------------------

def taste_set(corpus: Iterable[CorpusArtist | str]) -> list[CorpusArtist]:
    """Favorites first, then discoveries, one artist per normalized name."""
    artists = [entry if isinstance(entry, CorpusArtist) else CorpusArtist(name=entry) for entry in corpus]
    return dedupe_corpus(sorted(artists, key=lambda a: a.source == "discovered"))


def collision_hash(
    user_corpus: Iterable[CorpusArtist | str],
    friend_corpus: Iterable[CorpusArtist | str],
) -> str:
    """SHA-256 over both corpora's normalized names, independent of order."""
    def _names(corpus: Iterable[CorpusArtist | str]) -> list[str]:
        return [name_key(e.name if isinstance(e, CorpusArtist) else e) for e in corpus]

    entries = sorted(
        [f"u:{key}" for key in _names(user_corpus)] + [f"f:{key}" for key in _names(friend_corpus)]
    )
    return hashlib.sha256("|".join(entries).encode()).hexdigest()


# ---------------------------------------------------------------------------
# Similarity index
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Connection:
    name: str
    key: str
    score: float


class SimilarityIndex:
    """Forward and reverse lookups over the sampled similarity lists.

    Parameters
    ----------
    similar:
        Similar-artist lists keyed by the sampled artist's normalized name.
    display_names:
        Normalized name to the taste-set spelling.
    min_match:
        Match score below which an entry does not count as a connection.
    """

    def __init__(
        self,
        similar: Mapping[str, Sequence[SimilarArtist]],
        display_names: Mapping[str, str],
        min_match: float,
    ) -> None:
        self._similar = similar
        self._display = display_names
        self._min_match = min_match
        self._reverse: dict[str, list[tuple[str, float]]] = {}
        for sampled_key, entries in similar.items():
            for entry in entries:
                if entry.match_score < min_match:
                    continue
                self._reverse.setdefault(name_key(entry.name), []).append((sampled_key, entry.match_score))

    def connections(self, key: str, min_match: float | None = None) -> list[Connection]:
        threshold = self._min_match if min_match is None else min_match
        return [
            Connection(name=s.name, key=name_key(s.name), score=s.match_score)
            for s in self._similar.get(key, ())
            if s.match_score >= threshold
        ]

    def connected_names(self, key: str, targets: set[str]) -> list[str]:
        """Names in *targets* that *key* lists, or that list *key*."""
        found: dict[str, None] = {}
        for conn in self.connections(key):
            if conn.key in targets:
                found[conn.name] = None
        for source_key, _ in self._reverse.get(key, ()):
            if source_key in targets and source_key in self._display:
                found[self._display[source_key]] = None
        return list(found)


# ---------------------------------------------------------------------------
# Shared frontier
# ---------------------------------------------------------------------------

@dataclass
class FrontierCandidate:
    """An artist neither side has, with the core artists that list it."""

    name: str
    key: str
    sources: list[tuple[str, float]] = field(default_factory=list)
    breadth_bonus: float = 0.3

    @property
    def score(self) -> float:
        average = sum(score for _, score in self.sources) / len(self.sources)
        return average * (1 + (len(self.sources) - 1) * self.breadth_bonus)

    @property
    def suggested_by(self) -> list[str]:
        return [source for source, _ in self.sources]


def gather_frontier_candidates(
    core: Sequence[CorpusArtist],
    index: SimilarityIndex,
    owned_keys: set[str],
    config: EngineConfig,
) -> list[FrontierCandidate]:
    """Frontier candidates ranked by composite score (stable on ties)."""
    candidates: dict[str, FrontierCandidate] = {}
    for artist in core:
        for conn in index.connections(name_key(artist.name), config.frontier_min_match):
            if conn.key in owned_keys:
                continue
            candidate = candidates.setdefault(
                conn.key,
                FrontierCandidate(name=conn.name, key=conn.key, breadth_bonus=config.frontier_breadth_bonus),
            )
            candidate.sources.append((artist.name, conn.score))
    return sorted(candidates.values(), key=lambda c: -c.score)


def frontier_limits(total_unique: int, core_count: int, config: EngineConfig) -> tuple[int, int]:
    """(frontier size, per-core-artist cap) for a collision."""
    limit = max(config.frontier_min, int(math.floor(total_unique * config.frontier_fraction + 0.5)))
    per_source = max(config.frontier_min_per_source, math.ceil(limit / max(core_count, 1)))
    return limit, per_source


def select_frontier(
    ranked: Sequence[FrontierCandidate],
    limit: int,
    max_per_source: int,
) -> list[FrontierCandidate]:
    """Pick up to *limit* candidates, spreading picks across core artists.

    Multi-source candidates go first.  Single-source candidates then fill in
    while their core artist is under *max_per_source*; if that leaves room,
    the cap is dropped and the best remaining candidates fill it.
    """
    picked: list[FrontierCandidate] = []
    per_source: Counter[str] = Counter()

    for candidate in ranked:
        if len(picked) >= limit:
            break
        if len(candidate.sources) > 1:
            picked.append(candidate)
            per_source.update(candidate.suggested_by)

    for candidate in ranked:
        if len(picked) >= limit:
            break
        if len(candidate.sources) == 1:
            source = candidate.sources[0][0]
            if per_source[source] < max_per_source:
                picked.append(candidate)
                per_source[source] += 1

    if len(picked) < limit:
        used = {c.key for c in picked}
        for candidate in ranked:
            if len(picked) >= limit:
                break
            if candidate.key not in used:
                picked.append(candidate)
                used.add(candidate.key)

    return picked


# ---------------------------------------------------------------------------
# Zones and links
# ---------------------------------------------------------------------------

def build_zones(
    user: Sequence[CorpusArtist],
    friend: Sequence[CorpusArtist],
    similar: Mapping[str, Sequence[SimilarArtist]],
    config: EngineConfig,
) -> tuple[CollisionZones, list[CollisionLink]]:
    """Sort both taste sets into zones and build the visualization links."""
    user_keys = {name_key(a.name) for a in user}
    friend_keys = {name_key(a.name) for a in friend}

    core = [a for a in user if name_key(a.name) in friend_keys]
    core_keys = {name_key(a.name) for a in core}
    user_only = [a for a in user if name_key(a.name) not in friend_keys]
    friend_only = [a for a in friend if name_key(a.name) not in user_keys]

    display: dict[str, str] = {}
    for artist in [*user, *friend]:
        display.setdefault(name_key(artist.name), artist.name)
    index = SimilarityIndex(similar, display, config.collision_min_match)

    your_exploration = _exploration(
        friend_only, {name_key(a.name) for a in user_only} | core_keys, index, CollisionZone.YOUR_EXPLORATION
    )
    friend_exploration = _exploration(
        user_only, {name_key(a.name) for a in friend_only} | core_keys, index, CollisionZone.FRIEND_EXPLORATION
    )
    explored = {name_key(a.name) for a in [*your_exploration, *friend_exploration]}

    ranked = gather_frontier_candidates(core, index, user_keys | friend_keys, config)
    limit, per_source = frontier_limits(len(user_keys | friend_keys), len(core), config)
    frontier = [
        CollisionArtist(
            name=c.name,
            zone=CollisionZone.SHARED_FRONTIER,
            score=c.score,
            suggested_by=c.suggested_by,
        )
        for c in select_frontier(ranked, limit, per_source)
    ]

    zones = CollisionZones(
        core_overlap=[_placed(a, CollisionZone.CORE_OVERLAP) for a in core],
        your_artists=[
            _placed(a, CollisionZone.YOUR_ARTISTS) for a in user_only if name_key(a.name) not in explored
        ],
        friend_artists=[
            _placed(a, CollisionZone.FRIEND_ARTISTS) for a in friend_only if name_key(a.name) not in explored
        ],
        shared_frontier=frontier,
        your_exploration=your_exploration,
        friend_exploration=friend_exploration,
    )
    return zones, _links(zones, core_keys, index, config)


def _placed(artist: CorpusArtist, zone: CollisionZone, **extra: object) -> CollisionArtist:
    return CollisionArtist(name=artist.name, zone=zone, image=artist.image, **extra)


def _exploration(
    artists: Sequence[CorpusArtist],
    targets: set[str],
    index: SimilarityIndex,
    zone: CollisionZone,
) -> list[CollisionArtist]:
    placed: list[CollisionArtist] = []
    for artist in artists:
        connected = index.connected_names(name_key(artist.name), targets)
        if connected:
            placed.append(_placed(artist, zone, connected_to=connected))
    return placed


def _links(
    zones: CollisionZones,
    core_keys: set[str],
    index: SimilarityIndex,
    config: EngineConfig,
) -> list[CollisionLink]:
    links: list[CollisionLink] = []

    for artist in zones.core_overlap[: config.collision_core_link_limit]:
        key = name_key(artist.name)
        for conn in index.connections(key):
            if conn.key in core_keys and conn.key != key:
                links.append(CollisionLink(
                    source=artist.name, target=conn.name, strength=conn.score, type=CollisionLinkType.CORE
                ))

    for artist in [*zones.your_exploration, *zones.friend_exploration]:
        for target in artist.connected_to[: config.exploration_links_per_artist]:
            links.append(CollisionLink(
                source=artist.name,
                target=target,
                strength=config.exploration_link_strength,
                type=CollisionLinkType.EXPLORATION,
            ))

    for artist in zones.shared_frontier:
        for source in artist.suggested_by:
            links.append(CollisionLink(
                source=artist.name, target=source, strength=artist.score or 0.0, type=CollisionLinkType.FRONTIER
            ))

    return links


def rank_tags(tag_lists: Iterable[Iterable[tuple[str, int]]], limit: int) -> list[str]:
    """Tags by summed count across artists, first-seen order breaking ties."""
    totals: dict[str, int] = {}
    for tags in tag_lists:
        for name, count in tags:
            tag = normalize_tag(name)
            if tag:
                totals[tag] = totals.get(tag, 0) + count
    return [tag for tag, _ in sorted(totals.items(), key=lambda item: -item[1])][:limit]


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class CollisionService:
    """Computes one collision for one run."""

    def __init__(
        self,
        similarity: ISimilarityProvider,
        config: EngineConfig,
        context: RunContext,
    ) -> None:
        self._similarity = similarity
        self._config = config
        self._context = context
        self._logger = get_logger(__name__).bind(run_id=context.run_id)

    async def compute(
        self,
        user_corpus: Sequence[CorpusArtist | str],
        friend_corpus: Sequence[CorpusArtist | str],
    ) -> CollisionResult:
        user = taste_set(user_corpus)
        friend = taste_set(friend_corpus)

        # --- Similarity sample ---
        sample = [a.name for a in dedupe_corpus([*user, *friend])][: self._config.collision_sample_size]
        similar = await self._sample_similarity(sample)

        # --- Zones ---
        await self._context.report(RunPhase.ZONES, 0, 1, "Mapping where your tastes collide...")
        zones, links = await asyncio.to_thread(build_zones, user, friend, similar, self._config)
        await self._context.report(RunPhase.ZONES, 1, 1, f"Found {len(zones.core_overlap)} shared artists")

        # --- Core overlap tags ---
        tag_sample = [a.name for a in zones.core_overlap[: self._config.collision_tag_sample]]
        await self._context.report(RunPhase.TAGS, 0, len(tag_sample), "Reading shared genres...")
        tag_lists = await asyncio.gather(*(
            self._similarity.get_artist_tags(name, self._config.tags_per_artist) for name in tag_sample
        ))
        top_tags = rank_tags(
            ([(t.name, t.count) for t in tags] for tags in tag_lists), self._config.collision_top_tags
        )
        await self._context.report(RunPhase.TAGS, len(tag_sample), len(tag_sample), "Collision ready")

        stats = CollisionStats(
            total_artists=zones.total(),
            core_overlap_count=len(zones.core_overlap),
            your_artist_count=len(user),
            friend_artist_count=len(friend),
            shared_frontier_count=len(zones.shared_frontier),
        )
        self._logger.info(
            "collision_computed",
            user_artists=len(user),
            friend_artists=len(friend),
            core_overlap=stats.core_overlap_count,
            your_exploration=len(zones.your_exploration),
            friend_exploration=len(zones.friend_exploration),
            shared_frontier=stats.shared_frontier_count,
            links=len(links),
        )
        return CollisionResult(
            zones=zones,
            links=links,
            top_tags=top_tags,
            stats=stats,
            collision_hash=collision_hash(user_corpus, friend_corpus),
            computed_at=datetime.now(timezone.utc),
        )

    async def _sample_similarity(self, names: Sequence[str]) -> dict[str, list[SimilarArtist]]:
        similar: dict[str, list[SimilarArtist]] = {}
        batch_size = self._config.collision_batch_size
        total = len(names)
        await self._context.report(RunPhase.SAMPLING, 0, total, f"Sampling {total} artists...")
        for start in range(0, total, batch_size):
            batch = names[start:start + batch_size]
            results = await asyncio.gather(*(
                self._similarity.get_similar_artists(name, self._config.collision_similar_limit)
                for name in batch
            ))
            for name, result in zip(batch, results):
                similar[name_key(name)] = result
            done = min(start + batch_size, total)
            await self._context.report(RunPhase.SAMPLING, done, total, f"Sampled {done} of {total} artists")
        return similar
