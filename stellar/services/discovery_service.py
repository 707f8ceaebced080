"""Candidate discovery: standard, deep-cut and bridge strategies.

Each strategy reads the previous phase's :class:`CandidatePool` and returns
a NEW pool built by :func:`merge_discovered`; pools are never mutated.
The merge is the one place the central aggregation rule is enforced: the
same artist surfaced from two seeds becomes ONE candidate whose
``related_to_seeds`` holds both seed ids.

Strategy summary (defaults from :class:`EngineConfig`):

    Standard   per seed, 100 similar artists, seed names and name
               collisions dropped, top 25 kept.
    Deep cut   top 5 standard candidates by seed overlap act as
               intermediates; 30 similar artists each; unseen artists
               become ``deep_cut`` candidates (max 15) pointing back at
               their intermediate.
    Bridge     for seed pairs with no shared candidate (max 10 pairs),
               artists in both seeds' similarity lists, ranked by the sum
               of both match scores, top 8 per pair.

Chain bridges live in :mod:`stellar.services.chain_bridge_service`; their
intermediates are turned into candidates by :meth:`chain_candidates`.
"""

from __future__ import annotations

import asyncio
import itertools
from collections.abc import Iterable, Sequence

import structlog

from stellar.config.engine_config import EngineConfig
from stellar.interfaces.enrichment_provider import IArtistEnrichmentProvider
from stellar.interfaces.similarity_provider import ISimilarityProvider
from stellar.models.artist import (
    Artist,
    ArtistEnrichment,
    BridgeProvenance,
    Candidate,
    CandidatePool,
    ChainBridgeProvenance,
    DeepCutProvenance,
    SimilarArtist,
    StandardProvenance,
)
from stellar.models.graph import ChainBridge
from stellar.models.progress import RunPhase
from stellar.pipeline.run_context import RunContext
from stellar.services.name_filter import is_likely_name_only_match
from stellar.utils.logging import get_logger
from stellar.utils.text_normalizer import name_key


# ---------------------------------------------------------------------------
# Pure builders
# ---------------------------------------------------------------------------

def apply_enrichment(artist: Artist, enrichment: ArtistEnrichment | None) -> Artist:
    """Return *artist* with every known enrichment field filled in.

    Fields the enrichment could not resolve keep their prior values.
    """
    if enrichment is None:
        return artist

    update: dict = {}
    if enrichment.id:
        update["id"] = enrichment.id
    for field in ("image", "image_large", "external_url", "nb_fan"):
        value = getattr(enrichment, field)
        if value is not None:
            update[field] = value
    if enrichment.genres:
        update["genres"] = list(enrichment.genres)
    return artist.model_copy(update=update) if update else artist


def merge_discovered(pool: CandidatePool, discovered: Iterable[Candidate]) -> CandidatePool:
    """Return a new pool containing *pool* plus *discovered*.

    A discovered candidate matching an existing one (same id, or same
    normalized name) is folded into it: seed sets are unioned and the
    existing provenance is kept.  When the existing entry only has a
    synthesized ``lastfm-`` id and the newcomer has a resolved one, the
    resolved artist replaces it.
    """
    items: dict[str, Candidate] = dict(pool.items())
    by_key: dict[str, str] = {c.artist.key: cid for cid, c in items.items()}

    for candidate in discovered:
        existing_id = candidate.id if candidate.id in items else by_key.get(candidate.artist.key)
        if existing_id is None:
            items[candidate.id] = candidate
            by_key[candidate.artist.key] = candidate.id
            continue

        existing = items[existing_id]
        seeds = existing.related_to_seeds | candidate.related_to_seeds
        if _is_synthetic_id(existing_id) and not _is_synthetic_id(candidate.id):
            merged = existing.model_copy(update={"artist": candidate.artist, "related_to_seeds": seeds})
            del items[existing_id]
            items[candidate.id] = merged
            by_key[candidate.artist.key] = candidate.id
        else:
            items[existing_id] = existing.model_copy(update={"related_to_seeds": seeds})

    return CandidatePool(items)


def shared_candidate_count(pool: CandidatePool, seed_a: str, seed_b: str) -> int:
    return sum(1 for c in pool.values() if seed_a in c.related_to_seeds and seed_b in c.related_to_seeds)


def find_disconnected_pairs(
    pool: CandidatePool,
    seeds: Sequence[Artist],
    max_pairs: int,
) -> list[tuple[Artist, Artist]]:
    """Seed pairs (in seed order) that share no candidate, capped at *max_pairs*."""
    pairs: list[tuple[Artist, Artist]] = []
    for seed_a, seed_b in itertools.combinations(seeds, 2):
        if len(pairs) >= max_pairs:
            break
        if shared_candidate_count(pool, seed_a.id, seed_b.id) == 0:
            pairs.append((seed_a, seed_b))
    return pairs


def _is_synthetic_id(artist_id: str) -> bool:
    return artist_id.startswith("lastfm-")


def _artist_from_similar(similar: SimilarArtist) -> Artist:
    return Artist(
        id=Artist.synthesize_id(similar.name, similar.mbid),
        name=similar.name,
        mbid=similar.mbid,
        external_url=similar.external_url,
        match_score=similar.match_score,
    )


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class DiscoveryService:
    """Runs the similarity-based discovery strategies for one galaxy run.

    Parameters
    ----------
    similarity:
        Queue-routed similarity provider for this run.
    enrichment:
        Enrichment provider resolving ids, images and fan counts.
    config:
        Engine tunables.
    context:
        The run's context (progress reporting, cancellation).
    """

    def __init__(
        self,
        similarity: ISimilarityProvider,
        enrichment: IArtistEnrichmentProvider,
        config: EngineConfig,
        context: RunContext,
    ) -> None:
        self._similarity = similarity
        self._enrichment = enrichment
        self._config = config
        self._context = context
        self._logger: structlog.BoundLogger = get_logger(__name__).bind(run_id=context.run_id)

    # ------------------------------------------------------------------
    # Seeds
    # ------------------------------------------------------------------

    async def resolve_seeds(self, seed_artists: Sequence[str | Artist]) -> list[Artist]:
        """Turn seed names (or artists) into enriched, de-duplicated Artists."""
        seeds: list[Artist] = []
        seen: set[str] = set()
        for seed in seed_artists:
            artist = seed if isinstance(seed, Artist) else Artist(
                id=Artist.synthesize_id(seed.strip()), name=seed.strip()
            )
            if not artist.name or artist.key in seen:
                continue
            seen.add(artist.key)
            seeds.append(artist)

        to_enrich = [s.name for s in seeds if _is_synthetic_id(s.id) or s.image is None]
        enrichment = await self._enrich(to_enrich)

        # Two spellings can resolve to one provider artist; the first wins.
        resolved: list[Artist] = []
        seen_ids: set[str] = set()
        for seed in seeds:
            artist = apply_enrichment(seed, enrichment.get(seed.key))
            if artist.id in seen_ids:
                self._logger.info("duplicate_seed_dropped", seed=seed.name, artist_id=artist.id)
                continue
            seen_ids.add(artist.id)
            resolved.append(artist)
        return resolved

    # ------------------------------------------------------------------
    # Standard
    # ------------------------------------------------------------------

    async def discover_standard(self, seeds: Sequence[Artist]) -> CandidatePool:
        """Direct similarity for every seed, merged into one pool."""
        seed_keys = {s.key for s in seeds}
        seed_ids = {s.id for s in seeds}
        total = len(seeds)
        await self._context.report(RunPhase.DISCOVER, 0, total, "Discovering related artists...")

        done = 0

        async def _one(seed: Artist) -> list[Candidate]:
            nonlocal done
            similar = await self._similarity.get_similar_artists(seed.name, self._config.similar_limit)
            kept = [
                s for s in similar
                if name_key(s.name) not in seed_keys
                and not is_likely_name_only_match(seed.name, s.name)
            ][: self._config.top_per_seed]
            artists = await self._enrich_similar(kept)
            done += 1
            await self._context.report(
                RunPhase.DISCOVER, done, total, f"Explored {seed.name} ({len(artists)} artists found)"
            )
            return [
                Candidate(artist=a, related_to_seeds=frozenset({seed.id}), provenance=StandardProvenance())
                for a in artists
                if a.id not in seed_ids
            ]

        per_seed = await asyncio.gather(*(_one(seed) for seed in seeds))

        pool = CandidatePool()
        for found in per_seed:
            pool = merge_discovered(pool, found)

        self._logger.info(
            "discovery_phase_complete",
            phase="standard",
            seeds=total,
            seeds_with_results=sum(1 for found in per_seed if found),
            candidates=len(pool),
        )
        return pool

    # ------------------------------------------------------------------
    # Deep cuts
    # ------------------------------------------------------------------

    def select_intermediates(self, pool: CandidatePool) -> list[Candidate]:
        """Top standard candidates by seed overlap, then match score."""
        ranked = sorted(
            pool.candidates(),
            key=lambda c: (-len(c.related_to_seeds), -c.match_score, c.artist.key),
        )
        return ranked[: self._config.deep_cut_intermediates]

    async def discover_deep_cuts(self, pool: CandidatePool, seeds: Sequence[Artist]) -> CandidatePool:
        """Second-hop discovery through the strongest standard candidates."""
        intermediates = self.select_intermediates(pool)
        limit = self._config.deep_cut_limit
        if not intermediates or limit <= 0:
            return pool

        await self._context.report(
            RunPhase.DEEP_CUTS, 0, 1, f"Digging deeper through {len(intermediates)} artists..."
        )

        similar_lists = await asyncio.gather(*(
            self._similarity.get_similar_artists(i.artist.name, self._config.deep_cut_similar_limit)
            for i in intermediates
        ))

        excluded = {s.key for s in seeds} | {i.artist.key for i in intermediates} | pool.names()
        found: dict[str, tuple[SimilarArtist, Candidate]] = {}
        for intermediate, similar in zip(intermediates, similar_lists):
            for s in similar:
                key = name_key(s.name)
                if key in excluded or key in found:
                    continue
                if is_likely_name_only_match(intermediate.artist.name, s.name):
                    continue
                found[key] = (s, intermediate)
                if len(found) >= limit:
                    break
            if len(found) >= limit:
                break

        artists = await self._enrich_similar([s for s, _ in found.values()])
        deep_cuts = [
            Candidate(
                artist=artist,
                related_to_seeds=intermediate.related_to_seeds,
                provenance=DeepCutProvenance(
                    discovered_via=intermediate.id,
                    discovered_via_name=intermediate.artist.name,
                ),
            )
            for artist, (_, intermediate) in zip(artists, found.values())
        ]

        merged = merge_discovered(pool, deep_cuts)
        await self._context.report(RunPhase.DEEP_CUTS, 1, 1, f"Found {len(deep_cuts)} deep cuts")
        self._logger.info(
            "discovery_phase_complete",
            phase="deep_cut",
            intermediates=len(intermediates),
            added=len(merged) - len(pool),
            candidates=len(merged),
        )
        return merged

    # ------------------------------------------------------------------
    # Bridges
    # ------------------------------------------------------------------

    async def discover_bridges(self, pool: CandidatePool, seeds: Sequence[Artist]) -> CandidatePool:
        """Artists similar to both seeds of each disconnected pair."""
        pairs = find_disconnected_pairs(pool, seeds, self._config.max_bridge_pairs)
        if not pairs or self._config.bridge_limit <= 0:
            return pool

        await self._context.report(
            RunPhase.BRIDGES, 0, len(pairs), f"Bridging {len(pairs)} disconnected pairs..."
        )

        seed_keys = {s.key for s in seeds}
        bridges: list[Candidate] = []
        for index, (seed_a, seed_b) in enumerate(pairs, start=1):
            bridges.extend(await self._bridge_pair(seed_a, seed_b, seed_keys))
            await self._context.report(
                RunPhase.BRIDGES, index, len(pairs), f"Bridged {seed_a.name} and {seed_b.name}"
            )

        merged = merge_discovered(pool, bridges)
        self._logger.info(
            "discovery_phase_complete",
            phase="bridge",
            pairs=len(pairs),
            bridges=len(bridges),
            candidates=len(merged),
        )
        return merged

    async def _bridge_pair(self, seed_a: Artist, seed_b: Artist, seed_keys: set[str]) -> list[Candidate]:
        similar_a, similar_b = await asyncio.gather(
            self._similarity.get_similar_artists(seed_a.name, self._config.similar_limit),
            self._similarity.get_similar_artists(seed_b.name, self._config.similar_limit),
        )
        by_name_b = {name_key(s.name): s for s in similar_b}

        scored: list[tuple[float, SimilarArtist, SimilarArtist]] = []
        for a in similar_a:
            key = name_key(a.name)
            b = by_name_b.get(key)
            if b is None or key in seed_keys:
                continue
            if is_likely_name_only_match(seed_a.name, a.name) and is_likely_name_only_match(seed_b.name, a.name):
                continue
            scored.append((a.match_score + b.match_score, a, b))

        scored.sort(key=lambda item: -item[0])
        top = scored[: self._config.bridge_limit]

        averaged = [
            a.model_copy(update={"match_score": combined / 2}) for combined, a, _ in top
        ]
        artists = await self._enrich_similar(averaged)
        provenance = BridgeProvenance(
            bridges_between=(seed_a.id, seed_b.id),
            bridge_seed_names=(seed_a.name, seed_b.name),
        )
        return [
            Candidate(
                artist=artist,
                related_to_seeds=frozenset({seed_a.id, seed_b.id}),
                provenance=provenance,
            )
            for artist in artists
        ]

    # ------------------------------------------------------------------
    # Chain bridges → candidates
    # ------------------------------------------------------------------

    async def chain_candidates(
        self,
        seed_a: Artist,
        seed_b: Artist,
        bridge: ChainBridge,
    ) -> list[Candidate]:
        """Turn the intermediates of a chain between two seeds into candidates."""
        middle = bridge.chain[1:-1]
        if not middle:
            return []

        placeholders = [
            SimilarArtist(name=name, match_score=min(1.0, max(0.0, bridge.score)))
            for name in middle
        ]
        artists = await self._enrich_similar(placeholders)
        chain = tuple(bridge.chain)
        return [
            Candidate(
                artist=artist,
                related_to_seeds=frozenset({seed_a.id, seed_b.id}),
                provenance=ChainBridgeProvenance(
                    chain=chain,
                    chain_position=position,
                    bridges_between=(seed_a.id, seed_b.id),
                ),
            )
            for position, artist in enumerate(artists, start=1)
        ]

    # ------------------------------------------------------------------
    # Enrichment helpers
    # ------------------------------------------------------------------

    async def _enrich(self, names: list[str]) -> dict[str, ArtistEnrichment]:
        """Enrichment for *names* with provider tags filled in as genres."""
        if not names:
            return {}
        self._context.check_cancelled()
        limit = self._config.genre_tag_limit
        enrichment, tag_lists = await asyncio.gather(
            self._enrichment.enrich_artists(names),
            asyncio.gather(*(self._similarity.get_artist_tags(name, limit) for name in names)),
        )

        merged = dict(enrichment)
        for name, tags in zip(names, tag_lists):
            genres = [t.name for t in tags][:limit]
            if not genres:
                continue
            key = name_key(name)
            current = merged.get(key)
            if current is None:
                merged[key] = ArtistEnrichment(genres=genres)
            elif not current.genres:
                merged[key] = current.model_copy(update={"genres": genres})
        return merged

    async def _enrich_similar(self, similar: Sequence[SimilarArtist]) -> list[Artist]:
        """Build Artists for *similar*, enriched where the provider knows them."""
        artists = [_artist_from_similar(s) for s in similar]
        enrichment = await self._enrich([a.name for a in artists])
        return [apply_enrichment(a, enrichment.get(a.key)) for a in artists]
