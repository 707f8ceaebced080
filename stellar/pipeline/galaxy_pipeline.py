"""Engine entry point for galaxies, universes, collisions and chain bridges.

:class:`GalaxyEngine` is the object callers hold.  It owns the resources
shared across runs (the fetch queue, the progress tracker) and builds a
fresh :class:`RunContext` for every public call.

ARCHITECTURE NOTE:
    Each public method follows the same pattern (see ``_run``):
        1. Create a RunContext (per-run cache, cancellation flag, run id)
        2. Register the caller's progress callback for that run id
        3. Wrap the concrete similarity provider in a QueuedSimilarityProvider
           bound to the context, so every lookup goes through the shared
           queue and the run's cache
        4. Execute the work under ``asyncio.wait_for`` (run timeout)
        5. On timeout or caller cancellation, cancel the context: queued
           lookups for this run are rejected, in-flight ones are discarded
        6. Always close the context (drop cache, forget progress)

    Galaxy phases run sequentially because each strategy reads the
    previous phase's pool:

        standard → deep cuts → bridges → chain bridges → scoring → graph
        (→ drift when requested)
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable, Sequence
from typing import TypeVar

import httpx
import numpy as np

from stellar.config.engine_config import EngineConfig
from stellar.interfaces.enrichment_provider import IArtistEnrichmentProvider
from stellar.interfaces.similarity_provider import ISimilarityProvider
from stellar.models.artist import Artist, CandidatePool
from stellar.models.collision import CollisionResult
from stellar.models.graph import ChainBridge, GalaxyGraph
from stellar.models.progress import RunPhase
from stellar.models.universe import CorpusArtist, UniverseResult
from stellar.pipeline.fetch_queue import FetchQueue
from stellar.pipeline.progress_tracker import ProgressCallback, ProgressTracker
from stellar.pipeline.run_context import RunContext
from stellar.providers.similarity.queued_provider import QueuedSimilarityProvider
from stellar.services.chain_bridge_service import ChainBridgeService
from stellar.services.collision_service import CollisionService
from stellar.services.discovery_service import (
    DiscoveryService,
    find_disconnected_pairs,
    merge_discovered,
)
from stellar.services.drift_service import DriftService
from stellar.services.graph_assembler import build_graph
from stellar.services.scoring_service import ScoringService
from stellar.services.universe_service import UniverseService
from stellar.utils.errors import DiscoveryError, RunCancelledError
from stellar.utils.logging import get_logger

_T = TypeVar("_T")


class GalaxyEngine:
    """Discovers, scores and lays out related artists.

    Parameters
    ----------
    similarity:
        Concrete similarity provider (not queue-wrapped; the engine wraps
        it per run).
    enrichment:
        Provider for ids, images and fan counts.
    config:
        Algorithm tunables; defaults when omitted.
    queue:
        Shared fetch queue; a 3-slot, 300 ms queue when omitted.
    tracker:
        Progress tracker; a fresh one when omitted.
    run_timeout_seconds:
        Wall-clock limit for each public call; ``None`` disables it.
    http_client:
        HTTP client owned by the engine, closed by :meth:`aclose`.
    """

    def __init__(
        self,
        similarity: ISimilarityProvider,
        enrichment: IArtistEnrichmentProvider,
        config: EngineConfig | None = None,
        queue: FetchQueue | None = None,
        tracker: ProgressTracker | None = None,
        run_timeout_seconds: float | None = 180.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._similarity = similarity
        self._enrichment = enrichment
        self._config = config or EngineConfig()
        self._queue = queue or FetchQueue()
        self._tracker = tracker or ProgressTracker()
        self._run_timeout = run_timeout_seconds
        self._http_client = http_client
        self._logger = get_logger(__name__)

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def queue(self) -> FetchQueue:
        return self._queue

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def discover_galaxy(
        self,
        seed_artists: Sequence[str | Artist],
        on_progress: ProgressCallback | None = None,
        expand_drift: bool = False,
    ) -> GalaxyGraph:
        """Build the galaxy graph for *seed_artists*.

        Raises
        ------
        DiscoveryError
            When no strategy found a single candidate.
        RunCancelledError
            When the run timed out.
        """
        async def _work(ctx: RunContext) -> GalaxyGraph:
            return await self._discover(ctx, seed_artists, expand_drift)

        return await self._run(_work, on_progress)

    async def compute_universe(
        self,
        corpus: Sequence[CorpusArtist | str],
        dislikes: Iterable[str] = (),
        on_progress: ProgressCallback | None = None,
    ) -> UniverseResult:
        """Cluster *corpus* by tags and recommend artists per cluster.

        Raises
        ------
        InsufficientDataError
            When the corpus is too small or too few artists have tags.
        """
        dislikes = list(dislikes)

        async def _work(ctx: RunContext) -> UniverseResult:
            service = UniverseService(
                self._queued(ctx),
                self._config,
                ctx,
                np.random.default_rng(self._config.random_seed),
            )
            return await service.compute(corpus, dislikes)

        return await self._run(_work, on_progress)

    async def compute_collision(
        self,
        user_corpus: Sequence[CorpusArtist | str],
        friend_corpus: Sequence[CorpusArtist | str],
        on_progress: ProgressCallback | None = None,
    ) -> CollisionResult:
        """Collide two users' taste sets into overlap, exploration and frontier zones."""
        async def _work(ctx: RunContext) -> CollisionResult:
            service = CollisionService(self._queued(ctx), self._config, ctx)
            return await service.compute(user_corpus, friend_corpus)

        return await self._run(_work, on_progress)

    async def find_chain_bridge(
        self,
        seed_a: str,
        seed_b: str,
        max_hops: int = 4,
        branch_limits: Sequence[int] | None = None,
    ) -> ChainBridge | None:
        """Find the shortest similarity chain between two artists."""
        async def _work(ctx: RunContext) -> ChainBridge | None:
            service = ChainBridgeService(self._queued(ctx), self._config)
            limits = tuple(branch_limits) if branch_limits else None
            return await service.find_chain_bridge(seed_a, seed_b, max_hops, limits)

        return await self._run(_work, None)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()

    async def __aenter__(self) -> GalaxyEngine:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Run wrapper
    # ------------------------------------------------------------------

    def _queued(self, ctx: RunContext) -> QueuedSimilarityProvider:
        return QueuedSimilarityProvider(self._similarity, ctx)

    async def _run(
        self,
        work: Callable[[RunContext], Awaitable[_T]],
        on_progress: ProgressCallback | None,
    ) -> _T:
        ctx = RunContext(self._queue, self._tracker)
        if on_progress is not None:
            self._tracker.register_listener(ctx.run_id, on_progress)
        try:
            return await asyncio.wait_for(work(ctx), timeout=self._run_timeout)
        except asyncio.TimeoutError as exc:
            ctx.cancel()
            self._logger.warning("run_timed_out", run_id=ctx.run_id, timeout=self._run_timeout)
            raise RunCancelledError(f"Run timed out after {self._run_timeout:g} seconds") from exc
        except asyncio.CancelledError:
            ctx.cancel()
            raise
        finally:
            await ctx.close()

    # ------------------------------------------------------------------
    # Galaxy phases
    # ------------------------------------------------------------------

    async def _discover(
        self,
        ctx: RunContext,
        seed_artists: Sequence[str | Artist],
        expand_drift: bool,
    ) -> GalaxyGraph:
        similarity = self._queued(ctx)
        discovery = DiscoveryService(similarity, self._enrichment, self._config, ctx)
        log = self._logger.bind(run_id=ctx.run_id)

        seeds = await discovery.resolve_seeds(seed_artists)
        if not seeds:
            raise DiscoveryError()
        await ctx.report(RunPhase.DETAILS, 1, 1, f"Loaded details for {len(seeds)} seed artists")

        pool = await discovery.discover_standard(seeds)
        pool = await discovery.discover_deep_cuts(pool, seeds)
        pool = await discovery.discover_bridges(pool, seeds)
        pool = await self._discover_chain_bridges(ctx, similarity, discovery, pool, seeds)

        if not pool:
            log.warning("discovery_empty", seeds=[s.name for s in seeds])
            raise DiscoveryError()

        await ctx.report(RunPhase.SCORING, 0, 1, f"Scoring {len(pool)} candidates...")
        recommendations = ScoringService(self._config).score_and_select(pool, seeds)
        await ctx.report(RunPhase.SCORING, 1, 1, f"Selected {len(recommendations)} recommendations")

        await ctx.report(RunPhase.BUILDING, 0, 1, "Building galaxy...")
        graph = build_graph(seeds, recommendations)
        await ctx.report(RunPhase.BUILDING, 1, 1, "Galaxy ready")

        if expand_drift:
            graph = await DriftService(similarity, self._enrichment, self._config, ctx).expand(graph, seeds)

        log.info(
            "galaxy_discovered",
            seeds=len(seeds),
            candidates=len(pool),
            nodes=len(graph.nodes),
            links=len(graph.links),
        )
        return graph

    async def _discover_chain_bridges(
        self,
        ctx: RunContext,
        similarity: ISimilarityProvider,
        discovery: DiscoveryService,
        pool: CandidatePool,
        seeds: Sequence[Artist],
    ) -> CandidatePool:
        pairs = find_disconnected_pairs(pool, seeds, self._config.max_chain_bridge_pairs)
        if not pairs:
            return pool

        chains = ChainBridgeService(similarity, self._config)
        for index, (seed_a, seed_b) in enumerate(pairs, start=1):
            await ctx.report(
                RunPhase.CHAIN_BRIDGES,
                index - 1,
                len(pairs),
                f"Tracing a path from {seed_a.name} to {seed_b.name}...",
            )
            bridge = await chains.find_chain_bridge(seed_a.name, seed_b.name)
            if bridge is None or bridge.hops < 1:
                continue
            pool = merge_discovered(pool, await discovery.chain_candidates(seed_a, seed_b, bridge))

        await ctx.report(RunPhase.CHAIN_BRIDGES, len(pairs), len(pairs), "Chain bridges complete")
        return pool
