"""Per-run state passed explicitly into every pipeline function.

A :class:`RunContext` lives exactly as long as one ``discover_galaxy``,
``compute_universe`` or ``find_chain_bridge`` call.  It owns:

    - the run's similarity cache (discarded at run end);
    - the run's cancellation flag;
    - the handle for reporting progress to the caller's callback.

The fetch queue and the progress tracker are engine-wide; the context
only tags its submissions and updates with its ``run_id``.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

from stellar.interfaces.cache_provider import ICacheProvider
from stellar.models.progress import RunPhase
from stellar.pipeline.fetch_queue import FetchQueue
from stellar.pipeline.progress_tracker import ProgressTracker
from stellar.providers.cache.memory_cache import MemoryCacheProvider
from stellar.utils.errors import RunCancelledError
from stellar.utils.logging import get_logger

_T = TypeVar("_T")


class RunContext:
    """Explicit per-run context: cache, cancellation and progress.

    Parameters
    ----------
    queue:
        The engine's shared fetch queue.
    tracker:
        The engine's progress tracker.  ``None`` disables reporting.
    cache:
        Similarity cache for this run; a fresh in-memory cache by default.
    run_id:
        Identifier used to tag queue submissions and progress updates.
    """

    def __init__(
        self,
        queue: FetchQueue,
        tracker: ProgressTracker | None = None,
        cache: ICacheProvider | None = None,
        run_id: str | None = None,
    ) -> None:
        self.run_id = run_id or uuid.uuid4().hex[:12]
        self.queue = queue
        self.tracker = tracker
        self.cache: ICacheProvider = cache or MemoryCacheProvider()
        self._cancelled = asyncio.Event()
        self._logger: structlog.BoundLogger = get_logger(__name__).bind(run_id=self.run_id)

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Stop this run from issuing further provider calls.

        Tasks this run still has waiting in the queue are rejected; tasks
        already in flight complete but their results are discarded.
        """
        if self._cancelled.is_set():
            return
        self._cancelled.set()
        flushed = self.queue.flush(owner=self.run_id)
        self._logger.info("run_cancelled", flushed=flushed)

    def check_cancelled(self) -> None:
        """Raise :class:`RunCancelledError` if the run was cancelled."""
        if self._cancelled.is_set():
            raise RunCancelledError()

    # ------------------------------------------------------------------
    # Queue submission
    # ------------------------------------------------------------------

    async def submit(self, task_factory: Callable[[], Awaitable[_T]]) -> _T:
        """Run *task_factory* through the shared queue on behalf of this run."""
        self.check_cancelled()
        result = await self.queue.enqueue(task_factory, owner=self.run_id)
        # An in-flight result that lands after cancellation is dropped.
        self.check_cancelled()
        return result

    # ------------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------------

    async def report(
        self,
        phase: RunPhase,
        current: int,
        total: int,
        message: str,
    ) -> None:
        if self.tracker is None:
            return
        await self.tracker.update(self.run_id, phase, current, total, message)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Discard run-scoped state (cache, progress listeners)."""
        await self.cache.clear()
        if self.tracker is not None:
            self.tracker.forget(self.run_id)
