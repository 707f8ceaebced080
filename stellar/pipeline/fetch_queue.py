"""Concurrency-bounded, delay-paced queue for similarity-provider calls.

Every outbound similarity/tag/listener lookup made by the engine passes
through one :class:`FetchQueue` per engine instance.  The queue is the
provider-call budget shared by all concurrent runs:

    - at most ``max_concurrent`` tasks are in flight at any moment;
    - queued tasks start in FIFO order;
    - after each completion no task starts until ``delay_ms`` has elapsed,
      whether it was already queued or enqueued afterwards.

A task failing with :class:`RateLimitError` pauses dispatch for the
provider's retry-after delay (or ``rate_limit_backoff_ms``) and goes back
to the head of the queue, up to ``max_rate_limit_retries`` times.  Any
other failure rejects only the future of the caller that submitted it;
the queue keeps dispatching.  :meth:`FetchQueue.flush` rejects queued (not
in-flight) tasks with :class:`RunCancelledError`, optionally only those
submitted by one run.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

import structlog

from stellar.utils.errors import RateLimitError, RunCancelledError
from stellar.utils.logging import get_logger

_T = TypeVar("_T")


@dataclass
class _QueuedTask:
    """A submitted task waiting for (or holding) a concurrency slot."""

    factory: Callable[[], Awaitable[Any]]
    future: asyncio.Future
    owner: str | None = None
    retries: int = 0


class FetchQueue:
    """FIFO task queue with a concurrency cap and a post-completion delay.

    Parameters
    ----------
    max_concurrent:
        Maximum number of tasks running at once.
    delay_ms:
        Milliseconds to wait after a task completes before dispatching the
        next task.
    rate_limit_backoff_ms:
        Pause applied after a rate-limited task when the provider gave no
        retry-after delay.
    max_rate_limit_retries:
        How many times one task is re-queued after rate limiting before its
        :class:`RateLimitError` is passed to the caller.
    """

    def __init__(
        self,
        max_concurrent: int = 3,
        delay_ms: int = 300,
        rate_limit_backoff_ms: int = 2000,
        max_rate_limit_retries: int = 3,
    ) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        self._max_concurrent = max_concurrent
        self._delay = max(0, delay_ms) / 1000.0
        self._rate_limit_backoff = max(0, rate_limit_backoff_ms) / 1000.0
        self._max_retries = max(0, max_rate_limit_retries)
        self._queue: deque[_QueuedTask] = deque()
        self._active = 0
        # Loop time before which no task may start.
        self._next_allowed_at = 0.0
        self._timer: asyncio.TimerHandle | None = None
        # Strong references so running tasks are not garbage-collected.
        self._running: set[asyncio.Task] = set()
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def pending(self) -> int:
        """Queued plus in-flight task count."""
        return len(self._queue) + self._active

    @property
    def active(self) -> int:
        return self._active

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    @property
    def delay_ms(self) -> int:
        return round(self._delay * 1000)

    def enqueue(
        self,
        task_factory: Callable[[], Awaitable[_T]],
        owner: str | None = None,
    ) -> asyncio.Future[_T]:
        """Queue *task_factory* and return a future for its result.

        The factory is not called until a slot is free and the pacing delay
        has passed, so nothing is sent to the provider while the task waits
        in the queue.

        Parameters
        ----------
        task_factory:
            Zero-argument callable returning the awaitable to run.
        owner:
            Optional run id; lets :meth:`flush` reject only that run's tasks.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[_T] = loop.create_future()
        self._queue.append(_QueuedTask(factory=task_factory, future=future, owner=owner))
        self._dispatch()
        return future

    def flush(self, owner: str | None = None) -> int:
        """Reject queued tasks with :class:`RunCancelledError`.

        In-flight tasks are left to finish.  Returns the number of tasks
        rejected.

        Parameters
        ----------
        owner:
            When given, only tasks submitted with this owner are rejected;
            otherwise the whole queue is flushed.
        """
        kept: deque[_QueuedTask] = deque()
        rejected = 0
        while self._queue:
            item = self._queue.popleft()
            if owner is not None and item.owner != owner:
                kept.append(item)
                continue
            if not item.future.done():
                item.future.set_exception(RunCancelledError())
                # Mark retrieved; the submitter may already be gone.
                item.future.exception()
            rejected += 1
        self._queue = kept

        if rejected:
            self._logger.info("fetch_queue_flushed", owner=owner, rejected=rejected)
        return rejected

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _dispatch(self) -> None:
        """Start queued tasks while slots are free and pacing allows."""
        loop = asyncio.get_running_loop()
        while self._queue and self._active < self._max_concurrent:
            wait = self._next_allowed_at - loop.time()
            if wait > 0:
                self._schedule(wait)
                return
            item = self._queue.popleft()
            if item.future.done():
                # Caller gave up (cancelled) before the task started.
                continue
            self._active += 1
            task = asyncio.ensure_future(self._run(item))
            self._running.add(task)
            task.add_done_callback(self._running.discard)

    def _schedule(self, wait: float) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = asyncio.get_running_loop().call_later(wait, self._on_timer)

    def _on_timer(self) -> None:
        self._timer = None
        self._dispatch()

    def _hold_until(self, seconds_from_now: float) -> None:
        resume_at = asyncio.get_running_loop().time() + seconds_from_now
        self._next_allowed_at = max(self._next_allowed_at, resume_at)

    async def _run(self, item: _QueuedTask) -> None:
        try:
            result = await item.factory()
        except asyncio.CancelledError:
            if not item.future.done():
                item.future.cancel()
            raise
        except RateLimitError as exc:
            if item.retries < self._max_retries and not item.future.done():
                item.retries += 1
                pause = exc.retry_after if exc.retry_after is not None else self._rate_limit_backoff
                self._hold_until(pause)
                self._queue.appendleft(item)
                self._logger.warning(
                    "fetch_rate_limited",
                    owner=item.owner,
                    retry=item.retries,
                    pause_seconds=pause,
                    provider=exc.provider_name,
                )
            elif not item.future.done():
                item.future.set_exception(exc)
        except Exception as exc:
            if not item.future.done():
                item.future.set_exception(exc)
        else:
            if not item.future.done():
                item.future.set_result(result)
        finally:
            self._active -= 1
            self._hold_until(self._delay)
            self._dispatch()
