"""Run progress tracking with callback-based listener notification.

Tracks the latest :class:`ProgressEvent` for each run and broadcasts it to
the callbacks registered for that run.  Listeners are keyed by run id so
concurrent runs on one engine never see each other's progress.

# ─── HOW PROGRESS TRACKING WORKS ──────────────────────────────────────
#
#   Engine run ──update()──→ ProgressTracker ──callback(event)──→ caller
#
#   1. GalaxyEngine registers the caller's ``on_progress`` under the run id
#   2. Services call ``RunContext.report(...)`` at coarse milestones
#   3. The tracker stores the snapshot and invokes every listener
#   4. The engine unregisters the listener when the run ends
#
# Listener errors are caught and logged, so a broken callback can't
# abort a run.  Sync and async callbacks are both accepted.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import structlog

from stellar.models.progress import ProgressEvent, RunPhase
from stellar.utils.logging import get_logger

ProgressCallback = Callable[[ProgressEvent], object]


class ProgressTracker:
    """Tracks and broadcasts run progress via callbacks."""

    def __init__(self) -> None:
        self._statuses: dict[str, ProgressEvent] = {}
        self._listeners: dict[str, list[ProgressCallback]] = {}
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def update(
        self,
        run_id: str,
        phase: RunPhase,
        current: int,
        total: int,
        message: str,
    ) -> ProgressEvent:
        """Record a progress update and notify all registered listeners.

        Parameters
        ----------
        run_id:
            The run to update.
        phase:
            The current run phase.
        current:
            Units completed within the phase.
        total:
            Units in the phase.
        message:
            Human-readable status message.
        """
        total = max(0, total)
        current = max(0, min(current, total)) if total else max(0, current)
        event = ProgressEvent(phase=phase, current=current, total=total, message=message)
        self._statuses[run_id] = event

        self._logger.debug(
            "progress_update",
            run_id=run_id,
            phase=phase.value,
            current=current,
            total=total,
            message=message,
        )

        await self._notify_listeners(run_id, event)
        return event

    def register_listener(self, run_id: str, callback: ProgressCallback) -> None:
        """Register a sync or async *callback* receiving a :class:`ProgressEvent`."""
        listeners = self._listeners.setdefault(run_id, [])
        if callback not in listeners:
            listeners.append(callback)

    def unregister_listener(self, run_id: str, callback: ProgressCallback) -> None:
        listeners = self._listeners.get(run_id, [])
        if callback in listeners:
            listeners.remove(callback)
        if not listeners:
            self._listeners.pop(run_id, None)

    def get_status(self, run_id: str) -> ProgressEvent | None:
        """Return the latest event for *run_id*, or ``None`` if none was recorded."""
        return self._statuses.get(run_id)

    def forget(self, run_id: str) -> None:
        """Drop every listener and snapshot kept for a finished run."""
        self._listeners.pop(run_id, None)
        self._statuses.pop(run_id, None)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _notify_listeners(self, run_id: str, event: ProgressEvent) -> None:
        """Invoke all registered listeners for a run.

        Listeners that raise are logged and skipped so a single faulty
        listener cannot block progress updates.
        """
        for callback in list(self._listeners.get(run_id, [])):
            try:
                result = callback(event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as exc:
                self._logger.warning(
                    "listener_callback_error",
                    run_id=run_id,
                    error=str(exc),
                    callback=getattr(callback, "__name__", repr(callback)),
                )
