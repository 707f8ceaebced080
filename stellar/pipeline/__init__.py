"""Run plumbing shared by every engine call: fetch queue, run context, progress.

``GalaxyEngine`` lives in :mod:`stellar.pipeline.galaxy_pipeline` and is
not re-exported here, since the services it drives import this package.
"""

from stellar.pipeline.fetch_queue import FetchQueue
from stellar.pipeline.progress_tracker import ProgressCallback, ProgressTracker
from stellar.pipeline.run_context import RunContext

__all__ = [
    "FetchQueue",
    "ProgressCallback",
    "ProgressTracker",
    "RunContext",
]
