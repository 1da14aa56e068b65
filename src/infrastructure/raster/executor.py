"""Background execution of ingestion and analyses.

Parsing and analysis of large grids run on a worker pool so the interactive
thread stays responsive. Results are delivered whole through
``concurrent.futures.Future``; a running computation is never interrupted
(``Future.cancel`` only succeeds before it starts) and callers may simply
discard a result they no longer need.

All domain functions are pure over immutable grids, so no locking is needed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, TypeVar

from domain.elevation.repositories import ElevationRepository
from domain.elevation.value_objects import ElevationGrid

from .geotiff_adapter import GeoTiffIngestor

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AnalysisExecutor:
    """Thread pool running terrain work off the calling thread.

    Usage:
        with AnalysisExecutor() as executor:
            grid = executor.submit_ingest(raw).result()
            shade = executor.submit(hillshade, grid, azimuth=300).result()
    """

    def __init__(
        self,
        max_workers: int | None = None,
        ingestor: ElevationRepository | None = None,
    ) -> None:
        self.ingestor: ElevationRepository = ingestor or GeoTiffIngestor()
        self._pool = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="terrain-analysis"
        )

    def submit(self, fn: Callable[..., T], /, *args: Any, **kwargs: Any) -> Future[T]:
        """Schedule ``fn(*args, **kwargs)`` and return its future."""
        future = self._pool.submit(fn, *args, **kwargs)
        name = getattr(fn, "__name__", repr(fn))
        future.add_done_callback(lambda f: _log_failure(name, f))
        return future

    def submit_ingest(
        self, raw: bytes, name: str | None = None
    ) -> Future[ElevationGrid]:
        return self.submit(self.ingestor.ingest, raw, name)

    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)

    def __enter__(self) -> "AnalysisExecutor":
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.shutdown(wait=True)


def _log_failure(name: str, future: Future[Any]) -> None:
    if future.cancelled():
        logger.debug("Task %s cancelled before start", name)
        return
    error = future.exception()
    if error is not None:
        # The exception still reaches the caller through future.result()
        logger.error("Task %s failed: %s", name, error)
