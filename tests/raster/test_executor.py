"""Tests for background execution of ingestion and analyses."""

from __future__ import annotations

import logging

import numpy as np
import pytest

from domain.analysis.contours import contours
from domain.analysis.derivatives import hillshade, slope
from domain.elevation.errors import ComputationPreconditionError, ParseError
from infrastructure.raster.executor import AnalysisExecutor
from tests.conftest_utils import create_plane


def test_analysis_result_matches_direct_call():
    grid = create_plane(20, 30, dx=2.0, dy_north=1.0)

    with AnalysisExecutor(max_workers=2) as executor:
        future = executor.submit(hillshade, grid, azimuth=200.0)
        result = future.result(timeout=30)

    np.testing.assert_array_equal(result.data, hillshade(grid, azimuth=200.0).data)


def test_concurrent_analyses_share_one_grid():
    grid = create_plane(40, 40, dx=1.0)

    with AnalysisExecutor(max_workers=4) as executor:
        futures = [
            executor.submit(hillshade, grid),
            executor.submit(slope, grid, unit="percent"),
            executor.submit(contours, grid, interval=5.0),
        ]
        shade, steepness, lines = (f.result(timeout=30) for f in futures)

    assert shade.data.shape == grid.data.shape
    np.testing.assert_allclose(steepness.data[1:-1, 1:-1], 100.0)
    assert lines.segment_count > 0


def test_ingest_in_background(wgs84_dem):
    with AnalysisExecutor() as executor:
        grid = executor.submit_ingest(wgs84_dem, "alps").result(timeout=30)

    assert grid.data.shape == (10, 20)


def test_failure_reaches_caller_and_is_logged(caplog):
    caplog.set_level(logging.ERROR, logger="infrastructure.raster.executor")
    tiny = create_plane(2, 2)

    executor = AnalysisExecutor(max_workers=1)
    future = executor.submit(slope, tiny)
    with pytest.raises(ComputationPreconditionError):
        future.result(timeout=30)
    # Joining the workers guarantees the done callback has run
    executor.shutdown(wait=True)

    assert "Task slope failed" in caplog.text


def test_ingest_failure_propagates():
    with AnalysisExecutor() as executor:
        future = executor.submit_ingest(b"garbage" * 20)
        with pytest.raises(ParseError):
            future.result(timeout=30)


def test_closed_executor_rejects_work():
    executor = AnalysisExecutor()
    executor.shutdown()

    with pytest.raises(RuntimeError):
        executor.submit(slope, create_plane(3, 3))
