"""Root pytest configuration for all tests.

Helpers live in tests/conftest_utils.py; this module exposes the shared
fixtures built from them.
"""

from __future__ import annotations

from collections.abc import Callable

import numpy as np
import pytest
from affine import Affine

from domain.elevation.value_objects import ElevationGrid
from tests.conftest_utils import create_grid, write_geotiff


@pytest.fixture
def ramp_grid() -> ElevationGrid:
    """5x11 grid where elevation = 10 * column (unit cells)."""
    data = np.tile(np.arange(11, dtype=np.float64) * 10.0, (5, 1))
    return create_grid(data)


@pytest.fixture
def geotiff_bytes() -> Callable[..., bytes]:
    """Factory: geotiff_bytes(data, transform, crs=..., nodata=...)."""
    return write_geotiff


@pytest.fixture
def wgs84_dem() -> bytes:
    """20x10 float32 DEM over lon [10, 12], lat [45, 46] with nodata -32768."""
    data = np.linspace(200.0, 900.0, 200, dtype=np.float32).reshape(10, 20)
    data[0, 0] = -32768.0
    transform = Affine.translation(10.0, 46.0) * Affine.scale(0.1, -0.1)
    return write_geotiff(data, transform, crs="EPSG:4326", nodata=-32768.0)
