"""Tests for hillshade, slope and aspect (Horn's method).

Grids are built directly from numpy arrays; unit cells unless noted.
"""

from __future__ import annotations

import math

import numpy as np
import pytest

from domain.analysis.derivatives import (
    aspect,
    fold_to_bearing,
    hillshade,
    horn_gradients,
    output_nodata,
    slope,
)
from domain.analysis.value_objects import (
    FLAT_ASPECT,
    ColorScheme,
    DerivativeKind,
    SlopeUnit,
)
from domain.elevation.errors import ComputationPreconditionError
from domain.elevation.value_objects import BoundingBox
from tests.conftest_utils import create_grid, create_plane


def create_test_grid_rough(seed: int = 7) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return rng.random((12, 15)) * 500.0


def interior(values: np.ndarray) -> np.ndarray:
    return values[1:-1, 1:-1]


def border_cells(values: np.ndarray) -> np.ndarray:
    return np.concatenate([values[0], values[-1], values[1:-1, 0], values[1:-1, -1]])


# ---------------------------------------------------------------------------
# Gradients
# ---------------------------------------------------------------------------
def test_horn_gradients_of_plane():
    grid = create_plane(5, 6, dx=2.0, dy_north=0.0)

    gradients = horn_gradients(grid)

    assert gradients.dzdx.shape == (3, 4)
    np.testing.assert_allclose(gradients.dzdx, 2.0)
    np.testing.assert_allclose(gradients.dzdy, 0.0)
    assert gradients.valid.all()


def test_horn_gradients_scale_with_cell_size_and_z_factor():
    data = create_plane(5, 5, dx=10.0).data
    bounds = BoundingBox(min_x=0.0, min_y=0.0, max_x=25.0, max_y=25.0)  # 5 m cells
    grid = create_grid(data, bounds=bounds)

    gradients = horn_gradients(grid, z_factor=2.0)

    np.testing.assert_allclose(gradients.dzdx, 10.0 / (5.0 * 2.0))


# ---------------------------------------------------------------------------
# Hillshade
# ---------------------------------------------------------------------------
def test_hillshade_range_and_metadata():
    grid = create_grid(create_test_grid_rough())

    result = hillshade(grid, azimuth=300.0, altitude=30.0)

    values = interior(result.data)
    assert values.min() >= 0.0
    assert values.max() <= 255.0
    assert result.kind is DerivativeKind.HILLSHADE
    assert result.color_scheme is ColorScheme.GRAYSCALE
    assert (result.min_value, result.max_value) == (0.0, 255.0)
    assert result.bounds == grid.bounds
    assert result.data.shape == grid.data.shape


def test_hillshade_flat_grid_sun_overhead_is_full_white():
    grid = create_grid(np.full((6, 6), 250.0))

    result = hillshade(grid, altitude=90.0)

    np.testing.assert_allclose(interior(result.data), 255.0)


def test_hillshade_border_is_nodata():
    grid = create_grid(create_test_grid_rough())

    result = hillshade(grid)

    assert (border_cells(result.data) == grid.nodata).all()
    assert not result.valid_mask()[0].any()


def test_hillshade_facing_the_sun():
    # Surface rising east at 45 degrees faces west
    grid = create_plane(5, 5, dx=1.0)

    lit = hillshade(grid, azimuth=270.0, altitude=45.0)
    dark = hillshade(grid, azimuth=90.0, altitude=45.0)

    np.testing.assert_allclose(interior(lit.data), 255.0)
    np.testing.assert_allclose(interior(dark.data), 0.0, atol=1e-9)


def test_hillshade_does_not_modify_source():
    data = create_test_grid_rough()
    grid = create_grid(data)
    before = grid.data.copy()

    hillshade(grid)
    slope(grid)
    aspect(grid)

    np.testing.assert_array_equal(grid.data, before)


def test_hillshade_is_deterministic():
    grid = create_grid(create_test_grid_rough())

    first = hillshade(grid, azimuth=120.0)
    second = hillshade(grid, azimuth=120.0)

    np.testing.assert_array_equal(first.data, second.data)


# ---------------------------------------------------------------------------
# Slope
# ---------------------------------------------------------------------------
@pytest.mark.parametrize("z_factor", [0.5, 1.0, 3.0, 100.0])
def test_slope_of_constant_grid_is_zero(z_factor):
    grid = create_grid(np.full((7, 7), 812.0))

    result = slope(grid, z_factor=z_factor)

    np.testing.assert_array_equal(interior(result.data), 0.0)
    assert (result.min_value, result.max_value) == (0.0, 0.0)


def test_slope_degrees_and_percent():
    grid = create_plane(6, 6, dx=2.0)

    degrees = slope(grid, unit=SlopeUnit.DEGREES)
    percent = slope(grid, unit="percent")

    np.testing.assert_allclose(interior(degrees.data), math.degrees(math.atan(2.0)))
    np.testing.assert_allclose(interior(percent.data), 200.0)
    assert degrees.unit is SlopeUnit.DEGREES
    assert percent.unit is SlopeUnit.PERCENT
    assert degrees.color_scheme is ColorScheme.SLOPE


def test_slope_range_covers_analyzed_cells_only():
    grid = create_grid(create_test_grid_rough())

    result = slope(grid)

    values = interior(result.data)
    assert result.min_value == pytest.approx(values.min())
    assert result.max_value == pytest.approx(values.max())
    assert 0.0 <= result.min_value <= result.max_value < 90.0


def test_slope_z_factor_flattens():
    grid = create_plane(5, 5, dx=1.0)

    steep = slope(grid, z_factor=1.0)
    flatter = slope(grid, z_factor=4.0)

    assert (interior(flatter.data) < interior(steep.data)).all()


# ---------------------------------------------------------------------------
# Aspect
# ---------------------------------------------------------------------------
def test_aspect_of_constant_grid_is_flat():
    grid = create_grid(np.full((5, 8), 42.0))

    result = aspect(grid)

    np.testing.assert_array_equal(interior(result.data), FLAT_ASPECT)
    assert result.color_scheme is ColorScheme.ASPECT


@pytest.mark.parametrize(
    "dx, dy_north, bearing",
    [
        (1.0, 0.0, 270.0),  # Rises east, faces west
        (-1.0, 0.0, 90.0),  # Rises west, faces east
        (0.0, 1.0, 180.0),  # Rises north, faces south
        (0.0, -1.0, 0.0),  # Rises south, faces north
        (1.0, 1.0, 225.0),  # Rises north-east, faces south-west
    ],
)
def test_aspect_of_tilted_plane(dx, dy_north, bearing):
    grid = create_plane(5, 5, dx=dx, dy_north=dy_north)

    result = aspect(grid)

    # Compare on the circle so 0 and 359.999... agree
    difference = (interior(result.data) - bearing + 180.0) % 360.0 - 180.0
    np.testing.assert_allclose(difference, 0.0, atol=1e-9)


def test_aspect_in_compass_range():
    grid = create_grid(create_test_grid_rough(seed=11))

    values = interior(aspect(grid).data)

    analyzed = values[values != FLAT_ASPECT]
    assert (analyzed >= 0.0).all()
    assert (analyzed < 360.0).all()


def test_fold_to_bearing():
    angles = np.array([-90.0, 0.0, 45.0, 90.0, 135.0, 180.0])
    np.testing.assert_allclose(
        fold_to_bearing(angles), [180.0, 90.0, 45.0, 0.0, 315.0, 270.0]
    )


# ---------------------------------------------------------------------------
# No data and preconditions
# ---------------------------------------------------------------------------
@pytest.mark.parametrize("bad_value", [-9999.0, math.nan, math.inf])
@pytest.mark.parametrize("operation", [hillshade, slope, aspect])
def test_nodata_propagates_to_neighbours(operation, bad_value):
    data = create_plane(7, 7, dx=1.0).data.copy()
    data[3, 3] = bad_value
    grid = create_grid(data)

    result = operation(grid)

    # Every window containing (3, 3) is dropped
    assert (result.data[2:5, 2:5] == grid.nodata).all()
    assert result.valid_mask()[1, 1]
    assert result.valid_mask()[5, 5]


def test_zero_source_nodata_keeps_flat_cells_valid():
    grid = create_grid(np.full((5, 5), 10.0), nodata=0.0)

    result = slope(grid)

    assert result.nodata == -9999.0
    assert (interior(result.data) == 0.0).all()
    assert interior(result.valid_mask()).all()
    assert (border_cells(result.data) == -9999.0).all()


@pytest.mark.parametrize("operation", [hillshade, slope, aspect])
def test_zero_source_nodata_still_propagates(operation):
    data = create_plane(7, 7, dx=1.0).data.copy()
    data[3, 3] = 0.0
    grid = create_grid(data, nodata=0.0)

    result = operation(grid)

    assert (result.data[2:5, 2:5] == result.nodata).all()
    assert not result.valid_mask()[2:5, 2:5].any()
    assert result.valid_mask()[1, 1]


@pytest.mark.parametrize(
    "source, expected",
    [(-9999.0, -9999.0), (-32768.0, -32768.0), (0.0, -9999.0), (-1.0, -9999.0)],
)
def test_output_nodata(source, expected):
    assert output_nodata(source) == expected


def test_slope_range_none_when_nothing_analyzed():
    data = np.full((3, 3), 10.0)
    data[1, 1] = -9999.0

    result = slope(create_grid(data))

    assert result.min_value is None
    assert result.max_value is None


@pytest.mark.parametrize("shape", [(2, 5), (5, 2), (1, 1)])
@pytest.mark.parametrize("operation", [hillshade, slope, aspect])
def test_small_grid_rejected(operation, shape):
    grid = create_grid(np.ones(shape))

    with pytest.raises(ComputationPreconditionError, match="3x3"):
        operation(grid)


@pytest.mark.parametrize("z_factor", [0.0, -1.0, math.nan])
def test_invalid_z_factor_rejected(z_factor):
    grid = create_grid(np.ones((4, 4)))

    with pytest.raises(ComputationPreconditionError, match="z_factor"):
        hillshade(grid, z_factor=z_factor)
    with pytest.raises(ComputationPreconditionError, match="z_factor"):
        slope(grid, z_factor=z_factor)
