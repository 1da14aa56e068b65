"""Analysis Bounded Context - Terrain Derivatives.

Hillshade, slope and aspect computed with Horn's method (weighted 3x3
finite differences). Pure functions of the grid and parameters: the source
grid is never modified and no state is shared between calls.

Neighbourhood layout (row 0 is north, center excluded from the formulas):

    z0 z1 z2
    z3 .. z5
    z6 z7 z8

Only interior cells are analyzed. The one-cell border, and every cell whose
3x3 window contains nodata/NaN/Infinity, is set to the output nodata value:
the source nodata when it lies below every derivative value (all derivatives
are >= FLAT_ASPECT), DEFAULT_NODATA otherwise.
"""

from __future__ import annotations

import logging
import math
from typing import NamedTuple

import numpy as np
from numpy.typing import NDArray

from domain.analysis.value_objects import (
    FLAT_ASPECT,
    DerivativeGrid,
    DerivativeKind,
    SlopeUnit,
)
from domain.elevation.errors import ComputationPreconditionError
from domain.elevation.value_objects import DEFAULT_NODATA, ElevationGrid

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------
DEFAULT_AZIMUTH = 315.0  # Light from the north-west
DEFAULT_ALTITUDE = 45.0
DEFAULT_Z_FACTOR = 1.0
HILLSHADE_MAX = 255.0
MIN_WINDOW = 3


class HornGradients(NamedTuple):
    """Interior gradients, each of shape (height - 2, width - 2)."""

    dzdx: NDArray[np.float64]
    dzdy: NDArray[np.float64]
    valid: NDArray[np.bool_]  # False where the 3x3 window touches no data


def _check_preconditions(grid: ElevationGrid, z_factor: float) -> None:
    if grid.width < MIN_WINDOW or grid.height < MIN_WINDOW:
        raise ComputationPreconditionError(
            f"Grid must be at least {MIN_WINDOW}x{MIN_WINDOW} cells, "
            f"got {grid.width}x{grid.height}"
        )
    if not (z_factor > 0 and math.isfinite(z_factor)):
        raise ComputationPreconditionError(
            f"z_factor must be a positive finite number, got {z_factor}"
        )


def horn_gradients(
    grid: ElevationGrid, z_factor: float = DEFAULT_Z_FACTOR
) -> HornGradients:
    """Compute dz/dx and dz/dy for every interior cell.

    Args:
        grid: Source elevation grid (at least 3x3)
        z_factor: Divisor applied together with the cell size

    Raises:
        ComputationPreconditionError: Grid smaller than 3x3 or z_factor <= 0
    """
    _check_preconditions(grid, z_factor)

    height, width = grid.data.shape
    cell_x, cell_y = grid.cell_size
    valid = grid.valid_mask()
    # Zero-fill invalid cells so arithmetic stays finite; they are masked below
    filled = np.where(valid, grid.data, 0.0)

    def window(dr: int, dc: int) -> NDArray[np.float64]:
        return filled[dr : dr + height - 2, dc : dc + width - 2]

    window_valid = np.ones((height - 2, width - 2), dtype=bool)
    for dr in range(3):
        for dc in range(3):
            window_valid &= valid[dr : dr + height - 2, dc : dc + width - 2]

    z0, z1, z2 = window(0, 0), window(0, 1), window(0, 2)
    z3, z5 = window(1, 0), window(1, 2)
    z6, z7, z8 = window(2, 0), window(2, 1), window(2, 2)

    dzdx = ((z2 + 2 * z5 + z8) - (z0 + 2 * z3 + z6)) / (8 * cell_x * z_factor)
    dzdy = ((z6 + 2 * z7 + z8) - (z0 + 2 * z1 + z2)) / (8 * cell_y * z_factor)

    return HornGradients(dzdx=dzdx, dzdy=dzdy, valid=window_valid)


def output_nodata(source_nodata: float) -> float:
    """Nodata sentinel for derivative grids computed from ``source_nodata``.

    A source sentinel such as 0 is a legitimate slope, hillshade or aspect
    value, so it is only reused when it sorts below FLAT_ASPECT.
    """
    if source_nodata < FLAT_ASPECT:
        return source_nodata
    return DEFAULT_NODATA


def _assemble(
    grid: ElevationGrid, interior: NDArray[np.float64], valid: NDArray[np.bool_]
) -> NDArray[np.float64]:
    """Place interior results into a full-size array padded with nodata."""
    nodata = output_nodata(grid.nodata)
    out = np.full(grid.data.shape, nodata, dtype=np.float64)
    out[1:-1, 1:-1] = np.where(valid, interior, nodata)
    return out


# ---------------------------------------------------------------------------
# Hillshade
# ---------------------------------------------------------------------------
def hillshade(
    grid: ElevationGrid,
    *,
    azimuth: float = DEFAULT_AZIMUTH,
    altitude: float = DEFAULT_ALTITUDE,
    z_factor: float = DEFAULT_Z_FACTOR,
) -> DerivativeGrid:
    """Simulated illumination of the terrain, scaled to 0-255.

    Args:
        grid: Source elevation grid
        azimuth: Sun direction in compass degrees (0 = north, clockwise)
        altitude: Sun elevation above the horizon in degrees
        z_factor: Vertical exaggeration divisor

    Returns:
        DerivativeGrid tagged GRAYSCALE with normalization bounds 0..255

    Raises:
        ComputationPreconditionError: Grid smaller than 3x3 or z_factor <= 0
    """
    gradients = horn_gradients(grid, z_factor)

    azimuth_rad = (360.0 - azimuth + 90.0) * math.pi / 180.0
    altitude_rad = altitude * math.pi / 180.0

    slope_rad = np.arctan(np.sqrt(gradients.dzdx**2 + gradients.dzdy**2))
    aspect_rad = np.arctan2(gradients.dzdy, -gradients.dzdx)

    shade = math.sin(altitude_rad) * np.cos(slope_rad) + math.cos(
        altitude_rad
    ) * np.sin(slope_rad) * np.cos(azimuth_rad - aspect_rad)
    shade = np.clip(shade, 0.0, 1.0) * HILLSHADE_MAX

    logger.debug(
        "Hillshade %dx%d (azimuth=%.1f, altitude=%.1f, z_factor=%.3f)",
        grid.width,
        grid.height,
        azimuth,
        altitude,
        z_factor,
    )
    return DerivativeGrid(
        data=_assemble(grid, shade, gradients.valid),
        bounds=grid.bounds,
        kind=DerivativeKind.HILLSHADE,
        nodata=output_nodata(grid.nodata),
        crs=grid.crs,
        min_value=0.0,
        max_value=HILLSHADE_MAX,
    )


# ---------------------------------------------------------------------------
# Slope
# ---------------------------------------------------------------------------
def slope(
    grid: ElevationGrid,
    *,
    unit: SlopeUnit = SlopeUnit.DEGREES,
    z_factor: float = DEFAULT_Z_FACTOR,
) -> DerivativeGrid:
    """Steepness of the terrain in degrees or percent.

    The observed min/max over analyzed cells are stored as the grid's
    normalization bounds (None when no cell could be analyzed).

    Raises:
        ComputationPreconditionError: Grid smaller than 3x3 or z_factor <= 0
    """
    unit = SlopeUnit(unit)
    gradients = horn_gradients(grid, z_factor)

    magnitude = np.sqrt(gradients.dzdx**2 + gradients.dzdy**2)
    if unit is SlopeUnit.DEGREES:
        values = np.arctan(magnitude) * 180.0 / math.pi
    else:
        values = magnitude * 100.0

    analyzed = values[gradients.valid]
    min_value = float(analyzed.min()) if analyzed.size else None
    max_value = float(analyzed.max()) if analyzed.size else None

    logger.debug(
        "Slope %dx%d (%s): range %s..%s",
        grid.width,
        grid.height,
        unit.value,
        min_value,
        max_value,
    )
    return DerivativeGrid(
        data=_assemble(grid, values, gradients.valid),
        bounds=grid.bounds,
        kind=DerivativeKind.SLOPE,
        nodata=output_nodata(grid.nodata),
        crs=grid.crs,
        min_value=min_value,
        max_value=max_value,
        unit=unit,
    )


# ---------------------------------------------------------------------------
# Aspect
# ---------------------------------------------------------------------------
def fold_to_bearing(angle: NDArray[np.float64]) -> NDArray[np.float64]:
    """Convert atan2(dzdy, -dzdx) degrees into a compass bearing in [0, 360).

    North is 0 and bearings increase clockwise.
    """
    return np.where(
        angle < 0,
        90.0 - angle,
        np.where(angle > 90.0, 360.0 - angle + 90.0, 90.0 - angle),
    )


def aspect(grid: ElevationGrid) -> DerivativeGrid:
    """Compass direction of steepest descent for every interior cell.

    Cells with zero gradient get FLAT_ASPECT (-1). Aspect is independent of
    the z-factor, so none is taken.

    Raises:
        ComputationPreconditionError: Grid smaller than 3x3
    """
    gradients = horn_gradients(grid)

    flat = (gradients.dzdx == 0) & (gradients.dzdy == 0)
    angle = np.arctan2(gradients.dzdy, -gradients.dzdx) * 180.0 / math.pi
    bearings = np.where(flat, FLAT_ASPECT, fold_to_bearing(angle))

    logger.debug(
        "Aspect %dx%d: %d flat cells",
        grid.width,
        grid.height,
        int(np.count_nonzero(flat & gradients.valid)),
    )
    return DerivativeGrid(
        data=_assemble(grid, bearings, gradients.valid),
        bounds=grid.bounds,
        kind=DerivativeKind.ASPECT,
        nodata=output_nodata(grid.nodata),
        crs=grid.crs,
        min_value=0.0,
        max_value=360.0,
    )
