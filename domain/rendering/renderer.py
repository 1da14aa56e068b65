"""Rendering Bounded Context - Region Renderer.

Resamples an ElevationGrid or DerivativeGrid into an RGBA pixel buffer for a
view window. Nearest-neighbour (floor) lookup of each output pixel's center;
no data, out-of-grid pixels and flat aspect cells are fully transparent.

The buffer is recomputed on every call. Callers needing a frame budget pass
``max_pixels``; larger requests are rendered at reduced resolution and
expanded by nearest neighbour.
"""

from __future__ import annotations

import logging
import math
from typing import Union

import numpy as np
from numpy.typing import NDArray

from domain.analysis.value_objects import FLAT_ASPECT, ColorScheme, DerivativeGrid
from domain.elevation.errors import ComputationPreconditionError
from domain.elevation.value_objects import BoundingBox, ElevationGrid
from domain.rendering.color_ramps import (
    GRAYSCALE,
    SLOPE,
    TERRAIN,
    ColorRamp,
    aspect_colors,
    normalize,
)

logger = logging.getLogger(__name__)

RenderableGrid = Union[ElevationGrid, DerivativeGrid]

DEFAULT_MAX_PIXELS = 4096 * 4096
OPAQUE = 255


def _scheme_colors(
    grid: RenderableGrid, values: NDArray[np.float64], ramp: ColorRamp | None
) -> NDArray[np.uint8]:
    """RGB for valid cell values according to the grid's color scheme."""
    if isinstance(grid, ElevationGrid):
        lo, hi = grid.min_value, grid.max_value
        return (ramp or TERRAIN).map_values(normalize(values, lo, hi))

    if grid.color_scheme is ColorScheme.ASPECT:
        return aspect_colors(values)

    default_ramp = GRAYSCALE if grid.color_scheme is ColorScheme.GRAYSCALE else SLOPE
    if grid.min_value is not None and grid.max_value is not None:
        lo, hi = grid.min_value, grid.max_value
    else:
        lo, hi = float(values.min()), float(values.max())
    return (ramp or default_ramp).map_values(normalize(values, lo, hi))


def _drawable_mask(
    grid: RenderableGrid, values: NDArray[np.float64]
) -> NDArray[np.bool_]:
    mask = np.isfinite(values) & (values != grid.nodata)
    if isinstance(grid, DerivativeGrid) and grid.color_scheme is ColorScheme.ASPECT:
        mask &= values != FLAT_ASPECT
    return mask


def _pixel_indices(
    grid: RenderableGrid, view: BoundingBox, width: int, height: int
) -> tuple[NDArray[np.int64], NDArray[np.int64]]:
    """Grid (row, col) sampled by each output pixel center; may be out of range."""
    extent = grid.bounds
    map_x = view.min_x + (np.arange(width) + 0.5) / width * view.width
    map_y = view.max_y - (np.arange(height) + 0.5) / height * view.height

    cols = np.floor((map_x - extent.min_x) / extent.width * grid.width)
    rows = np.floor((extent.max_y - map_y) / extent.height * grid.height)
    return rows.astype(np.int64), cols.astype(np.int64)


def _render(
    grid: RenderableGrid,
    view: BoundingBox,
    width: int,
    height: int,
    ramp: ColorRamp | None,
) -> NDArray[np.uint8]:
    rows, cols = _pixel_indices(grid, view, width, height)
    row_ok = (rows >= 0) & (rows < grid.height)
    col_ok = (cols >= 0) & (cols < grid.width)

    rgba = np.zeros((height, width, 4), dtype=np.uint8)
    inside = row_ok[:, None] & col_ok[None, :]
    if not inside.any():
        return rgba

    sampled = grid.data[np.clip(rows, 0, grid.height - 1)][
        :, np.clip(cols, 0, grid.width - 1)
    ]
    drawable = inside & _drawable_mask(grid, sampled)
    if drawable.any():
        rgba[drawable, :3] = _scheme_colors(grid, sampled[drawable], ramp)
        rgba[drawable, 3] = OPAQUE
    return rgba


def render_region(
    grid: RenderableGrid,
    view_extent: BoundingBox,
    size: tuple[int, int],
    *,
    ramp: ColorRamp | None = None,
    max_pixels: int = DEFAULT_MAX_PIXELS,
) -> NDArray[np.uint8]:
    """Render ``grid`` into an RGBA buffer covering ``view_extent``.

    Args:
        grid: ElevationGrid or DerivativeGrid to draw
        view_extent: Requested window, in the grid's CRS
        size: Output (width, height) in pixels
        ramp: Linear ramp replacing the scheme default (ignored for aspect)
        max_pixels: Upper bound on pixels actually sampled

    Returns:
        uint8 array of shape (height, width, 4)

    Raises:
        ComputationPreconditionError: If a size component is < 1 or max_pixels < 1
    """
    width, height = int(size[0]), int(size[1])
    if width < 1 or height < 1:
        raise ComputationPreconditionError(f"Output size must be >= 1x1, got {size}")
    if max_pixels < 1:
        raise ComputationPreconditionError(
            f"max_pixels must be >= 1, got {max_pixels}"
        )

    if width * height <= max_pixels:
        return _render(grid, view_extent, width, height, ramp)

    scale = math.sqrt(max_pixels / (width * height))
    reduced_w = max(1, int(width * scale))
    reduced_h = max(1, int(height * scale))
    logger.debug(
        "Render %dx%d exceeds %d pixels; sampling at %dx%d",
        width,
        height,
        max_pixels,
        reduced_w,
        reduced_h,
    )
    reduced = _render(grid, view_extent, reduced_w, reduced_h, ramp)
    row_map = (np.arange(height) * reduced_h) // height
    col_map = (np.arange(width) * reduced_w) // width
    return reduced[row_map][:, col_map]
