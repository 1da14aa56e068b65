"""Analysis Bounded Context - Contour Extraction.

Iso-elevation line segments via Marching Squares. Every 2x2 quad of grid
nodes is classified by which corners are at or above the threshold:

    tl (8) ---- tr (4)
     |            |
    bl (1) ---- br (2)

The 4-bit case indexes SEGMENT_TABLE, which lists the crossed edge pairs.
Saddle cases 5 and 10 always use the same pairing; the quad center is not
consulted. Segments are returned unlinked, per level.
"""

from __future__ import annotations

import logging
import math
from enum import Enum, IntEnum
from typing import Any

import numpy as np
from numpy.typing import NDArray

from domain.analysis.value_objects import (
    MAJOR_CONTOUR_FACTOR,
    ContourLevel,
    ContourSet,
)
from domain.elevation.errors import ComputationPreconditionError
from domain.elevation.value_objects import ElevationGrid

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 100.0
_LEVEL_TOLERANCE = 1e-9


class Edge(IntEnum):
    TOP = 0
    RIGHT = 1
    BOTTOM = 2
    LEFT = 3


class CaseKind(str, Enum):
    EMPTY = "empty"  # All corners on one side
    SINGLE = "single"  # One segment
    SADDLE = "saddle"  # Two disjoint segments (ambiguous case)


# Indexed by the 4-bit case (tl=8, tr=4, br=2, bl=1)
SEGMENT_TABLE: tuple[tuple[tuple[Edge, Edge], ...], ...] = (
    (),  # 0
    ((Edge.LEFT, Edge.BOTTOM),),  # 1
    ((Edge.BOTTOM, Edge.RIGHT),),  # 2
    ((Edge.LEFT, Edge.RIGHT),),  # 3
    ((Edge.TOP, Edge.RIGHT),),  # 4
    ((Edge.LEFT, Edge.TOP), (Edge.BOTTOM, Edge.RIGHT)),  # 5 saddle
    ((Edge.TOP, Edge.BOTTOM),),  # 6
    ((Edge.LEFT, Edge.TOP),),  # 7
    ((Edge.LEFT, Edge.TOP),),  # 8
    ((Edge.TOP, Edge.BOTTOM),),  # 9
    ((Edge.TOP, Edge.RIGHT), (Edge.LEFT, Edge.BOTTOM)),  # 10 saddle
    ((Edge.TOP, Edge.RIGHT),),  # 11
    ((Edge.LEFT, Edge.RIGHT),),  # 12
    ((Edge.BOTTOM, Edge.RIGHT),),  # 13
    ((Edge.LEFT, Edge.BOTTOM),),  # 14
    (),  # 15
)

_KINDS = {0: CaseKind.EMPTY, 1: CaseKind.SINGLE, 2: CaseKind.SADDLE}


def case_kind(case: int) -> CaseKind:
    return _KINDS[len(SEGMENT_TABLE[case])]


def case_index(tl: Any, tr: Any, br: Any, bl: Any, threshold: float) -> Any:
    """4-bit case for scalar or array corners."""
    return (
        (np.asarray(tl >= threshold, dtype=np.int64) << 3)
        | (np.asarray(tr >= threshold, dtype=np.int64) << 2)
        | (np.asarray(br >= threshold, dtype=np.int64) << 1)
        | np.asarray(bl >= threshold, dtype=np.int64)
    )


def interpolate(v1: Any, v2: Any, threshold: float) -> NDArray[np.float64]:
    """Fraction along an edge where the threshold is crossed (0.5 if v1 == v2)."""
    v1 = np.asarray(v1, dtype=np.float64)
    v2 = np.asarray(v2, dtype=np.float64)
    diff = v2 - v1
    with np.errstate(divide="ignore", invalid="ignore"):
        fraction = (threshold - v1) / diff
    return np.where(diff == 0, 0.5, fraction)


def _edge_points(
    x: Any, y: Any, tl: Any, tr: Any, br: Any, bl: Any, threshold: float
) -> dict[Edge, tuple[Any, Any]]:
    """Crossing position on each quad edge, in pixel coordinates."""
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    return {
        Edge.TOP: (x + interpolate(tl, tr, threshold), y),
        Edge.RIGHT: (x + 1, y + interpolate(tr, br, threshold)),
        Edge.BOTTOM: (x + interpolate(bl, br, threshold), y + 1),
        Edge.LEFT: (x, y + interpolate(tl, bl, threshold)),
    }


def quad_segments(
    case: int,
    x: float,
    y: float,
    tl: float,
    tr: float,
    br: float,
    bl: float,
    threshold: float,
) -> list[tuple[tuple[float, float], tuple[float, float]]]:
    """Segments contributed by one quad whose top-left node is (x, y)."""
    points = _edge_points(x, y, tl, tr, br, bl, threshold)
    segments = []
    for start, end in SEGMENT_TABLE[case]:
        (x1, y1), (x2, y2) = points[start], points[end]
        segments.append(((float(x1), float(y1)), (float(x2), float(y2))))
    return segments


def marching_squares(
    data: NDArray[np.float64], valid: NDArray[np.bool_], threshold: float
) -> NDArray[np.float64]:
    """All segments at ``threshold`` in pixel space, shape (n, 2, 2).

    Quads with any invalid corner are skipped.
    """
    filled = np.where(valid, data, 0.0)
    tl, tr = filled[:-1, :-1], filled[:-1, 1:]
    bl, br = filled[1:, :-1], filled[1:, 1:]
    quad_valid = valid[:-1, :-1] & valid[:-1, 1:] & valid[1:, :-1] & valid[1:, 1:]

    cases = np.where(quad_valid, case_index(tl, tr, br, bl, threshold), 0)
    rows, cols = np.nonzero((cases != 0) & (cases != 15))
    if rows.size == 0:
        return np.empty((0, 2, 2), dtype=np.float64)

    selected = cases[rows, cols]
    points = _edge_points(
        cols,
        rows,
        tl[rows, cols],
        tr[rows, cols],
        br[rows, cols],
        bl[rows, cols],
        threshold,
    )

    chunks = []
    for case in np.unique(selected):
        mask = selected == case
        for start, end in SEGMENT_TABLE[case]:
            (x1, y1), (x2, y2) = points[start], points[end]
            chunks.append(
                np.stack(
                    [
                        np.column_stack([x1[mask], y1[mask]]),
                        np.column_stack([x2[mask], y2[mask]]),
                    ],
                    axis=1,
                )
            )
    return np.concatenate(chunks, axis=0)


def contour_levels(start: float, end: float, interval: float) -> list[float]:
    """Levels start, start+interval, ... up to and including end."""
    if end < start:
        return []
    count = int(math.floor((end - start) / interval + _LEVEL_TOLERANCE)) + 1
    return [start + i * interval for i in range(count)]


def is_major_level(level: float, interval: float) -> bool:
    """True when ``level`` is a multiple of interval*5."""
    quotient = level / (interval * MAJOR_CONTOUR_FACTOR)
    return abs(quotient - round(quotient)) <= _LEVEL_TOLERANCE


def contours(
    grid: ElevationGrid,
    *,
    interval: float = DEFAULT_INTERVAL,
    min_elevation: float | None = None,
    max_elevation: float | None = None,
) -> ContourSet:
    """Extract contour segments for every level in range.

    Levels default to the interval multiples inside the grid's valid range.
    An explicit ``min_elevation``/``max_elevation`` is used as given.

    Args:
        grid: Source elevation grid
        interval: Elevation step between levels (must be > 0)
        min_elevation: First level (optional)
        max_elevation: Last level (optional)

    Returns:
        ContourSet with one ContourLevel per level, segments in the grid's
        coordinate space

    Raises:
        ComputationPreconditionError: If interval <= 0
    """
    if not (interval > 0 and math.isfinite(interval)):
        raise ComputationPreconditionError(
            f"Contour interval must be a positive finite number, got {interval}"
        )

    start = min_elevation
    if start is None and grid.min_value is not None:
        start = math.ceil(grid.min_value / interval) * interval
    end = max_elevation
    if end is None and grid.max_value is not None:
        end = math.floor(grid.max_value / interval) * interval

    levels: list[ContourLevel] = []
    if start is not None and end is not None:
        valid = grid.valid_mask()
        cell_x, cell_y = grid.cell_size
        origin = np.array([grid.bounds.min_x, grid.bounds.max_y])
        scale = np.array([cell_x, -cell_y])

        for level in contour_levels(start, end, interval):
            pixel_segments = marching_squares(grid.data, valid, level)
            levels.append(
                ContourLevel(
                    elevation=level,
                    is_major=is_major_level(level, interval),
                    segments=origin + pixel_segments * scale,
                )
            )

    logger.debug(
        "Contours %dx%d: %d levels at interval %g, %d segments",
        grid.width,
        grid.height,
        len(levels),
        interval,
        sum(len(level) for level in levels),
    )
    return ContourSet(interval=interval, levels=tuple(levels), bounds=grid.bounds)
