"""Elevation Bounded Context - Value Objects.

Immutable data structures representing a loaded elevation model.
All validation occurs at construction time via Pydantic.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Any

import numpy as np
from numpy.typing import NDArray
from pydantic import BaseModel, ConfigDict, model_validator

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
DEFAULT_NODATA = -9999.0  # Sentinel used when the raster declares none
WGS84 = "EPSG:4326"
WEB_MERCATOR = "EPSG:3857"  # Default display CRS


def valid_cell_mask(data: NDArray[Any], nodata: float) -> NDArray[np.bool_]:
    """Return True where a cell holds a usable sample.

    A cell is unusable when it equals the nodata sentinel or is NaN/±Infinity.
    Exact equality is intentional: the sentinel is stored verbatim in the
    raster metadata.
    """
    return np.isfinite(data) & (data != nodata)


class BoundingBox(BaseModel):
    """Extent of a grid in its coordinate reference system (Value Object).

    Invariants are enforced at construction time - invalid BoundingBox
    cannot be instantiated.
    """

    min_x: float  # Western boundary
    min_y: float  # Southern boundary
    max_x: float  # Eastern boundary
    max_y: float  # Northern boundary

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def validate_bounds(self) -> "BoundingBox":
        for name in ("min_x", "min_y", "max_x", "max_y"):
            value = getattr(self, name)
            if not math.isfinite(value):
                raise ValueError(f"{name} must be finite, got {value}")
        if not (self.min_x < self.max_x):
            raise ValueError(
                f"Invalid x ordering: min_x={self.min_x} >= max_x={self.max_x}"
            )
        if not (self.min_y < self.max_y):
            raise ValueError(
                f"Invalid y ordering: min_y={self.min_y} >= max_y={self.max_y}"
            )
        return self

    @classmethod
    def from_tuple(cls, bounds: tuple[float, float, float, float]) -> "BoundingBox":
        """Build from (min_x, min_y, max_x, max_y)."""
        min_x, min_y, max_x, max_y = bounds
        return cls(
            min_x=float(min_x),
            min_y=float(min_y),
            max_x=float(max_x),
            max_y=float(max_y),
        )

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    def as_tuple(self) -> tuple[float, float, float, float]:
        return (self.min_x, self.min_y, self.max_x, self.max_y)


class ProjectionTier(str, Enum):
    """How the display extent of a grid was obtained.

    DIRECT: transformed from the declared source CRS (or already in display CRS)
    ASSUMED_WGS84: source CRS failed; transformed as if it were WGS84
    ALREADY_PROJECTED: both transforms failed; coordinates looked projected
        and were used unchanged
    SPHERICAL_MERCATOR: both transforms failed; closed-form lon/lat to
        Web Mercator was applied
    """

    DIRECT = "direct"
    ASSUMED_WGS84 = "assumed_wgs84"
    ALREADY_PROJECTED = "already_projected"
    SPHERICAL_MERCATOR = "spherical_mercator"

    @property
    def is_fallback(self) -> bool:
        return self is not ProjectionTier.DIRECT


class ElevationGrid(BaseModel):
    """Immutable elevation model with geographic metadata (Value Object).

    The data array is stored as an owned, read-only float64 copy (row 0 is the
    northern edge). Cells equal to ``nodata`` or non-finite are "no data".
    ``min_value``/``max_value`` are computed once at construction and are
    None when the grid holds no valid cell.
    """

    data: NDArray[np.float64]  # 2D array (height x width), read-only
    bounds: BoundingBox  # Extent in ``crs``
    nodata: float = DEFAULT_NODATA
    crs: str = WEB_MERCATOR
    source_crs: str | None = None  # CRS declared by the raster (or assumed)
    native_bounds: BoundingBox | None = None  # Extent before reprojection
    projection_tier: ProjectionTier = ProjectionTier.DIRECT
    min_value: float | None = None  # Computed - any passed value is replaced
    max_value: float | None = None  # Computed - any passed value is replaced

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    @model_validator(mode="after")
    def validate_grid(self) -> "ElevationGrid":
        if self.data.ndim != 2:
            raise ValueError(f"Data must be 2D, got {self.data.ndim}D")
        if self.data.shape[0] == 0 or self.data.shape[1] == 0:
            raise ValueError(f"Data cannot be empty: {self.data.shape}")

        # Always own a contiguous float64 copy so the caller's array is never
        # frozen or aliased.
        immutable = np.array(self.data, dtype=np.float64, copy=True, order="C")
        immutable.flags.writeable = False
        object.__setattr__(self, "data", immutable)

        # Single scan for the valid range (feeds normalization and contours)
        valid = immutable[valid_cell_mask(immutable, self.nodata)]
        if valid.size:
            object.__setattr__(self, "min_value", float(valid.min()))
            object.__setattr__(self, "max_value", float(valid.max()))
        else:
            object.__setattr__(self, "min_value", None)
            object.__setattr__(self, "max_value", None)
        return self

    @classmethod
    def from_buffer(
        cls,
        buffer: Any,
        width: int,
        height: int,
        bounds: BoundingBox,
        **kwargs: Any,
    ) -> "ElevationGrid":
        """Build a grid from a flat row-major buffer of length width*height."""
        flat = np.asarray(buffer, dtype=np.float64)
        if flat.ndim != 1 or flat.size != width * height:
            raise ValueError(
                f"Buffer length {flat.size} does not match {width}x{height}"
            )
        return cls(data=flat.reshape(height, width), bounds=bounds, **kwargs)

    @property
    def width(self) -> int:
        return int(self.data.shape[1])

    @property
    def height(self) -> int:
        return int(self.data.shape[0])

    @property
    def buffer(self) -> NDArray[np.float64]:
        """Flat row-major read-only view of the cells (length width*height)."""
        return self.data.reshape(-1)

    @property
    def cell_size(self) -> tuple[float, float]:
        """(cell_size_x, cell_size_y) in ``crs`` units."""
        return (self.bounds.width / self.width, self.bounds.height / self.height)

    @property
    def has_valid_cells(self) -> bool:
        return self.min_value is not None

    def valid_mask(self) -> NDArray[np.bool_]:
        return valid_cell_mask(self.data, self.nodata)

    def nodata_ratio(self) -> float:
        """Return fraction of cells that are no data (0.0 to 1.0)."""
        return float(1.0 - self.valid_mask().mean())
