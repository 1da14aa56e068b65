"""Analysis Bounded Context - Value Objects.

Immutable results of terrain analyses. A DerivativeGrid or ContourSet is
created per analysis call and shares the extent of the ElevationGrid it was
derived from.
"""

from __future__ import annotations

from collections.abc import Iterator
from enum import Enum

import numpy as np
from numpy.typing import NDArray
from pydantic import BaseModel, ConfigDict, Field, model_validator

from domain.elevation.value_objects import (
    DEFAULT_NODATA,
    WEB_MERCATOR,
    BoundingBox,
    valid_cell_mask,
)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
FLAT_ASPECT = -1.0  # Aspect of a cell with zero gradient (no facing direction)
MAJOR_CONTOUR_FACTOR = 5  # Every 5th interval multiple is a major contour


class DerivativeKind(str, Enum):
    HILLSHADE = "hillshade"
    SLOPE = "slope"
    ASPECT = "aspect"


class ColorScheme(str, Enum):
    """Tag telling the renderer how to color a derivative."""

    GRAYSCALE = "grayscale"
    SLOPE = "slope"
    ASPECT = "aspect"


class SlopeUnit(str, Enum):
    DEGREES = "degree"
    PERCENT = "percent"


# Scheme used when none is given explicitly
DEFAULT_SCHEMES: dict[DerivativeKind, ColorScheme] = {
    DerivativeKind.HILLSHADE: ColorScheme.GRAYSCALE,
    DerivativeKind.SLOPE: ColorScheme.SLOPE,
    DerivativeKind.ASPECT: ColorScheme.ASPECT,
}


class DerivativeGrid(BaseModel):
    """Raster derived from an ElevationGrid (Value Object).

    Values are hillshade (0-255), slope (degrees or percent) or aspect
    (0-360, or FLAT_ASPECT). Border cells and cells whose neighbourhood
    touches no data hold ``nodata``.

    ``min_value``/``max_value`` are optional explicit normalization bounds
    used by the renderer.
    """

    data: NDArray[np.float64]  # 2D array (height x width), read-only
    bounds: BoundingBox
    kind: DerivativeKind
    color_scheme: ColorScheme | None = None  # Defaults from kind
    nodata: float = DEFAULT_NODATA
    crs: str = WEB_MERCATOR
    min_value: float | None = None
    max_value: float | None = None
    unit: SlopeUnit | None = None  # Only meaningful for SLOPE

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    @model_validator(mode="after")
    def validate_grid(self) -> "DerivativeGrid":
        if self.data.ndim != 2:
            raise ValueError(f"Data must be 2D, got {self.data.ndim}D")
        if (
            self.min_value is not None
            and self.max_value is not None
            and self.min_value > self.max_value
        ):
            raise ValueError(
                f"min_value={self.min_value} > max_value={self.max_value}"
            )

        immutable = np.array(self.data, dtype=np.float64, copy=True, order="C")
        immutable.flags.writeable = False
        object.__setattr__(self, "data", immutable)

        if self.color_scheme is None:
            object.__setattr__(self, "color_scheme", DEFAULT_SCHEMES[self.kind])
        return self

    @property
    def width(self) -> int:
        return int(self.data.shape[1])

    @property
    def height(self) -> int:
        return int(self.data.shape[0])

    def valid_mask(self) -> NDArray[np.bool_]:
        """True where the cell holds a value (flat aspect cells included)."""
        return valid_cell_mask(self.data, self.nodata)


# ---------------------------------------------------------------------------
# Contours
# ---------------------------------------------------------------------------
class ContourStyle(BaseModel):
    """Stroke used to draw a contour level."""

    color: str
    width: float = Field(gt=0)

    model_config = ConfigDict(frozen=True)


MAJOR_STYLE = ContourStyle(color="#8B4513", width=1.5)
MINOR_STYLE = ContourStyle(color="#A0522D", width=0.8)


class ContourLevel(BaseModel):
    """All line segments at one elevation (Value Object).

    ``segments`` has shape (n, 2, 2): n segments, two endpoints, (x, y) in the
    source grid's coordinate space. Segments are not linked into lines.
    """

    elevation: float
    is_major: bool
    segments: NDArray[np.float64]

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    @model_validator(mode="after")
    def validate_segments(self) -> "ContourLevel":
        segments = np.array(self.segments, dtype=np.float64, copy=True)
        if segments.size == 0:
            segments = segments.reshape(0, 2, 2)
        if segments.ndim != 3 or segments.shape[1:] != (2, 2):
            raise ValueError(
                f"Segments must have shape (n, 2, 2), got {segments.shape}"
            )
        segments.flags.writeable = False
        object.__setattr__(self, "segments", segments)
        return self

    def __len__(self) -> int:
        return int(self.segments.shape[0])


class ContourSet(BaseModel):
    """Collection of (elevation level, line segment) pairs (Value Object)."""

    interval: float = Field(gt=0)
    levels: tuple[ContourLevel, ...]
    bounds: BoundingBox

    model_config = ConfigDict(frozen=True)

    @property
    def segment_count(self) -> int:
        return sum(len(level) for level in self.levels)

    def elevations(self) -> tuple[float, ...]:
        return tuple(level.elevation for level in self.levels)

    def pairs(
        self,
    ) -> Iterator[tuple[float, tuple[tuple[float, float], tuple[float, float]]]]:
        """Yield (elevation, ((x1, y1), (x2, y2))) for every segment."""
        for level in self.levels:
            for (x1, y1), (x2, y2) in level.segments.tolist():
                yield level.elevation, ((x1, y1), (x2, y2))

    def major_levels(self) -> tuple[ContourLevel, ...]:
        return tuple(level for level in self.levels if level.is_major)

    def style_for(self, level: ContourLevel) -> ContourStyle:
        return MAJOR_STYLE if level.is_major else MINOR_STYLE
