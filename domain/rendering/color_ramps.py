"""Rendering Bounded Context - Color Mapping.

Maps normalized scalars to RGB through piecewise-linear color ramps, and
aspect bearings to RGB through a circular hue wheel.

A ramp is always passed explicitly; there is no process-wide "current ramp".
Array and scalar forms share one implementation so a rendered pixel is
bit-identical to ``ColorRamp.color_for`` of its cell.
"""

from __future__ import annotations

import math
from typing import Any

import numpy as np
from numpy.typing import NDArray
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

RGB = tuple[int, int, int]

# Saturation/lightness (percent) of the aspect hue wheel
ASPECT_SATURATION = 70.0
ASPECT_LIGHTNESS = 50.0


def _round_half_up(values: NDArray[np.float64]) -> NDArray[np.uint8]:
    return np.floor(values + 0.5).astype(np.uint8)


class ColorStop(BaseModel):
    """Control point of a ramp: normalized position and RGB color."""

    position: float = Field(ge=0.0, le=1.0)
    color: RGB

    model_config = ConfigDict(frozen=True)

    @field_validator("color")
    @classmethod
    def validate_channels(cls, color: RGB) -> RGB:
        if any(not (0 <= channel <= 255) for channel in color):
            raise ValueError(f"Color channels must be within 0-255, got {color}")
        return color


class ColorRamp(BaseModel):
    """Ordered color stops (Value Object).

    Invariants:
        - at least two stops
        - positions strictly increasing
    """

    stops: tuple[ColorStop, ...]

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def validate_stops(self) -> "ColorRamp":
        if len(self.stops) < 2:
            raise ValueError(f"Ramp needs at least 2 stops, got {len(self.stops)}")
        for previous, current in zip(self.stops, self.stops[1:]):
            if current.position <= previous.position:
                raise ValueError(
                    "Stop positions must be strictly increasing: "
                    f"{previous.position} then {current.position}"
                )
        return self

    @classmethod
    def from_pairs(cls, pairs: list[tuple[float, RGB]]) -> "ColorRamp":
        """Build from [(position, (r, g, b)), ...]."""
        return cls(
            stops=tuple(ColorStop(position=p, color=tuple(c)) for p, c in pairs)
        )

    def map_values(self, values: Any) -> NDArray[np.uint8]:
        """Colors for an array of normalized values, shape values.shape + (3,).

        Values between two stops are interpolated per channel; values outside
        the first/last stop take that stop's color. NaN input is undefined;
        callers mask it beforehand.
        """
        values = np.asarray(values, dtype=np.float64)
        positions = np.array([stop.position for stop in self.stops])
        colors = np.array([stop.color for stop in self.stops], dtype=np.float64)
        channels = [
            np.interp(values, positions, colors[:, channel]) for channel in range(3)
        ]
        return _round_half_up(np.stack(channels, axis=-1))

    def color_for(self, value: float) -> RGB:
        """Color for a single normalized value."""
        if math.isnan(value):
            raise ValueError("Cannot map NaN to a color")
        r, g, b = self.map_values([value])[0].tolist()
        return (r, g, b)


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------
def normalize(values: Any, lo: float, hi: float) -> NDArray[np.float64]:
    """Scale ``values`` so lo -> 0 and hi -> 1 (all 0 when hi == lo)."""
    values = np.asarray(values, dtype=np.float64)
    span = hi - lo
    if span == 0:
        return np.zeros_like(values)
    return (values - lo) / span


# ---------------------------------------------------------------------------
# Circular (aspect) mapping
# ---------------------------------------------------------------------------
def hsl_to_rgb(hue: Any, saturation: float, lightness: float) -> NDArray[np.uint8]:
    """HSL (hue degrees, saturation/lightness percent) to RGB, shape (..., 3)."""
    hue = np.asarray(hue, dtype=np.float64)
    sat = saturation / 100.0
    light = lightness / 100.0
    chroma = sat * min(light, 1.0 - light)

    def channel(n: int) -> NDArray[np.float64]:
        k = np.mod(n + hue / 30.0, 12.0)
        ramp = np.maximum(-1.0, np.minimum(k - 3.0, np.minimum(9.0 - k, 1.0)))
        return 255.0 * (light - chroma * ramp)

    return _round_half_up(np.stack([channel(0), channel(8), channel(4)], axis=-1))


def aspect_colors(bearings: Any) -> NDArray[np.uint8]:
    """Hue-wheel colors for compass bearings (0-360), shape (..., 3)."""
    # One compass degree maps to one degree of hue
    return hsl_to_rgb(bearings, ASPECT_SATURATION, ASPECT_LIGHTNESS)


def aspect_color(bearing: float) -> RGB:
    r, g, b = aspect_colors([bearing])[0].tolist()
    return (r, g, b)


# ---------------------------------------------------------------------------
# Presets
# ---------------------------------------------------------------------------
TERRAIN = ColorRamp.from_pairs(
    [
        (0.0, (0, 97, 71)),  # Dark green (lowland)
        (0.15, (34, 139, 34)),
        (0.3, (154, 205, 50)),
        (0.45, (255, 255, 0)),
        (0.6, (255, 165, 0)),
        (0.75, (255, 69, 0)),
        (0.9, (139, 69, 19)),
        (1.0, (255, 255, 255)),  # White (summits)
    ]
)
GRAYSCALE = ColorRamp.from_pairs([(0.0, (0, 0, 0)), (1.0, (255, 255, 255))])
VIRIDIS = ColorRamp.from_pairs(
    [
        (0.0, (68, 1, 84)),
        (0.25, (59, 82, 139)),
        (0.5, (33, 145, 140)),
        (0.75, (94, 201, 98)),
        (1.0, (253, 231, 37)),
    ]
)
COOL = ColorRamp.from_pairs(
    [(0.0, (0, 0, 139)), (0.5, (0, 191, 255)), (1.0, (255, 255, 255))]
)
HOT = ColorRamp.from_pairs(
    [
        (0.0, (0, 0, 0)),
        (0.33, (230, 0, 0)),
        (0.66, (255, 200, 0)),
        (1.0, (255, 255, 255)),
    ]
)
# Gentle (green) -> yellow -> orange -> steep (dark red)
SLOPE = ColorRamp.from_pairs(
    [
        (0.0, (0, 128, 0)),
        (0.33, (255, 255, 0)),
        (0.66, (255, 127, 0)),
        (1.0, (127, 0, 0)),
    ]
)

COLOR_RAMPS: dict[str, ColorRamp] = {
    "terrain": TERRAIN,
    "grayscale": GRAYSCALE,
    "viridis": VIRIDIS,
    "cool": COOL,
    "hot": HOT,
    "slope": SLOPE,
}
