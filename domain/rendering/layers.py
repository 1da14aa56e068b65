"""Rendering Bounded Context - Display Layers.

Bridges analysis results to an external display-layer registry. A layer is
metadata (name, opacity, extent) plus a renderer callback
``(view_extent, resolution, size) -> RGBA buffer``. The callback closes over
an immutable grid and an explicit ramp only, so it is safe to call from any
thread.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from typing import Protocol

import numpy as np
from numpy.typing import NDArray
from pydantic import BaseModel, ConfigDict, Field

from domain.analysis.value_objects import DerivativeGrid, DerivativeKind
from domain.elevation.value_objects import BoundingBox, ElevationGrid
from domain.rendering.color_ramps import ColorRamp
from domain.rendering.renderer import RenderableGrid, render_region

ELEVATION_OPACITY = 0.8
ANALYSIS_OPACITY = 0.9

_RASTER_SUFFIX = re.compile(r"\.(tif|tiff|geotiff|img)$", re.IGNORECASE)

_KIND_SUFFIX = {
    DerivativeKind.HILLSHADE: "Hillshade",
    DerivativeKind.SLOPE: "Slope",
    DerivativeKind.ASPECT: "Aspect",
}

RendererCallback = Callable[[BoundingBox, float, tuple[int, int]], NDArray[np.uint8]]


class RasterLayer(BaseModel):
    """Display layer description handed to a LayerRegistry."""

    name: str
    opacity: float = Field(ge=0.0, le=1.0)
    extent: BoundingBox
    renderer: RendererCallback
    size_label: str  # "<width>x<height>" shown as the layer's feature count

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)


class LayerRegistry(Protocol):
    """Port for the application's display-layer registry."""

    def add_layer(self, layer: RasterLayer) -> str:
        """Register the layer and return its id."""
        ...


def layer_name_from_filename(filename: str) -> str:
    """Strip a raster extension: 'dem.tif' -> 'dem'."""
    return _RASTER_SUFFIX.sub("", filename)


def make_renderer(
    grid: RenderableGrid, ramp: ColorRamp | None = None
) -> RendererCallback:
    """Renderer callback for a display layer.

    The resolution argument is accepted for interface compatibility; the
    output size alone determines sampling.
    """

    def render(
        view_extent: BoundingBox, resolution: float, size: tuple[int, int]
    ) -> NDArray[np.uint8]:
        return render_region(grid, view_extent, size, ramp=ramp)

    return render


def elevation_layer(
    grid: ElevationGrid, name: str, ramp: ColorRamp | None = None
) -> RasterLayer:
    return RasterLayer(
        name=name,
        opacity=ELEVATION_OPACITY,
        extent=grid.bounds,
        renderer=make_renderer(grid, ramp),
        size_label=f"{grid.width}x{grid.height}",
    )


def analysis_layer(
    derivative: DerivativeGrid, source_name: str, ramp: ColorRamp | None = None
) -> RasterLayer:
    """Layer named '<source>_Hillshade', '<source>_Slope' or '<source>_Aspect'."""
    return RasterLayer(
        name=f"{source_name}_{_KIND_SUFFIX[derivative.kind]}",
        opacity=ANALYSIS_OPACITY,
        extent=derivative.bounds,
        renderer=make_renderer(derivative, ramp),
        size_label=f"{derivative.width}x{derivative.height}",
    )


def contour_layer_name(source_name: str, interval: float) -> str:
    return f"{source_name}_contours_{interval:g}m"
