"""Tests for display-layer construction."""

from __future__ import annotations

import numpy as np
import pytest

from domain.analysis.derivatives import aspect, hillshade, slope
from domain.rendering.color_ramps import GRAYSCALE
from domain.rendering.layers import (
    ANALYSIS_OPACITY,
    ELEVATION_OPACITY,
    RasterLayer,
    analysis_layer,
    contour_layer_name,
    elevation_layer,
    layer_name_from_filename,
)
from domain.rendering.renderer import render_region
from tests.conftest_utils import create_plane


class FakeLayerRegistry:
    """Collects layers the way a map view would."""

    def __init__(self) -> None:
        self.layers: list[RasterLayer] = []

    def add_layer(self, layer: RasterLayer) -> str:
        self.layers.append(layer)
        return f"layer-{len(self.layers)}"


@pytest.mark.parametrize(
    "filename, expected",
    [
        ("dem.tif", "dem"),
        ("Alps_30m.TIFF", "Alps_30m"),
        ("survey.geotiff", "survey"),
        ("legacy.img", "legacy"),
        ("notes.txt", "notes.txt"),
        ("tif.backup.tif", "tif.backup"),
    ],
)
def test_layer_name_from_filename(filename, expected):
    assert layer_name_from_filename(filename) == expected


def test_elevation_layer():
    grid = create_plane(6, 8, dx=3.0)

    layer = elevation_layer(grid, "dem")

    assert layer.name == "dem"
    assert layer.opacity == ELEVATION_OPACITY
    assert layer.extent == grid.bounds
    assert layer.size_label == "8x6"


def test_renderer_callback_matches_render_region():
    grid = create_plane(6, 8, dx=3.0)
    layer = elevation_layer(grid, "dem", ramp=GRAYSCALE)

    rgba = layer.renderer(grid.bounds, 1.0, (16, 12))

    expected = render_region(grid, grid.bounds, (16, 12), ramp=GRAYSCALE)
    np.testing.assert_array_equal(rgba, expected)


@pytest.mark.parametrize(
    "operation, suffix",
    [(hillshade, "Hillshade"), (slope, "Slope"), (aspect, "Aspect")],
)
def test_analysis_layer_names(operation, suffix):
    derivative = operation(create_plane(5, 5, dx=1.0))

    layer = analysis_layer(derivative, "dem")

    assert layer.name == f"dem_{suffix}"
    assert layer.opacity == ANALYSIS_OPACITY
    assert layer.renderer(derivative.bounds, 1.0, (5, 5)).shape == (5, 5, 4)


def test_layers_registered():
    registry = FakeLayerRegistry()
    grid = create_plane(5, 5, dx=1.0)

    ids = [
        registry.add_layer(elevation_layer(grid, "dem")),
        registry.add_layer(analysis_layer(slope(grid), "dem")),
    ]

    assert ids == ["layer-1", "layer-2"]
    assert [layer.name for layer in registry.layers] == ["dem", "dem_Slope"]


def test_contour_layer_name():
    assert contour_layer_name("dem", 100.0) == "dem_contours_100m"
    assert contour_layer_name("dem", 2.5) == "dem_contours_2.5m"


def test_opacity_validated():
    grid = create_plane(3, 3)
    with pytest.raises(ValueError):
        RasterLayer(
            name="bad",
            opacity=1.5,
            extent=grid.bounds,
            renderer=lambda *_: None,
            size_label="3x3",
        )
