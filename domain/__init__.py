"""Terrain Analysis Domain Layer.

This package contains the core logic organized by bounded contexts:
- elevation: Elevation grids, extents, CRS fallback, error hierarchy
- analysis: Hillshade, slope, aspect and contour extraction
- rendering: Color ramps and view-window rasterization
"""

# Imports alphabetized per project style (isort)
from domain import analysis, elevation, rendering

__all__ = ["analysis", "elevation", "rendering"]
