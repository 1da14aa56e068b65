"""Elevation Bounded Context - Display Extent Resolution.

Expresses a raster's native bounding box in the display CRS through a fixed
chain of fallbacks. Only the extent is transformed; cell values are never
resampled.

Fallback order:
1) Transform from the declared source CRS
2) Assume the source is WGS84 and transform again
3) If the box already looks projected (magnitudes beyond lon/lat ranges) use
   it unchanged, otherwise apply the closed-form spherical Mercator formula
"""

from __future__ import annotations

import logging
import math

from domain.elevation.errors import ProjectionError, TransformError
from domain.elevation.repositories import Reprojector
from domain.elevation.value_objects import (
    WEB_MERCATOR,
    WGS84,
    BoundingBox,
    ProjectionTier,
)

logger = logging.getLogger(__name__)

# Half the circumference of the WGS84 sphere used by Web Mercator, in meters
MERCATOR_HALF_WORLD_M = 20037508.34


def looks_projected(bounds: BoundingBox) -> bool:
    """Check whether coordinates fall outside geographic lon/lat ranges."""
    return (
        abs(bounds.min_x) > 180
        or abs(bounds.max_x) > 180
        or abs(bounds.min_y) > 90
        or abs(bounds.max_y) > 90
    )


def lonlat_to_mercator(lon: float, lat: float) -> tuple[float, float]:
    """Spherical Mercator forward projection of one lon/lat pair (degrees).

    Returns non-finite values for latitudes at or beyond the poles; the
    caller is responsible for rejecting them.
    """
    x = lon * MERCATOR_HALF_WORLD_M / 180
    tangent = math.tan((90 + lat) * math.pi / 360)
    if tangent <= 0:
        return (x, math.nan)
    y = math.log(tangent) / (math.pi / 180)
    y = y * MERCATOR_HALF_WORLD_M / 180
    return (x, y)


def _manual_extent(
    bounds: BoundingBox, target_crs: str
) -> tuple[BoundingBox, ProjectionTier]:
    if looks_projected(bounds):
        return bounds, ProjectionTier.ALREADY_PROJECTED

    # The closed form only exists for Web Mercator
    if target_crs != WEB_MERCATOR:
        raise ValueError(f"no closed-form projection to {target_crs}")

    min_x, min_y = lonlat_to_mercator(bounds.min_x, bounds.min_y)
    max_x, max_y = lonlat_to_mercator(bounds.max_x, bounds.max_y)
    # BoundingBox rejects non-finite or collapsed results
    return (
        BoundingBox(min_x=min_x, min_y=min_y, max_x=max_x, max_y=max_y),
        ProjectionTier.SPHERICAL_MERCATOR,
    )


def reproject_extent(
    bounds: BoundingBox,
    source_crs: str,
    target_crs: str,
    reprojector: Reprojector,
) -> tuple[BoundingBox, ProjectionTier]:
    """Express ``bounds`` in ``target_crs`` using the three-tier fallback.

    Args:
        bounds: Native extent of the raster
        source_crs: CRS declared by the raster (EPSG code or WKT)
        target_crs: Display CRS
        reprojector: Port performing the actual coordinate transformation

    Returns:
        Tuple of (display extent, tier that produced it)

    Raises:
        ProjectionError: If every tier fails
    """
    if source_crs == target_crs:
        return bounds, ProjectionTier.DIRECT

    try:
        return (
            reprojector.transform_bounds(bounds, source_crs, target_crs),
            ProjectionTier.DIRECT,
        )
    except TransformError as e:
        logger.warning("Extent transform from source CRS failed: %s", e)

    if source_crs != WGS84:
        try:
            return (
                reprojector.transform_bounds(bounds, WGS84, target_crs),
                ProjectionTier.ASSUMED_WGS84,
            )
        except TransformError as e:
            logger.warning("Extent transform assuming %s failed: %s", WGS84, e)

    try:
        return _manual_extent(bounds, target_crs)
    except ValueError as e:
        raise ProjectionError(source_crs, target_crs, str(e)) from e
