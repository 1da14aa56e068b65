"""pyproj implementation of the Reprojector port."""

from __future__ import annotations

from pyproj import Transformer
from pyproj.exceptions import CRSError, ProjError

from domain.elevation.errors import TransformError
from domain.elevation.value_objects import BoundingBox

# Intermediate points per edge so curved edges are enclosed by the result
DEFAULT_DENSIFY_PTS = 21


class PyprojReprojector:
    """Transforms extents with ``pyproj.Transformer.transform_bounds``.

    Coordinates are always handled in (x, y) / (lon, lat) order.
    """

    def __init__(self, densify_pts: int = DEFAULT_DENSIFY_PTS) -> None:
        self.densify_pts = densify_pts

    def transform_bounds(
        self, bounds: BoundingBox, source_crs: str, target_crs: str
    ) -> BoundingBox:
        """Return ``bounds`` expressed in ``target_crs``.

        Raises:
            TransformError: Unknown CRS, PROJ failure, or a non-finite/empty
                result (e.g. latitudes at the poles in Web Mercator)
        """
        try:
            transformer = Transformer.from_crs(source_crs, target_crs, always_xy=True)
            result = transformer.transform_bounds(
                *bounds.as_tuple(), densify_pts=self.densify_pts
            )
        except (CRSError, ProjError) as e:
            raise TransformError(f"{source_crs} -> {target_crs}: {e}") from e

        try:
            return BoundingBox.from_tuple(result)
        except ValueError as e:
            raise TransformError(
                f"{source_crs} -> {target_crs} produced an invalid extent {result}"
            ) from e
