"""Elevation Bounded Context - Error Hierarchy.

Custom exceptions shared by ingestion and analysis.

Ingestion failures derive from IngestError. Algorithms never raise on
nodata/NaN/Infinity cells; they propagate "no data" into their output instead.
"""

from __future__ import annotations


class TerrainError(Exception):
    """Base error for terrain operations."""


# ---------------------------------------------------------------------------
# Ingestion Errors
# ---------------------------------------------------------------------------
class IngestError(TerrainError):
    """Raster source could not be turned into an ElevationGrid."""


class ParseError(IngestError):
    """Container is empty, malformed, bandless, or has an invalid geotransform."""


class ReadError(IngestError):
    """Elevation band could not be decoded."""


class ProjectionError(IngestError):
    """Extent could not be expressed in the display CRS by any fallback.

    Attributes:
        source_crs: CRS the raster declared (or the WGS84 default)
        target_crs: Display CRS that was requested
    """

    def __init__(self, source_crs: str, target_crs: str, reason: str) -> None:
        self.source_crs = source_crs
        self.target_crs = target_crs
        super().__init__(
            f"Cannot reproject extent from {source_crs} to {target_crs}: {reason}"
        )


class InsufficientMemoryError(IngestError):
    """Operation requires more memory than allowed or available."""


class TransformError(TerrainError):
    """A single coordinate transformation attempt failed."""


# ---------------------------------------------------------------------------
# Analysis Errors
# ---------------------------------------------------------------------------
class ComputationPreconditionError(TerrainError):
    """Analysis inputs cannot produce a meaningful result.

    Raised for grids smaller than the 3x3 Horn window, non-positive contour
    intervals or z-factors, and empty output sizes.
    """
