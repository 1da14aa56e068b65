"""Domain Port(s) for Elevation I/O.

Defines interfaces (Protocols) that infrastructure adapters must implement.
No concrete I/O here.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from .value_objects import BoundingBox, ElevationGrid


class ElevationRepository(Protocol):
    """Port for obtaining elevation grids from raster sources.

    Implementations live in infrastructure (e.g., GeoTIFF ingestor).
    """

    def ingest(self, raw: bytes, name: str | None = None) -> ElevationGrid:
        """Decode raw raster bytes into an ElevationGrid in the display CRS."""
        ...

    def load(self, file_path: Path | str) -> ElevationGrid:
        """Read a raster file and ingest it."""
        ...


class Reprojector(Protocol):
    """Port for transforming an extent between coordinate reference systems.

    Implementations must raise TransformError on any failure, including
    non-finite results.
    """

    def transform_bounds(
        self, bounds: BoundingBox, source_crs: str, target_crs: str
    ) -> BoundingBox: ...
