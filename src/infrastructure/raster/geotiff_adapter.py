"""GeoTIFF ingestor for ElevationRepository.

Decodes DEM rasters using rasterio and returns a domain ElevationGrid whose
extent is expressed in the display CRS. Cell values are never resampled.

Lifecycle (to avoid resource leaks):
1) Wrap the raw bytes in a rasterio MemoryFile inside rasterio.Env
2) Open the dataset and validate the header (bands, north-up geotransform)
3) Read band 1 as float64, flipped so row 0 is north and column 0 is west
4) Resolve the source CRS (WGS84 when absent) and native bounds
5) Exit contexts to release GDAL handles
6) Reproject the extent through the fallback chain
7) Return ElevationGrid (computes the valid min/max)
"""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Any

import numpy as np
import rasterio
from affine import Affine
from numpy.typing import NDArray
from rasterio.errors import CRSError, RasterioError
from rasterio.io import MemoryFile
from rasterio.transform import array_bounds

from domain.elevation.errors import (
    InsufficientMemoryError,
    ParseError,
    ReadError,
)
from domain.elevation.projection import reproject_extent
from domain.elevation.repositories import Reprojector
from domain.elevation.value_objects import (
    DEFAULT_NODATA,
    WEB_MERCATOR,
    WGS84,
    BoundingBox,
    ElevationGrid,
)
from domain.rendering.layers import layer_name_from_filename

from .reprojection import PyprojReprojector

# Module-level logger (reused across all calls)
logger = logging.getLogger(__name__)

ALLOWED_SUFFIXES = (".tif", ".tiff", ".geotiff", ".img")
HIGH_NODATA_PCT = 80.0
_BYTES_PER_CELL = 8  # float64


def detect_source_crs(crs: Any) -> str:
    """CRS identifier from the raster's geo-keys, WGS84 when absent/ambiguous.

    Prefers an EPSG code; falls back to WKT for CRSs without one.
    """
    if crs is None or not crs:
        return WGS84
    try:
        epsg = crs.to_epsg()
        if epsg is not None:
            return f"EPSG:{epsg}"
        wkt = crs.to_wkt()
    except CRSError as e:
        logger.warning("Unreadable raster CRS, assuming %s: %s", WGS84, e)
        return WGS84
    return wkt or WGS84


def _validate_transform(transform: Any) -> Affine:
    if not isinstance(transform, Affine):
        raise ParseError("Missing affine transform")
    if any(
        math.isnan(v) or math.isinf(v)
        for v in (
            transform.a,
            transform.b,
            transform.c,
            transform.d,
            transform.e,
            transform.f,
        )
    ):
        raise ParseError("Invalid (NaN/Inf) transform values")
    if transform.a == 0 or transform.e == 0:
        raise ParseError("Invalid transform scale (zero)")
    if transform.b != 0 or transform.d != 0:
        raise ParseError("Rotated or sheared transforms are not supported")
    return transform


def native_bounds(height: int, width: int, transform: Affine) -> BoundingBox:
    """Ordered bounds of the raster in its own CRS."""
    west, south, east, north = array_bounds(height, width, transform)
    try:
        return BoundingBox(
            min_x=min(west, east),
            min_y=min(south, north),
            max_x=max(west, east),
            max_y=max(south, north),
        )
    except ValueError as e:
        raise ParseError(f"Invalid raster bounds: {e}") from e


class GeoTiffIngestor:
    """Infrastructure adapter turning GeoTIFF bytes into an ElevationGrid.

    Parameters
    ----------
    display_crs: str
        CRS in which the grid extent is expressed (default Web Mercator).
    default_nodata: float
        Sentinel used when the raster declares no nodata value.
    max_bytes: int | None
        Optional memory budget for the decoded float64 grid (height*width*8).
        Exceeding it raises InsufficientMemoryError before allocation.
    reprojector: Reprojector | None
        Extent transformer; defaults to PyprojReprojector.
    """

    def __init__(
        self,
        display_crs: str = WEB_MERCATOR,
        default_nodata: float = DEFAULT_NODATA,
        max_bytes: int | None = None,
        reprojector: Reprojector | None = None,
    ) -> None:
        self.display_crs = display_crs
        self.default_nodata = default_nodata
        self.max_bytes = max_bytes
        self.reprojector = reprojector or PyprojReprojector()

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------
    def load(self, file_path: Path | str) -> ElevationGrid:
        """Read a raster file from disk and ingest it.

        The layer name used in logs is the file name without its raster
        extension; the full path is never logged.
        """
        path = Path(file_path)

        # Check existence first to ensure missing files surface as FileNotFoundError
        if not path.exists():
            raise FileNotFoundError(str(path))

        if path.suffix.lower() not in ALLOWED_SUFFIXES:
            raise ParseError(f"Unsupported file extension: {path.suffix}")

        try:
            if path.is_symlink():
                raise ParseError("Symlinks are not permitted")
            st = path.stat()
            if st.st_size == 0:
                raise ParseError("Empty file")
            if self.max_bytes is not None and st.st_size > self.max_bytes * 2:
                raise InsufficientMemoryError(
                    f"File size {st.st_size}B exceeds 2x memory budget "
                    f"{self.max_bytes}B"
                )
            raw = path.read_bytes()
        except PermissionError as e:
            # Re-raise with filename only to avoid leaking full path in logs
            raise PermissionError(path.name) from e
        except OSError as e:
            logger.error(
                "Failed to read %s (errno=%s, strerror=%s)",
                path.name,
                getattr(e, "errno", "unknown"),
                getattr(e, "strerror", "unknown"),
            )
            raise

        return self.ingest(raw, name=layer_name_from_filename(path.name))

    def ingest(self, raw: bytes, name: str | None = None) -> ElevationGrid:
        """Decode raw raster bytes into an ElevationGrid.

        Args:
            raw: Complete raster file contents
            name: Label used in log messages

        Raises:
            ParseError: Empty/malformed container, no bands, bad geotransform
            ReadError: Band 1 cannot be decoded
            ProjectionError: Extent cannot be expressed in the display CRS
            InsufficientMemoryError: Grid exceeds ``max_bytes``
        """
        label = name or "<memory>"
        if not raw:
            raise ParseError("Empty raster payload")

        try:
            with rasterio.Env(), MemoryFile(bytes(raw)) as memfile:
                try:
                    dataset = memfile.open()
                except RasterioError as e:
                    raise ParseError(f"Malformed raster container: {e}") from e
                with dataset as src:
                    source_crs, bounds, nodata = self._read_header(src)
                    data = self._read_band(src)
        except MemoryError as e:
            raise InsufficientMemoryError("Insufficient memory to load raster") from e

        extent, tier = reproject_extent(
            bounds, source_crs, self.display_crs, self.reprojector
        )
        if source_crs != self.display_crs:
            logger.info(
                "DEM %s: Reprojected extent to %s (%s)",
                label,
                self.display_crs,
                tier.value,
            )
        if tier.is_fallback:
            logger.warning(
                "DEM %s: extent from fallback '%s' may be approximate",
                label,
                tier.value,
            )

        grid = ElevationGrid(
            data=data,
            bounds=extent,
            nodata=nodata,
            crs=self.display_crs,
            source_crs=source_crs,
            native_bounds=bounds,
            projection_tier=tier,
        )

        nodata_pct = grid.nodata_ratio() * 100.0
        if nodata_pct > HIGH_NODATA_PCT:
            logger.warning("DEM %s: %.1f%% NoData pixels detected", label, nodata_pct)
        logger.debug(
            "DEM %s: Loaded %dx%d grid (range %s..%s)",
            label,
            grid.width,
            grid.height,
            grid.min_value,
            grid.max_value,
        )
        return grid

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _read_header(self, src: Any) -> tuple[str, BoundingBox, float]:
        if src.count == 0:
            raise ParseError("Empty or bandless file")
        if src.count > 1:
            logger.info("Raster has %d bands; using band 1 as elevation", src.count)

        transform = _validate_transform(src.transform)
        bounds = native_bounds(src.height, src.width, transform)
        nodata = src.nodata if src.nodata is not None else self.default_nodata
        return detect_source_crs(src.crs), bounds, float(nodata)

    def _read_band(self, src: Any) -> NDArray[np.float64]:
        if self.max_bytes is not None:
            est_bytes = src.width * src.height * _BYTES_PER_CELL
            if est_bytes > self.max_bytes:
                raise InsufficientMemoryError(
                    f"Estimated grid size {est_bytes}B exceeds budget {self.max_bytes}B"
                )
        try:
            data = src.read(1, out_dtype="float64")
        except (RasterioError, OSError) as e:
            raise ReadError(f"Cannot decode elevation band: {e}") from e
        if src.transform.e > 0:
            # South-up raster: store rows north first
            logger.debug("Raster is south-up; flipping rows")
            data = data[::-1]
        if src.transform.a < 0:
            logger.debug("Raster runs east to west; flipping columns")
            data = data[:, ::-1]
        return data


def ingest(raw: bytes, name: str | None = None) -> ElevationGrid:
    """Ingest raw raster bytes with default settings (Web Mercator display)."""
    return GeoTiffIngestor().ingest(raw, name=name)
