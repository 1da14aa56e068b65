"""Infrastructure adapters for raster elevation sources.

This module provides the infrastructure layer implementations for ingestion:
decoding GeoTIFF DEMs, transforming extents with pyproj, and running work on
a background pool.
"""

from .executor import AnalysisExecutor
from .geotiff_adapter import GeoTiffIngestor, ingest
from .reprojection import PyprojReprojector

__all__ = ["AnalysisExecutor", "GeoTiffIngestor", "PyprojReprojector", "ingest"]
