"""Elevation Bounded Context.

Responsible for the loaded elevation model itself:
- Value Objects: BoundingBox, ElevationGrid, ProjectionTier
- Services: reproject_extent (display extent fallback chain)
- Ports: ElevationRepository, Reprojector
"""
