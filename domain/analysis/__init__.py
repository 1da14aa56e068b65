"""Analysis Bounded Context.

Derives secondary products from an ElevationGrid:
- Value Objects: DerivativeGrid, ContourLevel, ContourSet
- Services: hillshade, slope, aspect (Horn's method), contours (Marching Squares)
"""
