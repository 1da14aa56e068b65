"""Infrastructure Layer.

Adapters that perform I/O (raster decoding, CRS transformation, worker
threads) and hand domain Value Objects back to callers.
"""
