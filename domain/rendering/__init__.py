"""Rendering Bounded Context.

Turns grids into display pixels:
- Value Objects: ColorStop, ColorRamp, RasterLayer
- Services: render_region, aspect_colors
"""
