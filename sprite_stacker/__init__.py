"""Raster sprite-stacking editor core."""

__version__ = "1.0.0"
