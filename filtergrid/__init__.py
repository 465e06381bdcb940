"""filtergrid - indexed column filtering for large in-memory data grids"""

__version__ = "1.0.0"
