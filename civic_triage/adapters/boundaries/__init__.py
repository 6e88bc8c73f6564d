"""
Boundary adapters for civic-triage.

This module contains readers for the City / Town / UC hierarchy.
"""

from .geojson_source import GeoJSONBoundarySource

__all__ = ["GeoJSONBoundarySource"]
