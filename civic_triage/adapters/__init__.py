"""
Adapters for civic-triage hexagonal architecture.

This module contains the concrete implementations of port interfaces
that handle external I/O and infrastructure concerns.
"""

from .storage import SQLiteComplaintStore
from .boundaries import GeoJSONBoundarySource

__all__ = ["SQLiteComplaintStore", "GeoJSONBoundarySource"]
