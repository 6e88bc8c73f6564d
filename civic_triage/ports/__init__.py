"""
Port interfaces for civic-triage hexagonal architecture.

This module defines the port interfaces (Protocols) that define
the contracts between the triage core and external adapters.
"""

from .geo import GeoUnitReadPort
from .categories import CategoryReadPort
from .complaints import ComplaintStorePort

__all__ = ["GeoUnitReadPort", "CategoryReadPort", "ComplaintStorePort"]
