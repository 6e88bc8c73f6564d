"""
Core domain models and pure functions for civic-triage.

This module contains the domain models and triage logic that are
independent of external I/O and infrastructure concerns.
"""

from .errors import TriageError, NotFound, InvalidInput, InvalidTransition
from .models import Category, ComplaintDraft, Complaint, Coordinates, GeographicUnit, TriageResult
from .categories import CategoryConfig, CategoryTable

__all__ = [
    "TriageError", "NotFound", "InvalidInput", "InvalidTransition",
    "Category", "ComplaintDraft", "Complaint", "Coordinates", "GeographicUnit", "TriageResult",
    "CategoryConfig", "CategoryTable",
]
