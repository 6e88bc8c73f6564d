"""
Storage adapters for civic-triage hexagonal architecture.

This module contains the SQLite-based complaint store used for the
geo + time + status filtered queries and duplicate links.
"""

from .sqlite_complaints import SQLiteComplaintStore

__all__ = ["SQLiteComplaintStore"]
