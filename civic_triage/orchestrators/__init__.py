"""
Orchestrators for civic-triage.

This module contains the orchestrators that coordinate
the flow between ports and adapters.
"""
from .triage import TriageEngine

__all__ = ["TriageEngine"]
