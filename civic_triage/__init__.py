"""
civic-triage: complaint triage engine.

Assigns a complaint location to its UC / Town / City, flags likely
duplicates of open complaints, scores severity and computes the SLA
deadline.
"""

__version__ = "0.1.0"
