"""
Metrics definitions for civic-triage.

This module defines Prometheus metrics for monitoring
the complaint triage pipeline.
"""

from prometheus_client import Counter, Histogram

# 카운터 메트릭
triage_requests = Counter(
    "triage_requests_total",
    "Number of complaint drafts triaged"
)

stage_failures = Counter(
    "triage_stage_failures_total",
    "Number of triage stages that fell back to a safe default",
    ["stage"]
)

uc_assignments = Counter(
    "uc_assignments_total",
    "UC assignment outcomes",
    ["method", "confidence"]
)

duplicates_detected = Counter(
    "duplicates_detected_total",
    "Number of drafts flagged as duplicates of an open complaint"
)

severity_priority = Counter(
    "severity_priority_total",
    "Severity priority buckets assigned",
    ["priority"]
)

similarity_cache_hits = Counter(
    "similarity_cache_hits_total",
    "Text similarity computations served from cache"
)

# 히스토그램 메트릭
stage_seconds = Histogram(
    "triage_stage_duration_seconds",
    "Time spent in each triage stage",
    ["stage"],
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0]
)

end_to_end_seconds = Histogram(
    "triage_end_to_end_seconds",
    "Total triage latency",
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0]
)
