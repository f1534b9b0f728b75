"""
Data Models Layer.

This package contains the Pydantic models and dataclasses that define the core
data structures used throughout the application, such as configuration,
entitlements, run statistics and the benchmark workload.
"""

from .config import PrefillConfig
from .stats import AppOutcome, PrefillSummary
from .workload import AppQueuedRequests, BenchmarkWorkload

__all__ = [
    "AppOutcome",
    "AppQueuedRequests",
    "BenchmarkWorkload",
    "PrefillConfig",
    "PrefillSummary",
]
