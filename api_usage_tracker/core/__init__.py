"""
Core modules for API Usage Tracker.

This package contains backend auto-detection, the per-backend usage probes
and the canonical usage record they all produce.
"""

from .detector import DetectionSession, DetectionState, fetch_usage, fetch_usage_sync
from .http_client import TransportError, UsageHttpClient
from .models import BackendType, UsageRecord

__all__ = [
    "BackendType",
    "DetectionSession",
    "DetectionState",
    "TransportError",
    "UsageHttpClient",
    "UsageRecord",
    "fetch_usage",
    "fetch_usage_sync",
]
