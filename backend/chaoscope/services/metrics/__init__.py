"""Per-request metric records and their storage."""

from chaoscope.services.metrics.models import ChaosType, RequestMetric
from chaoscope.services.metrics.store import MetricsStore, load_metrics

__all__ = [
    "ChaosType",
    "RequestMetric",
    "MetricsStore",
    "load_metrics",
]
