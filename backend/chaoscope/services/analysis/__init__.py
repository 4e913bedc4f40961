"""
Baseline vs experiment impact analysis.

This module provides:
- Per-endpoint statistics (success rate, latency percentiles, errors)
- Impact classification with fixed thresholds
- Impact report assembly and rendering
"""

from chaoscope.services.analysis.models import (
    ImpactLevel,
    EndpointStats,
    EndpointComparison,
    ReportSummary,
    ImpactReport,
)
from chaoscope.services.analysis.stats import (
    group_metrics_by_endpoint,
    calculate_stats,
    percentile,
)
from chaoscope.services.analysis.comparator import (
    compare_endpoints,
    classify_impact,
    generate_impact_report,
    get_chaos_description,
)
from chaoscope.services.analysis.reporter import ImpactReporter

__all__ = [
    # Models
    "ImpactLevel",
    "EndpointStats",
    "EndpointComparison",
    "ReportSummary",
    "ImpactReport",
    # Services
    "group_metrics_by_endpoint",
    "calculate_stats",
    "percentile",
    "compare_endpoints",
    "classify_impact",
    "generate_impact_report",
    "get_chaos_description",
    "ImpactReporter",
]
