"""Per-endpoint statistics over recorded request metrics."""
import math
from typing import Dict, List, Sequence

from chaoscope.services.analysis.models import EndpointStats
from chaoscope.services.metrics.models import RequestMetric


def group_metrics_by_endpoint(metrics: Sequence[RequestMetric]) -> Dict[str, List[RequestMetric]]:
    """Group metrics by their "METHOD:path" key."""
    grouped: Dict[str, List[RequestMetric]] = {}
    for metric in metrics:
        grouped.setdefault(metric.endpoint_key, []).append(metric)
    return grouped


def percentile(latencies: Sequence[int], p: float) -> int:
    """
    Nearest-rank percentile without interpolation.

    The value at index floor((n - 1) * p) of the sorted latencies. Input
    order does not matter.
    """
    if not latencies:
        return 0
    ordered = sorted(latencies)
    index = math.floor((len(ordered) - 1) * p)
    return ordered[index]


def calculate_stats(metrics: Sequence[RequestMetric]) -> EndpointStats:
    """
    Reduce one endpoint's metrics to summary statistics.

    An empty group yields an all-zero EndpointStats, which callers must
    not compare.
    """
    if not metrics:
        return EndpointStats()

    total = len(metrics)
    success_count = sum(1 for m in metrics if 200 <= m.status_code < 300)
    latencies = [m.latency_ms for m in metrics]

    return EndpointStats(
        method=metrics[0].method,
        path=metrics[0].path,
        request_count=total,
        success_rate=success_count / total * 100,
        avg_latency_ms=sum(latencies) / total,
        p50_latency_ms=float(percentile(latencies, 0.50)),
        p95_latency_ms=float(percentile(latencies, 0.95)),
        p99_latency_ms=float(percentile(latencies, 0.99)),
        error_count=total - success_count,
        chaos_applied=any(m.chaos_applied for m in metrics),
    )
