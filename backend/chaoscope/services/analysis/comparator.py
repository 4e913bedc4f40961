"""
Impact Comparator - classifies endpoint impact between two runs.

Tiers are assigned in strict order (first match wins):
- directly_affected: chaos was injected on the endpoint itself
- critical: success rate drops > 20pp OR avg latency grows > 1000ms
- major: success rate drops > 10pp OR avg latency grows > 500ms
- minor: success rate drops > 5pp OR avg latency grows > 150ms
- none: otherwise

Tiers below directly_affected are the hidden-dependency signal. Thresholds
are fixed so that runs with the same traffic shape classify identically.
"""

import structlog
from typing import Dict, List, Sequence

from chaoscope.services.analysis.models import (
    EndpointComparison,
    EndpointStats,
    ImpactLevel,
    ImpactReport,
    ReportSummary,
)
from chaoscope.services.analysis.stats import calculate_stats, group_metrics_by_endpoint
from chaoscope.services.metrics.models import RequestMetric

logger = structlog.get_logger()

# (success rate drop in percentage points, avg latency increase in ms)
CRITICAL_THRESHOLDS = (-20.0, 1000.0)
MAJOR_THRESHOLDS = (-10.0, 500.0)
MINOR_THRESHOLDS = (-5.0, 150.0)

UNKNOWN_CHAOS = "unknown chaos"


def compare_endpoints(baseline: EndpointStats, experiment: EndpointStats) -> EndpointComparison:
    """Compare baseline and experiment stats for the same endpoint."""
    success_rate_delta = experiment.success_rate - baseline.success_rate
    avg_latency_delta = experiment.avg_latency_ms - baseline.avg_latency_ms

    return EndpointComparison(
        method=baseline.method,
        path=baseline.path,
        baseline=baseline,
        experiment=experiment,
        success_rate_delta=success_rate_delta,
        avg_latency_delta=avg_latency_delta,
        error_count_delta=experiment.error_count - baseline.error_count,
        impact_level=classify_impact(
            experiment_chaos_applied=experiment.chaos_applied,
            success_rate_delta=success_rate_delta,
            avg_latency_delta=avg_latency_delta,
        ),
    )


def classify_impact(
    experiment_chaos_applied: bool,
    success_rate_delta: float,
    avg_latency_delta: float
) -> ImpactLevel:
    """Determine the impact tier from the experiment flag and deltas."""
    if experiment_chaos_applied:
        return ImpactLevel.DIRECTLY_AFFECTED

    for level, (success_floor, latency_ceiling) in (
        (ImpactLevel.CRITICAL, CRITICAL_THRESHOLDS),
        (ImpactLevel.MAJOR, MAJOR_THRESHOLDS),
        (ImpactLevel.MINOR, MINOR_THRESHOLDS),
    ):
        if success_rate_delta < success_floor or avg_latency_delta > latency_ceiling:
            return level

    return ImpactLevel.NONE


def generate_impact_report(
    baseline_metrics: Sequence[RequestMetric],
    experiment_metrics: Sequence[RequestMetric],
    chaos_description: str
) -> ImpactReport:
    """
    Build the full impact report for a baseline/experiment pair.

    Endpoints seen in only one of the two runs cannot be compared and are
    left out of every partition. They still count towards total_endpoints.
    """
    baseline_grouped = group_metrics_by_endpoint(baseline_metrics)
    experiment_grouped = group_metrics_by_endpoint(experiment_metrics)
    all_endpoints = sorted(set(baseline_grouped) | set(experiment_grouped))

    partitions: Dict[ImpactLevel, List[EndpointComparison]] = {level: [] for level in ImpactLevel}
    skipped = []

    for key in all_endpoints:
        baseline_group = baseline_grouped.get(key, [])
        experiment_group = experiment_grouped.get(key, [])
        if not baseline_group or not experiment_group:
            skipped.append(key)
            continue

        comparison = compare_endpoints(
            calculate_stats(baseline_group),
            calculate_stats(experiment_group)
        )
        partitions[comparison.impact_level].append(comparison)

    if skipped:
        logger.info("Endpoints present in only one run were skipped", endpoints=skipped)

    report = ImpactReport(
        chaos_description=chaos_description,
        directly_affected=partitions[ImpactLevel.DIRECTLY_AFFECTED],
        critical_impact=partitions[ImpactLevel.CRITICAL],
        major_impact=partitions[ImpactLevel.MAJOR],
        minor_impact=partitions[ImpactLevel.MINOR],
        unaffected=partitions[ImpactLevel.NONE],
    )
    report.summary = ReportSummary(
        total_endpoints=len(all_endpoints),
        directly_affected=len(report.directly_affected),
        critical_impact=len(report.critical_impact),
        major_impact=len(report.major_impact),
        minor_impact=len(report.minor_impact),
        unaffected=len(report.unaffected),
        hidden_dependencies=(
            len(report.critical_impact)
            + len(report.major_impact)
            + len(report.minor_impact)
        ),
    )

    logger.info(
        "Impact report generated",
        compared=len(all_endpoints) - len(skipped),
        hidden_dependencies=report.summary.hidden_dependencies
    )
    return report


def get_chaos_description(metrics: Sequence[RequestMetric]) -> str:
    """Describe the chaos from the first chaos-applied metric."""
    for metric in metrics:
        if metric.chaos_applied:
            return f"{metric.chaos_type.value} on {metric.method} {metric.path}"
    return UNKNOWN_CHAOS
