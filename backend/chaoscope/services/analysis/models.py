"""
Analysis models.

Endpoint statistics, baseline/experiment comparisons and the impact report
built from them.
"""

import enum
from typing import List
from pydantic import BaseModel, Field


class ImpactLevel(str, enum.Enum):
    """Impact tier of an endpoint in an experiment run."""
    DIRECTLY_AFFECTED = "directly_affected"
    CRITICAL = "critical"
    MAJOR = "major"
    MINOR = "minor"
    NONE = "none"


class EndpointStats(BaseModel):
    """Summary statistics for a single method + path."""
    method: str = ""
    path: str = ""
    request_count: int = 0
    success_rate: float = Field(default=0.0, description="Percentage of 2xx responses")
    avg_latency_ms: float = 0.0
    p50_latency_ms: float = 0.0
    p95_latency_ms: float = 0.0
    p99_latency_ms: float = 0.0
    error_count: int = 0
    chaos_applied: bool = False


class EndpointComparison(BaseModel):
    """Baseline vs experiment statistics for one endpoint."""
    method: str
    path: str
    baseline: EndpointStats
    experiment: EndpointStats
    success_rate_delta: float = Field(description="Experiment minus baseline, in percentage points")
    avg_latency_delta: float = Field(description="Experiment minus baseline, in milliseconds")
    error_count_delta: int
    impact_level: ImpactLevel


class ReportSummary(BaseModel):
    """Counts per impact category."""
    total_endpoints: int = 0
    directly_affected: int = 0
    critical_impact: int = 0
    major_impact: int = 0
    minor_impact: int = 0
    unaffected: int = 0
    hidden_dependencies: int = 0


class ImpactReport(BaseModel):
    """
    Full comparison of a baseline run against a chaos experiment run.

    Every compared endpoint appears in exactly one partition.
    """
    chaos_description: str
    directly_affected: List[EndpointComparison] = Field(default_factory=list)
    critical_impact: List[EndpointComparison] = Field(default_factory=list)
    major_impact: List[EndpointComparison] = Field(default_factory=list)
    minor_impact: List[EndpointComparison] = Field(default_factory=list)
    unaffected: List[EndpointComparison] = Field(default_factory=list)
    summary: ReportSummary = Field(default_factory=ReportSummary)

    def all_comparisons(self) -> List[EndpointComparison]:
        """All comparisons in tier order."""
        return (
            self.directly_affected
            + self.critical_impact
            + self.major_impact
            + self.minor_impact
            + self.unaffected
        )
