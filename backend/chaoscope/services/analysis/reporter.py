"""
Impact Reporter - renders impact reports.

Produces:
- Tier-grouped text reports with deltas and recommendations
- Brief reports of the endpoints with the largest latency shifts
- JSON documents mirroring the ImpactReport model
"""

from pathlib import Path
from typing import List, Union

from chaoscope.services.analysis.models import EndpointComparison, ImpactReport

RULE_WIDTH = 70

REPORT_FORMATS = ("text", "brief", "json")


class ImpactReporter:
    """
    Generates human-readable and machine-readable impact reports.

    Supports:
    - "text": every tier with per-endpoint deltas
    - "brief": top-N endpoints by absolute latency delta
    - "json": the full report model
    """

    def __init__(self, top_n: int = 5):
        self.top_n = top_n

    def generate_report(self, report: ImpactReport, format: str = "text") -> str:
        """
        Render a report.

        Args:
            report: The impact report to render
            format: One of "text", "brief" or "json"

        Returns:
            Formatted report string
        """
        if format == "json":
            return self.generate_json_report(report)
        if format == "brief":
            return self.generate_brief_report(report)
        if format == "text":
            return self.generate_text_report(report)
        raise ValueError(f"Unknown report format: {format} (use one of {', '.join(REPORT_FORMATS)})")

    def generate_json_report(self, report: ImpactReport) -> str:
        return report.model_dump_json(indent=2)

    def write_json_report(self, report: ImpactReport, path: Union[str, Path]) -> None:
        """Write the JSON rendering to a file."""
        with open(path, "w", encoding="utf-8") as f:
            f.write(self.generate_json_report(report))
            f.write("\n")

    def generate_text_report(self, report: ImpactReport) -> str:
        """Generate the full tier-grouped text report."""
        lines: List[str] = [
            "",
            "CHAOS IMPACT REPORT",
            "═" * RULE_WIDTH,
            f"Chaos Applied: {report.chaos_description}",
            "",
        ]

        if report.directly_affected:
            lines.append(f"DIRECTLY AFFECTED ({len(report.directly_affected)}):")
            for comp in report.directly_affected:
                lines.append(f"  ⚡ {comp.method} {comp.path}")
                lines.append(
                    f"     Latency: {comp.baseline.avg_latency_ms:.0f}ms → "
                    f"{comp.experiment.avg_latency_ms:.0f}ms ({comp.avg_latency_delta:+.0f}ms)"
                )
            lines.append("")

        for title, icon, comparisons in (
            ("CRITICAL IMPACT", "❌", report.critical_impact),
            ("MAJOR IMPACT", "⚠️ ", report.major_impact),
            ("MINOR IMPACT", "⚡", report.minor_impact),
        ):
            if not comparisons:
                continue
            lines.append(f"{title} ({len(comparisons)}):")
            for comp in comparisons:
                lines.append(f"  {icon} {comp.method} {comp.path}")
                lines.extend(self._delta_lines(comp))
            lines.append("")

        if report.unaffected:
            lines.append(f"UNAFFECTED ({len(report.unaffected)}):")
            for comp in report.unaffected:
                lines.append(f"  {comp.method} {comp.path}")
            lines.append("")

        summary = report.summary
        lines.append("─" * RULE_WIDTH)
        lines.append("SUMMARY:")
        lines.append(f"  Total Endpoints: {summary.total_endpoints}")
        lines.append(f"  Hidden Dependencies: {summary.hidden_dependencies}")
        if summary.critical_impact:
            lines.append(f"  ❌ Critical: {summary.critical_impact}")
        if summary.major_impact:
            lines.append(f"  ⚠️  Major: {summary.major_impact}")
        if summary.minor_impact:
            lines.append(f"  ⚡ Minor: {summary.minor_impact}")
        lines.append(f"  Unaffected: {summary.unaffected}")
        lines.append("")

        if summary.hidden_dependencies > 0:
            lines.extend([
                "💡 RECOMMENDATIONS:",
                "  Hidden dependencies detected! Consider:",
                "  - Add circuit breakers to prevent cascade failures",
                "  - Implement retry logic with exponential backoff",
                "  - Cache auth tokens to reduce dependency calls",
                "  - Add timeouts to prevent hanging requests",
                "",
            ])

        return "\n".join(lines)

    def _delta_lines(self, comp: EndpointComparison) -> List[str]:
        lines = [
            f"     Success Rate: {comp.baseline.success_rate:.1f}% → "
            f"{comp.experiment.success_rate:.1f}% ({comp.success_rate_delta:.1f}pp)",
            f"     Avg Latency: {comp.baseline.avg_latency_ms:.0f}ms → "
            f"{comp.experiment.avg_latency_ms:.0f}ms ({comp.avg_latency_delta:+.0f}ms)",
        ]
        if comp.error_count_delta != 0:
            lines.append(
                f"     Errors: {comp.baseline.error_count} → "
                f"{comp.experiment.error_count} ({comp.error_count_delta:+d})"
            )
        return lines

    def top_comparisons(self, report: ImpactReport, limit: int = None) -> List[EndpointComparison]:
        """
        Comparisons ranked by descending absolute latency delta.

        Ties keep their report order (tier, then endpoint).
        """
        limit = self.top_n if limit is None else limit
        ranked = sorted(
            report.all_comparisons(),
            key=lambda comp: abs(comp.avg_latency_delta),
            reverse=True
        )
        return ranked[:limit]

    def generate_brief_report(self, report: ImpactReport) -> str:
        """Generate a condensed report of the largest latency shifts."""
        summary = report.summary
        lines = [f"Chaos: {report.chaos_description}"]

        top = self.top_comparisons(report)
        if top:
            lines.append(f"Top {len(top)} endpoints by latency change:")
            for comp in top:
                lines.append(
                    f"  [{comp.impact_level.value}] {comp.method} {comp.path}: "
                    f"{comp.avg_latency_delta:+.0f}ms, {comp.success_rate_delta:+.1f}pp"
                )
        else:
            lines.append("No endpoints present in both runs.")

        lines.append(
            f"Hidden dependencies: {summary.hidden_dependencies} "
            f"(critical {summary.critical_impact}, major {summary.major_impact}, "
            f"minor {summary.minor_impact}); directly affected {summary.directly_affected}, "
            f"unaffected {summary.unaffected}"
        )
        return "\n".join(lines)
