"""chaoscope command line interface."""
import re
import click
import structlog
from pydantic import ValidationError

from chaoscope.api.routes import create_discovery_app, create_proxy_app
from chaoscope.config import get_settings
from chaoscope.exceptions import ConfigurationError, MetricsFileError
from chaoscope.logging_config import configure_logging
from chaoscope.server import ProxyServer
from chaoscope.services.analysis.comparator import generate_impact_report, get_chaos_description
from chaoscope.services.analysis.reporter import ImpactReporter
from chaoscope.services.chaos.forwarder import ReverseForwarder
from chaoscope.services.chaos.interceptor import ChaosInterceptor
from chaoscope.services.chaos.rules import ChaosRule, RuleSet, load_rules
from chaoscope.services.discovery.collector import EndpointCollector
from chaoscope.services.metrics.store import MetricsStore, load_metrics
from chaoscope.utils.paths import resolve_output_path

logger = structlog.get_logger()

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


class DurationType(click.ParamType):
    """Duration such as "2s", "500ms" or "1m30s"; a bare number means seconds."""

    name = "duration"

    def convert(self, value, param, ctx):
        if isinstance(value, (int, float)):
            return float(value)

        text = str(value).strip()
        try:
            return float(text)
        except ValueError:
            pass

        parts = _DURATION_PART.findall(text)
        if not parts or "".join(n + u for n, u in parts) != text:
            self.fail(f"{value!r} is not a valid duration (e.g. 2s, 500ms, 1m30s)", param, ctx)
        return sum(float(number) * _UNIT_SECONDS[unit] for number, unit in parts)


DURATION = DurationType()


def _make_forwarder(target: str, timeout: float) -> ReverseForwarder:
    try:
        return ReverseForwarder(target, timeout=timeout)
    except ConfigurationError as e:
        raise click.BadParameter(str(e), param_hint="--target")


@click.group()
@click.option("--log-level", default=None, help="Log level (defaults to CHAOSCOPE_LOG_LEVEL)")
@click.option("--json-logs/--console-logs", default=None, help="Render logs as JSON")
@click.version_option(get_settings().APP_VERSION, prog_name="chaoscope")
@click.pass_context
def cli(ctx, log_level, json_logs):
    """Inject chaos into HTTP traffic and find hidden dependencies."""
    settings = get_settings()
    configure_logging(
        log_level or settings.LOG_LEVEL,
        settings.LOG_JSON if json_logs is None else json_logs
    )
    ctx.obj = settings


@cli.group()
def http():
    """HTTP chaos proxy and impact analysis."""


@http.command("proxy")
@click.option("--target", default=None, help="Backend base URL (defaults to CHAOSCOPE_TARGET_URL)")
@click.option("--host", default=None, help="Interface to listen on")
@click.option("--port", type=int, default=None, help="Port to run the chaos proxy on")
@click.option("--path", "rule_path", default="", help="API path to match (empty matches every path)")
@click.option("--method", "rule_method", default="", help="HTTP method to match (empty matches every method)")
@click.option("--delay", type=DURATION, default=0.0, help="Delay to inject, e.g. 2s or 500ms")
@click.option("--failure-rate", type=click.FloatRange(0.0, 1.0), default=0.0, help="Failure rate (0.0 - 1.0)")
@click.option("--status-code", type=int, default=0, help="Status of injected failures (default 503)")
@click.option("--error-body", default="", help="Body of injected failures")
@click.option("--rules", "rules_file", type=click.Path(exists=True, dir_okay=False),
              help="JSON file with a list of rules; replaces the single-rule options")
@click.option("--duration", type=DURATION, default=0.0, help="Auto-stop after this long (0 = run until interrupted)")
@click.option("--output", default="metrics.ndjson", help="Metrics output filename")
@click.option("--append", is_flag=True, help="Append to the metrics file instead of overwriting it")
@click.pass_obj
def proxy_command(settings, target, host, port, rule_path, rule_method, delay, failure_rate,
                  status_code, error_body, rules_file, duration, output, append):
    """Start the HTTP chaos proxy and record per-request metrics."""
    target = target or settings.TARGET_URL
    host = host or settings.PROXY_HOST
    port = port or settings.PROXY_PORT

    forwarder = _make_forwarder(target, settings.UPSTREAM_TIMEOUT_SECONDS)

    if rules_file:
        try:
            rule_set = load_rules(rules_file)
        except ConfigurationError as e:
            raise click.BadParameter(str(e), param_hint="--rules")
    else:
        try:
            rule = ChaosRule(
                path=rule_path,
                method=rule_method.upper(),
                delay=delay,
                failure_rate=failure_rate,
                status_code=status_code,
                error_body=error_body,
            )
        except ValidationError as e:
            raise click.ClickException(f"Invalid chaos rule: {e}")
        rule_set = RuleSet([rule])

    for rule in rule_set:
        if not rule.path and not rule.method:
            logger.warning("Rule matches every request", rule=rule.describe())

    output_path = resolve_output_path(output, settings.OUTPUT_DIR)
    store = MetricsStore()
    interceptor = ChaosInterceptor(rule_set, store, forwarder)
    app = create_proxy_app(interceptor)

    click.echo("\n🚀 Chaos Proxy Running")
    click.echo(f"▶ Forwarding:   {target}")
    click.echo(f"▶ Listening on: {host}:{port}")
    for rule in rule_set:
        click.echo(f"▶ Rule:         {rule.describe()}")
    click.echo(f"▶ Metrics:      {output_path}\n")

    ProxyServer(
        app,
        host=host,
        port=port,
        shutdown_timeout=settings.SHUTDOWN_TIMEOUT_SECONDS,
    ).run(duration or None)

    try:
        if append:
            count = store.append_ndjson(output_path)
        else:
            count = store.write_ndjson(output_path)
    except OSError as e:
        raise click.ClickException(f"Failed to write metrics to {output_path}: {e}")

    click.echo(f"✅ Saved {count} metrics to {output_path}")


def _load_run(filename, label, settings):
    path = resolve_output_path(filename, settings.OUTPUT_DIR)
    try:
        return load_metrics(path)
    except (MetricsFileError, OSError) as e:
        raise click.ClickException(f"Failed to load {label} metrics from {path}: {e}")


@http.command("analyze")
@click.option("--baseline", default="baseline.ndjson", help="Baseline metrics filename")
@click.option("--experiment", default="experiment.ndjson", help="Experiment metrics filename")
@click.option("--output", default="report.json", help="Output report filename (json and both formats)")
@click.option("--format", "output_format", type=click.Choice(["text", "brief", "json", "both"]),
              default="text", help="Output format")
@click.option("--top", type=click.IntRange(min=1), default=None, help="Endpoints listed in the brief format")
@click.pass_obj
def analyze_command(settings, baseline, experiment, output, output_format, top):
    """Compare baseline and experiment metrics to identify dependencies."""
    baseline_metrics = _load_run(baseline, "baseline", settings)
    experiment_metrics = _load_run(experiment, "experiment", settings)

    click.echo(
        f"Loaded {len(baseline_metrics)} baseline metrics and "
        f"{len(experiment_metrics)} experiment metrics"
    )

    chaos_description = get_chaos_description(experiment_metrics)
    report = generate_impact_report(baseline_metrics, experiment_metrics, chaos_description)
    reporter = ImpactReporter(top_n=top or settings.BRIEF_TOP_N)

    if output_format in ("text", "both"):
        click.echo(reporter.generate_text_report(report))
    elif output_format == "brief":
        click.echo(reporter.generate_brief_report(report))

    if output_format in ("json", "both"):
        output_path = resolve_output_path(output, settings.OUTPUT_DIR)
        try:
            reporter.write_json_report(report, output_path)
        except OSError as e:
            raise click.ClickException(f"Failed to write JSON report to {output_path}: {e}")
        click.echo(f"JSON report saved to {output_path}")


@cli.command("discover")
@click.option("--target", required=True, help="Backend target URL")
@click.option("--host", default=None, help="Interface to listen on")
@click.option("--port", type=int, default=None, help="Proxy listen port")
@click.option("--duration", type=DURATION, default=0.0, help="Auto-stop after this long (0 = manual)")
@click.option("--output", default="endpoints.json", help="Output file for discovered endpoints")
@click.pass_obj
def discover_command(settings, target, host, port, duration, output):
    """Discover API endpoints by observing traffic."""
    host = host or settings.PROXY_HOST
    port = port or settings.PROXY_PORT

    forwarder = _make_forwarder(target, settings.UPSTREAM_TIMEOUT_SECONDS)
    collector = EndpointCollector()
    app = create_discovery_app(collector, forwarder)

    click.echo(f"Starting endpoint discovery on {host}:{port} -> {target}")
    if duration:
        click.echo(f"Will auto-stop after {duration:g} seconds")
    else:
        click.echo("Press Ctrl+C to stop and save discovered endpoints")

    ProxyServer(
        app,
        host=host,
        port=port,
        shutdown_timeout=settings.SHUTDOWN_TIMEOUT_SECONDS,
    ).run(duration or None)

    output_path = resolve_output_path(output, settings.OUTPUT_DIR)
    try:
        collector.write_to_file(output_path)
    except OSError as e:
        raise click.ClickException(f"Failed to write endpoints to {output_path}: {e}")

    endpoints = collector.get_endpoints()
    click.echo(f"✅ Discovered {len(endpoints)} unique endpoints")
    for endpoint in endpoints:
        click.echo(f"   {endpoint.method} {endpoint.path}")
