"""Prometheus metrics for the POS integration sandbox.

Exposed on /metrics and /api/metrics. Dashboard metrics shown to the user
come from the monitoring aggregator; these series are for operating the
sandbox itself.
"""

from prometheus_client import Counter, Gauge, Histogram


request_duration_seconds = Histogram(
    'pos_sandbox_request_duration_seconds',
    'Request duration in seconds',
    ['endpoint', 'method', 'status'],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0],
)

platform_calls_total = Counter(
    'pos_sandbox_platform_calls_total',
    'Calls issued to the simulated delivery platform',
    ['operation', 'status'],
)

platform_call_duration_seconds = Histogram(
    'pos_sandbox_platform_call_duration_seconds',
    'Simulated platform call duration',
    ['operation'],
    buckets=[0.01, 0.1, 0.5, 1.0, 2.0, 5.0],
)

simulator_runs_total = Counter(
    'pos_sandbox_simulator_runs_total',
    'Integration test simulator runs',
    ['test_type', 'status'],
)

reports_generated_total = Counter(
    'pos_sandbox_reports_generated_total',
    'Reports generated',
    ['report_type', 'report_format'],
)

rate_limited_total = Counter(
    'pos_sandbox_rate_limited_total',
    'Requests rejected by the API rate limiter',
)

monitoring_log_entries = Gauge(
    'pos_sandbox_monitoring_log_entries',
    'Entries currently held by the monitoring log buffer',
)


def record_request_duration(endpoint: str, method: str, status: int, duration_seconds: float):
    """Record overall request duration.

    Args:
        endpoint: API endpoint path
        method: HTTP method (GET, POST, etc.)
        status: HTTP status code
        duration_seconds: Request duration in seconds
    """
    request_duration_seconds.labels(
        endpoint=endpoint,
        method=method,
        status=str(status),
    ).observe(duration_seconds)


def record_platform_call(operation: str, status: str, duration_seconds: float):
    """Record one call against the simulated platform.

    Args:
        operation: Platform operation ('login', 'orders.accept', ...)
        status: 'success' or 'failure'
        duration_seconds: Wall-clock duration of the call
    """
    platform_calls_total.labels(operation=operation, status=status).inc()
    platform_call_duration_seconds.labels(operation=operation).observe(duration_seconds)


def record_simulator_run(test_type: str, passed: bool):
    simulator_runs_total.labels(test_type=test_type, status='passed' if passed else 'failed').inc()


def record_report_generated(report_type: str, report_format: str):
    reports_generated_total.labels(report_type=report_type, report_format=report_format).inc()


def record_rate_limited():
    rate_limited_total.inc()


def update_log_buffer_size(count: int):
    """Update the monitoring log buffer gauge.

    Args:
        count: Number of entries currently retained
    """
    monitoring_log_entries.set(count)
