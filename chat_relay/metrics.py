"""
Prometheus metrics for the relay API.

This module provides:
- HTTP request counter (method, path, status)
- Relay operation outcome counter (operation, result)
- Usage accounting outcome counter (result)
- Request latency histogram (method, path)

Metrics are stored in-memory using prometheus-client.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST


# =============================================================================
# Metric Definitions
# =============================================================================

# HTTP request counter with labels for method, path, and status code
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    labelnames=["method", "path", "status"]
)

# Relay operation outcomes
# operation: fetch_messages, send_message, resume, get_chat
# result: ok, provisioning, unauthorized, invalid_input, upstream_error, config_error
relay_operations_total = Counter(
    "relay_operations_total",
    "Total relay operation outcomes",
    labelnames=["operation", "result"]
)

# Usage accounting outcomes after a successful send
# result: updated, skipped, failed
usage_accounting_total = Counter(
    "usage_accounting_total",
    "Total usage accounting outcomes",
    labelnames=["result"]
)

# Request latency histogram in seconds
request_latency_seconds = Histogram(
    "request_latency_seconds",
    "Request latency in seconds",
    labelnames=["method", "path"]
)


# =============================================================================
# Helper Functions
# =============================================================================

def record_http_request(method: str, path: str, status: int, latency_seconds: float) -> None:
    """
    Record an HTTP request in metrics.

    Args:
        method: HTTP method (GET, POST, etc.)
        path: Request path
        status: HTTP status code
        latency_seconds: Request processing time in seconds
    """
    # Normalize path to avoid high-cardinality labels
    normalized_path = path.split("?")[0]

    http_requests_total.labels(
        method=method,
        path=normalized_path,
        status=str(status)
    ).inc()

    request_latency_seconds.labels(
        method=method,
        path=normalized_path
    ).observe(latency_seconds)


def record_relay_outcome(operation: str, result: str) -> None:
    """Record the outcome of one relay operation."""
    relay_operations_total.labels(operation=operation, result=result).inc()


def record_accounting_outcome(result: str) -> None:
    """Record a usage accounting outcome (updated, skipped, failed)."""
    usage_accounting_total.labels(result=result).inc()


def get_metrics() -> bytes:
    """
    Generate Prometheus exposition format metrics.

    Returns:
        Metrics in Prometheus text format as bytes
    """
    return generate_latest()


def get_metrics_content_type() -> str:
    """Get the content type for Prometheus metrics."""
    return CONTENT_TYPE_LATEST
