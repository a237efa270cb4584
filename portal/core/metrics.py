"""Application metrics using the Prometheus client library.

All metrics are defined here so the service has a single inventory of
what it measures.  Other modules import a metric and increment or
observe it at the point of action.

Counters only go up (requests served, attempts graded).  Gauges go up
and down (requests in flight).  Histograms bucket observations so
Prometheus can derive percentiles, e.g.:

  histogram_quantile(0.95, rate(http_request_duration_seconds_bucket[5m]))
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Engine metrics
# ---------------------------------------------------------------------------

GATE_DECISIONS = Counter(
    "access_gate_decisions_total",
    "Access gate decisions by resource class and outcome",
    ["resource_class", "outcome"],  # content|assessment, allow|deny
)

TEST_ATTEMPTS = Counter(
    "module_test_attempts_total",
    "Graded module test attempts by result",
    ["result"],  # passed|failed
)

PERSISTENCE_FAILURES = Counter(
    "persistence_failures_total",
    "Store operations that did not acknowledge",
    ["operation"],
)

CACHE_OPERATIONS = Counter(
    "cache_operations_total",
    "Session cache operations by result",
    ["operation"],  # hit|miss|error
)
