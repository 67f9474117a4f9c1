"""Client metrics using the Prometheus client library.

Every metric the package records is defined here, so this module is the
single inventory of what gets measured.  Other modules import a specific
metric and increment/observe it at the point of action.

  COUNTER   - only goes up: calls made, activities tracked, toasts shown.
  HISTOGRAM - API round-trip latency, bucketed so percentiles can be read
              off a dashboard instead of an average that hides slow calls.

Counters live in the process-global default registry; a host application
that already exposes /metrics picks these up without extra wiring.
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# ---------------------------------------------------------------------------
# API client metrics (populated by the httpx event hooks)
# ---------------------------------------------------------------------------

API_REQUEST_COUNT = Counter(
    "api_requests_total",
    "Outbound API requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

API_REQUEST_DURATION = Histogram(
    "api_request_duration_seconds",
    "Outbound API request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

# ---------------------------------------------------------------------------
# Study-progress metrics
# ---------------------------------------------------------------------------

ACTIVITIES_TRACKED = Counter(
    "activities_tracked_total",
    "Study activities submitted by type and outcome",
    ["activity_type", "result"],  # result: "success", "error" or "skipped"
)

STREAK_VALIDATIONS = Counter(
    "streak_validations_total",
    "Streak validation calls by outcome",
    ["result"],  # "success" or "error"
)

QUERY_CACHE_OPERATIONS = Counter(
    "query_cache_operations_total",
    "Query cache operations by kind",
    ["operation"],  # "hit", "miss" or "invalidate"
)

NOTIFICATIONS = Counter(
    "notifications_total",
    "User-facing notifications emitted by kind",
    ["kind"],  # milestone|achievement|badge|error
)
