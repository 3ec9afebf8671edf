from __future__ import annotations

from prometheus_client import Counter, Histogram

HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)

WEBHOOK_DELIVERIES_TOTAL = Counter(
    "webhook_deliveries_total",
    "Inbound gateway webhook deliveries by outcome",
    ["endpoint", "outcome"],
)

WEBHOOK_PROCESSING_SECONDS = Histogram(
    "webhook_processing_seconds",
    "Time spent verifying and reconciling one webhook delivery",
    ["endpoint"],
)

RECONCILE_STEP_FAILURES_TOTAL = Counter(
    "reconcile_step_failures_total",
    "Reconciliation steps that failed and were skipped",
    ["step"],
)

SCHEMA_DRIFT_RETRIES_TOTAL = Counter(
    "schema_drift_retries_total",
    "Writes retried without columns missing from the database",
    ["table"],
)

AUDIT_LOG_FAILURES_TOTAL = Counter(
    "audit_log_failures_total",
    "Webhook audit rows that could not be written",
    ["kind"],
)

CONVERSIONS_DISPATCHED_TOTAL = Counter(
    "conversions_dispatched_total",
    "Purchase conversion dispatch attempts by result",
    ["result"],
)
