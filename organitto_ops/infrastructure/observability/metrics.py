"""Prometheus metrics for approval throughput, pipeline movement and backend health"""

from prometheus_client import Counter, Histogram

# Approval workflow
submission_counter = Counter(
    "organitto_submissions_total",
    "Financial records submitted",
    ["kind"],  # expense | investment
)

decision_counter = Counter(
    "organitto_decisions_total",
    "Approval decisions recorded",
    ["kind", "outcome"],  # outcome: approved | rejected
)

decision_amount_bucket_counter = Counter(
    "organitto_decision_amount_bucket",
    "Decided amounts by bucket",
    ["bucket"],
)

# Product pipeline
stage_advance_counter = Counter(
    "organitto_stage_advances_total",
    "Products advanced, by stage entered",
    ["stage"],
)

# Refused operations, by exception type
workflow_rejection_counter = Counter(
    "organitto_workflow_rejections_total",
    "Operations refused by the workflow engines",
    ["operation", "error"],
)

# External services
backend_failure_counter = Counter(
    "organitto_backend_failures_total",
    "Failed calls to the record store, identity provider or blob store",
    ["service"],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_decision(kind: str, approved: bool, amount_cents: int) -> None:
    """Record decision metrics for approval rates and amount distribution"""
    outcome = "approved" if approved else "rejected"
    decision_counter.labels(kind=kind, outcome=outcome).inc()

    if amount_cents <= 100_000:
        bucket = "<=1k"
    elif amount_cents <= 1_000_000:
        bucket = "1k-10k"
    elif amount_cents <= 10_000_000:
        bucket = "10k-100k"
    else:
        bucket = ">100k"

    decision_amount_bucket_counter.labels(bucket=bucket).inc()


def record_rejection(operation: str, error: Exception) -> None:
    workflow_rejection_counter.labels(operation=operation, error=type(error).__name__).inc()
