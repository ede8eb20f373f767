"""Prometheus metrics for ledger activity, persistence health and HTTP latency"""

from prometheus_client import Counter, Histogram

from payroll_ledger.domain.exceptions import RejectionReason

# Ledger metrics
ledger_operation_counter = Counter(
    "payroll_ledger_operations_total",
    "Ledger operations by outcome",
    ["ledger", "operation", "outcome"],  # outcome: accepted | rejected
)

ledger_rejection_counter = Counter(
    "payroll_ledger_rejections_total",
    "Rejected ledger operations by reason",
    ["reason"],
)

advance_amount_histogram = Histogram(
    "payroll_ledger_advance_amount_dollars",
    "Size of approved cash advances",
    buckets=[50, 100, 250, 500, 1000, 2000, 3000, 5000],
)

# Persistence metrics
persistence_failure_counter = Counter(
    "ledger_persistence_failures_total",
    "Ledger writes or loads that failed against the store",
    ["operation"],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_operation(ledger: str, operation: str, reason: RejectionReason | None = None) -> None:
    """Record an accepted (reason is None) or rejected ledger operation"""
    outcome = "accepted" if reason is None else "rejected"
    ledger_operation_counter.labels(ledger=ledger, operation=operation, outcome=outcome).inc()
    if reason is not None:
        ledger_rejection_counter.labels(reason=reason.value).inc()


def record_advance_amount(amount_cents: int) -> None:
    advance_amount_histogram.observe(amount_cents / 100)
