"""Prometheus metrics for authorization outcomes, settlements, payments and billing runs"""

from decimal import Decimal
from typing import Optional

from prometheus_client import Counter, Histogram

# Authorization metrics
authorization_counter = Counter(
    "ledger_authorization_total",
    "Total authorization decisions",
    ["outcome", "code"],  # approved | declined | replayed, decline code or "none"
)

authorized_amount_histogram = Histogram(
    "ledger_authorized_amount_dollars",
    "Approved authorization amounts",
    buckets=[5, 25, 50, 100, 250, 500, 1000, 2500, 5000],
)

# Settlement metrics
settlement_counter = Counter(
    "ledger_settlement_total",
    "Settlement attempts",
    ["outcome", "adjusted"],  # settled | rejected, true | false
)

# Payment metrics
payment_counter = Counter(
    "ledger_payment_total",
    "Payments applied to accounts",
)

# Statement metrics
statement_counter = Counter(
    "ledger_statement_total",
    "Per-account statement generation outcomes",
    ["outcome"],  # generated | skipped
)

statement_run_duration_histogram = Histogram(
    "ledger_statement_run_duration_seconds",
    "Duration of a billing-cycle batch run",
    buckets=[0.1, 0.5, 1.0, 5.0, 15.0, 60.0, 300.0],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_authorization(approved: bool, decline_code: Optional[str], replayed: bool, amount: Decimal) -> None:
    """Record decision metrics; replays are counted separately so approval rates stay honest"""
    if replayed:
        outcome = "replayed"
    else:
        outcome = "approved" if approved else "declined"
    authorization_counter.labels(outcome=outcome, code=decline_code or "none").inc()

    if approved and not replayed:
        authorized_amount_histogram.observe(float(amount))


def record_settlement(settled: bool, adjusted: bool) -> None:
    settlement_counter.labels(
        outcome="settled" if settled else "rejected",
        adjusted="true" if adjusted else "false",
    ).inc()


def record_statement(generated: bool) -> None:
    statement_counter.labels(outcome="generated" if generated else "skipped").inc()
