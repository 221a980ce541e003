"""
Prometheus-based metrics for production monitoring.
Provides /metrics endpoint for scraping.
"""
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response


# Counters
generations_submitted_total = Counter(
    "generations_submitted_total",
    "Total number of originals submitted for transformation",
)

generations_completed_total = Counter(
    "generations_completed_total",
    "Total number of successful transformations",
)

generations_failed_total = Counter(
    "generations_failed_total",
    "Total number of failed transformation attempts",
    ["failure_type"],  # configuration, transient, missing_asset
)

generation_retries_total = Counter(
    "generation_retries_total",
    "Total retries scheduled",
    ["kind"],  # auto, manual
)

credit_operations_total = Counter(
    "credit_operations_total",
    "Total credit ledger operations",
    ["operation"],  # reserve, grant, refund
)

balance_rejected_total = Counter(
    "balance_rejected_total",
    "Total submissions rejected for insufficient credits",
)

payments_processed_total = Counter(
    "payments_processed_total",
    "Paid orders seen by payment intake",
    ["result"],  # granted, skipped
)

webhook_rejected_total = Counter(
    "webhook_rejected_total",
    "Webhook deliveries rejected by signature verification",
)

# Histograms
generation_duration_seconds = Histogram(
    "generation_duration_seconds",
    "Background generation step duration",
    buckets=[1, 5, 10, 30, 60, 120, 300],
)


router = APIRouter()


@router.get("/metrics")
def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint for scraping."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )


class Metrics:
    """Thin helpers so call sites don't repeat label plumbing."""

    def inc_submitted(self) -> None:
        generations_submitted_total.inc()

    def inc_completed(self) -> None:
        generations_completed_total.inc()

    def inc_failed(self, failure_type: str = "unknown") -> None:
        generations_failed_total.labels(failure_type=failure_type).inc()

    def inc_retry(self, kind: str) -> None:
        generation_retries_total.labels(kind=kind).inc()

    def inc_credit_operation(self, operation: str) -> None:
        credit_operations_total.labels(operation=operation).inc()

    def inc_refund(self) -> None:
        credit_operations_total.labels(operation="refund").inc()

    def inc_balance_rejected(self) -> None:
        balance_rejected_total.inc()

    def inc_payment(self, result: str) -> None:
        payments_processed_total.labels(result=result).inc()

    def inc_webhook_rejected(self) -> None:
        webhook_rejected_total.inc()


metrics = Metrics()
