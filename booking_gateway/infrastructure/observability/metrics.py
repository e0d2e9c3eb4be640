"""Prometheus metrics for pricing quotes, conflict scans and webhook performance"""

from prometheus_client import Counter, Histogram

# Pricing metrics
quote_counter = Counter(
    "booking_quote_total",
    "Booking totals computed",
    ["payment_method", "payment_type"],
)

quote_amount_histogram = Histogram(
    "booking_quote_amount",
    "Amount to pay per quote in the business's standard unit",
    buckets=[100, 250, 500, 1000, 2500, 5000, 10000],
)

# Conflict detection metrics
bookings_scanned_counter = Counter(
    "booking_conflict_scanned_total",
    "Future bookings re-validated against current staffing",
    ["trigger"],
)

conflicts_detected_counter = Counter(
    "booking_conflict_detected_total",
    "Bookings flagged as no longer fitting current staffing",
    ["trigger"],
)

conflict_scan_duration_histogram = Histogram(
    "booking_conflict_scan_seconds",
    "Time spent re-validating one business",
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

# Webhook metrics
webhook_latency_histogram = Histogram(
    "webhook_latency_seconds",
    "Conflict webhook response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

webhook_failure_counter = Counter(
    "webhook_failures_total",
    "Failed webhook deliveries",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_quote(payment_method: str, payment_type: str, amount_to_pay: float) -> None:
    """Record how customers pay and how much"""
    quote_counter.labels(payment_method=payment_method, payment_type=payment_type).inc()
    quote_amount_histogram.observe(amount_to_pay)


def record_conflict_scan(trigger: str, scanned: int, conflicts: int, duration_seconds: float) -> None:
    bookings_scanned_counter.labels(trigger=trigger).inc(scanned)
    conflicts_detected_counter.labels(trigger=trigger).inc(conflicts)
    conflict_scan_duration_histogram.observe(duration_seconds)
