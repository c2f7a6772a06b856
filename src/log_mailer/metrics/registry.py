"""
Prometheus metrics for the log mailer.

Metrics live in the global prometheus_client REGISTRY; expose them with
``prometheus_client.start_http_server`` in the host application if needed.
"""

from prometheus_client import Counter, Gauge, Histogram

# --- Dispatch Metrics ---

CYCLES_TOTAL = Counter(
    "log_mailer_cycles_total",
    "Dispatch cycles by result",
    ["coordinator", "result"],
)

SENDS_TOTAL = Counter(
    "log_mailer_sends_total",
    "Message delivery attempts by outcome",
    ["coordinator", "outcome"],
)

SNAPSHOT_BYTES = Histogram(
    "log_mailer_snapshot_bytes",
    "Size of detached snapshots in bytes",
    ["coordinator"],
    buckets=[1_024, 16_384, 131_072, 1_048_576, 8_388_608, 33_554_432, 134_217_728],
)

RETAINED_SNAPSHOTS = Gauge(
    "log_mailer_retained_snapshots",
    "Undelivered snapshots currently kept on disk",
    ["coordinator"],
)

RATE_LIMIT_REMAINING = Gauge(
    "log_mailer_rate_limit_remaining",
    "Deliveries still allowed in the current rate window",
    ["coordinator"],
)


class MetricsRegistry:
    """Centralized access to the log mailer metrics."""

    cycles_total = CYCLES_TOTAL
    sends_total = SENDS_TOTAL
    snapshot_bytes = SNAPSHOT_BYTES
    retained_snapshots = RETAINED_SNAPSHOTS
    rate_limit_remaining = RATE_LIMIT_REMAINING


# Singleton instance
metrics_registry = MetricsRegistry()
