"""Prometheus metrics for the notifier."""

from prometheus_client import Counter, Histogram

# ---------------------------------------------------------------------------
# Settled invoice pipeline
# ---------------------------------------------------------------------------

notifier_settled_invoices_total = Counter(
    "notifier_settled_invoices_total",
    "Settled invoices processed, by classified category",
    ["category"],  # balanced_open | rebalance | transfer | received | unclassified
)

notifier_pipeline_failures_total = Counter(
    "notifier_pipeline_failures_total",
    "Settled invoice pipeline failures",
    ["reason"],
)

notifier_pipeline_stage_latency_seconds = Histogram(
    "notifier_pipeline_stage_latency_seconds",
    "Latency per pipeline stage in seconds",
    ["stage"],  # classify | compose | dispatch
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0],
)

# ---------------------------------------------------------------------------
# Probes
# ---------------------------------------------------------------------------

notifier_past_payment_probes_total = Counter(
    "notifier_past_payment_probes_total",
    "Past payment probe outcomes",
    ["outcome"],  # confirmed | failed | error
)

# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

notifier_dispatches_total = Counter(
    "notifier_dispatches_total",
    "Messages dispatched to the messaging channel",
    ["kind", "status"],  # kind: text | quiz
)

# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

notifier_lnd_api_requests_total = Counter(
    "notifier_lnd_api_requests_total",
    "LND REST API requests",
    ["endpoint", "status_code"],
)

notifier_lnd_api_latency_seconds = Histogram(
    "notifier_lnd_api_latency_seconds",
    "LND REST API latency in seconds",
    ["endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0],
)

notifier_dependency_failures_total = Counter(
    "notifier_dependency_failures_total",
    "External dependency failures",
    ["dependency"],  # lnd | telegram
)
