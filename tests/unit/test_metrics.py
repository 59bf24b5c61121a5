"""Unit tests for metrics module."""

from invoice_notifier.core import metrics


def test_metrics_are_defined():
    assert hasattr(metrics, "notifier_settled_invoices_total")
    assert hasattr(metrics, "notifier_pipeline_failures_total")
    assert hasattr(metrics, "notifier_pipeline_stage_latency_seconds")
    assert hasattr(metrics, "notifier_past_payment_probes_total")
    assert hasattr(metrics, "notifier_dispatches_total")
    assert hasattr(metrics, "notifier_lnd_api_requests_total")
    assert hasattr(metrics, "notifier_lnd_api_latency_seconds")
    assert hasattr(metrics, "notifier_dependency_failures_total")


def test_metrics_have_labels():
    # These are Counter/Histogram instances
    assert hasattr(metrics.notifier_settled_invoices_total, "labels")
    assert hasattr(metrics.notifier_pipeline_stage_latency_seconds, "labels")
    assert hasattr(metrics.notifier_dispatches_total, "labels")
    assert hasattr(metrics.notifier_lnd_api_latency_seconds, "labels")
