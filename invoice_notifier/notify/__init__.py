"""Settled invoice classification and notification."""

from invoice_notifier.notify.classifier import (
    BalancedOpen,
    Classification,
    Rebalance,
    Received,
    Transfer,
    Unclassified,
    classify_settlement,
)
from invoice_notifier.notify.composer import Composers, compose_message
from invoice_notifier.notify.pipeline import post_settled_invoice

__all__ = [
    "BalancedOpen",
    "Classification",
    "Composers",
    "Rebalance",
    "Received",
    "Transfer",
    "Unclassified",
    "classify_settlement",
    "compose_message",
    "post_settled_invoice",
]
