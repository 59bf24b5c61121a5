"""Settlement classification.

Four independent checks run concurrently against a settled invoice and are
joined before precedence is applied, so the outcome never depends on which
probe answered first:

    Transfer > BalancedOpen > Rebalance > Received
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass
from typing import ClassVar

import structlog

from invoice_notifier.clients.base import NodeApi
from invoice_notifier.notify.balanced_open import BalancedOpenProposal, balanced_open_request
from invoice_notifier.notify.node_aliases import get_node_aliases
from invoice_notifier.notify.past_payments import get_past_payment, is_transfer
from invoice_notifier.schemas.invoice import (
    ChannelAlias,
    ControlledNode,
    PastPayment,
    RouteHop,
    SettledInvoice,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class BalancedOpen:
    category: ClassVar[str] = "balanced_open"

    capacity: int
    counterparty_key: str
    fee_rate: int


@dataclass(frozen=True, slots=True)
class Rebalance:
    category: ClassVar[str] = "rebalance"

    fee_mtokens: str
    hops: tuple[RouteHop, ...]


@dataclass(frozen=True, slots=True)
class Transfer:
    category: ClassVar[str] = "transfer"


@dataclass(frozen=True, slots=True)
class Received:
    category: ClassVar[str] = "received"

    via: tuple[ChannelAlias, ...]


@dataclass(frozen=True, slots=True)
class Unclassified:
    category: ClassVar[str] = "unclassified"


Classification = BalancedOpen | Rebalance | Transfer | Received | Unclassified


@dataclass(frozen=True, slots=True)
class ProbeResults:
    """Joined outcome of the four checks."""

    is_confirmed: bool
    balanced_open: BalancedOpenProposal | None
    via: tuple[ChannelAlias, ...]
    payment: PastPayment | None
    is_transfer: bool


def apply_precedence(results: ProbeResults) -> Classification:
    """Pick the single applicable category."""
    if not results.is_confirmed:
        return Unclassified()

    if results.is_transfer:
        return Transfer()

    if results.balanced_open is not None:
        return BalancedOpen(
            capacity=results.balanced_open.capacity,
            counterparty_key=results.balanced_open.partner_public_key,
            fee_rate=results.balanced_open.fee_rate,
        )

    if results.payment is not None:
        return Rebalance(fee_mtokens=results.payment.fee_mtokens, hops=results.payment.hops)

    return Received(via=results.via)


async def _check_balanced_open(invoice: SettledInvoice) -> BalancedOpenProposal | None:
    if not invoice.is_confirmed:
        return None

    return balanced_open_request(
        confirmed_at=invoice.confirmed_at,
        is_push=invoice.is_push,
        payments=invoice.payments,
        received_mtokens=invoice.received_mtokens,
    )


async def _check_node_aliases(
    node: NodeApi,
    key: str,
    invoice: SettledInvoice,
) -> tuple[ChannelAlias, ...]:
    if not invoice.is_confirmed:
        return ()

    return await get_node_aliases(node, key, (payment.in_channel for payment in invoice.payments))


async def _check_rebalance(node: NodeApi, invoice: SettledInvoice) -> PastPayment | None:
    if not invoice.is_confirmed:
        return None

    return await get_past_payment(node, invoice.id, label="self")


async def _check_transfer(
    nodes: Sequence[ControlledNode],
    key: str,
    invoice: SettledInvoice,
) -> bool:
    if not invoice.is_confirmed:
        return False

    return await is_transfer(nodes, key, invoice.id)


async def run_probes(
    *,
    invoice: SettledInvoice,
    key: str,
    nodes: Sequence[ControlledNode],
    node: NodeApi,
) -> ProbeResults:
    """Launch the four checks together and join their answers."""
    balanced_open, via, payment, transfer = await asyncio.gather(
        _check_balanced_open(invoice),
        _check_node_aliases(node, key, invoice),
        _check_rebalance(node, invoice),
        _check_transfer(nodes, key, invoice),
    )

    return ProbeResults(
        is_confirmed=invoice.is_confirmed,
        balanced_open=balanced_open,
        via=via,
        payment=payment,
        is_transfer=transfer,
    )


async def classify_settlement(
    *,
    invoice: SettledInvoice,
    key: str,
    nodes: Sequence[ControlledNode],
    node: NodeApi,
) -> Classification:
    """Classify a settled invoice into exactly one category."""
    results = await run_probes(invoice=invoice, key=key, nodes=nodes, node=node)
    classification = apply_precedence(results)

    logger.info(
        "Settled invoice classified",
        invoice_id=invoice.id,
        category=classification.category,
        balanced_open=results.balanced_open is not None,
        rebalance=results.payment is not None,
        transfer=results.is_transfer,
    )
    return classification
