"""Message composition for classified settlements."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Protocol

from invoice_notifier.clients.base import NodeApi
from invoice_notifier.core.errors import ComposeError
from invoice_notifier.notify import messages
from invoice_notifier.notify.classifier import (
    BalancedOpen,
    Classification,
    Rebalance,
    Received,
)
from invoice_notifier.notify.node_aliases import resolve_node_label
from invoice_notifier.schemas.invoice import PaymentContribution, RouteHop, SettledInvoice
from invoice_notifier.schemas.messages import MessageDescriptor


class RebalanceComposer(Protocol):
    """Signature of a rebalance composer.

    labels maps each hop public key to its node alias; keys missing from it
    are shown as the raw key.
    """

    def __call__(
        self,
        fee_mtokens: str,
        hops: Sequence[RouteHop],
        payments: Sequence[PaymentContribution],
        received_mtokens: str,
        *,
        labels: Mapping[str, str],
    ) -> MessageDescriptor: ...


@dataclass(frozen=True)
class Composers:
    """The category composers used by the pipeline.

    balanced_open(capacity, counterparty_label, fee_rate),
    rebalance: see RebalanceComposer,
    received(description, payments, received, via).
    """

    balanced_open: Callable[..., MessageDescriptor] = messages.compose_balanced_open
    rebalance: RebalanceComposer = messages.compose_rebalance
    received: Callable[..., MessageDescriptor] = messages.compose_received


DEFAULT_COMPOSERS = Composers()


def _checked(descriptor: MessageDescriptor) -> MessageDescriptor:
    if not isinstance(descriptor, MessageDescriptor):
        raise ComposeError(
            "Composer returned an unexpected value",
            details={"type": type(descriptor).__name__},
        )
    if descriptor.quiz is not None and descriptor.correct_index != 0:
        raise ComposeError(
            "Composed quiz must put the correct answer first",
            details={"correct_index": descriptor.correct_index},
        )
    return descriptor


async def compose_message(
    classification: Classification,
    *,
    invoice: SettledInvoice,
    node: NodeApi,
    composers: Composers = DEFAULT_COMPOSERS,
) -> MessageDescriptor | None:
    """Build the notification for a classification.

    Transfers and unclassified settlements produce no message.
    """
    match classification:
        case BalancedOpen(capacity=capacity, counterparty_key=key, fee_rate=fee_rate):
            label = await resolve_node_label(node, key)
            return _checked(composers.balanced_open(capacity, label, fee_rate))

        case Rebalance(fee_mtokens=fee_mtokens, hops=hops):
            keys = list(dict.fromkeys(hop.public_key for hop in hops))
            resolved = await asyncio.gather(*(resolve_node_label(node, key) for key in keys))
            return _checked(
                composers.rebalance(
                    fee_mtokens,
                    hops,
                    invoice.payments,
                    invoice.received_mtokens,
                    labels=dict(zip(keys, resolved, strict=True)),
                )
            )

        case Received(via=via):
            return _checked(
                composers.received(
                    invoice.description,
                    invoice.payments,
                    invoice.received,
                    via,
                )
            )

        case _:
            return None
