"""Past payment probes: rebalance and node-to-node transfer detection."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

import structlog

from invoice_notifier.clients.base import NodeApi, PaymentEventType
from invoice_notifier.core.errors import NodeApiError
from invoice_notifier.core.metrics import notifier_past_payment_probes_total
from invoice_notifier.schemas.invoice import ControlledNode, PastPayment

logger = structlog.get_logger(__name__)


async def get_past_payment(
    node: NodeApi,
    payment_id: str,
    *,
    label: str = "",
) -> PastPayment | None:
    """Return the settled outgoing payment for payment_id, or None.

    Only the first terminal event counts. Failed and errored lookups are a
    negative answer, never an exception.
    """
    subscription = node.subscribe_to_past_payment(payment_id)
    try:
        async for event in subscription:
            notifier_past_payment_probes_total.labels(outcome=event.type.value).inc()
            if event.type == PaymentEventType.CONFIRMED:
                return event.payment
            if event.type == PaymentEventType.ERROR:
                # Indistinguishable from "no such payment" for classification
                logger.warning(
                    "Past payment lookup errored",
                    node=label,
                    payment_id=payment_id,
                    error=event.error,
                )
            return None
    except NodeApiError as exc:
        notifier_past_payment_probes_total.labels(outcome=PaymentEventType.ERROR.value).inc()
        logger.warning("Past payment lookup errored", node=label, payment_id=payment_id, error=str(exc))
        return None
    finally:
        aclose = getattr(subscription, "aclose", None)
        if aclose is not None:
            await aclose()

    return None


async def is_transfer(
    nodes: Sequence[ControlledNode],
    key: str,
    payment_id: str,
) -> bool:
    """True when any other controlled node paid this invoice.

    Probes run concurrently and the first confirmation wins; probes still
    outstanding at that point are cancelled.
    """
    others = [node for node in nodes if node.public_key != key]
    if not others:
        return False

    pending = {
        asyncio.create_task(
            get_past_payment(node.api, payment_id, label=node.label),
            name=f"transfer-probe:{node.label}",
        )
        for node in others
    }

    try:
        while pending:
            done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                if task.result() is not None:
                    logger.debug("Transfer detected", payment_id=payment_id, probe=task.get_name())
                    return True
        return False
    finally:
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
