"""Invoice watcher - runs the settled invoice pipeline for one node's invoices."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import Any

import httpx
import structlog
from tenacity import AsyncRetrying, retry_if_exception_type, wait_exponential

from invoice_notifier.core.errors import NodeApiError, NotifierError
from invoice_notifier.notify.dispatcher import QuizFn, SendFn
from invoice_notifier.notify.pipeline import post_settled_invoice
from invoice_notifier.schemas.invoice import ControlledNode, SettledInvoice

logger = structlog.get_logger(__name__)


class InvoiceWatcher:
    """Subscribe to a node's invoices and post each settlement.

    Every settled invoice is handled in its own task so a slow past payment
    lookup never holds up the stream. A failing invoice is logged and does
    not stop the watcher; a dropped subscription is reopened with backoff.
    """

    def __init__(
        self,
        *,
        node: ControlledNode,
        nodes: Sequence[ControlledNode],
        chat_id: Any,
        send: SendFn,
        quiz: QuizFn,
    ) -> None:
        self.node = node
        self.nodes = nodes
        self.chat_id = chat_id
        self.send = send
        self.quiz = quiz
        self._tasks: set[asyncio.Task[None]] = set()
        self.processed = 0
        self.failed = 0

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def run(self) -> None:
        """Watch forever, reconnecting when the stream drops."""
        async for attempt in AsyncRetrying(
            wait=wait_exponential(multiplier=1, min=1, max=60),
            retry=retry_if_exception_type((NodeApiError, httpx.HTTPError, EOFError)),
            reraise=True,
        ):
            with attempt:
                await self.watch_once()
                # A clean end of stream is a disconnect as well
                raise EOFError("Invoice subscription ended")

    async def watch_once(self) -> None:
        """Consume one invoice subscription until it ends."""
        logger.info("Subscribing to invoices", node=self.node.label)
        async for invoice in self.node.api.subscribe_to_invoices():
            if not invoice.is_confirmed:
                continue
            task = asyncio.create_task(self.handle(invoice), name=f"settled:{invoice.id}")
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def handle(self, invoice: SettledInvoice) -> None:
        """Run the pipeline for one invoice, logging failures."""
        try:
            await post_settled_invoice(
                from_label=self.node.label,
                id=self.chat_id,
                invoice=invoice,
                key=self.node.public_key,
                node=self.node.api,
                nodes=list(self.nodes),
                quiz=self.quiz,
                send=self.send,
            )
        except Exception as exc:
            self.failed += 1
            logger.error(
                "Failed to post settled invoice",
                node=self.node.label,
                invoice_id=invoice.id,
                error=str(exc),
                error_code=exc.code if isinstance(exc, NotifierError) else type(exc).__name__,
                exc_info=True,
            )
        else:
            self.processed += 1

    async def drain(self) -> None:
        """Wait for in-flight invoices to finish."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
