"""Settled invoice pipeline - validate, classify, compose, dispatch."""

from __future__ import annotations

import asyncio
import random
import time
from collections.abc import Awaitable, Sequence
from typing import Any, TypeVar

import structlog
from opentelemetry import trace

from invoice_notifier.clients.base import NodeApi
from invoice_notifier.core.config import get_settings
from invoice_notifier.core.errors import NotifierError, PostSettledInvoiceError
from invoice_notifier.core.metrics import (
    notifier_pipeline_failures_total,
    notifier_pipeline_stage_latency_seconds,
    notifier_settled_invoices_total,
)
from invoice_notifier.notify.classifier import classify_settlement
from invoice_notifier.notify.composer import DEFAULT_COMPOSERS, Composers, compose_message
from invoice_notifier.notify.dispatcher import QuizFn, SendFn, dispatch_notification
from invoice_notifier.schemas.invoice import ControlledNode, SettledInvoice

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

T = TypeVar("T")


def validate_arguments(
    *,
    from_label: Any,
    id: Any,
    invoice: Any,
    key: Any,
    node: Any,
    nodes: Any,
    quiz: Any,
    send: Any,
) -> None:
    """Raise PostSettledInvoiceError for the first missing argument."""
    if not from_label:
        raise PostSettledInvoiceError("ExpectedFromNameToPostSettledInvoice")

    if not id:
        raise PostSettledInvoiceError("ExpectedUserIdNumberToPostSettledInvoice")

    if not invoice:
        raise PostSettledInvoiceError("ExpectedInvoiceToPostSettledInvoice")

    if not key:
        raise PostSettledInvoiceError("ExpectedNodeIdentityKeyToPostSettledInvoice")

    if not node:
        raise PostSettledInvoiceError("ExpectedLndObjectToPostSettledInvoice")

    if not isinstance(nodes, list | tuple):
        raise PostSettledInvoiceError("ExpectedArrayOfNodesToPostSettledInvoice")

    if not quiz:
        raise PostSettledInvoiceError("ExpectedSendQuizFunctionToPostSettledInvoice")

    if not send:
        raise PostSettledInvoiceError("ExpectedSendFunctionToPostSettledInvoice")


async def _timed_stage(stage_name: str, coro: Awaitable[T]) -> T:
    """Run a stage coroutine under a span and record its latency."""
    with tracer.start_as_current_span(f"notifier.{stage_name}") as span:
        started = time.perf_counter()
        try:
            return await coro
        except Exception as exc:
            span.record_exception(exc)
            raise
        finally:
            elapsed = time.perf_counter() - started
            notifier_pipeline_stage_latency_seconds.labels(stage=stage_name).observe(elapsed)
            span.set_attribute("stage.duration_ms", round(elapsed * 1000, 1))


async def post_settled_invoice(
    *,
    from_label: str,
    id: Any,
    invoice: SettledInvoice | dict[str, Any],
    key: str,
    node: NodeApi,
    nodes: Sequence[ControlledNode],
    quiz: QuizFn,
    send: SendFn,
    composers: Composers = DEFAULT_COMPOSERS,
    rng: random.Random | None = None,
) -> None:
    """Post a notification for a settled invoice.

    Args:
        from_label: Label of the node that received the invoice
        id: Chat/user id the notification goes to
        invoice: The settled invoice (model or its dict form)
        key: Identity public key of the receiving node
        node: Node API of the receiving node
        nodes: Every controlled node, receiving node included (may be empty)
        quiz: Async callable sending a Quiz
        send: Async callable send(id, text, options)

    Raises:
        PostSettledInvoiceError: a required argument is missing, before any
            lookups or sends are attempted
        NotifierError: composing or dispatching failed
    """
    validate_arguments(
        from_label=from_label,
        id=id,
        invoice=invoice,
        key=key,
        node=node,
        nodes=nodes,
        quiz=quiz,
        send=send,
    )

    if not isinstance(invoice, SettledInvoice):
        invoice = SettledInvoice.model_validate(invoice)

    settings = get_settings()
    log = logger.bind(invoice_id=invoice.id, node=from_label)

    async with asyncio.timeout(settings.notify.pipeline_timeout_seconds):
        with tracer.start_as_current_span("notifier.post_settled_invoice") as span:
            span.set_attribute("invoice.id", invoice.id)
            span.set_attribute("invoice.is_confirmed", invoice.is_confirmed)

            try:
                classification = await _timed_stage(
                    "classify",
                    classify_settlement(invoice=invoice, key=key, nodes=nodes, node=node),
                )
                notifier_settled_invoices_total.labels(category=classification.category).inc()
                span.set_attribute("invoice.category", classification.category)

                descriptor = await _timed_stage(
                    "compose",
                    compose_message(
                        classification,
                        invoice=invoice,
                        node=node,
                        composers=composers,
                    ),
                )
                if descriptor is None:
                    log.debug("Nothing to post", category=classification.category)
                    return

                await _timed_stage(
                    "dispatch",
                    dispatch_notification(
                        descriptor,
                        from_label=from_label,
                        id=id,
                        nodes=nodes,
                        quiz=quiz,
                        send=send,
                        rng=rng,
                    ),
                )
                log.info("Settled invoice posted", category=classification.category)

            except Exception as exc:
                reason = exc.code if isinstance(exc, NotifierError) else type(exc).__name__
                notifier_pipeline_failures_total.labels(reason=reason).inc()
                span.set_attribute("invoice.status", "FAILED")
                log.exception("Settled invoice pipeline failed", error=str(exc))
                raise
