"""Notification dispatch: text first, then the optional quiz."""

from __future__ import annotations

import random
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

import structlog

from invoice_notifier.core.metrics import notifier_dispatches_total
from invoice_notifier.notify.quiz import randomize_quiz
from invoice_notifier.schemas.messages import MessageDescriptor, Quiz
from invoice_notifier.utils.markdown import MARKDOWN_V2, escape_markdown

logger = structlog.get_logger(__name__)

SEND_OPTIONS: dict[str, Any] = {"parse_mode": MARKDOWN_V2}

SendFn = Callable[[Any, str, dict[str, Any]], Awaitable[Any]]
QuizFn = Callable[[Quiz], Awaitable[Any]]


def notification_text(descriptor: MessageDescriptor, *, from_label: str, node_count: int) -> str:
    """Render "<icon> <message>", naming the receiving node when there are several.

    Only the node suffix is escaped; composers escape their own message.
    """
    received_on_node = f" - {from_label}" if node_count > 1 else ""
    return f"{descriptor.icon} {descriptor.message}{escape_markdown(received_on_node)}"


async def dispatch_notification(
    descriptor: MessageDescriptor,
    *,
    from_label: str,
    id: Any,
    nodes: Sequence[Any],
    quiz: QuizFn,
    send: SendFn,
    rng: random.Random | None = None,
) -> None:
    """Send the notification text, then its quiz when one is attached."""
    text = notification_text(descriptor, from_label=from_label, node_count=len(nodes))

    try:
        await send(id, text, dict(SEND_OPTIONS))
    except Exception:
        notifier_dispatches_total.labels(kind="text", status="failed").inc()
        raise
    notifier_dispatches_total.labels(kind="text", status="sent").inc()

    if not descriptor.has_sendable_quiz:
        if descriptor.quiz:
            logger.debug("Quiz suppressed", answers=len(descriptor.quiz), title=descriptor.title)
        return

    payload = randomize_quiz(descriptor.title, descriptor.quiz, rng=rng)
    try:
        await quiz(payload)
    except Exception:
        notifier_dispatches_total.labels(kind="quiz", status="failed").inc()
        raise
    notifier_dispatches_total.labels(kind="quiz", status="sent").inc()
