"""Category message composers.

Each composer turns the facts of one settlement category into a
MessageDescriptor. The message body is returned MarkdownV2-escaped; quiz
titles and answers are plain text. A composer that attaches a quiz puts the
correct answer first and leaves correct_index at 0.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from invoice_notifier.schemas.invoice import ChannelAlias, PaymentContribution, RouteHop
from invoice_notifier.schemas.messages import MAX_QUIZ_LENGTH, MessageDescriptor
from invoice_notifier.utils.format_tokens import format_tokens
from invoice_notifier.utils.markdown import escape_markdown

BALANCED_OPEN_ICON = "⚖️"
REBALANCE_ICON = "☯️"
RECEIVED_ICON = "⚡️"

KEYSEND_MESSAGE_TYPE = "34349334"
REBALANCE_QUIZ_TITLE = "Who routed this?"


def _tokens_from_mtokens(mtokens: str) -> int:
    return int(mtokens or "0") // 1000


def _decode_text(value: str) -> str | None:
    try:
        return bytes.fromhex(value).decode("utf-8").strip() or None
    except ValueError:
        return None


def keysend_messages(payments: Sequence[PaymentContribution]) -> list[str]:
    """UTF-8 keysend messages attached to the invoice HTLCs, deduplicated."""
    found: list[str] = []
    for payment in payments:
        for record in payment.messages:
            if record.type != KEYSEND_MESSAGE_TYPE:
                continue
            text = _decode_text(record.value)
            if text and text not in found:
                found.append(text)
    return found


def compose_balanced_open(capacity: int, counterparty_label: str, fee_rate: int) -> MessageDescriptor:
    text = (
        f"Balanced channel open proposal from {counterparty_label}: "
        f"{format_tokens(capacity)} capacity at {fee_rate}/vbyte chain fee rate"
    )
    return MessageDescriptor(icon=BALANCED_OPEN_ICON, message=escape_markdown(text))


def compose_rebalance(
    fee_mtokens: str,
    hops: Sequence[RouteHop],
    payments: Sequence[PaymentContribution],
    received_mtokens: str,
    *,
    labels: Mapping[str, str] | None = None,
) -> MessageDescriptor:
    """Describe a circular payment from this node back to itself.

    The route runs out through hops[0] and back in over hops[-1]; the quiz
    asks which node handed the payment back in.
    """
    labels = labels or {}
    amount = format_tokens(_tokens_from_mtokens(received_mtokens))
    fee = format_tokens(_tokens_from_mtokens(fee_mtokens), none="0")

    if not hops:
        text = f"Rebalanced {amount}. Fee: {fee}"
        return MessageDescriptor(icon=REBALANCE_ICON, message=escape_markdown(text))

    out_hop, in_hop = hops[0], hops[-1]
    out_label = labels.get(out_hop.public_key, out_hop.public_key)
    in_channel = in_hop.channel if not payments else payments[0].in_channel
    text = f"Rebalanced {amount} out {out_label} {out_hop.channel} → in {in_channel}. Fee: {fee}"

    # Nodes that forwarded, in route order; the last one handed it back in
    routers = [labels.get(hop.public_key, hop.public_key) for hop in hops[:-1]]
    if not routers:
        return MessageDescriptor(icon=REBALANCE_ICON, message=escape_markdown(text))

    correct = routers[-1]
    distractors = [label for label in dict.fromkeys(routers) if label != correct]
    if not distractors:
        return MessageDescriptor(icon=REBALANCE_ICON, message=escape_markdown(text))

    return MessageDescriptor(
        icon=REBALANCE_ICON,
        message=escape_markdown(text),
        title=REBALANCE_QUIZ_TITLE,
        quiz=(correct, *distractors[: MAX_QUIZ_LENGTH - 1]),
    )


def compose_received(
    description: str,
    payments: Sequence[PaymentContribution],
    received: int,
    via: Sequence[ChannelAlias],
) -> MessageDescriptor:
    text = f"Received {format_tokens(received)}"
    if description:
        text += f" for “{description}”"

    aliases = list(dict.fromkeys(channel.alias for channel in via))
    if aliases:
        text += f" via {', '.join(aliases)}"

    lines = [escape_markdown(text)]
    lines.extend(f"💬 {escape_markdown(message)}" for message in keysend_messages(payments))

    return MessageDescriptor(icon=RECEIVED_ICON, message="\n".join(lines))
