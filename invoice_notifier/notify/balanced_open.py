"""Balanced channel open request detection.

A balanced open proposal arrives as a small keysend push whose HTLC carries
custom records describing the proposed channel. This module contains ZERO
network access: it only inspects the settled invoice.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import timedelta

from invoice_notifier.schemas.invoice import PaymentContribution, TlvRecord
from invoice_notifier.utils.clock import parse_iso, utc_now

# Custom record types carried on the proposal push
BALANCED_OPEN_TYPE = "8050005"
CAPACITY_TYPE = "8050001"
FEE_RATE_TYPE = "8050002"
REMOTE_KEY_TYPE = "8050003"
FUNDING_KEY_TYPE = "8050004"

PROPOSAL_PUSH_MTOKENS = "1000"
PROPOSAL_EXPIRY = timedelta(days=1)
PUBLIC_KEY_HEX_LENGTH = 66


@dataclass(frozen=True, slots=True)
class BalancedOpenProposal:
    capacity: int
    fee_rate: int
    partner_public_key: str
    funding_public_key: str | None = None


def decode_big_size(value: str) -> int:
    """Decode a BigSize (BOLT 1) hex encoded number."""
    raw = bytes.fromhex(value)
    if not raw:
        raise ValueError("Empty BigSize value")

    prefix = raw[0]
    widths = {0xFD: 2, 0xFE: 4, 0xFF: 8}
    if prefix not in widths:
        if len(raw) != 1:
            raise ValueError("Unexpected trailing bytes in BigSize value")
        return prefix

    width = widths[prefix]
    if len(raw) != 1 + width:
        raise ValueError("Unexpected BigSize length")
    return int.from_bytes(raw[1:], "big")


def _is_public_key(value: str | None) -> bool:
    if not value or len(value) != PUBLIC_KEY_HEX_LENGTH or value[:2] not in ("02", "03"):
        return False
    try:
        bytes.fromhex(value)
    except ValueError:
        return False
    return True


def _records(messages: Iterable[TlvRecord]) -> dict[str, str]:
    return {record.type: record.value for record in messages}


def balanced_open_request(
    *,
    confirmed_at: str | None,
    is_push: bool,
    payments: tuple[PaymentContribution, ...],
    received_mtokens: str,
) -> BalancedOpenProposal | None:
    """Return the proposal carried by a settled push, or None.

    The signature is: a confirmed push of exactly PROPOSAL_PUSH_MTOKENS paid
    with a single HTLC that carries the balanced open records, settled no
    longer than PROPOSAL_EXPIRY ago, proposing an even, positive capacity.
    """
    if not is_push or received_mtokens != PROPOSAL_PUSH_MTOKENS:
        return None

    settled_at = parse_iso(confirmed_at)
    if settled_at is None or utc_now() - settled_at > PROPOSAL_EXPIRY:
        return None

    confirmed = [payment for payment in payments if payment.is_confirmed]
    if len(confirmed) != 1:
        return None

    records = _records(confirmed[0].messages)
    if BALANCED_OPEN_TYPE not in records:
        return None

    partner_key = records.get(REMOTE_KEY_TYPE)
    if not _is_public_key(partner_key):
        return None

    try:
        capacity = decode_big_size(records.get(CAPACITY_TYPE, ""))
        fee_rate = decode_big_size(records.get(FEE_RATE_TYPE, ""))
    except ValueError:
        return None

    if not capacity or capacity % 2 or not fee_rate:
        return None

    funding_key = records.get(FUNDING_KEY_TYPE)
    return BalancedOpenProposal(
        capacity=capacity,
        fee_rate=fee_rate,
        partner_public_key=partner_key,
        funding_public_key=funding_key if _is_public_key(funding_key) else None,
    )
