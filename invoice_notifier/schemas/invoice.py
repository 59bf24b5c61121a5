"""Settled invoice and node schemas.

Everything here is frozen: invoices and their HTLC contributions are created
upstream by the invoice subscription and only read by the pipeline.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TlvRecord(BaseModel):
    """Custom TLV record carried on an HTLC (value is hex)."""

    model_config = ConfigDict(frozen=True)

    type: str
    value: str


class PaymentContribution(BaseModel):
    """One HTLC that paid into the invoice."""

    model_config = ConfigDict(frozen=True)

    in_channel: str
    mtokens: str
    tokens: int
    is_confirmed: bool = False
    is_canceled: bool = False
    is_held: bool = False
    confirmed_at: str | None = None
    pending_index: int | None = None
    total_mtokens: str | None = None
    messages: tuple[TlvRecord, ...] = ()


class SettledInvoice(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    is_confirmed: bool
    description: str = ""
    received: int = 0
    received_mtokens: str = "0"
    is_push: bool = False
    confirmed_at: str | None = None
    payments: tuple[PaymentContribution, ...] = ()


class ChannelAlias(BaseModel):
    """A channel id paired with the display label of its counterparty."""

    model_config = ConfigDict(frozen=True)

    id: str
    alias: str


class ChannelPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    public_key: str
    fee_rate: int | None = None
    base_fee_mtokens: str | None = None
    is_disabled: bool | None = None


class Channel(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    capacity: int = 0
    policies: tuple[ChannelPolicy, ...] = ()


class RouteHop(BaseModel):
    model_config = ConfigDict(frozen=True)

    channel: str
    public_key: str
    fee_mtokens: str = "0"
    forward_mtokens: str = "0"


class PastPayment(BaseModel):
    """A settled outgoing payment as reported by a node."""

    model_config = ConfigDict(frozen=True)

    id: str
    fee_mtokens: str = "0"
    mtokens: str = "0"
    hops: tuple[RouteHop, ...] = ()


class ControlledNode(BaseModel):
    """A node the operator controls, including the receiving node itself."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    label: str
    public_key: str
    api: Any = Field(exclude=True, repr=False)
