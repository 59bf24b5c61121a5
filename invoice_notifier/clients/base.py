"""Base node API interface consumed by the settled invoice pipeline."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass
from enum import StrEnum

from invoice_notifier.schemas.invoice import Channel, PastPayment, SettledInvoice


class PaymentEventType(StrEnum):
    CONFIRMED = "confirmed"
    FAILED = "failed"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class PaymentEvent:
    """Terminal event of a past payment subscription."""

    type: PaymentEventType
    payment: PastPayment | None = None
    error: str | None = None


class NodeApi(ABC):
    """Abstract node API used by the probes.

    Contract:
    - get_channel raises ChannelLookupError for unknown channels
    - get_node_alias returns "" when the node has no known alias
    - subscribe_to_past_payment yields exactly one terminal event and stops;
      it reports transport problems as an ERROR event rather than raising
    """

    @abstractmethod
    async def get_channel(self, channel_id: str) -> Channel:
        """Look up a channel by its BLOCKxTXxOUTPUT id."""
        ...

    @abstractmethod
    async def get_node_alias(self, public_key: str) -> str:
        """Resolve a node public key to its announced alias."""
        ...

    @abstractmethod
    def subscribe_to_past_payment(self, payment_id: str) -> AsyncIterator[PaymentEvent]:
        """Track an outgoing payment by payment hash until it is terminal."""
        ...

    @abstractmethod
    def subscribe_to_invoices(self) -> AsyncIterator[SettledInvoice]:
        """Stream invoice updates from the node."""
        ...

    @abstractmethod
    async def get_identity_key(self) -> str:
        """Return the node identity public key."""
        ...
