"""Root conftest for tests."""

import asyncio
import os
from collections.abc import AsyncIterator
from types import SimpleNamespace

import pytest

if os.getenv("APP_ENV", "").strip().lower() == "prod":
    raise RuntimeError("Refusing to run tests with APP_ENV=prod")

os.environ["APP_ENV"] = "local"
os.environ["NOTIFY_PREFERRED_TOKENS_TYPE"] = "big"
os.environ.setdefault("SERVER_PORT", "8013")
os.environ.setdefault("METRICS_TOKEN", "test-metrics-token")

from invoice_notifier.clients.base import NodeApi, PaymentEvent, PaymentEventType  # noqa: E402
from invoice_notifier.core.errors import ChannelLookupError  # noqa: E402
from invoice_notifier.schemas.invoice import (  # noqa: E402
    Channel,
    ChannelPolicy,
    ControlledNode,
    PastPayment,
    PaymentContribution,
    RouteHop,
    SettledInvoice,
)

SELF_KEY = "02" + "aa" * 32
OTHER_KEY = "03" + "bb" * 32
PEER_KEY = "02" + "cc" * 32
PAYMENT_ID = "ab" * 32


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    """Auto-apply markers based on test directory structure."""
    dir_marker_map = {
        "unit": pytest.mark.unit,
        "smoke": pytest.mark.smoke,
        "integration": pytest.mark.integration,
        "e2e": pytest.mark.e2e,
    }
    for item in items:
        test_path = str(item.fspath)
        for dir_name, marker in dir_marker_map.items():
            if f"/{dir_name}/" in test_path or f"\\{dir_name}\\" in test_path:
                item.add_marker(marker)
                break


class FakeNode(NodeApi):
    """In-memory node API.

    Past payment lookups answer FAILED unless an event is configured; with
    ``hang=True`` they never answer until cancelled.
    """

    def __init__(
        self,
        *,
        public_key: str = SELF_KEY,
        channels: dict[str, Channel] | None = None,
        aliases: dict[str, str] | None = None,
        payments: dict[str, PaymentEvent] | None = None,
        invoices: list[SettledInvoice] | None = None,
        delay: float = 0,
        hang: bool = False,
    ) -> None:
        self.public_key = public_key
        self.channels = channels or {}
        self.aliases = aliases or {}
        self.payments = payments or {}
        self.invoices = invoices or []
        self.delay = delay
        self.hang = hang
        self.subscriptions: list[str] = []
        self.lookups: list[str] = []
        self.cancelled = False
        self.closed = False

    async def get_channel(self, channel_id: str) -> Channel:
        self.lookups.append(channel_id)
        if channel_id not in self.channels:
            raise ChannelLookupError(channel_id)
        return self.channels[channel_id]

    async def get_node_alias(self, public_key: str) -> str:
        self.lookups.append(public_key)
        return self.aliases.get(public_key, "")

    async def subscribe_to_past_payment(self, payment_id: str) -> AsyncIterator[PaymentEvent]:
        self.subscriptions.append(payment_id)
        try:
            if self.hang:
                await asyncio.Event().wait()
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        yield self.payments.get(payment_id, PaymentEvent(type=PaymentEventType.FAILED))

    async def subscribe_to_invoices(self) -> AsyncIterator[SettledInvoice]:
        for invoice in self.invoices:
            yield invoice

    async def get_identity_key(self) -> str:
        return self.public_key

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def keys() -> SimpleNamespace:
    """Identity keys and the payment hash shared by the pipeline tests."""
    return SimpleNamespace(self=SELF_KEY, other=OTHER_KEY, peer=PEER_KEY, payment_id=PAYMENT_ID)


@pytest.fixture
def fake_node():
    """The FakeNode class, as a factory."""
    return FakeNode


@pytest.fixture
def confirmed_event():
    """Factory for a CONFIRMED past payment event."""

    def _create(hops: tuple[RouteHop, ...] = (), fee_mtokens: str = "2000") -> PaymentEvent:
        return PaymentEvent(
            type=PaymentEventType.CONFIRMED,
            payment=PastPayment(id=PAYMENT_ID, fee_mtokens=fee_mtokens, mtokens="1000000", hops=hops),
        )

    return _create


def _peer_channel(channel_id: str, peer_key: str = PEER_KEY) -> Channel:
    return Channel(
        id=channel_id,
        capacity=1_000_000,
        policies=(ChannelPolicy(public_key=SELF_KEY), ChannelPolicy(public_key=peer_key)),
    )


@pytest.fixture
def peer_channel():
    """Factory for a channel between the receiving node and a peer."""
    return _peer_channel


@pytest.fixture
def make_invoice():
    """Factory for settled invoices paid over the given channels."""

    def _create(
        *,
        is_confirmed: bool = True,
        channels: tuple[str, ...] = ("61x1",),
        **overrides,
    ) -> SettledInvoice:
        payments = tuple(
            PaymentContribution(
                in_channel=channel,
                mtokens="500000",
                tokens=500,
                is_confirmed=is_confirmed,
            )
            for channel in channels
        )
        fields = {
            "id": PAYMENT_ID,
            "is_confirmed": is_confirmed,
            "description": "coffee",
            "received": 500 * len(channels),
            "received_mtokens": str(500000 * len(channels)),
            "confirmed_at": "2026-10-17T12:00:00Z" if is_confirmed else None,
            "payments": payments,
        }
        return SettledInvoice(**{**fields, **overrides})

    return _create


@pytest.fixture
def self_node() -> FakeNode:
    """Receiving node with two channels to peerA."""
    return FakeNode(
        public_key=SELF_KEY,
        channels={"61x1": _peer_channel("61x1"), "61x2": _peer_channel("61x2")},
        aliases={PEER_KEY: "peerA"},
    )


@pytest.fixture
def controlled():
    """Factory for ControlledNode entries around fake node APIs."""

    def _create(label: str, api: FakeNode) -> ControlledNode:
        return ControlledNode(label=label, public_key=api.public_key, api=api)

    return _create
