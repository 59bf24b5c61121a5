"""Unit tests for counterparty alias resolution."""

from unittest.mock import AsyncMock

import pytest

from invoice_notifier.core.errors import NodeApiError
from invoice_notifier.notify.node_aliases import (
    get_node_aliases,
    resolve_channel_alias,
    resolve_node_label,
    unique_channels,
)
from invoice_notifier.schemas.invoice import Channel, ChannelAlias, ChannelPolicy


def test_unique_channels_keeps_first_seen_order():
    assert unique_channels(["61x2", "61x1", "61x2", "70x3"]) == ["61x2", "61x1", "70x3"]


@pytest.mark.asyncio
async def test_channel_resolves_to_peer_alias(self_node, keys):
    assert await resolve_channel_alias(self_node, keys.self, "61x1") == ChannelAlias(
        id="61x1", alias="peerA"
    )


@pytest.mark.asyncio
async def test_unknown_channel_falls_back_to_id(self_node, keys):
    assert await resolve_channel_alias(self_node, keys.self, "1x2x3") == ChannelAlias(
        id="1x2x3", alias="1x2x3"
    )


@pytest.mark.asyncio
async def test_peer_without_alias_falls_back_to_id(self_node, keys, peer_channel):
    self_node.channels["80x1"] = peer_channel("80x1", peer_key=keys.other)

    assert await resolve_channel_alias(self_node, keys.self, "80x1") == ChannelAlias(
        id="80x1", alias="80x1"
    )


@pytest.mark.asyncio
async def test_channel_with_only_own_policy_falls_back_to_id(self_node, keys):
    self_node.channels["80x2"] = Channel(id="80x2", policies=(ChannelPolicy(public_key=keys.self),))

    result = await resolve_channel_alias(self_node, keys.self, "80x2")

    assert result.alias == "80x2"


@pytest.mark.asyncio
async def test_node_api_failure_falls_back_to_id(keys):
    node = AsyncMock()
    node.get_channel.side_effect = NodeApiError("LND request to graph_edge failed")

    result = await resolve_channel_alias(node, keys.self, "61x1")

    assert result == ChannelAlias(id="61x1", alias="61x1")


@pytest.mark.asyncio
async def test_get_node_aliases_deduplicates_channels(self_node, keys):
    aliases = await get_node_aliases(self_node, keys.self, ["61x1", "61x2", "61x1"])

    assert aliases == (
        ChannelAlias(id="61x1", alias="peerA"),
        ChannelAlias(id="61x2", alias="peerA"),
    )


@pytest.mark.asyncio
async def test_get_node_aliases_with_no_payments(self_node, keys):
    assert await get_node_aliases(self_node, keys.self, []) == ()


@pytest.mark.asyncio
async def test_node_label_falls_back_to_key(self_node, keys):
    assert await resolve_node_label(self_node, keys.peer) == "peerA"
    assert await resolve_node_label(self_node, keys.other) == keys.other


@pytest.mark.asyncio
async def test_node_label_lookup_failure_falls_back_to_key(keys):
    node = AsyncMock()
    node.get_node_alias.side_effect = NodeApiError("LND request to graph_node failed")

    assert await resolve_node_label(node, keys.peer) == keys.peer
