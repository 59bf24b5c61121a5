"""Counterparty alias resolution for incoming channels."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable

import structlog

from invoice_notifier.clients.base import NodeApi
from invoice_notifier.core.errors import ChannelLookupError, NodeApiError
from invoice_notifier.schemas.invoice import ChannelAlias

logger = structlog.get_logger(__name__)


def unique_channels(channel_ids: Iterable[str]) -> list[str]:
    """Distinct channel ids in first-seen order."""
    return list(dict.fromkeys(channel_ids))


async def resolve_node_label(node: NodeApi, public_key: str) -> str:
    """Alias for a node key, or the key itself when no alias is known."""
    try:
        alias = await node.get_node_alias(public_key)
    except NodeApiError:
        logger.warning("Node alias lookup failed", public_key=public_key)
        return public_key
    return alias or public_key


async def resolve_channel_alias(node: NodeApi, key: str, channel_id: str) -> ChannelAlias:
    """Label the peer on the other side of a channel from the receiving node."""
    try:
        channel = await node.get_channel(channel_id)
    except (ChannelLookupError, NodeApiError) as exc:
        logger.debug("Channel lookup failed, using id as alias", channel=channel_id, error=str(exc))
        return ChannelAlias(id=channel_id, alias=channel_id)

    peer = next((policy for policy in channel.policies if policy.public_key != key), None)
    if peer is None:
        return ChannelAlias(id=channel_id, alias=channel_id)

    try:
        alias = await node.get_node_alias(peer.public_key)
    except NodeApiError:
        return ChannelAlias(id=channel_id, alias=channel_id)

    return ChannelAlias(id=channel_id, alias=alias or channel_id)


async def get_node_aliases(
    node: NodeApi,
    key: str,
    channel_ids: Iterable[str],
) -> tuple[ChannelAlias, ...]:
    """Resolve every distinct incoming channel concurrently."""
    channels = unique_channels(channel_ids)
    aliases = await asyncio.gather(
        *(resolve_channel_alias(node, key, channel_id) for channel_id in channels)
    )
    return tuple(aliases)
