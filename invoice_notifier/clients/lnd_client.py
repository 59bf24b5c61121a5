"""LND REST API client.

Implements the node API consumed by the settled invoice pipeline: channel
lookups, alias resolution, past payment tracking and the invoice stream.
Unary calls retry on connection failures (tenacity); streams do not, their
callers decide how to reconnect.
"""

from __future__ import annotations

import base64
import json
import time
from collections.abc import AsyncIterator
from datetime import UTC, datetime
from typing import Any

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from invoice_notifier.clients.base import NodeApi, PaymentEvent, PaymentEventType
from invoice_notifier.core.config import LndConfig, RemoteNode
from invoice_notifier.core.errors import ChannelLookupError, NodeApiError
from invoice_notifier.core.metrics import (
    notifier_dependency_failures_total,
    notifier_lnd_api_latency_seconds,
    notifier_lnd_api_requests_total,
)
from invoice_notifier.schemas.invoice import (
    Channel,
    ChannelPolicy,
    PastPayment,
    PaymentContribution,
    RouteHop,
    SettledInvoice,
    TlvRecord,
)

logger = structlog.get_logger(__name__)

MACAROON_HEADER = "Grpc-Metadata-macaroon"
_NOT_FOUND_MARKERS = ("edge not found", "unable to find node", "not found")

# ---------------------------------------------------------------------------
# Short channel id conversion
# ---------------------------------------------------------------------------


def chan_id_from_scid(channel_id: str) -> str:
    """Convert a BLOCKxTXxOUTPUT channel id to LND's numeric chan_id.

    A missing output index is read as 0.
    """
    parts = channel_id.split("x")
    if not 2 <= len(parts) <= 3 or not all(p.isdigit() for p in parts):
        raise ValueError(f"Invalid short channel id: {channel_id}")
    block, tx, output = (int(p) for p in [*parts, "0"][:3])
    return str((block << 40) | (tx << 16) | output)


def scid_from_chan_id(chan_id: str | int) -> str:
    """Convert LND's numeric chan_id to BLOCKxTXxOUTPUT."""
    number = int(chan_id)
    return f"{number >> 40}x{(number >> 16) & 0xFFFFFF}x{number & 0xFFFF}"


# ---------------------------------------------------------------------------
# Response mapping
# ---------------------------------------------------------------------------


def _b64_to_hex(value: str) -> str:
    if not value:
        return ""
    padded = value + "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(padded.replace("+", "-").replace("/", "_")).hex()


def _unix_to_iso(value: Any) -> str | None:
    seconds = int(value or 0)
    if not seconds:
        return None
    return datetime.fromtimestamp(seconds, UTC).isoformat().replace("+00:00", "Z")


def channel_from_edge(channel_id: str, edge: dict[str, Any]) -> Channel:
    """Map a /v1/graph/edge response to a Channel."""
    policies = []
    for side in ("1", "2"):
        public_key = edge.get(f"node{side}_pub")
        if not public_key:
            continue
        policy = edge.get(f"node{side}_policy") or {}
        policies.append(
            ChannelPolicy(
                public_key=public_key,
                fee_rate=int(policy["fee_rate_milli_msat"]) if "fee_rate_milli_msat" in policy else None,
                base_fee_mtokens=policy.get("fee_base_msat"),
                is_disabled=policy.get("disabled"),
            )
        )
    return Channel(id=channel_id, capacity=int(edge.get("capacity") or 0), policies=tuple(policies))


def payment_from_track(result: dict[str, Any]) -> PastPayment:
    """Map a TrackPaymentV2 SUCCEEDED update to a PastPayment."""
    hops: list[RouteHop] = []
    for htlc in result.get("htlcs") or []:
        if htlc.get("status") != "SUCCEEDED":
            continue
        for hop in (htlc.get("route") or {}).get("hops") or []:
            hops.append(
                RouteHop(
                    channel=scid_from_chan_id(hop.get("chan_id", 0)),
                    public_key=hop.get("pub_key", ""),
                    fee_mtokens=str(hop.get("fee_msat") or "0"),
                    forward_mtokens=str(hop.get("amt_to_forward_msat") or "0"),
                )
            )
        break

    return PastPayment(
        id=result.get("payment_hash", ""),
        fee_mtokens=str(result.get("fee_msat") or "0"),
        mtokens=str(result.get("value_msat") or "0"),
        hops=tuple(hops),
    )


def payment_event_from_update(update: dict[str, Any]) -> PaymentEvent | None:
    """Translate one streamed track update, returning None while in flight."""
    if "error" in update:
        error = update["error"] or {}
        return PaymentEvent(type=PaymentEventType.ERROR, error=str(error.get("message", error)))

    result = update.get("result", update)
    status = result.get("status")
    if status == "SUCCEEDED":
        return PaymentEvent(type=PaymentEventType.CONFIRMED, payment=payment_from_track(result))
    if status == "FAILED":
        return PaymentEvent(type=PaymentEventType.FAILED, error=result.get("failure_reason"))
    return None


def invoice_from_lnd(invoice: dict[str, Any]) -> SettledInvoice:
    """Map an LND invoice (REST JSON) to a SettledInvoice."""
    payments = []
    for htlc in invoice.get("htlcs") or []:
        state = htlc.get("state")
        records = htlc.get("custom_records") or {}
        mtokens = str(htlc.get("amt_msat") or "0")
        payments.append(
            PaymentContribution(
                in_channel=scid_from_chan_id(htlc.get("chan_id", 0)),
                mtokens=mtokens,
                tokens=int(mtokens) // 1000,
                is_confirmed=state == "SETTLED",
                is_canceled=state == "CANCELED",
                is_held=state == "ACCEPTED",
                confirmed_at=_unix_to_iso(htlc.get("resolve_time")),
                pending_index=int(htlc["htlc_index"]) if state == "ACCEPTED" else None,
                total_mtokens=htlc.get("mpp_total_amt_msat") or None,
                messages=tuple(
                    TlvRecord(type=str(record_type), value=_b64_to_hex(value))
                    for record_type, value in records.items()
                ),
            )
        )

    is_confirmed = invoice.get("state") == "SETTLED" or bool(invoice.get("settled"))
    return SettledInvoice(
        id=_b64_to_hex(invoice.get("r_hash", "")),
        is_confirmed=is_confirmed,
        description=invoice.get("memo", ""),
        received=int(invoice.get("amt_paid_sat") or 0),
        received_mtokens=str(invoice.get("amt_paid_msat") or "0"),
        is_push=bool(invoice.get("is_keysend")),
        confirmed_at=_unix_to_iso(invoice.get("settle_date")) if is_confirmed else None,
        payments=tuple(payments),
    )


class LndClient(NodeApi):
    """HTTP client for the LND REST interface."""

    def __init__(self, config: LndConfig) -> None:
        self._base_url = config.rest_url.rstrip("/")
        self._timeout = config.timeout_seconds
        self._macaroon = config.macaroon_hex.get_secret_value()
        self._verify: str | bool = config.tls_cert_path or True
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_remote(cls, remote: RemoteNode, timeout_seconds: float) -> LndClient:
        """Client for another controlled node, without reading LND_* env vars."""
        config = LndConfig.model_construct(
            rest_url=remote.rest_url,
            macaroon_hex=remote.macaroon_hex,
            macaroon_path="",
            tls_cert_path=remote.tls_cert_path,
            timeout_seconds=timeout_seconds,
        )
        return cls(config)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                verify=self._verify,
                headers={MACAROON_HEADER: self._macaroon},
            )
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_channel(self, channel_id: str) -> Channel:
        """GET /v1/graph/edge/{chan_id}"""
        try:
            chan_id = chan_id_from_scid(channel_id)
        except ValueError as exc:
            raise ChannelLookupError(channel_id, details={"error": str(exc)}) from exc

        response = await self._request("GET", f"/v1/graph/edge/{chan_id}", endpoint="graph_edge")
        if self._is_not_found(response):
            raise ChannelLookupError(channel_id)
        return channel_from_edge(channel_id, self._json_or_raise(response))

    async def get_node_alias(self, public_key: str) -> str:
        """GET /v1/graph/node/{pub_key}"""
        response = await self._request(
            "GET",
            f"/v1/graph/node/{public_key}",
            endpoint="graph_node",
            params={"include_channels": "false"},
        )
        if self._is_not_found(response):
            return ""
        data = self._json_or_raise(response)
        return str((data.get("node") or {}).get("alias") or "")

    async def get_identity_key(self) -> str:
        """GET /v1/getinfo"""
        response = await self._request("GET", "/v1/getinfo", endpoint="getinfo")
        return str(self._json_or_raise(response).get("identity_pubkey", ""))

    async def subscribe_to_past_payment(self, payment_id: str) -> AsyncIterator[PaymentEvent]:
        """GET /v2/router/track/{payment_hash} until a terminal update arrives."""
        try:
            hash_param = base64.urlsafe_b64encode(bytes.fromhex(payment_id)).decode()
        except ValueError:
            yield PaymentEvent(type=PaymentEventType.ERROR, error="Invalid payment hash")
            return

        path = f"/v2/router/track/{hash_param}"
        client = await self._get_client()

        try:
            async with client.stream(
                "GET", path, params={"no_inflight_updates": "true"}
            ) as response:
                if response.status_code != 200:
                    body = (await response.aread()).decode(errors="replace")
                    yield PaymentEvent(type=PaymentEventType.ERROR, error=body[:200])
                    return

                async for line in response.aiter_lines():
                    if not line.strip():
                        continue
                    event = payment_event_from_update(json.loads(line))
                    if event is not None:
                        yield event
                        return
        except (httpx.HTTPError, json.JSONDecodeError) as exc:
            notifier_dependency_failures_total.labels(dependency="lnd").inc()
            yield PaymentEvent(type=PaymentEventType.ERROR, error=str(exc))
            return

        yield PaymentEvent(type=PaymentEventType.ERROR, error="Payment stream ended")

    async def subscribe_to_invoices(self) -> AsyncIterator[SettledInvoice]:
        """GET /v1/invoices/subscribe, yielding every invoice update."""
        client = await self._get_client()
        timeout = httpx.Timeout(self._timeout, read=None)

        async with client.stream("GET", "/v1/invoices/subscribe", timeout=timeout) as response:
            if response.status_code != 200:
                body = (await response.aread()).decode(errors="replace")
                raise NodeApiError(
                    "Invoice subscription rejected",
                    details={"status_code": response.status_code, "body": body[:200]},
                )
            async for line in response.aiter_lines():
                if not line.strip():
                    continue
                try:
                    update = json.loads(line)
                    if "error" in update:
                        raise NodeApiError("Invoice subscription failed", details=update["error"])
                    invoice = invoice_from_lnd(update.get("result", update))
                except (ValueError, KeyError, TypeError, AttributeError) as exc:
                    # JSONDecodeError and pydantic ValidationError are ValueErrors
                    notifier_dependency_failures_total.labels(dependency="lnd").inc()
                    raise NodeApiError(
                        "Malformed invoice subscription update",
                        details={"error": str(exc), "line": line[:200]},
                    ) from exc
                yield invoice

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _is_not_found(response: httpx.Response) -> bool:
        if response.status_code == 404:
            return True
        if response.status_code < 400:
            return False
        text = response.text.lower()
        return any(marker in text for marker in _NOT_FOUND_MARKERS)

    @staticmethod
    def _json_or_raise(response: httpx.Response) -> dict[str, Any]:
        if response.status_code >= 400:
            raise NodeApiError(
                f"LND request failed with HTTP {response.status_code}",
                details={"body": response.text[:200]},
            )
        return response.json()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        endpoint: str,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Make an HTTP request with retry, metrics and logging."""
        client = await self._get_client()
        started = time.perf_counter()

        try:
            response = await self._request_with_retry(client, method, path, params)
        except httpx.HTTPError as exc:
            elapsed = time.perf_counter() - started
            notifier_dependency_failures_total.labels(dependency="lnd").inc()
            logger.error(
                "LND request failed",
                method=method,
                endpoint=endpoint,
                elapsed_ms=round(elapsed * 1000, 1),
                error=str(exc),
            )
            raise NodeApiError(f"LND request to {endpoint} failed", details={"error": str(exc)}) from exc

        elapsed = time.perf_counter() - started
        notifier_lnd_api_latency_seconds.labels(endpoint=endpoint).observe(elapsed)
        notifier_lnd_api_requests_total.labels(
            endpoint=endpoint, status_code=str(response.status_code)
        ).inc()
        logger.debug(
            "LND request completed",
            method=method,
            endpoint=endpoint,
            status_code=response.status_code,
            elapsed_ms=round(elapsed * 1000, 1),
        )
        return response

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
        retry=retry_if_exception_type((httpx.ConnectError, httpx.ConnectTimeout)),
        reraise=True,
    )
    async def _request_with_retry(
        self,
        client: httpx.AsyncClient,
        method: str,
        path: str,
        params: dict[str, Any] | None,
    ) -> httpx.Response:
        """Execute HTTP request with tenacity retry on connection failures."""
        return await client.request(method, path, params=params)
