"""Settled Invoice Notifier Service.

Watches the invoices of every node the operator controls and posts a Telegram
notification for each settlement. A small HTTP surface exposes health and
Prometheus metrics.
"""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from invoice_notifier.api.routes.health import router as health_router
from invoice_notifier.api.routes.monitoring import router as monitoring_router
from invoice_notifier.clients.lnd_client import LndClient
from invoice_notifier.clients.telegram_client import TelegramClient
from invoice_notifier.core.config import AppEnvironment, Settings, get_settings
from invoice_notifier.core.errors import NotifierError
from invoice_notifier.core.logging import setup_logging
from invoice_notifier.schemas.invoice import ControlledNode
from invoice_notifier.services.invoice_watcher import InvoiceWatcher

logger = structlog.get_logger(__name__)

API_V1_PREFIX = "/api/v1"
DEFAULT_NODE_LABEL = "lnd"


async def build_controlled_nodes(settings: Settings) -> list[ControlledNode]:
    """Connect to the receiving node and every remote node, resolving their keys."""
    clients = [(settings.notify.from_label or DEFAULT_NODE_LABEL, LndClient(settings.lnd))]
    clients.extend(
        (remote.label, LndClient.from_remote(remote, settings.lnd.timeout_seconds))
        for remote in settings.nodes.remote
    )

    keys = await asyncio.gather(*(client.get_identity_key() for _, client in clients))

    return [
        ControlledNode(label=label, public_key=key, api=client)
        for (label, client), key in zip(clients, keys, strict=True)
    ]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Start one invoice watcher per controlled node for the app lifetime."""
    settings = get_settings()
    setup_logging()

    if not settings.telegram.chat_id:
        raise NotifierError("TELEGRAM_CHAT_ID must be set to deliver notifications")

    logger.info(
        "Starting Settled Invoice Notifier",
        app=settings.app.name,
        env=settings.app.env.value,
        version=settings.app.version,
    )

    telegram = TelegramClient(settings.telegram)
    nodes = await build_controlled_nodes(settings)

    watchers = {
        node.label: InvoiceWatcher(
            node=node,
            nodes=nodes,
            chat_id=settings.telegram.chat_id,
            send=telegram.sender(),
            quiz=telegram.quiz_sender(settings.telegram.chat_id),
        )
        for node in nodes
    }
    tasks = {
        label: asyncio.create_task(watcher.run(), name=f"invoice-watcher:{label}")
        for label, watcher in watchers.items()
    }

    app.state.settings = settings
    app.state.watchers = watchers
    app.state.watcher_tasks = tasks

    yield

    for task in tasks.values():
        task.cancel()
    await asyncio.gather(*tasks.values(), return_exceptions=True)
    await asyncio.gather(*(watcher.drain() for watcher in watchers.values()))

    for node in nodes:
        await node.api.close()
    await telegram.close()

    logger.info("Settled Invoice Notifier stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Settled Invoice Notifier",
        description="Classifies settled Lightning invoices and posts Telegram notifications.",
        version=settings.app.version,
        lifespan=lifespan,
        docs_url="/docs" if settings.app.env != AppEnvironment.PROD else None,
        redoc_url=None,
        openapi_url="/openapi.json" if settings.app.env != AppEnvironment.PROD else None,
    )

    app.include_router(health_router, prefix=API_V1_PREFIX)
    app.include_router(monitoring_router, prefix=API_V1_PREFIX)

    setup_telemetry(app, settings)

    return app


def setup_telemetry(app: FastAPI, settings: Settings) -> None:
    """Export pipeline and request spans over OTLP when an endpoint is configured."""
    if not settings.observability.otlp_endpoint:
        return

    resource = Resource(
        attributes={
            SERVICE_NAME: settings.observability.service_name,
        }
    )

    provider = TracerProvider(resource=resource)
    exporter = OTLPSpanExporter(
        endpoint=settings.observability.otlp_endpoint,
        insecure=settings.observability.otlp_insecure,
    )
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)

    FastAPIInstrumentor.instrument_app(app)


def run() -> None:
    """Run the service using uvicorn."""
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "invoice_notifier.main:create_app",
        factory=True,
        host=settings.server.host,
        port=settings.server.port,
        log_level=settings.app.log_level.lower(),
    )


if __name__ == "__main__":
    run()
