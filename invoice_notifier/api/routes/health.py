"""Health check routes."""

import structlog
from fastapi import APIRouter, Request

from invoice_notifier.schemas.health import HealthResponse, ReadyResponse, WatcherStatus

router = APIRouter(tags=["health"])
logger = structlog.get_logger(__name__)


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Basic health check."""
    return HealthResponse(status="ok")


@router.get("/health/ready", response_model=ReadyResponse)
async def readiness_check(request: Request):
    """Ready when every invoice watcher task is still running."""
    watchers = getattr(request.app.state, "watchers", {}) or {}
    tasks = getattr(request.app.state, "watcher_tasks", {}) or {}

    statuses: dict[str, WatcherStatus] = {}
    for label, watcher in watchers.items():
        task = tasks.get(label)
        running = task is not None and not task.done()
        if not running:
            logger.warning("Invoice watcher not running", node=label)
        statuses[label] = WatcherStatus(
            running=running,
            processed=watcher.processed,
            failed=watcher.failed,
            in_flight=watcher.in_flight,
        )

    ready = bool(statuses) and all(status.running for status in statuses.values())
    return ReadyResponse(status="ready" if ready else "degraded", watchers=statuses)
