"""Monitoring and metrics endpoints.

Provides Prometheus metrics endpoint for observability.
"""

import hmac

import structlog
from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import Response
from prometheus_client import generate_latest

from invoice_notifier.core.config import get_settings

router = APIRouter(tags=["Monitoring"])
logger = structlog.get_logger(__name__)


@router.get("/metrics")
async def get_metrics(request: Request) -> Response:
    """Prometheus metrics in text format, guarded by X-Metrics-Token."""
    expected_token = get_settings().metrics_token
    if not expected_token:
        logger.error("Metrics endpoint accessed but METRICS_TOKEN not configured")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Metrics token not configured. Set METRICS_TOKEN environment variable.",
        )

    provided_token = request.headers.get("X-Metrics-Token")
    if not hmac.compare_digest(provided_token or "", expected_token):
        logger.warning(
            "Unauthorized metrics access attempt",
            client_ip=request.client.host if request.client else "unknown",
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid metrics token",
        )

    return Response(
        content=generate_latest(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
