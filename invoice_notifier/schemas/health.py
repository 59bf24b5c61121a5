"""Health check schemas."""

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str


class WatcherStatus(BaseModel):
    running: bool
    processed: int = 0
    failed: int = 0
    in_flight: int = 0


class ReadyResponse(BaseModel):
    status: str
    watchers: dict[str, WatcherStatus] = Field(default_factory=dict)
