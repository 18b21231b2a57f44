"""Pydantic response schemas for the health/status API."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Error envelope returned for every non-2xx response."""

    error: str
    detail: str


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str


class KindStatus(BaseModel):
    """Per-kind collection state."""

    resource_type: str
    synced: bool
    interval_seconds: float


class PassSummary(BaseModel):
    """Outcome of the most recent collection pass."""

    collected_at: str
    records: int
    records_by_type: dict[str, int] = Field(default_factory=dict)
    failed_kinds: list[str] = Field(default_factory=list)
    cancelled: bool = False
    duration_seconds: float = 0.0


class StatusResponse(BaseModel):
    status: str
    version: str
    namespaces: list[str] = Field(default_factory=list)
    kinds: list[KindStatus] = Field(default_factory=list)
    bind_failures: dict[str, str] = Field(default_factory=dict)
    passes: int = 0
    last_pass: PassSummary | None = None
