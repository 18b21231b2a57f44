"""Route handlers for the health/status API."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from kubestatelogs import __version__
from kubestatelogs.api.schemas import HealthResponse, KindStatus, PassSummary, StatusResponse

router = APIRouter()
metrics_router = APIRouter()


def _kind_statuses(registry: Any, config: Any) -> list[KindStatus]:
    kinds: list[KindStatus] = []
    for registration in registry.registrations:
        informer = getattr(registration.handler, "informer", None)
        synced = bool(informer is not None and informer.has_synced())
        interval = config.collection.interval_for(registration.resource_type) if config is not None else 0.0
        kinds.append(
            KindStatus(resource_type=registration.resource_type, synced=synced, interval_seconds=interval)
        )
    return kinds


def _pass_summary(scheduler: Any) -> PassSummary | None:
    result = scheduler.last_pass if scheduler is not None else None
    if result is None:
        return None
    return PassSummary(
        collected_at=result.collected_at.isoformat().replace("+00:00", "Z"),
        records=len(result.records),
        records_by_type=result.records_by_type(),
        failed_kinds=result.failed_kinds,
        cancelled=result.cancelled,
        duration_seconds=round(result.duration_seconds, 3),
    )


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Liveness: the process is up and serving."""
    return HealthResponse(status="ok", version=__version__)


@router.get("/status", response_model=StatusResponse)
async def status(request: Request) -> JSONResponse:
    """Per-kind sync state and the last pass; 503 until every bound kind has synced."""
    state = request.app.state
    config = state.config
    kinds = _kind_statuses(state.registry, config)
    ready = all(kind.synced for kind in kinds)
    body = StatusResponse(
        status="ready" if ready else "syncing",
        version=__version__,
        namespaces=list(config.collection.namespaces) if config is not None else [],
        kinds=kinds,
        bind_failures={kind: str(err.cause) for kind, err in state.registry.failed.items()},
        passes=state.scheduler.passes if state.scheduler is not None else 0,
        last_pass=_pass_summary(state.scheduler),
    )
    return JSONResponse(status_code=200 if ready else 503, content=body.model_dump())


@metrics_router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    """Prometheus exposition of the process-wide registry."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
