"""FastAPI application factory for kube-state-logs.

Usage::

    from kubestatelogs.api.app import create_app

    app = create_app(registry=registry, scheduler=scheduler, config=config)

The same factory serves the production bootstrap (``kubestatelogs.app``)
and the unit tests.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from kubestatelogs.api.routes import metrics_router, router
from kubestatelogs.api.schemas import ErrorResponse

_log = structlog.get_logger(component="api.app")

_API_PREFIX = "/api/v1"


def create_app(
    registry: Any,
    factory: Any = None,
    scheduler: Any = None,
    config: Any = None,
) -> FastAPI:
    """Create and configure the health/status application.

    Args:
        registry:  HandlerRegistry; source of the active kinds and bind failures.
        factory:   InformerFactory (optional, exposed to routes via app.state).
        scheduler: CollectionScheduler; source of the last pass summary.
        config:    KubeStateLogsConfig for intervals and namespaces.
    """
    from kubestatelogs import __version__

    app = FastAPI(
        title="kube-state-logs",
        summary="Cluster state as structured logs",
        version=__version__,
        docs_url=f"{_API_PREFIX}/docs",
        redoc_url=None,
        openapi_url=f"{_API_PREFIX}/openapi.json",
    )

    app.state.registry = registry
    app.state.factory = factory
    app.state.scheduler = scheduler
    app.state.config = config

    app.include_router(router, prefix=_API_PREFIX)
    app.include_router(metrics_router)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        _request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        errors = exc.errors()
        detail = str(errors[0].get("msg", "")) if errors else "invalid request"
        return JSONResponse(
            status_code=400,
            content=ErrorResponse(error="INVALID_REQUEST", detail=detail).model_dump(),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Catch-all for unhandled exceptions; never expose stack traces."""
        _log.error(
            "unhandled_exception",
            path=str(request.url.path),
            method=request.method,
            error=str(exc),
        )
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error="INTERNAL_ERROR",
                detail="An unexpected error occurred.",
            ).model_dump(),
        )

    return app
