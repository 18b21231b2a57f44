"""Health/status API for kube-state-logs.

Exposes:
    create_app -- FastAPI application factory.
    build_app  -- Alias for create_app (used by the kubestatelogs.app bootstrap).
"""

from kubestatelogs.api.app import create_app

build_app = create_app

__all__ = ["build_app", "create_app"]
