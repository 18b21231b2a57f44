"""Per-kind resource adapters."""

from __future__ import annotations

import structlog

from kubestatelogs.collector.handler import InformerHandler
from kubestatelogs.collector.resources import (
    admission,
    core,
    networking,
    pods,
    rbac,
    scheduling,
    storage,
    workloads,
)
from kubestatelogs.collector.resources.custom import CustomResourceHandler
from kubestatelogs.models.config import CollectionConfig

_log = structlog.get_logger(component="collector.resources")

HANDLER_CLASSES: dict[str, type[InformerHandler]] = {
    cls.resource_type: cls
    for module in (workloads, pods, core, storage, networking, rbac, admission, scheduling)
    for cls in module.HANDLERS
}


def configured_resource_types(config: CollectionConfig) -> list[str]:
    """Configured kinds plus any kind that only appears in an interval override."""
    kinds = list(dict.fromkeys(config.resources))
    kinds.extend(kind for kind in config.resource_intervals if kind not in kinds)
    return kinds


def build_handlers(config: CollectionConfig) -> list[InformerHandler]:
    """Instantiate the adapters for the configured kinds and custom resources."""
    handlers: list[InformerHandler] = []
    for kind in configured_resource_types(config):
        cls = HANDLER_CLASSES.get(kind)
        if cls is None:
            _log.warning("unknown_resource_type", resource_type=kind)
            continue
        handlers.append(cls())
    for crd in config.crds:
        handlers.append(CustomResourceHandler(crd))
    return handlers


__all__ = ["HANDLER_CLASSES", "CustomResourceHandler", "build_handlers", "configured_resource_types"]
