"""Core data structures for kube-state-logs."""

from kubestatelogs.models.config import (
    APIConfig,
    CollectionConfig,
    CRDConfig,
    KubernetesConfig,
    KubeStateLogsConfig,
    LogConfig,
)
from kubestatelogs.models.records import (
    CollectionResult,
    HandlerRegistration,
    NormalizedRecord,
)

__all__ = [
    "APIConfig",
    "CRDConfig",
    "CollectionConfig",
    "CollectionResult",
    "HandlerRegistration",
    "KubeStateLogsConfig",
    "KubernetesConfig",
    "LogConfig",
    "NormalizedRecord",
]
