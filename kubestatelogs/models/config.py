"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field

DEFAULT_RESOURCES: tuple[str, ...] = (
    "pod",
    "container",
    "service",
    "node",
    "deployment",
    "job",
    "cronjob",
    "configmap",
    "secret",
    "persistentvolumeclaim",
    "ingress",
    "horizontalpodautoscaler",
    "serviceaccount",
    "endpoints",
    "persistentvolume",
    "resourcequota",
    "poddisruptionbudget",
    "storageclass",
    "networkpolicy",
    "replicationcontroller",
    "limitrange",
    "lease",
    "role",
    "clusterrole",
    "rolebinding",
    "clusterrolebinding",
    "volumeattachment",
    "certificatesigningrequest",
    "mutatingwebhookconfiguration",
    "validatingwebhookconfiguration",
    "ingressclass",
)


@dataclass(frozen=True)
class CRDConfig:
    """A custom resource to collect, with optional dotted-path custom fields."""

    group: str
    version: str
    resource: str
    custom_fields: tuple[str, ...] = ()

    @property
    def api_version(self) -> str:
        return f"{self.group}/{self.version}" if self.group else self.version


@dataclass
class CollectionConfig:
    """Collection cadence and scope."""

    log_interval_seconds: float = 60.0
    resources: list[str] = field(default_factory=lambda: list(DEFAULT_RESOURCES))
    resource_intervals: dict[str, float] = field(default_factory=dict)
    namespaces: list[str] = field(default_factory=list)
    crds: list[CRDConfig] = field(default_factory=list)
    cache_sync_timeout_seconds: float = 60.0
    collection_timeout_seconds: float = 30.0

    def interval_for(self, resource_type: str) -> float:
        """Return the configured interval for *resource_type*, or the default."""
        return self.resource_intervals.get(resource_type, self.log_interval_seconds)


@dataclass
class KubernetesConfig:
    """Cluster connection configuration."""

    kubeconfig: str = ""


@dataclass
class APIConfig:
    """Health/status API configuration."""

    enabled: bool = True
    port: int = 8080


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class KubeStateLogsConfig:
    """Top-level kube-state-logs configuration."""

    collection: CollectionConfig = field(default_factory=CollectionConfig)
    kubernetes: KubernetesConfig = field(default_factory=KubernetesConfig)
    api: APIConfig = field(default_factory=APIConfig)
    log: LogConfig = field(default_factory=LogConfig)
