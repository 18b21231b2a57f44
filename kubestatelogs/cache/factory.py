"""Informer factory: builds and owns one informer per watched kind.

Handlers ask the factory for their kind's informer at bind time.  Kinds that
share an underlying resource (``pod`` and ``container``) share one informer.
A kind that is unknown, or whose API group/version is missing from the
installed client, raises ``BindError``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import structlog

from kubestatelogs.cache.informer import Informer
from kubestatelogs.errors import BindError

_log = structlog.get_logger(component="cache.factory")


@dataclass(frozen=True)
class KindSpec:
    """How to list one kind with kubernetes_asyncio."""

    api: str
    list_all: str
    list_namespaced: str | None = None

    @property
    def cluster_scoped(self) -> bool:
        return self.list_namespaced is None


def _ns(api: str, resource: str) -> KindSpec:
    return KindSpec(api, f"list_{resource}_for_all_namespaces", f"list_namespaced_{resource}")


def _cluster(api: str, resource: str) -> KindSpec:
    return KindSpec(api, f"list_{resource}")


KIND_SPECS: dict[str, KindSpec] = {
    # core/v1
    "pod": _ns("CoreV1Api", "pod"),
    "service": _ns("CoreV1Api", "service"),
    "endpoints": _ns("CoreV1Api", "endpoints"),
    "configmap": _ns("CoreV1Api", "config_map"),
    "secret": _ns("CoreV1Api", "secret"),
    "serviceaccount": _ns("CoreV1Api", "service_account"),
    "persistentvolumeclaim": _ns("CoreV1Api", "persistent_volume_claim"),
    "resourcequota": _ns("CoreV1Api", "resource_quota"),
    "limitrange": _ns("CoreV1Api", "limit_range"),
    "replicationcontroller": _ns("CoreV1Api", "replication_controller"),
    "node": _cluster("CoreV1Api", "node"),
    "namespace": _cluster("CoreV1Api", "namespace"),
    "persistentvolume": _cluster("CoreV1Api", "persistent_volume"),
    # apps/v1
    "deployment": _ns("AppsV1Api", "deployment"),
    "replicaset": _ns("AppsV1Api", "replica_set"),
    "statefulset": _ns("AppsV1Api", "stateful_set"),
    "daemonset": _ns("AppsV1Api", "daemon_set"),
    # batch/v1
    "job": _ns("BatchV1Api", "job"),
    "cronjob": _ns("BatchV1Api", "cron_job"),
    # networking.k8s.io/v1
    "ingress": _ns("NetworkingV1Api", "ingress"),
    "networkpolicy": _ns("NetworkingV1Api", "network_policy"),
    "ingressclass": _cluster("NetworkingV1Api", "ingress_class"),
    # autoscaling/v2, policy/v1
    "horizontalpodautoscaler": _ns("AutoscalingV2Api", "horizontal_pod_autoscaler"),
    "poddisruptionbudget": _ns("PolicyV1Api", "pod_disruption_budget"),
    # storage.k8s.io/v1
    "storageclass": _cluster("StorageV1Api", "storage_class"),
    "volumeattachment": _cluster("StorageV1Api", "volume_attachment"),
    # rbac.authorization.k8s.io/v1
    "role": _ns("RbacAuthorizationV1Api", "role"),
    "rolebinding": _ns("RbacAuthorizationV1Api", "role_binding"),
    "clusterrole": _cluster("RbacAuthorizationV1Api", "cluster_role"),
    "clusterrolebinding": _cluster("RbacAuthorizationV1Api", "cluster_role_binding"),
    # coordination.k8s.io/v1, certificates.k8s.io/v1
    "lease": _ns("CoordinationV1Api", "lease"),
    "certificatesigningrequest": _cluster("CertificatesV1Api", "certificate_signing_request"),
    # admissionregistration.k8s.io/v1
    "mutatingwebhookconfiguration": _cluster("AdmissionregistrationV1Api", "mutating_webhook_configuration"),
    "validatingwebhookconfiguration": _cluster("AdmissionregistrationV1Api", "validating_webhook_configuration"),
    "validatingadmissionpolicy": _cluster("AdmissionregistrationV1Api", "validating_admission_policy"),
    "validatingadmissionpolicybinding": _cluster("AdmissionregistrationV1Api", "validating_admission_policy_binding"),
    # scheduling.k8s.io/v1, node.k8s.io/v1
    "priorityclass": _cluster("SchedulingV1Api", "priority_class"),
    "runtimeclass": _cluster("NodeV1Api", "runtime_class"),
}

_CUSTOM_OBJECTS_API = "CustomObjectsApi"


def _default_api_factory(api_client: Any) -> Callable[[str], Any]:
    def build(api_name: str) -> Any:
        from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]

        return getattr(k8s_client, api_name)(api_client)

    return build


class InformerFactory:
    """Creates, caches and runs informers."""

    def __init__(
        self,
        api_client: Any = None,
        *,
        api_factory: Callable[[str], Any] | None = None,
        kind_specs: dict[str, KindSpec] | None = None,
    ) -> None:
        self._api_client = api_client
        self._api_factory = api_factory or _default_api_factory(api_client)
        self._kind_specs = kind_specs if kind_specs is not None else KIND_SPECS
        self._apis: dict[str, Any] = {}
        self._informers: dict[tuple[str, str], Informer] = {}
        self._started = False

    @property
    def informers(self) -> dict[str, Informer]:
        """Informers keyed by ``kind`` (or ``kind@namespace`` when scoped)."""
        return {(f"{kind}@{ns}" if ns else kind): inf for (kind, ns), inf in self._informers.items()}

    def supports(self, kind: str) -> bool:
        return kind in self._kind_specs

    def _api(self, api_name: str, kind: str) -> Any:
        if api_name not in self._apis:
            try:
                self._apis[api_name] = self._api_factory(api_name)
            except Exception as exc:
                raise BindError(kind, f"API {api_name} unavailable: {exc}") from exc
        return self._apis[api_name]

    def _serializer(self) -> Callable[[Any], Any] | None:
        sanitize = getattr(self._api_client, "sanitize_for_serialization", None)
        return sanitize if callable(sanitize) else None

    def for_kind(self, kind: str, namespace: str | None = None) -> Informer:
        """Return the shared informer for *kind*, optionally scoped to *namespace*."""
        spec = self._kind_specs.get(kind)
        if spec is None:
            raise BindError(kind, "unsupported resource kind")
        if spec.cluster_scoped:
            namespace = None

        key = (kind, namespace or "")
        if key in self._informers:
            return self._informers[key]

        api = self._api(spec.api, kind)
        method_name = spec.list_namespaced if namespace else spec.list_all
        list_fn = getattr(api, method_name or "", None)
        if list_fn is None:
            raise BindError(kind, f"{spec.api}.{method_name} not available in this client")

        informer = Informer(
            kind,
            list_fn,
            list_kwargs={"namespace": namespace} if namespace else None,
            serialize=self._serializer(),
        )
        self._register(key, informer)
        return informer

    def for_custom_resource(
        self,
        group: str,
        version: str,
        plural: str,
        namespace: str | None = None,
    ) -> Informer:
        """Return the shared informer for a custom resource (``CustomObjectsApi``)."""
        kind = f"{plural}.{group}" if group else plural
        key = (kind, namespace or "")
        if key in self._informers:
            return self._informers[key]

        api = self._api(_CUSTOM_OBJECTS_API, kind)
        kwargs: dict[str, Any] = {"group": group, "version": version, "plural": plural}
        if namespace:
            kwargs["namespace"] = namespace
            list_fn = getattr(api, "list_namespaced_custom_object", None)
        else:
            list_fn = getattr(api, "list_cluster_custom_object", None)
        if list_fn is None:
            raise BindError(kind, "custom object listing not available in this client")

        informer = Informer(kind, list_fn, list_kwargs=kwargs, serialize=self._serializer())
        self._register(key, informer)
        return informer

    def _register(self, key: tuple[str, str], informer: Informer) -> None:
        self._informers[key] = informer
        _log.debug("informer_created", kind=key[0], namespace=key[1] or None)
        if self._started:
            asyncio.ensure_future(informer.start())

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start every informer created so far (and any created later)."""
        self._started = True
        for informer in self._informers.values():
            await informer.start()
        _log.info("informers started", count=len(self._informers))

    async def stop(self) -> None:
        self._started = False
        await asyncio.gather(*(inf.stop() for inf in self._informers.values()), return_exceptions=True)

    async def wait_for_cache_sync(self, timeout: float | None = None) -> dict[str, bool]:
        """Wait (bounded) for every informer's initial list."""
        names = list(self.informers)
        results = await asyncio.gather(*(inf.wait_for_sync(timeout) for inf in self.informers.values()))
        return dict(zip(names, results, strict=True))

    def sync_status(self) -> dict[str, bool]:
        return {name: inf.has_synced() for name, inf in self.informers.items()}
