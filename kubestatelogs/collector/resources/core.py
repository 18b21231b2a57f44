"""Core API kinds: namespaces, nodes, services, config and quota objects."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from kubestatelogs.collector.handler import BaseHandler, InformerHandler
from kubestatelogs.collector.serializer import json_field
from kubestatelogs.collector.utils import (
    collect_conditions,
    extract_field,
    get_condition_status,
    get_path,
    int_or_string,
    optional_int,
    parse_time,
    quantity_int_map,
    quantity_map,
    string_map,
)

_NODE_ROLE_PREFIX = "node-role.kubernetes.io/"

# ---------------------------------------------------------------------------
# Namespace
# ---------------------------------------------------------------------------


@dataclass
class NamespaceData:
    phase: str = json_field("phase", default="")
    condition_active: bool | None = json_field("conditionActive", default=None)
    condition_terminating: bool | None = json_field("conditionTerminating", default=None)
    conditions: dict[str, bool | None] = json_field("conditions", default_factory=dict)
    deletion_timestamp: datetime | None = json_field("deletionTimestamp", default=None)


class NamespaceHandler(BaseHandler):
    resource_type = "namespace"
    cluster_scoped = True

    def build_data(self, obj: Mapping[str, Any]) -> NamespaceData:
        conditions = extract_field(obj, "status.conditions")
        return NamespaceData(
            phase=get_path(obj, "status.phase", ""),
            condition_active=get_condition_status(conditions, "NamespaceActive"),
            condition_terminating=get_condition_status(conditions, "NamespaceTerminating"),
            conditions=collect_conditions(conditions, exclude=("NamespaceActive", "NamespaceTerminating")),
            deletion_timestamp=parse_time(extract_field(obj, "metadata.deletionTimestamp")),
        )


# ---------------------------------------------------------------------------
# Node
# ---------------------------------------------------------------------------


@dataclass
class NodeData:
    architecture: str = json_field("architecture", default="")
    operating_system: str = json_field("operatingSystem", default="")
    os_image: str = json_field("osImage", default="")
    kernel_version: str = json_field("kernelVersion", default="")
    kubelet_version: str = json_field("kubeletVersion", default="")
    kube_proxy_version: str = json_field("kubeProxyVersion", default="")
    container_runtime_version: str = json_field("containerRuntimeVersion", default="")
    capacity: dict[str, str] | None = json_field("capacity", default=None)
    allocatable: dict[str, str] | None = json_field("allocatable", default=None)
    ready: bool | None = json_field("ready", default=None)
    conditions: dict[str, bool | None] = json_field("conditions", default_factory=dict)
    internal_ip: str = json_field("internalIP", default="")
    external_ip: str = json_field("externalIP", default="")
    hostname: str = json_field("hostname", default="")
    unschedulable: bool = json_field("unschedulable", default=False)
    role: str = json_field("role", default="")
    taints: list[dict[str, Any]] = json_field("taints", default_factory=list)
    pod_cidr: str = json_field("podCIDR", default="")
    provider_id: str = json_field("providerID", default="")
    deletion_timestamp: datetime | None = json_field("deletionTimestamp", default=None)


def node_role(labels: Mapping[str, Any] | None) -> str:
    """First non-empty ``node-role.kubernetes.io/<role>`` label suffix, sorted for stability."""
    for key in sorted(labels or {}):
        if key.startswith(_NODE_ROLE_PREFIX) and key[len(_NODE_ROLE_PREFIX) :]:
            return key[len(_NODE_ROLE_PREFIX) :]
    return ""


class NodeHandler(BaseHandler):
    resource_type = "node"
    cluster_scoped = True

    def build_data(self, obj: Mapping[str, Any]) -> NodeData:
        conditions = extract_field(obj, "status.conditions")
        addresses: dict[str, str] = {}
        for address in get_path(obj, "status.addresses", []):
            addresses.setdefault(str(address.get("type")), str(address.get("address") or ""))
        info = get_path(obj, "status.nodeInfo", {})
        return NodeData(
            architecture=info.get("architecture", ""),
            operating_system=info.get("operatingSystem", ""),
            os_image=info.get("osImage", ""),
            kernel_version=info.get("kernelVersion", ""),
            kubelet_version=info.get("kubeletVersion", ""),
            kube_proxy_version=info.get("kubeProxyVersion", ""),
            container_runtime_version=info.get("containerRuntimeVersion", ""),
            capacity=quantity_map(extract_field(obj, "status.capacity")),
            allocatable=quantity_map(extract_field(obj, "status.allocatable")),
            ready=get_condition_status(conditions, "Ready"),
            conditions=collect_conditions(conditions, exclude=("Ready",)),
            internal_ip=addresses.get("InternalIP", ""),
            external_ip=addresses.get("ExternalIP", ""),
            hostname=addresses.get("Hostname", ""),
            unschedulable=bool(get_path(obj, "spec.unschedulable", False)),
            role=node_role(extract_field(obj, "metadata.labels")),
            taints=[
                {"key": t.get("key", ""), "value": t.get("value", ""), "effect": t.get("effect", "")}
                for t in get_path(obj, "spec.taints", [])
            ],
            pod_cidr=get_path(obj, "spec.podCIDR", ""),
            provider_id=get_path(obj, "spec.providerID", ""),
            deletion_timestamp=parse_time(extract_field(obj, "metadata.deletionTimestamp")),
        )


# ---------------------------------------------------------------------------
# Service / Endpoints
# ---------------------------------------------------------------------------


@dataclass
class ServiceData:
    type: str = json_field("type", default="")
    cluster_ip: str = json_field("clusterIP", default="")
    external_ip: str = json_field("externalIP", default="")
    load_balancer_ip: str = json_field("loadBalancerIP", default="")
    external_name: str = json_field("externalName", default="")
    ports: list[dict[str, Any]] = json_field("ports", default_factory=list)
    selector: dict[str, str] | None = json_field("selector", default=None)
    load_balancer_ingress: list[dict[str, str]] = json_field("loadBalancerIngress", default_factory=list)
    session_affinity: str = json_field("sessionAffinity", default="")
    session_affinity_timeout: int | None = json_field("sessionAffinityClientIPTimeoutSeconds", default=None)
    internal_traffic_policy: str = json_field("internalTrafficPolicy", default="")
    external_traffic_policy: str = json_field("externalTrafficPolicy", default="")


def load_balancer_ingress(obj: Mapping[str, Any]) -> list[dict[str, str]]:
    return [
        {"ip": entry.get("ip", ""), "hostname": entry.get("hostname", "")}
        for entry in get_path(obj, "status.loadBalancer.ingress", [])
    ]


class ServiceHandler(BaseHandler):
    resource_type = "service"

    def build_data(self, obj: Mapping[str, Any]) -> ServiceData:
        external_ips = get_path(obj, "spec.externalIPs", [])
        return ServiceData(
            type=get_path(obj, "spec.type", ""),
            cluster_ip=get_path(obj, "spec.clusterIP", ""),
            external_ip=external_ips[0] if external_ips else "",
            load_balancer_ip=get_path(obj, "spec.loadBalancerIP", ""),
            external_name=get_path(obj, "spec.externalName", ""),
            ports=[
                {
                    "name": port.get("name", ""),
                    "protocol": port.get("protocol", ""),
                    "port": port.get("port"),
                    "targetPort": int_or_string(port.get("targetPort")),
                    "nodePort": port.get("nodePort"),
                }
                for port in get_path(obj, "spec.ports", [])
            ],
            selector=string_map(extract_field(obj, "spec.selector")),
            load_balancer_ingress=load_balancer_ingress(obj),
            session_affinity=get_path(obj, "spec.sessionAffinity", ""),
            session_affinity_timeout=optional_int(obj, "spec.sessionAffinityConfig.clientIP.timeoutSeconds"),
            internal_traffic_policy=get_path(obj, "spec.internalTrafficPolicy", ""),
            external_traffic_policy=get_path(obj, "spec.externalTrafficPolicy", ""),
        )


@dataclass
class EndpointsData:
    addresses: list[dict[str, Any]] = json_field("addresses", default_factory=list)
    not_ready_addresses: list[dict[str, Any]] = json_field("notReadyAddresses", default_factory=list)
    ports: list[dict[str, Any]] = json_field("ports", default_factory=list)
    ready: bool = json_field("ready", default=False)


def _endpoint_address(address: Mapping[str, Any]) -> dict[str, Any]:
    target = address.get("targetRef") or {}
    target_ref = f"{target.get('kind', '')}/{target.get('name', '')}" if target else ""
    return {
        "ip": address.get("ip", ""),
        "hostname": address.get("hostname", ""),
        "nodeName": address.get("nodeName", ""),
        "targetRef": target_ref,
    }


class EndpointsHandler(BaseHandler):
    resource_type = "endpoints"

    def build_data(self, obj: Mapping[str, Any]) -> EndpointsData:
        addresses: list[dict[str, Any]] = []
        not_ready: list[dict[str, Any]] = []
        ports: list[dict[str, Any]] = []
        for subset in obj.get("subsets") or []:
            addresses.extend(_endpoint_address(a) for a in subset.get("addresses") or [])
            not_ready.extend(_endpoint_address(a) for a in subset.get("notReadyAddresses") or [])
            ports.extend(
                {"name": p.get("name", ""), "protocol": p.get("protocol", ""), "port": p.get("port")}
                for p in subset.get("ports") or []
            )
        return EndpointsData(addresses=addresses, not_ready_addresses=not_ready, ports=ports, ready=bool(addresses))


# ---------------------------------------------------------------------------
# ConfigMap / Secret / ServiceAccount
# ---------------------------------------------------------------------------


@dataclass
class ConfigMapData:
    data_keys: list[str] = json_field("dataKeys", default_factory=list)
    binary_data_keys: list[str] = json_field("binaryDataKeys", default_factory=list)
    immutable: bool | None = json_field("immutable", default=None)


class ConfigMapHandler(BaseHandler):
    resource_type = "configmap"

    def build_data(self, obj: Mapping[str, Any]) -> ConfigMapData:
        return ConfigMapData(
            data_keys=sorted(obj.get("data") or {}),
            binary_data_keys=sorted(obj.get("binaryData") or {}),
            immutable=obj.get("immutable"),
        )


@dataclass
class SecretData:
    # Values are never collected; only key names.
    type: str = json_field("type", default="")
    data_keys: list[str] = json_field("dataKeys", default_factory=list)
    immutable: bool | None = json_field("immutable", default=None)


class SecretHandler(BaseHandler):
    resource_type = "secret"

    def build_data(self, obj: Mapping[str, Any]) -> SecretData:
        keys = set(obj.get("data") or {}) | set(obj.get("stringData") or {})
        return SecretData(type=str(obj.get("type") or ""), data_keys=sorted(keys), immutable=obj.get("immutable"))


@dataclass
class ServiceAccountData:
    secrets: list[str] = json_field("secrets", default_factory=list)
    image_pull_secrets: list[str] = json_field("imagePullSecrets", default_factory=list)
    automount_token: bool | None = json_field("automountServiceAccountToken", default=None)


class ServiceAccountHandler(BaseHandler):
    resource_type = "serviceaccount"

    def build_data(self, obj: Mapping[str, Any]) -> ServiceAccountData:
        return ServiceAccountData(
            secrets=[str(ref.get("name", "")) for ref in obj.get("secrets") or []],
            image_pull_secrets=[str(ref.get("name", "")) for ref in obj.get("imagePullSecrets") or []],
            automount_token=obj.get("automountServiceAccountToken"),
        )


# ---------------------------------------------------------------------------
# ResourceQuota / LimitRange
# ---------------------------------------------------------------------------


@dataclass
class ResourceQuotaData:
    hard: dict[str, int] | None = json_field("hard", default=None)
    used: dict[str, int] | None = json_field("used", default=None)
    scopes: list[str] = json_field("scopes", default_factory=list)


class ResourceQuotaHandler(BaseHandler):
    resource_type = "resourcequota"

    def build_data(self, obj: Mapping[str, Any]) -> ResourceQuotaData:
        return ResourceQuotaData(
            hard=quantity_int_map(extract_field(obj, "status.hard") or extract_field(obj, "spec.hard")),
            used=quantity_int_map(extract_field(obj, "status.used")),
            scopes=list(get_path(obj, "spec.scopes", [])),
        )


@dataclass
class LimitRangeData:
    limits: list[dict[str, Any]] = json_field("limits", default_factory=list)


class LimitRangeHandler(BaseHandler):
    resource_type = "limitrange"

    def build_data(self, obj: Mapping[str, Any]) -> LimitRangeData:
        return LimitRangeData(
            limits=[
                {
                    "type": item.get("type", ""),
                    "min": quantity_map(item.get("min")),
                    "max": quantity_map(item.get("max")),
                    "default": quantity_map(item.get("default")),
                    "defaultRequest": quantity_map(item.get("defaultRequest")),
                    "maxLimitRequestRatio": quantity_map(item.get("maxLimitRequestRatio")),
                }
                for item in get_path(obj, "spec.limits", [])
            ]
        )


HANDLERS: tuple[type[InformerHandler], ...] = (
    NamespaceHandler,
    NodeHandler,
    ServiceHandler,
    EndpointsHandler,
    ConfigMapHandler,
    SecretHandler,
    ServiceAccountHandler,
    ResourceQuotaHandler,
    LimitRangeHandler,
)
