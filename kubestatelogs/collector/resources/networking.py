"""networking.k8s.io kinds: ingresses, ingress classes, network policies."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from kubestatelogs.collector.handler import BaseHandler, InformerHandler
from kubestatelogs.collector.resources.core import load_balancer_ingress
from kubestatelogs.collector.serializer import json_field
from kubestatelogs.collector.utils import extract_field, get_path, int_or_string, string_map

DEFAULT_INGRESS_CLASS_ANNOTATION = "ingressclass.kubernetes.io/is-default-class"


@dataclass
class IngressData:
    ingress_class_name: str | None = json_field("ingressClassName", default=None)
    load_balancer_ingress: list[dict[str, str]] = json_field("loadBalancerIngress", default_factory=list)
    rules: list[dict[str, Any]] = json_field("rules", default_factory=list)
    tls: list[dict[str, Any]] = json_field("tls", default_factory=list)
    default_backend: str = json_field("defaultBackend", default="")
    condition_load_balancer_ready: bool | None = json_field("conditionLoadBalancerReady", default=None)


def _backend_service(backend: Mapping[str, Any] | None) -> tuple[str, str]:
    """Return ``(service, port)`` of an IngressBackend; port may be a name."""
    service = (backend or {}).get("service") or {}
    port = service.get("port") or {}
    port_value = port.get("number", port.get("name", ""))
    return str(service.get("name") or ""), "" if port_value is None else str(port_value)


class IngressHandler(BaseHandler):
    resource_type = "ingress"

    def build_data(self, obj: Mapping[str, Any]) -> IngressData:
        rules: list[dict[str, Any]] = []
        for rule in get_path(obj, "spec.rules", []):
            paths = []
            for path in extract_field(rule, "http.paths") or []:
                service, port = _backend_service(path.get("backend"))
                paths.append(
                    {
                        "path": path.get("path", ""),
                        "pathType": path.get("pathType", ""),
                        "service": service,
                        "port": port,
                    }
                )
            rules.append({"host": rule.get("host", ""), "paths": paths})

        default_service, default_port = _backend_service(extract_field(obj, "spec.defaultBackend"))
        lb_ingress = load_balancer_ingress(obj)
        status_present = isinstance(extract_field(obj, "status.loadBalancer"), Mapping)
        return IngressData(
            ingress_class_name=extract_field(obj, "spec.ingressClassName"),
            load_balancer_ingress=lb_ingress,
            rules=rules,
            tls=[
                {"hosts": list(entry.get("hosts") or []), "secretName": entry.get("secretName", "")}
                for entry in get_path(obj, "spec.tls", [])
            ],
            default_backend=f"{default_service}:{default_port}" if default_service else "",
            condition_load_balancer_ready=bool(lb_ingress) if status_present else None,
        )


@dataclass
class IngressClassData:
    controller: str = json_field("controller", default="")
    is_default: bool = json_field("isDefault", default=False)
    parameters: dict[str, Any] | None = json_field("parameters", default=None)


class IngressClassHandler(BaseHandler):
    resource_type = "ingressclass"
    cluster_scoped = True

    def build_data(self, obj: Mapping[str, Any]) -> IngressClassData:
        annotations = get_path(obj, "metadata.annotations", {})
        parameters = extract_field(obj, "spec.parameters")
        return IngressClassData(
            controller=get_path(obj, "spec.controller", ""),
            is_default=annotations.get(DEFAULT_INGRESS_CLASS_ANNOTATION) == "true",
            parameters=dict(parameters) if isinstance(parameters, Mapping) else None,
        )


@dataclass
class NetworkPolicyData:
    pod_selector: dict[str, str] | None = json_field("podSelector", default=None)
    policy_types: list[str] = json_field("policyTypes", default_factory=list)
    ingress_rules: list[dict[str, Any]] = json_field("ingressRules", default_factory=list)
    egress_rules: list[dict[str, Any]] = json_field("egressRules", default_factory=list)


def _policy_ports(ports: list[Mapping[str, Any]] | None) -> list[dict[str, Any]]:
    return [
        {
            "protocol": port.get("protocol", ""),
            "port": int_or_string(port.get("port")),
            "endPort": port.get("endPort"),
        }
        for port in ports or []
    ]


def _policy_peers(peers: list[Mapping[str, Any]] | None) -> list[dict[str, Any]]:
    result = []
    for peer in peers or []:
        ip_block = peer.get("ipBlock")
        result.append(
            {
                "podSelector": string_map(extract_field(peer, "podSelector.matchLabels")),
                "namespaceSelector": string_map(extract_field(peer, "namespaceSelector.matchLabels")),
                "ipBlock": dict(ip_block) if isinstance(ip_block, Mapping) else None,
            }
        )
    return result


class NetworkPolicyHandler(BaseHandler):
    resource_type = "networkpolicy"

    def build_data(self, obj: Mapping[str, Any]) -> NetworkPolicyData:
        return NetworkPolicyData(
            pod_selector=string_map(extract_field(obj, "spec.podSelector.matchLabels")),
            policy_types=list(get_path(obj, "spec.policyTypes", [])),
            ingress_rules=[
                {"ports": _policy_ports(rule.get("ports")), "from": _policy_peers(rule.get("from"))}
                for rule in get_path(obj, "spec.ingress", [])
            ],
            egress_rules=[
                {"ports": _policy_ports(rule.get("ports")), "to": _policy_peers(rule.get("to"))}
                for rule in get_path(obj, "spec.egress", [])
            ],
        )


HANDLERS: tuple[type[InformerHandler], ...] = (IngressHandler, IngressClassHandler, NetworkPolicyHandler)
