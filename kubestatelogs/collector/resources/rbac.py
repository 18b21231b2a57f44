"""RBAC kinds: roles, cluster roles and their bindings."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from kubestatelogs.collector.handler import BaseHandler, InformerHandler
from kubestatelogs.collector.serializer import json_field
from kubestatelogs.collector.utils import get_path, string_map


def policy_rules(obj: Mapping[str, Any]) -> list[dict[str, list[str]]]:
    return [
        {
            "apiGroups": list(rule.get("apiGroups") or []),
            "resources": list(rule.get("resources") or []),
            "resourceNames": list(rule.get("resourceNames") or []),
            "nonResourceURLs": list(rule.get("nonResourceURLs") or []),
            "verbs": list(rule.get("verbs") or []),
        }
        for rule in obj.get("rules") or []
    ]


def role_ref(obj: Mapping[str, Any]) -> dict[str, str]:
    ref = obj.get("roleRef") or {}
    return {"apiGroup": ref.get("apiGroup", ""), "kind": ref.get("kind", ""), "name": ref.get("name", "")}


def subjects(obj: Mapping[str, Any]) -> list[dict[str, str]]:
    return [
        {
            "kind": subject.get("kind", ""),
            "name": subject.get("name", ""),
            "namespace": subject.get("namespace", ""),
            "apiGroup": subject.get("apiGroup", ""),
        }
        for subject in obj.get("subjects") or []
    ]


@dataclass
class RoleData:
    rules: list[dict[str, list[str]]] = json_field("rules", default_factory=list)


class RoleHandler(BaseHandler):
    resource_type = "role"

    def build_data(self, obj: Mapping[str, Any]) -> RoleData:
        return RoleData(rules=policy_rules(obj))


@dataclass
class ClusterRoleData:
    rules: list[dict[str, list[str]]] = json_field("rules", default_factory=list)
    aggregation_selectors: list[dict[str, str] | None] = json_field("aggregationRule", default_factory=list)


class ClusterRoleHandler(BaseHandler):
    resource_type = "clusterrole"
    cluster_scoped = True

    def build_data(self, obj: Mapping[str, Any]) -> ClusterRoleData:
        selectors = get_path(obj, "aggregationRule.clusterRoleSelectors", [])
        return ClusterRoleData(
            rules=policy_rules(obj),
            aggregation_selectors=[string_map(selector.get("matchLabels")) for selector in selectors],
        )


@dataclass
class RoleBindingData:
    role_ref: dict[str, str] = json_field("roleRef", default_factory=dict)
    subjects: list[dict[str, str]] = json_field("subjects", default_factory=list)


class RoleBindingHandler(BaseHandler):
    resource_type = "rolebinding"

    def build_data(self, obj: Mapping[str, Any]) -> RoleBindingData:
        return RoleBindingData(role_ref=role_ref(obj), subjects=subjects(obj))


class ClusterRoleBindingHandler(RoleBindingHandler):
    resource_type = "clusterrolebinding"
    cluster_scoped = True


HANDLERS: tuple[type[InformerHandler], ...] = (RoleHandler, ClusterRoleHandler, RoleBindingHandler, ClusterRoleBindingHandler)
