"""Generic adapter for custom resources configured at runtime.

Each configured resource gets its own handler instance, reading a
``CustomObjectsApi`` informer.  Besides ``spec`` and ``status`` verbatim,
the record carries ``customFields``: one entry per configured dotted path
that resolves on the object.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from kubestatelogs.cache.factory import InformerFactory
from kubestatelogs.cache.informer import Informer
from kubestatelogs.collector.handler import BaseHandler
from kubestatelogs.collector.serializer import json_field
from kubestatelogs.collector.utils import extract_field, object_namespace, should_include_namespace
from kubestatelogs.models.config import CRDConfig


@dataclass
class CustomResourceData:
    api_version: str = json_field("apiVersion", default="")
    kind: str = json_field("kind", default="")
    spec: dict[str, Any] = json_field("spec", default_factory=dict)
    status: dict[str, Any] = json_field("status", default_factory=dict)
    custom_fields: dict[str, Any] = json_field("customFields", default_factory=dict)


class CustomResourceHandler(BaseHandler):
    """Collects one custom resource type, e.g. ``certificates.cert-manager.io``."""

    def __init__(self, crd: CRDConfig) -> None:
        self.crd = crd
        self.resource_type = crd.resource
        super().__init__()

    def acquire_informer(self, factory: InformerFactory) -> Informer:
        return factory.for_custom_resource(self.crd.group, self.crd.version, self.crd.resource)

    def in_scope(self, obj: Mapping[str, Any], namespaces: Sequence[str]) -> bool:
        namespace = object_namespace(obj)
        # Cluster-scoped instances have no namespace to filter on.
        if not namespace:
            return True
        return should_include_namespace(namespaces, namespace)

    def build_data(self, obj: Mapping[str, Any]) -> CustomResourceData:
        spec = obj.get("spec")
        status = obj.get("status")
        custom_fields: dict[str, Any] = {}
        for path in self.crd.custom_fields:
            value = extract_field(obj, path)
            if value is not None:
                custom_fields[path] = value
        return CustomResourceData(
            api_version=str(obj.get("apiVersion") or self.crd.api_version),
            kind=str(obj.get("kind") or ""),
            spec=dict(spec) if isinstance(spec, Mapping) else {},
            status=dict(status) if isinstance(status, Mapping) else {},
            custom_fields=custom_fields,
        )
