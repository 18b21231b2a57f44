"""Storage kinds: claims, volumes, storage classes and volume attachments."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from kubestatelogs.collector.handler import BaseHandler, InformerHandler
from kubestatelogs.collector.serializer import json_field
from kubestatelogs.collector.utils import (
    collect_conditions,
    extract_field,
    get_path,
    quantity_map,
    quantity_to_int,
    string_map,
)

DEFAULT_STORAGE_CLASS_ANNOTATION = "storageclass.kubernetes.io/is-default-class"

# PersistentVolumeSpec keys that name the backing volume plugin.
_VOLUME_PLUGINS = (
    "csi",
    "hostPath",
    "local",
    "nfs",
    "iscsi",
    "fc",
    "rbd",
    "cephfs",
    "glusterfs",
    "awsElasticBlockStore",
    "gcePersistentDisk",
    "azureDisk",
    "azureFile",
    "vsphereVolume",
    "cinder",
    "flexVolume",
    "portworxVolume",
)


@dataclass
class PersistentVolumeClaimData:
    access_modes: list[str] = json_field("accessModes", default_factory=list)
    storage_class_name: str | None = json_field("storageClassName", default=None)
    volume_name: str = json_field("volumeName", default="")
    volume_mode: str = json_field("volumeMode", default="")
    phase: str = json_field("phase", default="")
    capacity: dict[str, str] | None = json_field("capacity", default=None)
    request_storage: str = json_field("requestStorage", default="")
    used_storage: str = json_field("usedStorage", default="")
    condition_pending: bool | None = json_field("conditionPending", default=None)
    condition_bound: bool | None = json_field("conditionBound", default=None)
    condition_lost: bool | None = json_field("conditionLost", default=None)
    conditions: dict[str, bool | None] = json_field("conditions", default_factory=dict)


class PersistentVolumeClaimHandler(BaseHandler):
    resource_type = "persistentvolumeclaim"

    def build_data(self, obj: Mapping[str, Any]) -> PersistentVolumeClaimData:
        phase = get_path(obj, "status.phase", "")
        return PersistentVolumeClaimData(
            access_modes=list(get_path(obj, "spec.accessModes", [])),
            storage_class_name=extract_field(obj, "spec.storageClassName"),
            volume_name=get_path(obj, "spec.volumeName", ""),
            volume_mode=get_path(obj, "spec.volumeMode", ""),
            phase=phase,
            capacity=quantity_map(extract_field(obj, "status.capacity")),
            request_storage=str(get_path(obj, "spec.resources.requests.storage", "")),
            used_storage=str(get_path(obj, "status.capacity.storage", "")),
            # PVC lifecycle is reported as phase, not conditions.
            condition_pending=(phase == "Pending") if phase else None,
            condition_bound=(phase == "Bound") if phase else None,
            condition_lost=(phase == "Lost") if phase else None,
            conditions=collect_conditions(extract_field(obj, "status.conditions")),
        )


@dataclass
class PersistentVolumeData:
    capacity_bytes: int | None = json_field("capacityBytes", default=None)
    access_modes: list[str] = json_field("accessModes", default_factory=list)
    reclaim_policy: str = json_field("reclaimPolicy", default="")
    status: str = json_field("status", default="")
    storage_class_name: str = json_field("storageClassName", default="")
    volume_mode: str = json_field("volumeMode", default="")
    volume_plugin_name: str = json_field("volumePluginName", default="")
    csi_driver: str = json_field("csiDriver", default="")
    csi_volume_handle: str = json_field("csiVolumeHandle", default="")
    claim_ref: str = json_field("claimRef", default="")


def volume_plugin(spec: Mapping[str, Any]) -> str:
    for plugin in _VOLUME_PLUGINS:
        if isinstance(spec.get(plugin), Mapping):
            return plugin
    return ""


class PersistentVolumeHandler(BaseHandler):
    resource_type = "persistentvolume"
    cluster_scoped = True

    def build_data(self, obj: Mapping[str, Any]) -> PersistentVolumeData:
        spec = obj.get("spec") or {}
        claim = spec.get("claimRef") or {}
        return PersistentVolumeData(
            capacity_bytes=quantity_to_int(extract_field(spec, "capacity.storage")),
            access_modes=list(spec.get("accessModes") or []),
            reclaim_policy=spec.get("persistentVolumeReclaimPolicy", ""),
            status=get_path(obj, "status.phase", ""),
            storage_class_name=spec.get("storageClassName", ""),
            volume_mode=spec.get("volumeMode", ""),
            volume_plugin_name=volume_plugin(spec),
            csi_driver=get_path(spec, "csi.driver", ""),
            csi_volume_handle=get_path(spec, "csi.volumeHandle", ""),
            claim_ref=f"{claim.get('namespace', '')}/{claim.get('name', '')}" if claim else "",
        )


@dataclass
class StorageClassData:
    provisioner: str = json_field("provisioner", default="")
    reclaim_policy: str = json_field("reclaimPolicy", default="")
    volume_binding_mode: str = json_field("volumeBindingMode", default="")
    allow_volume_expansion: bool | None = json_field("allowVolumeExpansion", default=None)
    parameters: dict[str, str] | None = json_field("parameters", default=None)
    mount_options: list[str] = json_field("mountOptions", default_factory=list)
    allowed_topologies: list[dict[str, Any]] = json_field("allowedTopologies", default_factory=list)
    is_default_class: bool = json_field("isDefaultClass", default=False)


class StorageClassHandler(BaseHandler):
    resource_type = "storageclass"
    cluster_scoped = True

    def build_data(self, obj: Mapping[str, Any]) -> StorageClassData:
        annotations = get_path(obj, "metadata.annotations", {})
        return StorageClassData(
            provisioner=str(obj.get("provisioner") or ""),
            reclaim_policy=str(obj.get("reclaimPolicy") or ""),
            volume_binding_mode=str(obj.get("volumeBindingMode") or ""),
            allow_volume_expansion=obj.get("allowVolumeExpansion"),
            parameters=string_map(obj.get("parameters")),
            mount_options=list(obj.get("mountOptions") or []),
            allowed_topologies=list(obj.get("allowedTopologies") or []),
            is_default_class=annotations.get(DEFAULT_STORAGE_CLASS_ANNOTATION) == "true",
        )


@dataclass
class VolumeAttachmentData:
    attacher: str = json_field("attacher", default="")
    volume_name: str = json_field("volumeName", default="")
    node_name: str = json_field("nodeName", default="")
    attached: bool | None = json_field("attached", default=None)
    attachment_metadata: dict[str, str] | None = json_field("attachmentMetadata", default=None)
    attach_error: str = json_field("attachError", default="")


class VolumeAttachmentHandler(BaseHandler):
    resource_type = "volumeattachment"
    cluster_scoped = True

    def build_data(self, obj: Mapping[str, Any]) -> VolumeAttachmentData:
        return VolumeAttachmentData(
            attacher=get_path(obj, "spec.attacher", ""),
            volume_name=get_path(obj, "spec.source.persistentVolumeName", ""),
            node_name=get_path(obj, "spec.nodeName", ""),
            attached=extract_field(obj, "status.attached"),
            attachment_metadata=string_map(extract_field(obj, "status.attachmentMetadata")),
            attach_error=get_path(obj, "status.attachError.message", ""),
        )


HANDLERS: tuple[type[InformerHandler], ...] = (
    PersistentVolumeClaimHandler,
    PersistentVolumeHandler,
    StorageClassHandler,
    VolumeAttachmentHandler,
)
