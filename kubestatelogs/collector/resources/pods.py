"""Pods and their containers.

The ``pod`` and ``container`` kinds read the same pod informer.  Container
records are emitted one per container declared in the pod spec (regular
containers first, then init containers), named ``<pod>/<container>`` and
matched to their runtime status by container name.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from kubestatelogs.collector.handler import BaseHandler, InformerHandler
from kubestatelogs.collector.serializer import json_field
from kubestatelogs.collector.utils import (
    collect_conditions,
    extract_field,
    get_condition_status,
    get_int,
    get_path,
    parse_quantity,
    parse_time,
    quantity_map,
    string_map,
)
from kubestatelogs.models.records import NormalizedRecord

_POD_CONDITIONS = ("Ready", "Initialized", "PodScheduled", "ContainersReady")
_DEFAULT_QOS_CLASS = "BestEffort"


def _sum_resources(containers: list[Any], section: str) -> dict[str, str]:
    """Sum each container's requests or limits, per resource, in base units."""
    totals: dict[str, Decimal] = {}
    for container in containers:
        resources = extract_field(container, f"resources.{section}") if isinstance(container, Mapping) else None
        if not isinstance(resources, Mapping):
            continue
        for name, quantity in resources.items():
            parsed = parse_quantity(quantity)
            if parsed is not None:
                totals[str(name)] = totals.get(str(name), Decimal(0)) + parsed
    return {name: format(total.normalize(), "f") for name, total in totals.items()}


def _transition_time_if_true(conditions: Any, condition_type: str) -> datetime | None:
    for condition in conditions or ():
        if isinstance(condition, Mapping) and condition.get("type") == condition_type:
            if condition.get("status") == "True":
                return parse_time(condition.get("lastTransitionTime"))
            return None
    return None


def _status_reason(obj: Mapping[str, Any]) -> str:
    reason = get_path(obj, "status.reason", "")
    if reason:
        return str(reason)
    for condition in get_path(obj, "status.conditions", []):
        if isinstance(condition, Mapping) and condition.get("status") == "False" and condition.get("reason"):
            return str(condition["reason"])
    for status in get_path(obj, "status.containerStatuses", []):
        terminated_reason = extract_field(status, "state.terminated.reason")
        if terminated_reason:
            return str(terminated_reason)
    return ""


# ---------------------------------------------------------------------------
# Pod
# ---------------------------------------------------------------------------


@dataclass
class PodData:
    node_name: str = json_field("nodeName", default="")
    host_ip: str = json_field("hostIP", default="")
    pod_ip: str = json_field("podIP", default="")
    pod_ips: list[str] = json_field("podIPs", default_factory=list)
    phase: str = json_field("phase", default="")
    qos_class: str = json_field("qosClass", default=_DEFAULT_QOS_CLASS)
    priority_class: str = json_field("priorityClass", default="")
    ready: bool | None = json_field("ready", default=None)
    initialized: bool | None = json_field("initialized", default=None)
    scheduled: bool | None = json_field("scheduled", default=None)
    containers_ready: bool | None = json_field("containersReady", default=None)
    conditions: dict[str, bool | None] = json_field("conditions", default_factory=dict)
    restart_count: int = json_field("restartCount", default=0)
    deletion_timestamp: datetime | None = json_field("deletionTimestamp", default=None)
    start_time: datetime | None = json_field("startTime", default=None)
    initialized_time: datetime | None = json_field("initializedTime", default=None)
    ready_time: datetime | None = json_field("readyTime", default=None)
    scheduled_time: datetime | None = json_field("scheduledTime", default=None)
    status_reason: str = json_field("statusReason", default="")
    unschedulable: bool = json_field("unschedulable", default=False)
    restart_policy: str = json_field("restartPolicy", default="")
    service_account: str = json_field("serviceAccount", default="")
    scheduler_name: str = json_field("schedulerName", default="")
    runtime_class_name: str | None = json_field("runtimeClassName", default=None)
    overhead: dict[str, str] | None = json_field("overhead", default=None)
    tolerations: list[dict[str, Any]] = json_field("tolerations", default_factory=list)
    node_selectors: dict[str, str] | None = json_field("nodeSelectors", default=None)
    persistent_volume_claims: list[dict[str, Any]] = json_field("persistentVolumeClaims", default_factory=list)
    resource_requests: dict[str, str] = json_field("resourceRequests", default_factory=dict)
    resource_limits: dict[str, str] = json_field("resourceLimits", default_factory=dict)


class PodHandler(BaseHandler):
    resource_type = "pod"

    def build_data(self, obj: Mapping[str, Any]) -> PodData:
        conditions = extract_field(obj, "status.conditions")
        containers = get_path(obj, "spec.containers", [])
        pod_ip = get_path(obj, "status.podIP", "")
        pod_ips = [str(entry["ip"]) for entry in get_path(obj, "status.podIPs", []) if entry.get("ip")]
        if pod_ip and pod_ip not in pod_ips:
            pod_ips.insert(0, pod_ip)

        read_only_mounts = {
            mount.get("name")
            for container in containers
            for mount in container.get("volumeMounts") or []
            if mount.get("readOnly")
        }
        claims = [
            {
                "claimName": extract_field(volume, "persistentVolumeClaim.claimName") or "",
                "readOnly": volume.get("name") in read_only_mounts,
            }
            for volume in get_path(obj, "spec.volumes", [])
            if isinstance(volume.get("persistentVolumeClaim"), Mapping)
        ]
        tolerations = [
            {
                "key": toleration.get("key", ""),
                "value": toleration.get("value", ""),
                "effect": toleration.get("effect", ""),
                "operator": toleration.get("operator", ""),
                "tolerationSeconds": toleration.get("tolerationSeconds"),
            }
            for toleration in get_path(obj, "spec.tolerations", [])
        ]
        scheduled = get_condition_status(conditions, "PodScheduled")

        return PodData(
            node_name=get_path(obj, "spec.nodeName", ""),
            host_ip=get_path(obj, "status.hostIP", ""),
            pod_ip=pod_ip,
            pod_ips=pod_ips,
            phase=get_path(obj, "status.phase", ""),
            qos_class=get_path(obj, "status.qosClass", _DEFAULT_QOS_CLASS),
            priority_class=get_path(obj, "spec.priorityClassName", ""),
            ready=get_condition_status(conditions, "Ready"),
            initialized=get_condition_status(conditions, "Initialized"),
            scheduled=scheduled,
            containers_ready=get_condition_status(conditions, "ContainersReady"),
            conditions=collect_conditions(conditions, exclude=_POD_CONDITIONS),
            restart_count=sum(get_int(s, "restartCount") for s in get_path(obj, "status.containerStatuses", [])),
            deletion_timestamp=parse_time(extract_field(obj, "metadata.deletionTimestamp")),
            start_time=parse_time(extract_field(obj, "status.startTime")),
            initialized_time=_transition_time_if_true(conditions, "Initialized"),
            ready_time=_transition_time_if_true(conditions, "Ready"),
            scheduled_time=_transition_time_if_true(conditions, "PodScheduled"),
            status_reason=_status_reason(obj),
            unschedulable=scheduled is False,
            restart_policy=get_path(obj, "spec.restartPolicy", ""),
            service_account=get_path(obj, "spec.serviceAccountName", ""),
            scheduler_name=get_path(obj, "spec.schedulerName", ""),
            runtime_class_name=extract_field(obj, "spec.runtimeClassName"),
            overhead=quantity_map(extract_field(obj, "spec.overhead")),
            tolerations=tolerations,
            node_selectors=string_map(extract_field(obj, "spec.nodeSelector")),
            persistent_volume_claims=claims,
            resource_requests=_sum_resources(containers, "requests"),
            resource_limits=_sum_resources(containers, "limits"),
        )


# ---------------------------------------------------------------------------
# Containers
# ---------------------------------------------------------------------------


@dataclass
class ContainerData:
    name: str = json_field("name")
    pod_name: str = json_field("podName")
    image: str = json_field("image", default="")
    image_id: str = json_field("imageID", default="")
    ready: bool = json_field("ready", default=False)
    started: bool | None = json_field("started", default=None)
    restart_count: int = json_field("restartCount", default=0)
    state: str = json_field("state", default="unknown")
    state_running: bool = json_field("stateRunning", default=False)
    state_waiting: bool = json_field("stateWaiting", default=False)
    state_terminated: bool = json_field("stateTerminated", default=False)
    waiting_reason: str = json_field("waitingReason", default="")
    waiting_message: str = json_field("waitingMessage", default="")
    started_at: datetime | None = json_field("startedAt", default=None)
    exit_code: int | None = json_field("exitCode", default=None)
    reason: str = json_field("reason", default="")
    message: str = json_field("message", default="")
    finished_at: datetime | None = json_field("finishedAt", default=None)
    terminated_started_at: datetime | None = json_field("startedAtTerm", default=None)
    resource_requests: dict[str, str] = json_field("resourceRequests", default_factory=dict)
    resource_limits: dict[str, str] = json_field("resourceLimits", default_factory=dict)
    last_terminated_reason: str = json_field("lastTerminatedReason", default="")
    last_terminated_exit_code: int | None = json_field("lastTerminatedExitCode", default=None)
    last_terminated_timestamp: datetime | None = json_field("lastTerminatedTimestamp", default=None)


def container_data(pod_name: str, spec: Mapping[str, Any], status: Mapping[str, Any] | None) -> ContainerData:
    """Combine a container's spec with its (possibly absent) runtime status."""
    data = ContainerData(
        name=str(spec.get("name") or ""),
        pod_name=pod_name,
        image=str(spec.get("image") or ""),
        resource_requests=quantity_map(extract_field(spec, "resources.requests")) or {},
        resource_limits=quantity_map(extract_field(spec, "resources.limits")) or {},
    )
    if status is None:
        return data

    data.image_id = str(status.get("imageID") or "")
    data.ready = bool(status.get("ready"))
    data.started = status.get("started")
    data.restart_count = get_int(status, "restartCount")

    running = extract_field(status, "state.running")
    waiting = extract_field(status, "state.waiting")
    terminated = extract_field(status, "state.terminated")
    if isinstance(running, Mapping):
        data.state, data.state_running = "running", True
        data.started_at = parse_time(running.get("startedAt"))
    elif isinstance(waiting, Mapping):
        data.state, data.state_waiting = "waiting", True
        data.waiting_reason = str(waiting.get("reason") or "")
        data.waiting_message = str(waiting.get("message") or "")
    elif isinstance(terminated, Mapping):
        data.state, data.state_terminated = "terminated", True
        data.exit_code = get_int(terminated, "exitCode")
        data.reason = str(terminated.get("reason") or "")
        data.message = str(terminated.get("message") or "")
        data.finished_at = parse_time(terminated.get("finishedAt"))
        data.terminated_started_at = parse_time(terminated.get("startedAt"))

    last = extract_field(status, "lastState.terminated")
    if isinstance(last, Mapping):
        data.last_terminated_reason = str(last.get("reason") or "")
        data.last_terminated_exit_code = get_int(last, "exitCode")
        data.last_terminated_timestamp = parse_time(last.get("finishedAt"))
    return data


class ContainerHandler(InformerHandler):
    """One record per declared container, regular then init."""

    resource_type = "container"
    cache_key = "pod"

    def records_for(self, obj: Mapping[str, Any]) -> list[NormalizedRecord]:
        pod_name = str(extract_field(obj, "metadata.name") or "")
        records: list[NormalizedRecord] = []
        for spec_path, status_path, resource_type in (
            ("spec.containers", "status.containerStatuses", "container"),
            ("spec.initContainers", "status.initContainerStatuses", "init_container"),
        ):
            statuses = {
                s.get("name"): s for s in get_path(obj, status_path, []) if isinstance(s, Mapping)
            }
            for spec in get_path(obj, spec_path, []):
                if not isinstance(spec, Mapping):
                    continue
                data = container_data(pod_name, spec, statuses.get(spec.get("name")))
                records.append(
                    self.build_record(
                        obj,
                        data,
                        name=f"{pod_name}/{data.name}",
                        resource_type=resource_type,
                    )
                )
        return records


HANDLERS: tuple[type[InformerHandler], ...] = (PodHandler, ContainerHandler)
