"""Scheduling, autoscaling and coordination kinds."""

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
    get_int,
    get_path,
    int_or_string,
    optional_int,
    parse_time,
    quantity_map,
    string_map,
)

_HPA_CONDITIONS = ("AbleToScale", "ScalingActive", "ScalingLimited")
_PDB_CONDITIONS = ("DisruptionAllowed",)


@dataclass
class PriorityClassData:
    value: int = json_field("value", default=0)
    global_default: bool = json_field("globalDefault", default=False)
    description: str = json_field("description", default="")
    preemption_policy: str = json_field("preemptionPolicy", default="")


class PriorityClassHandler(BaseHandler):
    resource_type = "priorityclass"
    cluster_scoped = True

    def build_data(self, obj: Mapping[str, Any]) -> PriorityClassData:
        return PriorityClassData(
            value=get_int(obj, "value"),
            global_default=bool(obj.get("globalDefault", False)),
            description=str(obj.get("description") or ""),
            preemption_policy=str(obj.get("preemptionPolicy") or ""),
        )


@dataclass
class RuntimeClassData:
    handler: str = json_field("handler", default="")
    overhead: dict[str, str] | None = json_field("overhead", default=None)
    node_selector: dict[str, str] | None = json_field("nodeSelector", default=None)


class RuntimeClassHandler(BaseHandler):
    resource_type = "runtimeclass"
    cluster_scoped = True

    def build_data(self, obj: Mapping[str, Any]) -> RuntimeClassData:
        return RuntimeClassData(
            handler=str(obj.get("handler") or ""),
            overhead=quantity_map(extract_field(obj, "overhead.podFixed")),
            node_selector=string_map(extract_field(obj, "scheduling.nodeSelector")),
        )


@dataclass
class LeaseData:
    holder_identity: str = json_field("holderIdentity", default="")
    lease_duration_seconds: int | None = json_field("leaseDurationSeconds", default=None)
    renew_time: datetime | None = json_field("renewTime", default=None)
    acquire_time: datetime | None = json_field("acquireTime", default=None)
    lease_transitions: int = json_field("leaseTransitions", default=0)


class LeaseHandler(BaseHandler):
    resource_type = "lease"

    def build_data(self, obj: Mapping[str, Any]) -> LeaseData:
        return LeaseData(
            holder_identity=get_path(obj, "spec.holderIdentity", ""),
            lease_duration_seconds=optional_int(obj, "spec.leaseDurationSeconds"),
            renew_time=parse_time(extract_field(obj, "spec.renewTime")),
            acquire_time=parse_time(extract_field(obj, "spec.acquireTime")),
            lease_transitions=get_int(obj, "spec.leaseTransitions"),
        )


# ---------------------------------------------------------------------------
# HorizontalPodAutoscaler (autoscaling/v2)
# ---------------------------------------------------------------------------


@dataclass
class HorizontalPodAutoscalerData:
    min_replicas: int | None = json_field("minReplicas", default=None)
    max_replicas: int = json_field("maxReplicas", default=0)
    target_cpu: int | None = json_field("targetCPUUtilizationPercentage", default=None)
    target_memory: int | None = json_field("targetMemoryUtilizationPercentage", default=None)
    current_replicas: int = json_field("currentReplicas", default=0)
    desired_replicas: int = json_field("desiredReplicas", default=0)
    current_cpu: int | None = json_field("currentCPUUtilizationPercentage", default=None)
    current_memory: int | None = json_field("currentMemoryUtilizationPercentage", default=None)
    last_scale_time: datetime | None = json_field("lastScaleTime", default=None)
    scale_target_ref: str = json_field("scaleTargetRef", default="")
    scale_target_kind: str = json_field("scaleTargetKind", default="")
    condition_able_to_scale: bool | None = json_field("conditionAbleToScale", default=None)
    condition_scaling_active: bool | None = json_field("conditionScalingActive", default=None)
    condition_scaling_limited: bool | None = json_field("conditionScalingLimited", default=None)
    conditions: dict[str, bool | None] = json_field("conditions", default_factory=dict)


def resource_utilization(metrics: Any, resource: str, section: str) -> int | None:
    """``averageUtilization`` of the Resource metric named *resource*.

    *section* is ``target`` for spec metrics and ``current`` for status
    metrics.  Spec targets count only when their type is ``Utilization``.
    """
    for metric in metrics or []:
        if not isinstance(metric, Mapping) or metric.get("type") != "Resource":
            continue
        source = metric.get("resource") or {}
        if source.get("name") != resource:
            continue
        values = source.get(section) or {}
        if section == "target" and values.get("type") != "Utilization":
            continue
        return optional_int(values, "averageUtilization")
    return None


class HorizontalPodAutoscalerHandler(BaseHandler):
    resource_type = "horizontalpodautoscaler"

    def build_data(self, obj: Mapping[str, Any]) -> HorizontalPodAutoscalerData:
        conditions = extract_field(obj, "status.conditions")
        spec_metrics = extract_field(obj, "spec.metrics")
        status_metrics = extract_field(obj, "status.currentMetrics")
        return HorizontalPodAutoscalerData(
            min_replicas=optional_int(obj, "spec.minReplicas"),
            max_replicas=get_int(obj, "spec.maxReplicas"),
            target_cpu=resource_utilization(spec_metrics, "cpu", "target"),
            target_memory=resource_utilization(spec_metrics, "memory", "target"),
            current_replicas=get_int(obj, "status.currentReplicas"),
            desired_replicas=get_int(obj, "status.desiredReplicas"),
            current_cpu=resource_utilization(status_metrics, "cpu", "current"),
            current_memory=resource_utilization(status_metrics, "memory", "current"),
            last_scale_time=parse_time(extract_field(obj, "status.lastScaleTime")),
            scale_target_ref=get_path(obj, "spec.scaleTargetRef.name", ""),
            scale_target_kind=get_path(obj, "spec.scaleTargetRef.kind", ""),
            condition_able_to_scale=get_condition_status(conditions, "AbleToScale"),
            condition_scaling_active=get_condition_status(conditions, "ScalingActive"),
            condition_scaling_limited=get_condition_status(conditions, "ScalingLimited"),
            conditions=collect_conditions(conditions, exclude=_HPA_CONDITIONS),
        )


# ---------------------------------------------------------------------------
# PodDisruptionBudget (policy/v1)
# ---------------------------------------------------------------------------


@dataclass
class PodDisruptionBudgetData:
    min_available: int | str | None = json_field("minAvailable", default=None)
    max_unavailable: int | str | None = json_field("maxUnavailable", default=None)
    current_healthy: int = json_field("currentHealthy", default=0)
    desired_healthy: int = json_field("desiredHealthy", default=0)
    expected_pods: int = json_field("expectedPods", default=0)
    disruptions_allowed: int = json_field("disruptionsAllowed", default=0)
    observed_generation: int = json_field("observedGeneration", default=0)
    condition_disruption_allowed: bool | None = json_field("conditionDisruptionAllowed", default=None)
    conditions: dict[str, bool | None] = json_field("conditions", default_factory=dict)


class PodDisruptionBudgetHandler(BaseHandler):
    resource_type = "poddisruptionbudget"

    def build_data(self, obj: Mapping[str, Any]) -> PodDisruptionBudgetData:
        conditions = extract_field(obj, "status.conditions")
        return PodDisruptionBudgetData(
            min_available=int_or_string(extract_field(obj, "spec.minAvailable")),
            max_unavailable=int_or_string(extract_field(obj, "spec.maxUnavailable")),
            current_healthy=get_int(obj, "status.currentHealthy"),
            desired_healthy=get_int(obj, "status.desiredHealthy"),
            expected_pods=get_int(obj, "status.expectedPods"),
            disruptions_allowed=get_int(obj, "status.disruptionsAllowed"),
            observed_generation=get_int(obj, "status.observedGeneration"),
            condition_disruption_allowed=get_condition_status(conditions, "DisruptionAllowed"),
            conditions=collect_conditions(conditions, exclude=_PDB_CONDITIONS),
        )


HANDLERS: tuple[type[InformerHandler], ...] = (
    PriorityClassHandler,
    RuntimeClassHandler,
    LeaseHandler,
    HorizontalPodAutoscalerHandler,
    PodDisruptionBudgetHandler,
)
