"""Workload controllers: deployments, replica sets, stateful sets, daemon sets, jobs."""

from __future__ import annotations

import threading
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from kubestatelogs.collector.handler import BaseHandler, InformerHandler
from kubestatelogs.collector.serializer import json_field
from kubestatelogs.collector.utils import (
    collect_conditions,
    created_timestamp,
    extract_field,
    get_condition_status,
    get_int,
    get_path,
    int_or_string,
    object_namespace,
    optional_int,
    owner_reference_info,
    parse_time,
)
from kubestatelogs.models.records import NormalizedRecord

# Condition types promoted to named fields on every replicated workload.
_REPLICA_CONDITIONS = ("Available", "Progressing", "ReplicaFailure")
_JOB_CONDITIONS = ("Complete", "Failed")

# ---------------------------------------------------------------------------
# Deployment
# ---------------------------------------------------------------------------


@dataclass
class DeploymentData:
    desired_replicas: int | None = json_field("desiredReplicas", default=None)
    current_replicas: int = json_field("currentReplicas", default=0)
    ready_replicas: int = json_field("readyReplicas", default=0)
    available_replicas: int = json_field("availableReplicas", default=0)
    unavailable_replicas: int = json_field("unavailableReplicas", default=0)
    updated_replicas: int = json_field("updatedReplicas", default=0)
    observed_generation: int = json_field("observedGeneration", default=0)
    metadata_generation: int = json_field("metadataGeneration", default=0)
    strategy_type: str = json_field("strategyType", default="")
    max_surge: int | str | None = json_field("strategyRollingUpdateMaxSurge", default=None)
    max_unavailable: int | str | None = json_field("strategyRollingUpdateMaxUnavailable", default=None)
    paused: bool = json_field("paused", default=False)
    condition_available: bool | None = json_field("conditionAvailable", default=None)
    condition_progressing: bool | None = json_field("conditionProgressing", default=None)
    condition_replica_failure: bool | None = json_field("conditionReplicaFailure", default=None)
    conditions: dict[str, bool | None] = json_field("conditions", default_factory=dict)


class DeploymentHandler(BaseHandler):
    resource_type = "deployment"

    def build_data(self, obj: Mapping[str, Any]) -> DeploymentData:
        conditions = extract_field(obj, "status.conditions")
        return DeploymentData(
            desired_replicas=optional_int(obj, "spec.replicas"),
            current_replicas=get_int(obj, "status.replicas"),
            ready_replicas=get_int(obj, "status.readyReplicas"),
            available_replicas=get_int(obj, "status.availableReplicas"),
            unavailable_replicas=get_int(obj, "status.unavailableReplicas"),
            updated_replicas=get_int(obj, "status.updatedReplicas"),
            observed_generation=get_int(obj, "status.observedGeneration"),
            metadata_generation=get_int(obj, "metadata.generation"),
            strategy_type=get_path(obj, "spec.strategy.type", ""),
            max_surge=int_or_string(extract_field(obj, "spec.strategy.rollingUpdate.maxSurge")),
            max_unavailable=int_or_string(extract_field(obj, "spec.strategy.rollingUpdate.maxUnavailable")),
            paused=bool(get_path(obj, "spec.paused", False)),
            condition_available=get_condition_status(conditions, "Available"),
            condition_progressing=get_condition_status(conditions, "Progressing"),
            condition_replica_failure=get_condition_status(conditions, "ReplicaFailure"),
            conditions=collect_conditions(conditions, exclude=_REPLICA_CONDITIONS),
        )


# ---------------------------------------------------------------------------
# ReplicaSet / ReplicationController
# ---------------------------------------------------------------------------


@dataclass
class ReplicaSetData:
    desired_replicas: int | None = json_field("desiredReplicas", default=None)
    current_replicas: int = json_field("currentReplicas", default=0)
    ready_replicas: int = json_field("readyReplicas", default=0)
    available_replicas: int = json_field("availableReplicas", default=0)
    fully_labeled_replicas: int = json_field("fullyLabeledReplicas", default=0)
    observed_generation: int = json_field("observedGeneration", default=0)
    is_current: bool = json_field("isCurrent", default=False)
    condition_available: bool | None = json_field("conditionAvailable", default=None)
    condition_progressing: bool | None = json_field("conditionProgressing", default=None)
    condition_replica_failure: bool | None = json_field("conditionReplicaFailure", default=None)
    conditions: dict[str, bool | None] = json_field("conditions", default_factory=dict)


def current_replica_sets(objects: Sequence[Mapping[str, Any]]) -> set[tuple[str, str]]:
    """``(namespace, name)`` of the newest ReplicaSet of each owner.

    ReplicaSets are grouped by namespace and owner reference; the newest by
    creation time, then by ``metadata.generation``, is current.  A
    ReplicaSet without owners is its own group and therefore current.
    """
    groups: dict[tuple[str, str, str], list[Mapping[str, Any]]] = {}
    current: set[tuple[str, str]] = set()
    for obj in objects:
        namespace = object_namespace(obj)
        refs = extract_field(obj, "metadata.ownerReferences")
        owners = [ref for ref in refs if isinstance(ref, Mapping)] if isinstance(refs, list) else []
        if not owners:
            current.add((namespace, str(extract_field(obj, "metadata.name") or "")))
            continue
        for ref in owners:
            key = (namespace, str(ref.get("kind") or ""), str(ref.get("name") or ""))
            groups.setdefault(key, []).append(obj)
    for members in groups.values():
        newest = max(members, key=lambda rs: (created_timestamp(rs), get_int(rs, "metadata.generation")))
        current.add((object_namespace(newest), str(extract_field(newest, "metadata.name") or "")))
    return current


class ReplicaSetHandler(BaseHandler):
    resource_type = "replicaset"

    def map_objects(
        self,
        objects: Sequence[Mapping[str, Any]],
        *,
        stop: threading.Event | None = None,
        mapper: Callable[[Mapping[str, Any]], list[NormalizedRecord]] | None = None,
    ) -> list[NormalizedRecord]:
        current = current_replica_sets(objects)

        def mark_current(obj: Mapping[str, Any]) -> list[NormalizedRecord]:
            key = (object_namespace(obj), str(extract_field(obj, "metadata.name") or ""))
            return [self.build_record(obj, self.build_data(obj, is_current=key in current))]

        return super().map_objects(objects, stop=stop, mapper=mapper or mark_current)

    def build_data(self, obj: Mapping[str, Any], is_current: bool = False) -> ReplicaSetData:
        conditions = extract_field(obj, "status.conditions")
        return ReplicaSetData(
            desired_replicas=optional_int(obj, "spec.replicas"),
            current_replicas=get_int(obj, "status.replicas"),
            ready_replicas=get_int(obj, "status.readyReplicas"),
            available_replicas=get_int(obj, "status.availableReplicas"),
            fully_labeled_replicas=get_int(obj, "status.fullyLabeledReplicas"),
            observed_generation=get_int(obj, "status.observedGeneration"),
            is_current=is_current,
            condition_available=get_condition_status(conditions, "Available"),
            condition_progressing=get_condition_status(conditions, "Progressing"),
            condition_replica_failure=get_condition_status(conditions, "ReplicaFailure"),
            conditions=collect_conditions(conditions, exclude=_REPLICA_CONDITIONS),
        )


@dataclass
class ReplicationControllerData:
    desired_replicas: int | None = json_field("desiredReplicas", default=None)
    current_replicas: int = json_field("currentReplicas", default=0)
    ready_replicas: int = json_field("readyReplicas", default=0)
    available_replicas: int = json_field("availableReplicas", default=0)
    fully_labeled_replicas: int = json_field("fullyLabeledReplicas", default=0)
    observed_generation: int = json_field("observedGeneration", default=0)
    conditions: dict[str, bool | None] = json_field("conditions", default_factory=dict)


class ReplicationControllerHandler(BaseHandler):
    resource_type = "replicationcontroller"

    def build_data(self, obj: Mapping[str, Any]) -> ReplicationControllerData:
        return ReplicationControllerData(
            desired_replicas=optional_int(obj, "spec.replicas"),
            current_replicas=get_int(obj, "status.replicas"),
            ready_replicas=get_int(obj, "status.readyReplicas"),
            available_replicas=get_int(obj, "status.availableReplicas"),
            fully_labeled_replicas=get_int(obj, "status.fullyLabeledReplicas"),
            observed_generation=get_int(obj, "status.observedGeneration"),
            conditions=collect_conditions(extract_field(obj, "status.conditions")),
        )


# ---------------------------------------------------------------------------
# StatefulSet
# ---------------------------------------------------------------------------


@dataclass
class StatefulSetData:
    desired_replicas: int | None = json_field("desiredReplicas", default=None)
    current_replicas: int = json_field("currentReplicas", default=0)
    ready_replicas: int = json_field("readyReplicas", default=0)
    updated_replicas: int = json_field("updatedReplicas", default=0)
    observed_generation: int = json_field("observedGeneration", default=0)
    current_revision: str = json_field("currentRevision", default="")
    update_revision: str = json_field("updateRevision", default="")
    service_name: str = json_field("serviceName", default="")
    pod_management_policy: str = json_field("podManagementPolicy", default="")
    update_strategy: str = json_field("updateStrategy", default="")
    condition_available: bool | None = json_field("conditionAvailable", default=None)
    condition_progressing: bool | None = json_field("conditionProgressing", default=None)
    condition_replica_failure: bool | None = json_field("conditionReplicaFailure", default=None)
    conditions: dict[str, bool | None] = json_field("conditions", default_factory=dict)


class StatefulSetHandler(BaseHandler):
    resource_type = "statefulset"

    def build_data(self, obj: Mapping[str, Any]) -> StatefulSetData:
        conditions = extract_field(obj, "status.conditions")
        return StatefulSetData(
            desired_replicas=optional_int(obj, "spec.replicas"),
            current_replicas=get_int(obj, "status.currentReplicas"),
            ready_replicas=get_int(obj, "status.readyReplicas"),
            updated_replicas=get_int(obj, "status.updatedReplicas"),
            observed_generation=get_int(obj, "status.observedGeneration"),
            current_revision=get_path(obj, "status.currentRevision", ""),
            update_revision=get_path(obj, "status.updateRevision", ""),
            service_name=get_path(obj, "spec.serviceName", ""),
            pod_management_policy=get_path(obj, "spec.podManagementPolicy", ""),
            update_strategy=get_path(obj, "spec.updateStrategy.type", ""),
            condition_available=get_condition_status(conditions, "Available"),
            condition_progressing=get_condition_status(conditions, "Progressing"),
            condition_replica_failure=get_condition_status(conditions, "ReplicaFailure"),
            conditions=collect_conditions(conditions, exclude=_REPLICA_CONDITIONS),
        )


# ---------------------------------------------------------------------------
# DaemonSet
# ---------------------------------------------------------------------------


@dataclass
class DaemonSetData:
    desired_number_scheduled: int = json_field("desiredNumberScheduled", default=0)
    current_number_scheduled: int = json_field("currentNumberScheduled", default=0)
    number_ready: int = json_field("numberReady", default=0)
    number_available: int = json_field("numberAvailable", default=0)
    number_unavailable: int = json_field("numberUnavailable", default=0)
    number_misscheduled: int = json_field("numberMisscheduled", default=0)
    updated_number_scheduled: int = json_field("updatedNumberScheduled", default=0)
    observed_generation: int = json_field("observedGeneration", default=0)
    update_strategy: str = json_field("updateStrategy", default="")
    condition_available: bool | None = json_field("conditionAvailable", default=None)
    condition_progressing: bool | None = json_field("conditionProgressing", default=None)
    condition_replica_failure: bool | None = json_field("conditionReplicaFailure", default=None)
    conditions: dict[str, bool | None] = json_field("conditions", default_factory=dict)


class DaemonSetHandler(BaseHandler):
    resource_type = "daemonset"

    def build_data(self, obj: Mapping[str, Any]) -> DaemonSetData:
        conditions = extract_field(obj, "status.conditions")
        return DaemonSetData(
            desired_number_scheduled=get_int(obj, "status.desiredNumberScheduled"),
            current_number_scheduled=get_int(obj, "status.currentNumberScheduled"),
            number_ready=get_int(obj, "status.numberReady"),
            number_available=get_int(obj, "status.numberAvailable"),
            number_unavailable=get_int(obj, "status.numberUnavailable"),
            number_misscheduled=get_int(obj, "status.numberMisscheduled"),
            updated_number_scheduled=get_int(obj, "status.updatedNumberScheduled"),
            observed_generation=get_int(obj, "status.observedGeneration"),
            update_strategy=get_path(obj, "spec.updateStrategy.type", ""),
            condition_available=get_condition_status(conditions, "Available"),
            condition_progressing=get_condition_status(conditions, "Progressing"),
            condition_replica_failure=get_condition_status(conditions, "ReplicaFailure"),
            conditions=collect_conditions(conditions, exclude=_REPLICA_CONDITIONS),
        )


# ---------------------------------------------------------------------------
# Job / CronJob
# ---------------------------------------------------------------------------


@dataclass
class JobData:
    active_pods: int = json_field("activePods", default=0)
    succeeded_pods: int = json_field("succeededPods", default=0)
    failed_pods: int = json_field("failedPods", default=0)
    completions: int | None = json_field("completions", default=None)
    parallelism: int | None = json_field("parallelism", default=None)
    backoff_limit: int | None = json_field("backoffLimit", default=None)
    active_deadline_seconds: int | None = json_field("activeDeadlineSeconds", default=None)
    start_time: datetime | None = json_field("startTime", default=None)
    completion_time: datetime | None = json_field("completionTime", default=None)
    job_type: str = json_field("jobType", default="Job")
    suspend: bool | None = json_field("suspend", default=None)
    condition_complete: bool | None = json_field("conditionComplete", default=None)
    condition_failed: bool | None = json_field("conditionFailed", default=None)
    conditions: dict[str, bool | None] = json_field("conditions", default_factory=dict)


class JobHandler(BaseHandler):
    resource_type = "job"

    def build_data(self, obj: Mapping[str, Any]) -> JobData:
        conditions = extract_field(obj, "status.conditions")
        owner_kind, _ = owner_reference_info(extract_field(obj, "metadata.ownerReferences"))
        return JobData(
            active_pods=get_int(obj, "status.active"),
            succeeded_pods=get_int(obj, "status.succeeded"),
            failed_pods=get_int(obj, "status.failed"),
            completions=optional_int(obj, "spec.completions"),
            parallelism=optional_int(obj, "spec.parallelism"),
            backoff_limit=optional_int(obj, "spec.backoffLimit"),
            active_deadline_seconds=optional_int(obj, "spec.activeDeadlineSeconds"),
            start_time=parse_time(extract_field(obj, "status.startTime")),
            completion_time=parse_time(extract_field(obj, "status.completionTime")),
            job_type="CronJob" if owner_kind == "CronJob" else "Job",
            suspend=extract_field(obj, "spec.suspend"),
            condition_complete=get_condition_status(conditions, "Complete"),
            condition_failed=get_condition_status(conditions, "Failed"),
            conditions=collect_conditions(conditions, exclude=_JOB_CONDITIONS),
        )


@dataclass
class CronJobData:
    schedule: str = json_field("schedule", default="")
    timezone: str | None = json_field("timeZone", default=None)
    concurrency_policy: str = json_field("concurrencyPolicy", default="")
    suspend: bool | None = json_field("suspend", default=None)
    successful_jobs_history_limit: int | None = json_field("successfulJobsHistoryLimit", default=None)
    failed_jobs_history_limit: int | None = json_field("failedJobsHistoryLimit", default=None)
    active_jobs_count: int = json_field("activeJobsCount", default=0)
    last_schedule_time: datetime | None = json_field("lastScheduleTime", default=None)
    last_successful_time: datetime | None = json_field("lastSuccessfulTime", default=None)
    condition_active: bool = json_field("conditionActive", default=False)


class CronJobHandler(BaseHandler):
    resource_type = "cronjob"

    def build_data(self, obj: Mapping[str, Any]) -> CronJobData:
        active = get_path(obj, "status.active", [])
        return CronJobData(
            schedule=get_path(obj, "spec.schedule", ""),
            timezone=extract_field(obj, "spec.timeZone"),
            concurrency_policy=get_path(obj, "spec.concurrencyPolicy", ""),
            suspend=extract_field(obj, "spec.suspend"),
            successful_jobs_history_limit=optional_int(obj, "spec.successfulJobsHistoryLimit"),
            failed_jobs_history_limit=optional_int(obj, "spec.failedJobsHistoryLimit"),
            active_jobs_count=len(active),
            last_schedule_time=parse_time(extract_field(obj, "status.lastScheduleTime")),
            last_successful_time=parse_time(extract_field(obj, "status.lastSuccessfulTime")),
            condition_active=len(active) > 0,
        )


HANDLERS: tuple[type[InformerHandler], ...] = (
    DeploymentHandler,
    ReplicaSetHandler,
    StatefulSetHandler,
    DaemonSetHandler,
    JobHandler,
    CronJobHandler,
    ReplicationControllerHandler,
)
