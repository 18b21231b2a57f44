"""Collected record data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from kubestatelogs.errors import HandlerError

if TYPE_CHECKING:
    from kubestatelogs.collector.handler import ResourceHandler


@dataclass(frozen=True)
class NormalizedRecord:
    """Uniform output unit: one per collected object (or child element).

    Built fresh on every collection pass and never mutated afterwards.
    ``timestamp`` is stamped by the aggregator and shared by every record
    of the same pass.
    """

    resource_type: str
    name: str
    namespace: str
    created_timestamp: int = 0
    labels: dict[str, str] | None = None
    annotations: dict[str, str] | None = None
    created_by_kind: str = ""
    created_by_name: str = ""
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the wire shape consumed by the log pipeline."""
        ts = self.timestamp or datetime.now(tz=UTC)
        return {
            "timestamp": ts.astimezone(UTC).isoformat().replace("+00:00", "Z"),
            "resourceType": self.resource_type,
            "name": self.name,
            "namespace": self.namespace,
            "createdTimestamp": self.created_timestamp,
            "labels": dict(self.labels or {}),
            "annotations": dict(self.annotations or {}),
            "createdByKind": self.created_by_kind,
            "createdByName": self.created_by_name,
            "data": self.data,
        }


@dataclass(frozen=True)
class HandlerRegistration:
    """Binds one resource type to the handler that collects it."""

    resource_type: str
    handler: ResourceHandler


@dataclass
class CollectionResult:
    """Outcome of one collection pass.

    Always carries both the records gathered and the kind-level errors so
    callers can decide whether a partial pass is acceptable.
    """

    collected_at: datetime
    records: list[NormalizedRecord] = field(default_factory=list)
    errors: list[HandlerError] = field(default_factory=list)
    cancelled: bool = False
    duration_seconds: float = 0.0

    @property
    def failed_kinds(self) -> list[str]:
        return [err.kind for err in self.errors]

    def records_by_type(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for record in self.records:
            counts[record.resource_type] = counts.get(record.resource_type, 0) + 1
        return counts
