"""Prometheus collectors for kube-state-logs."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

records_collected_total = Counter(
    "kube_state_logs_records_collected_total",
    "Records produced by collection passes.",
    ["resource_type"],
)

handler_errors_total = Counter(
    "kube_state_logs_handler_errors_total",
    "Kind-level collection failures.",
    ["resource_type"],
)

objects_skipped_total = Counter(
    "kube_state_logs_objects_skipped_total",
    "Cached objects skipped because they were malformed.",
    ["resource_type"],
)

collection_passes_total = Counter(
    "kube_state_logs_collection_passes_total",
    "Collection passes by outcome (complete, partial, cancelled).",
    ["outcome"],
)

collection_duration_seconds = Histogram(
    "kube_state_logs_collection_duration_seconds",
    "Wall-clock duration of one collection pass.",
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

informer_synced = Gauge(
    "kube_state_logs_informer_synced",
    "1 once the kind's informer has completed its initial list.",
    ["kind"],
)
