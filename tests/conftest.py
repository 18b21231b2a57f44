"""Shared fixtures for kube-state-logs tests.

Informers are replaced by in-memory fakes that hold plain dicts in the
API's camelCase shape, so no test needs a Kubernetes cluster.
"""

from __future__ import annotations

import threading
from collections.abc import Sequence
from typing import Any

import pytest

from kubestatelogs.cache.informer import EventHandlers
from kubestatelogs.errors import BindError, HandlerError
from kubestatelogs.models.config import CollectionConfig
from kubestatelogs.models.records import NormalizedRecord

# ---------------------------------------------------------------------------
# Object builders
# ---------------------------------------------------------------------------


def make_meta(
    name: str = "obj",
    namespace: str | None = "default",
    *,
    labels: dict[str, str] | None = None,
    annotations: dict[str, str] | None = None,
    owners: list[tuple[str, str]] | None = None,
    created: str = "2024-01-15T10:30:00Z",
    **extra: Any,
) -> dict[str, Any]:
    """Build an ObjectMeta dict."""
    meta: dict[str, Any] = {"name": name, "creationTimestamp": created}
    if namespace is not None:
        meta["namespace"] = namespace
    if labels is not None:
        meta["labels"] = labels
    if annotations is not None:
        meta["annotations"] = annotations
    if owners:
        meta["ownerReferences"] = [
            {"apiVersion": "apps/v1", "kind": kind, "name": owner, "uid": f"uid-{owner}"} for kind, owner in owners
        ]
    meta.update(extra)
    return meta


def make_object(
    name: str = "obj",
    namespace: str | None = "default",
    *,
    spec: dict[str, Any] | None = None,
    status: dict[str, Any] | None = None,
    **meta_kwargs: Any,
) -> dict[str, Any]:
    obj: dict[str, Any] = {"metadata": make_meta(name, namespace, **meta_kwargs)}
    if spec is not None:
        obj["spec"] = spec
    if status is not None:
        obj["status"] = status
    return obj


def condition(ctype: str, status: str = "True", **extra: Any) -> dict[str, Any]:
    return {"type": ctype, "status": status, **extra}


# ---------------------------------------------------------------------------
# Cache fakes
# ---------------------------------------------------------------------------


class FakeInformer:
    """In-memory stand-in for ``Informer``."""

    def __init__(
        self,
        kind: str,
        objects: Sequence[Any] | None = None,
        *,
        synced: bool = True,
        error: Exception | None = None,
    ) -> None:
        self.kind = kind
        self.objects = list(objects or [])
        self.synced = synced
        self._error = error
        self.handlers: list[EventHandlers] = []
        self.started = False

    def list_current(self) -> list[Any]:
        return list(self.objects)

    def has_synced(self) -> bool:
        return self.synced

    @property
    def error(self) -> Exception | None:
        return self._error

    def add_event_handlers(self, handlers: EventHandlers) -> None:
        self.handlers.append(handlers)

    async def start(self) -> None:
        self.started = True

    async def stop(self) -> None:
        self.started = False


class FakeFactory:
    """Hands out ``FakeInformer``s; kinds listed in *unsupported* fail to bind."""

    def __init__(
        self,
        objects: dict[str, Sequence[Any]] | None = None,
        *,
        unsupported: Sequence[str] = (),
        unsynced: Sequence[str] = (),
    ) -> None:
        self._objects = dict(objects or {})
        self._unsupported = set(unsupported)
        self._unsynced = set(unsynced)
        self.informers: dict[str, FakeInformer] = {}
        self.started = False

    def for_kind(self, kind: str, namespace: str | None = None) -> FakeInformer:
        if kind in self._unsupported:
            raise BindError(kind, "unsupported resource kind")
        if kind not in self.informers:
            self.informers[kind] = FakeInformer(
                kind, self._objects.get(kind), synced=kind not in self._unsynced
            )
        return self.informers[kind]

    def for_custom_resource(
        self, group: str, version: str, plural: str, namespace: str | None = None
    ) -> FakeInformer:
        return self.for_kind(f"{plural}.{group}" if group else plural, namespace)

    async def start(self) -> None:
        self.started = True

    async def stop(self) -> None:
        self.started = False

    async def wait_for_cache_sync(self, timeout: float | None = None) -> dict[str, bool]:
        return {kind: inf.has_synced() for kind, inf in self.informers.items()}


# ---------------------------------------------------------------------------
# Handler stubs
# ---------------------------------------------------------------------------


def make_record(resource_type: str, name: str, namespace: str = "default") -> NormalizedRecord:
    return NormalizedRecord(resource_type=resource_type, name=name, namespace=namespace, data={"n": name})


class StubHandler:
    """Minimal ``ResourceHandler`` returning canned records or raising."""

    def __init__(
        self,
        resource_type: str,
        records: Sequence[NormalizedRecord] = (),
        *,
        raises: Exception | None = None,
        bind_error: Exception | None = None,
        block_until_stopped: bool = False,
    ) -> None:
        self.resource_type = resource_type
        self._records = list(records)
        self._raises = raises
        self._bind_error = bind_error
        self._block = block_until_stopped
        self.bound = False
        self.calls = 0

    def bind(self, factory: Any, logger: Any) -> None:
        if self._bind_error is not None:
            raise self._bind_error
        self.bound = True

    def collect(self, namespaces: Sequence[str], *, stop: threading.Event | None = None) -> list[NormalizedRecord]:
        self.calls += 1
        if self._raises is not None:
            raise self._raises
        if self._block and stop is not None:
            stop.wait(timeout=5)
            return []
        return [r for r in self._records if not namespaces or r.namespace in namespaces]


def failing_handler(resource_type: str, message: str = "api unavailable") -> StubHandler:
    return StubHandler(resource_type, raises=HandlerError(resource_type, message))


class ListSink:
    """Sink that keeps every emitted record in memory."""

    def __init__(self) -> None:
        self.records: list[NormalizedRecord] = []

    def emit(self, records: Sequence[NormalizedRecord]) -> int:
        batch = list(records)
        self.records.extend(batch)
        return len(batch)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def collection_config() -> CollectionConfig:
    return CollectionConfig(log_interval_seconds=60.0, resources=[], collection_timeout_seconds=5.0)


@pytest.fixture
def list_sink() -> ListSink:
    return ListSink()
