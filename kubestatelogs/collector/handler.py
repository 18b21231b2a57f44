"""Resource handler contract and the shared base implementations.

Every collected kind implements ``ResourceHandler``:

    bind(factory, logger)         one-time setup; raises BindError.
    collect(namespaces, stop=...) map the kind's cached objects to records.

``InformerHandler`` implements both once for informer-backed kinds and
leaves ``records_for()`` to the kind.  ``BaseHandler`` is the common case
of one record per object: a concrete kind only declares its
``resource_type``, the informer it reads (``cache_key``), whether it is
cluster-scoped, and ``build_data()`` returning a declared-field dataclass.
Kinds with repeated children (containers of a pod) subclass
``InformerHandler`` and emit one record per child.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping, Sequence
from typing import Any

import structlog

from kubestatelogs.cache.accessor import list_current
from kubestatelogs.cache.factory import InformerFactory
from kubestatelogs.cache.informer import NOOP_EVENT_HANDLERS, Informer
from kubestatelogs.collector.serializer import to_field_bag
from kubestatelogs.collector.utils import (
    created_timestamp,
    object_meta,
    object_namespace,
    owner_reference_info,
    should_include_namespace,
    string_map,
)
from kubestatelogs.errors import BindError, HandlerError, MalformedObjectError
from kubestatelogs.models.records import NormalizedRecord
from kubestatelogs.observability.metrics import objects_skipped_total

# A cached object whose nested fields have the wrong shape surfaces as one of
# these while being mapped; it costs that object only.
OBJECT_ERRORS: tuple[type[Exception], ...] = (
    MalformedObjectError,
    AttributeError,
    TypeError,
    ValueError,
    KeyError,
    IndexError,
)


class ResourceHandler(ABC):
    """Per-kind adapter: binds to a cache and maps objects to records."""

    resource_type: str

    @abstractmethod
    def bind(self, factory: InformerFactory, logger: Any) -> None:
        """Acquire the kind's cache handle.  Raises BindError."""

    @abstractmethod
    def collect(
        self,
        namespaces: Sequence[str],
        *,
        stop: threading.Event | None = None,
    ) -> list[NormalizedRecord]:
        """Map the kind's current cached objects to records."""


class InformerHandler(ResourceHandler):
    """Shared bind/collect for informer-backed kinds."""

    cache_key: str = ""
    cluster_scoped: bool = False

    def __init__(self) -> None:
        self._informer: Informer | None = None
        self._log: Any = structlog.get_logger(component="collector.handler", resource_type=self.resource_type)

    @property
    def informer(self) -> Informer | None:
        return self._informer

    @property
    def bound(self) -> bool:
        return self._informer is not None

    def acquire_informer(self, factory: InformerFactory) -> Informer:
        return factory.for_kind(self.cache_key or self.resource_type)

    def bind(self, factory: InformerFactory, logger: Any) -> None:
        try:
            informer = self.acquire_informer(factory)
        except BindError:
            raise
        except Exception as exc:
            raise BindError(self.resource_type, exc) from exc
        # Per-object add/update/delete events are not logged.
        informer.add_event_handlers(NOOP_EVENT_HANDLERS)
        self._informer = informer
        if logger is not None:
            self._log = logger.bind(resource_type=self.resource_type)
        self._log.debug("handler_bound", cache=informer.kind)

    def collect(
        self,
        namespaces: Sequence[str],
        *,
        stop: threading.Event | None = None,
    ) -> list[NormalizedRecord]:
        informer = self._informer
        if informer is not None and informer.error is not None:
            raise HandlerError(self.resource_type, informer.error)
        return self.map_objects(self.scoped_objects(namespaces), stop=stop)

    def scoped_objects(self, namespaces: Sequence[str]) -> list[Mapping[str, Any]]:
        """Cached mappings that pass the namespace filter."""
        objects: list[Mapping[str, Any]] = []
        for obj in list_current(self._informer):
            if not isinstance(obj, Mapping):
                continue
            try:
                if self.in_scope(obj, namespaces):
                    objects.append(obj)
            except OBJECT_ERRORS:
                self._skipped()
        return objects

    def map_objects(
        self,
        objects: Sequence[Mapping[str, Any]],
        *,
        stop: threading.Event | None = None,
        mapper: Callable[[Mapping[str, Any]], list[NormalizedRecord]] | None = None,
    ) -> list[NormalizedRecord]:
        """Apply *mapper* (default ``records_for``) to each object, skipping bad ones."""
        mapper = mapper or self.records_for
        records: list[NormalizedRecord] = []
        for obj in objects:
            if stop is not None and stop.is_set():
                break
            try:
                records.extend(mapper(obj))
            except OBJECT_ERRORS:
                self._skipped()
        return records

    def _skipped(self) -> None:
        objects_skipped_total.labels(resource_type=self.resource_type).inc()

    def in_scope(self, obj: Mapping[str, Any], namespaces: Sequence[str]) -> bool:
        """Namespace filter; cluster-scoped kinds are never filtered."""
        if self.cluster_scoped:
            return True
        return should_include_namespace(namespaces, object_namespace(obj))

    # ------------------------------------------------------------------
    # Mapping
    # ------------------------------------------------------------------

    @abstractmethod
    def records_for(self, obj: Mapping[str, Any]) -> list[NormalizedRecord]:
        """Records for one native object."""

    def build_record(
        self,
        obj: Mapping[str, Any],
        data: Any,
        *,
        name: str | None = None,
        resource_type: str | None = None,
    ) -> NormalizedRecord:
        """Assemble the shared envelope around a kind's *data* record."""
        metadata = object_meta(obj)
        created_by_kind, created_by_name = owner_reference_info(metadata.get("ownerReferences"))
        return NormalizedRecord(
            resource_type=resource_type or self.resource_type,
            name=name or str(metadata["name"]),
            namespace=object_namespace(obj),
            created_timestamp=created_timestamp(obj),
            labels=string_map(metadata.get("labels")),
            annotations=string_map(metadata.get("annotations")),
            created_by_kind=created_by_kind,
            created_by_name=created_by_name,
            data=to_field_bag(data),
        )


class BaseHandler(InformerHandler):
    """One record per cached object."""

    def records_for(self, obj: Mapping[str, Any]) -> list[NormalizedRecord]:
        return [self.build_record(obj, self.build_data(obj))]

    @abstractmethod
    def build_data(self, obj: Mapping[str, Any]) -> Any:
        """Kind-specific declared-field dataclass for *obj*."""
