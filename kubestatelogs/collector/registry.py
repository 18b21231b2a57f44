"""Handler registry and the collection-pass aggregator.

The registry holds exactly one handler per resource type.  ``bind_all``
binds every handler once at setup; kinds that fail to bind are reported and
excluded from every later pass.  ``freeze`` closes the registry when
collection starts.

``Aggregator.collect_all`` runs one pass: every active kind's ``collect``
in a worker thread, merged on the event-loop thread as each finishes.
"""

from __future__ import annotations

import asyncio
import dataclasses
import threading
import time
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from typing import Any

import structlog

from kubestatelogs.collector.handler import ResourceHandler
from kubestatelogs.errors import BindError, HandlerError
from kubestatelogs.models.records import CollectionResult, HandlerRegistration, NormalizedRecord
from kubestatelogs.observability.metrics import (
    collection_duration_seconds,
    collection_passes_total,
    handler_errors_total,
    records_collected_total,
)

_log = structlog.get_logger(component="collector.registry")


class HandlerRegistry:
    """One handler per resource type."""

    def __init__(self) -> None:
        self._registrations: dict[str, HandlerRegistration] = {}
        self._failed: dict[str, BindError] = {}
        self._frozen = False

    def register(self, handler: ResourceHandler) -> HandlerRegistration:
        if self._frozen:
            raise RuntimeError("handler registry is frozen; collection has started")
        kind = handler.resource_type
        if kind in self._registrations:
            raise ValueError(f"handler already registered for resource type '{kind}'")
        registration = HandlerRegistration(resource_type=kind, handler=handler)
        self._registrations[kind] = registration
        return registration

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def registrations(self) -> list[HandlerRegistration]:
        """Active registrations (kinds that failed to bind are excluded)."""
        return [reg for kind, reg in self._registrations.items() if kind not in self._failed]

    @property
    def failed(self) -> dict[str, BindError]:
        return dict(self._failed)

    def get(self, kind: str) -> ResourceHandler | None:
        registration = self._registrations.get(kind)
        if registration is None or kind in self._failed:
            return None
        return registration.handler

    def bind_all(self, factory: Any, logger: Any = None) -> list[BindError]:
        """Bind every registered handler; return the failures."""
        errors: list[BindError] = []
        for kind, registration in self._registrations.items():
            if kind in self._failed:
                continue
            handler_logger = logger.bind(resource_type=kind) if logger is not None else None
            try:
                registration.handler.bind(factory, handler_logger)
            except BindError as exc:
                err = exc
            except Exception as exc:
                err = BindError(kind, exc)
            else:
                continue
            self._failed[kind] = err
            errors.append(err)
            _log.warning("handler_bind_failed", resource_type=kind, error=str(err.cause))
        _log.info("handlers_bound", active=len(self.registrations), failed=len(errors))
        return errors


class Aggregator:
    """Runs collection passes across the registry's active kinds."""

    def __init__(self, registry: HandlerRegistry) -> None:
        self._registry = registry

    def _select(self, kinds: Iterable[str] | None) -> list[HandlerRegistration]:
        registrations = self._registry.registrations
        if kinds is None:
            return registrations
        wanted = set(kinds)
        return [reg for reg in registrations if reg.resource_type in wanted]

    async def collect_all(
        self,
        namespaces: Sequence[str],
        *,
        kinds: Iterable[str] | None = None,
        cancel: asyncio.Event | None = None,
        timeout: float | None = None,
    ) -> CollectionResult:
        """Run one collection pass.

        Never raises for a handler failure: every exception a kind raises
        becomes a ``HandlerError`` in the result.  When *cancel* is set or
        *timeout* elapses, in-flight kinds are told to stop and the records
        gathered so far are returned with ``cancelled=True``.
        """
        collected_at = datetime.now(tz=UTC)
        started = time.monotonic()
        result = CollectionResult(collected_at=collected_at)
        stop = threading.Event()
        namespace_filter = list(namespaces)

        tasks: dict[asyncio.Task[list[NormalizedRecord]], str] = {}
        for registration in self._select(kinds):
            task = asyncio.create_task(
                asyncio.to_thread(registration.handler.collect, namespace_filter, stop=stop),
                name=f"collect-{registration.resource_type}",
            )
            tasks[task] = registration.resource_type

        cancel_task: asyncio.Task[bool] | None = None
        if cancel is not None:
            cancel_task = asyncio.create_task(cancel.wait(), name="collect-cancel")

        deadline = None if timeout is None else time.monotonic() + timeout
        pending: set[asyncio.Task[Any]] = set(tasks)
        try:
            while pending:
                if cancel is not None and cancel.is_set():
                    result.cancelled = True
                    break
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    result.cancelled = True
                    break
                waiting = pending | ({cancel_task} if cancel_task is not None else set())
                done, _ = await asyncio.wait(waiting, timeout=remaining, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    if task is cancel_task:
                        continue
                    pending.discard(task)
                    self._merge(result, tasks[task], task, collected_at)
        finally:
            if pending:
                stop.set()
                for task in pending:
                    task.cancel()
            if cancel_task is not None:
                cancel_task.cancel()

        result.duration_seconds = time.monotonic() - started
        self._observe(result, skipped=[tasks[t] for t in pending])
        return result

    def _merge(
        self,
        result: CollectionResult,
        kind: str,
        task: asyncio.Task[list[NormalizedRecord]],
        collected_at: datetime,
    ) -> None:
        try:
            records = task.result()
        except asyncio.CancelledError:
            return
        except HandlerError as exc:
            error = exc if exc.kind == kind else HandlerError(kind, exc)
            self._record_error(result, error)
            return
        except Exception as exc:
            self._record_error(result, HandlerError(kind, exc))
            return
        result.records.extend(dataclasses.replace(record, timestamp=collected_at) for record in records)
        if records:
            records_collected_total.labels(resource_type=kind).inc(len(records))

    def _record_error(self, result: CollectionResult, error: HandlerError) -> None:
        result.errors.append(error)
        handler_errors_total.labels(resource_type=error.kind).inc()
        _log.error("handler_collect_failed", resource_type=error.kind, error=str(error.cause))

    def _observe(self, result: CollectionResult, skipped: list[str]) -> None:
        if result.cancelled:
            outcome = "cancelled"
        elif result.errors:
            outcome = "partial"
        else:
            outcome = "complete"
        collection_passes_total.labels(outcome=outcome).inc()
        collection_duration_seconds.observe(result.duration_seconds)
        if result.cancelled:
            _log.warning(
                "collection_cancelled",
                records=len(result.records),
                unfinished=sorted(skipped),
            )
