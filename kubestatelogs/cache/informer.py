"""List + watch mirror of one Kubernetes resource kind.

An ``Informer`` keeps an eventually-consistent local copy of a kind's
objects, keyed by ``namespace/name``:

1. The initial list populates the store and flips ``has_synced()``.
2. A watch from the list's resourceVersion applies ADDED / MODIFIED /
   DELETED events.  Server-side watch timeouts simply resume from the last
   seen resourceVersion.
3. ``410 Gone`` (resourceVersion too old) triggers a full relist that
   replaces the store atomically.
4. Any other failure backs off exponentially (1 s doubling to 60 s) and
   relists.  ``401/403/404`` before the first successful list are terminal:
   the informer records ``error`` and stops.

Objects are stored as plain dicts in the API's camelCase JSON shape.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import structlog
from kubernetes_asyncio import watch
from kubernetes_asyncio.client.exceptions import ApiException

from kubestatelogs.observability.metrics import informer_synced

_log = structlog.get_logger(component="cache.informer")

_INITIAL_BACKOFF_SECONDS = 1.0
_MAX_BACKOFF_SECONDS = 60.0
_WATCH_TIMEOUT_SECONDS = 300
_TERMINAL_STATUSES = frozenset({401, 403, 404})
_GONE = 410

ListFn = Callable[..., Awaitable[Any]]
Serializer = Callable[[Any], Any]


def _noop(*_args: Any) -> None:
    return None


@dataclass(frozen=True)
class EventHandlers:
    """Observers called for each applied watch event."""

    on_add: Callable[[dict[str, Any]], None] = _noop
    on_update: Callable[[dict[str, Any], dict[str, Any]], None] = _noop
    on_delete: Callable[[dict[str, Any]], None] = _noop


NOOP_EVENT_HANDLERS = EventHandlers()


class _ResourceExpired(Exception):
    """The watch's resourceVersion is no longer served; relist required."""


def _identity(value: Any) -> Any:
    return value


def object_key(obj: dict[str, Any]) -> str:
    metadata = obj.get("metadata") or {}
    namespace = metadata.get("namespace") or ""
    name = metadata.get("name") or ""
    return f"{namespace}/{name}" if namespace else str(name)


class Informer:
    """Local mirror of one kind, kept current by list + watch."""

    def __init__(
        self,
        kind: str,
        list_fn: ListFn,
        *,
        list_kwargs: dict[str, Any] | None = None,
        serialize: Serializer | None = None,
        watch_timeout_seconds: int = _WATCH_TIMEOUT_SECONDS,
    ) -> None:
        self.kind = kind
        self._list_fn = list_fn
        self._list_kwargs = dict(list_kwargs or {})
        self._serialize = serialize or _identity
        self._watch_timeout = watch_timeout_seconds

        self._store: dict[str, dict[str, Any]] = {}
        self._synced = False
        self._synced_event = asyncio.Event()
        self._resource_version = ""
        self._error: Exception | None = None
        self._handlers: list[EventHandlers] = []
        self._task: asyncio.Task[None] | None = None

    # ------------------------------------------------------------------
    # Read side (used by the collection core)
    # ------------------------------------------------------------------

    def list_current(self) -> list[dict[str, Any]]:
        """Snapshot of the store's objects."""
        return list(self._store.values())

    def has_synced(self) -> bool:
        return self._synced

    @property
    def error(self) -> Exception | None:
        """Terminal error that stopped the informer, if any."""
        return self._error

    @property
    def resource_version(self) -> str:
        return self._resource_version

    def add_event_handlers(self, handlers: EventHandlers) -> None:
        self._handlers.append(handlers)

    async def wait_for_sync(self, timeout: float | None = None) -> bool:
        """Wait until the initial list completes; False on timeout."""
        if self._synced:
            return True
        try:
            await asyncio.wait_for(self._synced_event.wait(), timeout=timeout)
        except TimeoutError:
            return False
        return True

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.create_task(self._run(), name=f"informer-{self.kind}")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)
        self._task = None

    # ------------------------------------------------------------------
    # List / watch loop
    # ------------------------------------------------------------------

    async def _run(self) -> None:
        backoff = _INITIAL_BACKOFF_SECONDS
        while True:
            try:
                await self._relist()
                backoff = _INITIAL_BACKOFF_SECONDS
                await self._watch()
            except asyncio.CancelledError:
                raise
            except _ResourceExpired:
                _log.debug("informer_resource_expired", kind=self.kind)
                continue
            except ApiException as exc:
                if exc.status == _GONE:
                    _log.debug("informer_resource_expired", kind=self.kind)
                    continue
                if exc.status in _TERMINAL_STATUSES and not self._synced:
                    self._error = exc
                    _log.error("informer_list_failed", kind=self.kind, status=exc.status, error=str(exc.reason))
                    return
                _log.warning("informer_api_error", kind=self.kind, status=exc.status, backoff=backoff)
            except Exception as exc:
                _log.warning("informer_error", kind=self.kind, error=str(exc), backoff=backoff)
            await asyncio.sleep(backoff)
            backoff = min(backoff * 2, _MAX_BACKOFF_SECONDS)

    async def _relist(self) -> None:
        """List the kind and atomically replace the store."""
        response = await self._list_fn(**self._list_kwargs)
        body = self._serialize(response)
        if not isinstance(body, dict):
            body = {}
        items = body.get("items") or []
        store: dict[str, dict[str, Any]] = {}
        for item in items:
            if isinstance(item, dict):
                store[object_key(item)] = item
        self._store = store
        self._resource_version = str((body.get("metadata") or {}).get("resourceVersion") or "")
        if not self._synced:
            self._synced = True
            self._synced_event.set()
            informer_synced.labels(kind=self.kind).set(1)
            _log.info("informer_synced", kind=self.kind, objects=len(store))

    async def _watch(self) -> None:
        """Apply watch events until the API drops the stream for good."""
        while True:
            kwargs = dict(self._list_kwargs)
            kwargs["timeout_seconds"] = self._watch_timeout
            if self._resource_version:
                kwargs["resource_version"] = self._resource_version
            async with watch.Watch() as stream:
                async for event in stream.stream(self._list_fn, **kwargs):
                    self.apply_event(event)

    def apply_event(self, event: dict[str, Any]) -> None:
        """Apply a single watch event to the store and notify observers."""
        event_type = event.get("type")
        raw = event.get("raw_object")
        if not isinstance(raw, dict):
            raw = self._serialize(event.get("object"))
        if not isinstance(raw, dict):
            return

        if event_type == "ERROR":
            if raw.get("code") == _GONE:
                raise _ResourceExpired()
            raise ApiException(status=raw.get("code"), reason=raw.get("message"))

        rv = (raw.get("metadata") or {}).get("resourceVersion")
        if rv:
            self._resource_version = str(rv)
        if event_type == "BOOKMARK":
            return

        key = object_key(raw)
        if event_type == "DELETED":
            removed = self._store.pop(key, None)
            for handlers in self._handlers:
                handlers.on_delete(removed or raw)
            return

        previous = self._store.get(key)
        self._store[key] = raw
        for handlers in self._handlers:
            if previous is None:
                handlers.on_add(raw)
            else:
                handlers.on_update(previous, raw)
