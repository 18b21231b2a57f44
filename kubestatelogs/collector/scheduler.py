"""Per-interval collection loops.

Registered kinds are grouped by their configured interval.  Each group runs
one loop: collect immediately, then once per interval, every pass bounded by
the collection timeout.  Records are handed to the sink as each pass ends.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

import structlog

from kubestatelogs.collector.registry import Aggregator, HandlerRegistry
from kubestatelogs.models.config import CollectionConfig
from kubestatelogs.models.records import CollectionResult
from kubestatelogs.observability.sink import RecordSink

_log = structlog.get_logger(component="collector.scheduler")


class CollectionScheduler:
    """Drives the aggregator on the configured cadence."""

    def __init__(
        self,
        registry: HandlerRegistry,
        aggregator: Aggregator,
        sink: RecordSink,
        config: CollectionConfig,
    ) -> None:
        self._registry = registry
        self._aggregator = aggregator
        self._sink = sink
        self._config = config
        self._tasks: list[asyncio.Task[None]] = []
        self._cancel = asyncio.Event()
        self._last_pass: dict[str, CollectionResult] = {}
        self._passes = 0

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    @property
    def last_pass(self) -> CollectionResult | None:
        """Most recent pass across every interval group."""
        if not self._last_pass:
            return None
        return max(self._last_pass.values(), key=lambda result: result.collected_at)

    @property
    def passes(self) -> int:
        return self._passes

    def interval_groups(self) -> dict[float, list[str]]:
        """Active kinds grouped by collection interval (seconds)."""
        groups: dict[float, list[str]] = {}
        for registration in self._registry.registrations:
            interval = self._config.interval_for(registration.resource_type)
            groups.setdefault(interval, []).append(registration.resource_type)
        return groups

    async def run_once(self, kinds: Sequence[str] | None = None) -> CollectionResult:
        """Run one bounded pass over *kinds* (default: all) and emit its records."""
        timeout = self._config.collection_timeout_seconds or None
        result = await self._aggregator.collect_all(
            self._config.namespaces,
            kinds=kinds,
            cancel=self._cancel,
            timeout=timeout,
        )
        emitted = self._sink.emit(result.records)
        self._passes += 1
        key = ",".join(sorted(kinds)) if kinds is not None else "*"
        self._last_pass[key] = result
        _log.info(
            "collection_pass_complete",
            records=len(result.records),
            emitted=emitted,
            errors=len(result.errors),
            cancelled=result.cancelled,
            duration_seconds=round(result.duration_seconds, 3),
        )
        return result

    async def start(self) -> None:
        if self.running:
            return
        self._cancel.clear()
        self._registry.freeze()
        for interval, kinds in sorted(self.interval_groups().items()):
            task = asyncio.create_task(self._loop(interval, kinds), name=f"collect-every-{interval:g}s")
            self._tasks.append(task)
            _log.info("collection_loop_started", interval_seconds=interval, resource_types=kinds)

    async def stop(self) -> None:
        self._cancel.set()
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

    async def _loop(self, interval: float, kinds: list[str]) -> None:
        loop = asyncio.get_running_loop()
        while not self._cancel.is_set():
            started = loop.time()
            try:
                await self.run_once(kinds)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                _log.error("collection_pass_failed", resource_types=kinds, error=str(exc))
            delay = max(0.0, interval - (loop.time() - started))
            try:
                await asyncio.wait_for(self._cancel.wait(), timeout=delay)
            except TimeoutError:
                continue
