"""Unit tests for the handler registry and the collection-pass aggregator."""

from __future__ import annotations

import asyncio

import pytest

from kubestatelogs.collector.registry import Aggregator, HandlerRegistry
from kubestatelogs.errors import BindError, HandlerError
from tests.conftest import FakeFactory, StubHandler, failing_handler, make_record

# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class TestHandlerRegistry:
    def test_register_returns_registration(self) -> None:
        registry = HandlerRegistry()
        handler = StubHandler("pod")
        registration = registry.register(handler)
        assert registration.resource_type == "pod"
        assert registration.handler is handler
        assert registry.get("pod") is handler

    def test_duplicate_resource_type_rejected(self) -> None:
        registry = HandlerRegistry()
        registry.register(StubHandler("pod"))
        with pytest.raises(ValueError):
            registry.register(StubHandler("pod"))

    def test_frozen_registry_rejects_registration(self) -> None:
        registry = HandlerRegistry()
        registry.freeze()
        assert registry.frozen
        with pytest.raises(RuntimeError):
            registry.register(StubHandler("pod"))

    def test_bind_failure_excludes_kind(self) -> None:
        registry = HandlerRegistry()
        registry.register(StubHandler("pod"))
        registry.register(StubHandler("lease", bind_error=BindError("lease", "no coordination.k8s.io/v1")))
        registry.register(StubHandler("node", bind_error=RuntimeError("boom")))

        errors = registry.bind_all(FakeFactory())

        assert sorted(err.kind for err in errors) == ["lease", "node"]
        assert [reg.resource_type for reg in registry.registrations] == ["pod"]
        assert set(registry.failed) == {"lease", "node"}
        assert registry.get("lease") is None

    def test_failed_kind_not_rebound(self) -> None:
        registry = HandlerRegistry()
        registry.register(StubHandler("lease", bind_error=BindError("lease", "missing")))
        registry.bind_all(FakeFactory())
        assert registry.bind_all(FakeFactory()) == []


# ---------------------------------------------------------------------------
# Aggregator
# ---------------------------------------------------------------------------


def _registry(*handlers: StubHandler) -> HandlerRegistry:
    registry = HandlerRegistry()
    for handler in handlers:
        registry.register(handler)
    registry.bind_all(FakeFactory())
    return registry


class TestAggregator:
    async def test_merges_all_kinds(self) -> None:
        registry = _registry(
            StubHandler("pod", [make_record("pod", "a"), make_record("pod", "b")]),
            StubHandler("service", [make_record("service", "web")]),
        )
        result = await Aggregator(registry).collect_all([])
        assert sorted(r.name for r in result.records) == ["a", "b", "web"]
        assert result.errors == []
        assert not result.cancelled

    async def test_single_timestamp_per_pass(self) -> None:
        registry = _registry(
            StubHandler("pod", [make_record("pod", "a")]),
            StubHandler("service", [make_record("service", "web")]),
        )
        result = await Aggregator(registry).collect_all([])
        assert {r.timestamp for r in result.records} == {result.collected_at}

    async def test_handler_error_isolated(self) -> None:
        registry = _registry(
            StubHandler("pod", [make_record("pod", "a")]),
            failing_handler("service"),
            StubHandler("node", raises=ValueError("bad data")),
        )
        result = await Aggregator(registry).collect_all([])
        assert [r.name for r in result.records] == ["a"]
        assert sorted(result.failed_kinds) == ["node", "service"]
        assert all(isinstance(err, HandlerError) for err in result.errors)

    async def test_mislabelled_handler_error_rewrapped(self) -> None:
        registry = _registry(StubHandler("pod", raises=HandlerError("other", "x")))
        result = await Aggregator(registry).collect_all([])
        assert result.failed_kinds == ["pod"]

    async def test_bind_failed_kind_never_collected(self) -> None:
        broken = StubHandler("lease", bind_error=BindError("lease", "missing"))
        registry = _registry(StubHandler("pod", [make_record("pod", "a")]), broken)
        await Aggregator(registry).collect_all([])
        assert broken.calls == 0

    async def test_kinds_selects_subset(self) -> None:
        pod = StubHandler("pod", [make_record("pod", "a")])
        service = StubHandler("service", [make_record("service", "web")])
        result = await Aggregator(_registry(pod, service)).collect_all([], kinds=["service"])
        assert [r.name for r in result.records] == ["web"]
        assert pod.calls == 0

    async def test_namespace_filter_passed_through(self) -> None:
        registry = _registry(
            StubHandler("pod", [make_record("pod", "a", "default"), make_record("pod", "b", "kube-system")])
        )
        result = await Aggregator(registry).collect_all(["default"])
        assert [r.namespace for r in result.records] == ["default"]

    async def test_timeout_returns_partial_result(self) -> None:
        registry = _registry(
            StubHandler("pod", [make_record("pod", "a")]),
            StubHandler("node", block_until_stopped=True),
        )
        result = await Aggregator(registry).collect_all([], timeout=0.3)
        assert result.cancelled
        assert [r.name for r in result.records] == ["a"]

    async def test_cancel_event_returns_partial_result(self) -> None:
        registry = _registry(
            StubHandler("pod", [make_record("pod", "a")]),
            StubHandler("node", block_until_stopped=True),
        )
        cancel = asyncio.Event()
        asyncio.get_running_loop().call_later(0.2, cancel.set)
        result = await Aggregator(registry).collect_all([], cancel=cancel)
        assert result.cancelled
        assert [r.name for r in result.records] == ["a"]

    async def test_empty_registry(self) -> None:
        result = await Aggregator(HandlerRegistry()).collect_all([])
        assert result.records == []
        assert not result.cancelled
