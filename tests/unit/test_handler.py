"""Unit tests for the shared handler bind/collect behaviour."""

from __future__ import annotations

import threading

import pytest
from prometheus_client import REGISTRY

from kubestatelogs.collector.registry import Aggregator, HandlerRegistry
from kubestatelogs.collector.resources.core import ConfigMapHandler, NodeHandler
from kubestatelogs.collector.resources.pods import PodHandler
from kubestatelogs.errors import BindError, HandlerError
from tests.conftest import FakeFactory, make_object

# ---------------------------------------------------------------------------
# bind
# ---------------------------------------------------------------------------


class TestBind:
    def test_bind_acquires_informer_and_registers_noop_observer(self) -> None:
        factory = FakeFactory()
        handler = ConfigMapHandler()
        handler.bind(factory, None)
        assert handler.bound
        assert handler.informer is factory.informers["configmap"]
        assert len(factory.informers["configmap"].handlers) == 1

    def test_bind_failure_raises_bind_error(self) -> None:
        handler = ConfigMapHandler()
        with pytest.raises(BindError) as exc_info:
            handler.bind(FakeFactory(unsupported=["configmap"]), None)
        assert exc_info.value.kind == "configmap"
        assert not handler.bound

    def test_unexpected_bind_exception_is_wrapped(self) -> None:
        class _Broken:
            def for_kind(self, kind: str) -> None:
                raise RuntimeError("boom")

        with pytest.raises(BindError) as exc_info:
            ConfigMapHandler().bind(_Broken(), None)
        assert isinstance(exc_info.value.cause, RuntimeError)


# ---------------------------------------------------------------------------
# collect
# ---------------------------------------------------------------------------


class TestCollect:
    def _bound(self, objects: list, **factory_kwargs) -> ConfigMapHandler:
        handler = ConfigMapHandler()
        handler.bind(FakeFactory({"configmap": objects}, **factory_kwargs), None)
        return handler

    def test_unbound_handler_collects_nothing(self) -> None:
        assert ConfigMapHandler().collect([]) == []

    def test_unsynced_cache_yields_no_records(self) -> None:
        handler = self._bound([make_object("a")], unsynced=["configmap"])
        assert handler.collect([]) == []

    def test_envelope_fields(self) -> None:
        obj = make_object(
            "settings",
            "prod",
            labels={"app": "web"},
            annotations={"team": "core"},
            owners=[("Deployment", "web")],
        )
        obj["data"] = {"b": "2", "a": "1"}
        [record] = self._bound([obj]).collect([])
        assert record.resource_type == "configmap"
        assert record.name == "settings"
        assert record.namespace == "prod"
        assert record.labels == {"app": "web"}
        assert record.annotations == {"team": "core"}
        assert record.created_by_kind == "Deployment"
        assert record.created_by_name == "web"
        assert record.created_timestamp > 0
        assert record.data["dataKeys"] == ["a", "b"]

    def test_namespace_filter_applied(self) -> None:
        handler = self._bound([make_object("a", "default"), make_object("b", "kube-system")])
        records = handler.collect(["default"])
        assert [r.name for r in records] == ["a"]

    def test_malformed_and_foreign_objects_skipped(self) -> None:
        handler = self._bound([{"metadata": {"namespace": "default"}}, "not-a-dict", make_object("ok")])
        assert [r.name for r in handler.collect([])] == ["ok"]

    def test_cluster_scoped_kind_ignores_namespace_filter(self) -> None:
        handler = NodeHandler()
        handler.bind(FakeFactory({"node": [make_object("node-1", None)]}), None)
        [record] = handler.collect(["default"])
        assert record.namespace == ""

    def test_stop_signal_ends_collection_early(self) -> None:
        handler = self._bound([make_object(f"cm-{i}") for i in range(5)])
        stop = threading.Event()
        stop.set()
        assert handler.collect([], stop=stop) == []

    def test_terminal_informer_error_raises_handler_error(self) -> None:
        handler = self._bound([make_object("a")])
        handler.informer._error = PermissionError("forbidden")
        with pytest.raises(HandlerError) as exc_info:
            handler.collect([])
        assert exc_info.value.kind == "configmap"


# ---------------------------------------------------------------------------
# Wrong-shaped objects
# ---------------------------------------------------------------------------


def _skipped(resource_type: str) -> float:
    return REGISTRY.get_sample_value("kube_state_logs_objects_skipped_total", {"resource_type": resource_type}) or 0.0


def _pod(name: str, **overrides) -> dict:
    obj = make_object(
        name,
        spec={"containers": [{"name": "app", "image": "nginx"}]},
        status={"phase": "Running", "podIPs": [{"ip": "10.0.0.2"}]},
    )
    for path, value in overrides.items():
        section, key = path.split("__")
        obj[section][key] = value
    return obj


class TestWrongShapedObjects:
    """A bad nested field costs its own object only, never the kind."""

    @pytest.mark.parametrize(
        "override",
        [
            {"status__podIPs": ["10.0.0.1"]},
            {"metadata__ownerReferences": ["Deployment/web"]},
            {"spec__tolerations": ["NoSchedule"]},
        ],
    )
    def test_bad_object_skipped_next_to_good_one(self, override: dict) -> None:
        handler = PodHandler()
        handler.bind(FakeFactory({"pod": [_pod("bad", **override), _pod("good")]}), None)
        before = _skipped("pod")
        assert [r.name for r in handler.collect([])] == ["good"]
        assert _skipped("pod") == before + 1

    async def test_pass_reports_no_error_for_bad_object(self) -> None:
        registry = HandlerRegistry()
        registry.register(PodHandler())
        registry.bind_all(FakeFactory({"pod": [_pod("bad", status__podIPs=["10.0.0.1"]), _pod("good")]}))
        result = await Aggregator(registry).collect_all([])
        assert result.errors == []
        assert [r.name for r in result.records] == ["good"]
