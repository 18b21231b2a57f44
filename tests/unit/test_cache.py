"""Unit tests for the informer, the informer factory and the cache accessor."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest
from kubernetes_asyncio.client.exceptions import ApiException

from kubestatelogs.cache.accessor import list_current
from kubestatelogs.cache.factory import InformerFactory, KindSpec
from kubestatelogs.cache.informer import EventHandlers, Informer, _ResourceExpired, object_key
from kubestatelogs.errors import BindError
from tests.conftest import FakeInformer, make_object


def _list_body(*names: str, rv: str = "1", namespace: str = "default") -> dict[str, Any]:
    return {
        "metadata": {"resourceVersion": rv},
        "items": [make_object(name, namespace) for name in names],
    }


def _static_list(body: dict[str, Any]):
    async def list_fn(**kwargs: Any) -> dict[str, Any]:
        return body

    return list_fn


# ---------------------------------------------------------------------------
# Accessor
# ---------------------------------------------------------------------------


class TestListCurrent:
    def test_none_handle(self) -> None:
        assert list_current(None) == []

    def test_unsynced_handle(self) -> None:
        assert list_current(FakeInformer("pod", [make_object("a")], synced=False)) == []

    def test_synced_handle(self) -> None:
        assert len(list_current(FakeInformer("pod", [make_object("a"), make_object("b")]))) == 2

    def test_handle_without_store(self) -> None:
        assert list_current(object()) == []


# ---------------------------------------------------------------------------
# Informer
# ---------------------------------------------------------------------------


class TestInformerStore:
    def test_object_key(self) -> None:
        assert object_key(make_object("a", "prod")) == "prod/a"
        assert object_key(make_object("node-1", None)) == "node-1"

    async def test_relist_populates_store_and_syncs(self) -> None:
        informer = Informer("pod", _static_list(_list_body("a", "b", rv="42")))
        assert not informer.has_synced()
        await informer._relist()
        assert informer.has_synced()
        assert informer.resource_version == "42"
        assert sorted(o["metadata"]["name"] for o in informer.list_current()) == ["a", "b"]
        assert await informer.wait_for_sync(0.01) is True

    async def test_relist_replaces_store(self) -> None:
        bodies = [_list_body("a", "b", rv="1"), _list_body("c", rv="9")]

        async def list_fn(**kwargs: Any) -> dict[str, Any]:
            return bodies.pop(0)

        informer = Informer("pod", list_fn)
        await informer._relist()
        await informer._relist()
        assert [o["metadata"]["name"] for o in informer.list_current()] == ["c"]

    async def test_relist_passes_list_kwargs_and_serializes(self) -> None:
        seen: dict[str, Any] = {}

        async def list_fn(**kwargs: Any) -> str:
            seen.update(kwargs)
            return "raw"

        informer = Informer(
            "pod",
            list_fn,
            list_kwargs={"namespace": "prod"},
            serialize=lambda raw: _list_body("a", namespace="prod"),
        )
        await informer._relist()
        assert seen == {"namespace": "prod"}
        assert informer.list_current()[0]["metadata"]["namespace"] == "prod"

    async def test_wait_for_sync_times_out(self) -> None:
        informer = Informer("pod", _static_list(_list_body()))
        assert await informer.wait_for_sync(0.01) is False


class TestInformerEvents:
    def _informer(self) -> tuple[Informer, list[tuple[str, str]]]:
        seen: list[tuple[str, str]] = []
        informer = Informer("pod", _static_list(_list_body()))
        informer.add_event_handlers(
            EventHandlers(
                on_add=lambda obj: seen.append(("add", obj["metadata"]["name"])),
                on_update=lambda old, new: seen.append(("update", new["metadata"]["name"])),
                on_delete=lambda obj: seen.append(("delete", obj["metadata"]["name"])),
            )
        )
        return informer, seen

    def test_add_update_delete(self) -> None:
        informer, seen = self._informer()
        obj = make_object("a", resourceVersion="2")
        informer.apply_event({"type": "ADDED", "raw_object": obj})
        informer.apply_event({"type": "MODIFIED", "raw_object": make_object("a", resourceVersion="3")})
        assert informer.resource_version == "3"
        informer.apply_event({"type": "DELETED", "raw_object": make_object("a", resourceVersion="4")})
        assert seen == [("add", "a"), ("update", "a"), ("delete", "a")]
        assert informer.list_current() == []

    def test_object_without_raw_is_serialized(self) -> None:
        informer, _ = self._informer()
        informer.apply_event({"type": "ADDED", "object": make_object("b")})
        assert informer.list_current()[0]["metadata"]["name"] == "b"

    def test_bookmark_only_advances_version(self) -> None:
        informer, seen = self._informer()
        informer.apply_event({"type": "BOOKMARK", "raw_object": {"metadata": {"resourceVersion": "77"}}})
        assert informer.resource_version == "77"
        assert seen == []

    def test_gone_raises_resource_expired(self) -> None:
        informer, _ = self._informer()
        with pytest.raises(_ResourceExpired):
            informer.apply_event({"type": "ERROR", "raw_object": {"code": 410, "message": "too old resource version"}})

    def test_other_error_raises_api_exception(self) -> None:
        informer, _ = self._informer()
        with pytest.raises(ApiException) as exc_info:
            informer.apply_event({"type": "ERROR", "raw_object": {"code": 500, "message": "internal"}})
        assert exc_info.value.status == 500


class TestInformerLoop:
    async def test_resource_expired_triggers_relist(self) -> None:
        bodies = [_list_body("a", rv="1"), _list_body("b", rv="5")]

        async def list_fn(**kwargs: Any) -> dict[str, Any]:
            return bodies.pop(0) if len(bodies) > 1 else bodies[0]

        informer = Informer("pod", list_fn)
        relisted = asyncio.Event()
        watches = 0

        async def fake_watch() -> None:
            nonlocal watches
            watches += 1
            if watches == 1:
                informer.apply_event({"type": "ERROR", "raw_object": {"code": 410, "message": "gone"}})
            relisted.set()
            await asyncio.Event().wait()

        informer._watch = fake_watch  # type: ignore[method-assign]
        await informer.start()
        await asyncio.wait_for(relisted.wait(), timeout=2)
        await informer.stop()

        assert watches == 2
        assert [o["metadata"]["name"] for o in informer.list_current()] == ["b"]
        assert informer.resource_version == "5"

    async def test_forbidden_before_sync_is_terminal(self) -> None:
        async def list_fn(**kwargs: Any) -> dict[str, Any]:
            raise ApiException(status=403, reason="Forbidden")

        informer = Informer("secret", list_fn)
        await informer.start()
        await asyncio.wait_for(informer._task, timeout=2)
        assert isinstance(informer.error, ApiException)
        assert not informer.has_synced()
        await informer.stop()

    async def test_stop_without_start(self) -> None:
        await Informer("pod", _static_list(_list_body())).stop()


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


class _CoreV1:
    async def list_pod_for_all_namespaces(self, **kwargs: Any) -> dict[str, Any]:
        return _list_body("p1")

    async def list_namespaced_pod(self, **kwargs: Any) -> dict[str, Any]:
        return _list_body("p1", namespace=kwargs["namespace"])

    async def list_node(self, **kwargs: Any) -> dict[str, Any]:
        return _list_body("node-1", namespace=None)


class _CustomObjects:
    async def list_cluster_custom_object(self, **kwargs: Any) -> dict[str, Any]:
        return _list_body("web-tls")


def _api_factory(name: str) -> Any:
    apis = {"CoreV1Api": _CoreV1, "CustomObjectsApi": _CustomObjects}
    return apis[name]()


class TestInformerFactory:
    def test_shared_informer_per_kind(self) -> None:
        factory = InformerFactory(api_factory=_api_factory)
        assert factory.for_kind("pod") is factory.for_kind("pod")
        assert factory.supports("pod")
        assert not factory.supports("gizmo")

    def test_namespaced_and_cluster_scoped_keys(self) -> None:
        factory = InformerFactory(api_factory=_api_factory)
        factory.for_kind("pod")
        factory.for_kind("pod", "prod")
        factory.for_kind("node", "prod")
        assert sorted(factory.informers) == ["node", "pod", "pod@prod"]

    def test_unknown_kind_raises_bind_error(self) -> None:
        with pytest.raises(BindError):
            InformerFactory(api_factory=_api_factory).for_kind("gizmo")

    def test_unavailable_api_raises_bind_error(self) -> None:
        with pytest.raises(BindError) as exc_info:
            InformerFactory(api_factory=_api_factory).for_kind("deployment")
        assert exc_info.value.kind == "deployment"

    def test_missing_list_method_raises_bind_error(self) -> None:
        factory = InformerFactory(api_factory=_api_factory, kind_specs={"pod": KindSpec("CoreV1Api", "list_nothing")})
        with pytest.raises(BindError):
            factory.for_kind("pod")

    def test_admission_policy_kinds_bind_only_when_client_lists_them(self) -> None:
        class _OldAdmission:
            async def list_validating_webhook_configuration(self, **kwargs: Any) -> dict[str, Any]:
                return _list_body("hooks", namespace=None)

        class _NewAdmission(_OldAdmission):
            async def list_validating_admission_policy(self, **kwargs: Any) -> dict[str, Any]:
                return _list_body("policy", namespace=None)

        old = InformerFactory(api_factory=lambda name: _OldAdmission())
        assert old.for_kind("validatingwebhookconfiguration").kind == "validatingwebhookconfiguration"
        with pytest.raises(BindError) as exc_info:
            old.for_kind("validatingadmissionpolicy")
        assert exc_info.value.kind == "validatingadmissionpolicy"

        new = InformerFactory(api_factory=lambda name: _NewAdmission())
        assert new.for_kind("validatingadmissionpolicy").kind == "validatingadmissionpolicy"

    def test_custom_resource_key(self) -> None:
        factory = InformerFactory(api_factory=_api_factory)
        informer = factory.for_custom_resource("cert-manager.io", "v1", "certificates")
        assert informer.kind == "certificates.cert-manager.io"
        assert factory.for_custom_resource("cert-manager.io", "v1", "certificates") is informer

    async def test_wait_for_cache_sync_reports_per_kind(self) -> None:
        factory = InformerFactory(api_factory=_api_factory)
        pods = factory.for_kind("pod")
        factory.for_kind("node")
        await pods._relist()
        assert await factory.wait_for_cache_sync(0.05) == {"pod": True, "node": False}
        assert factory.sync_status() == {"pod": True, "node": False}
        await factory.stop()
