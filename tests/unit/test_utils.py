"""Unit tests for the stateless field-extraction helpers."""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal

import pytest
from hypothesis import given
from hypothesis import strategies as st

from kubestatelogs.collector.utils import (
    collect_conditions,
    created_timestamp,
    extract_field,
    get_condition_status,
    get_int,
    get_path,
    int_or_string,
    object_meta,
    optional_int,
    owner_reference_info,
    parse_quantity,
    parse_time,
    quantity_int_map,
    quantity_to_int,
    quantity_to_millis,
    should_include_namespace,
    string_map,
)
from kubestatelogs.errors import MalformedObjectError

_names = st.text(alphabet="abcdefghijklmnopqrstuvwxyz0123456789-", min_size=1, max_size=20)
_owner = st.fixed_dictionaries(
    {"kind": _names, "name": _names},
    optional={"controller": st.booleans(), "apiVersion": st.just("apps/v1")},
)

# ---------------------------------------------------------------------------
# Owner attribution
# ---------------------------------------------------------------------------


class TestOwnerReferenceInfo:
    def test_no_owners_is_empty_pair(self) -> None:
        """Objects without owner references attribute to nobody."""
        assert owner_reference_info(None) == ("", "")
        assert owner_reference_info([]) == ("", "")

    @given(st.lists(_owner, min_size=1, max_size=6))
    def test_first_entry_always_wins(self, owners: list[dict]) -> None:
        """Attribution is the first reference regardless of length or controller flags."""
        assert owner_reference_info(owners) == (owners[0]["kind"], owners[0]["name"])

    def test_controller_flag_is_ignored(self) -> None:
        owners = [
            {"kind": "ReplicaSet", "name": "web-abc", "controller": False},
            {"kind": "Deployment", "name": "web", "controller": True},
        ]
        assert owner_reference_info(owners) == ("ReplicaSet", "web-abc")

    @pytest.mark.parametrize("owners", [["Deployment/web"], "Deployment/web", [None]])
    def test_wrong_shape_is_malformed(self, owners) -> None:
        with pytest.raises(MalformedObjectError):
            owner_reference_info(owners)


# ---------------------------------------------------------------------------
# Conditions
# ---------------------------------------------------------------------------


class TestConditionStatus:
    @given(st.lists(st.fixed_dictionaries({"type": _names, "status": st.sampled_from(["True", "False", "Unknown"])})))
    def test_absent_type_is_none(self, conditions: list[dict]) -> None:
        """A type that is not reported is unknown, never False."""
        assert get_condition_status([c for c in conditions if c["type"] != "Target"], "Target") is None

    @given(st.sampled_from(["True", "False", "Unknown"]))
    def test_present_type_maps_to_boolean(self, status: str) -> None:
        assert get_condition_status([{"type": "Ready", "status": status}], "Ready") is (status == "True")

    def test_first_match_wins(self) -> None:
        conditions = [{"type": "Ready", "status": "False"}, {"type": "Ready", "status": "True"}]
        assert get_condition_status(conditions, "Ready") is False

    def test_accepts_type_status_pairs(self) -> None:
        assert get_condition_status([("Ready", "True")], "Ready") is True

    def test_none_conditions(self) -> None:
        assert get_condition_status(None, "Ready") is None

    def test_collect_conditions_excludes_promoted(self) -> None:
        conditions = [
            {"type": "Ready", "status": "True"},
            {"type": "DiskPressure", "status": "False"},
            {"type": "MemoryPressure", "status": "Unknown"},
        ]
        assert collect_conditions(conditions, exclude=("Ready",)) == {
            "DiskPressure": False,
            "MemoryPressure": False,
        }


# ---------------------------------------------------------------------------
# Namespace filtering
# ---------------------------------------------------------------------------


class TestNamespaceFilter:
    @given(_names)
    def test_empty_filter_includes_everything(self, namespace: str) -> None:
        assert should_include_namespace([], namespace) is True
        assert should_include_namespace(None, namespace) is True

    @given(st.lists(_names, min_size=1, max_size=5), _names)
    def test_non_empty_filter_is_exact_membership(self, namespaces: list[str], namespace: str) -> None:
        assert should_include_namespace(namespaces, namespace) is (namespace in namespaces)

    def test_membership_is_case_sensitive(self) -> None:
        assert should_include_namespace(["Default"], "default") is False


# ---------------------------------------------------------------------------
# Dotted-path lookup
# ---------------------------------------------------------------------------


class TestExtractField:
    tree = {"spec": {"config": {"port": 8080}}}

    def test_resolves_nested_path(self) -> None:
        assert extract_field(self.tree, "spec.config.port") == 8080

    @pytest.mark.parametrize("path", ["spec.config.missing", "metadata.nonexistent", "spec.config.port.deeper", ""])
    def test_unresolvable_path_is_none(self, path: str) -> None:
        assert extract_field(self.tree, path) is None

    def test_none_tree(self) -> None:
        assert extract_field(None, "spec") is None

    @given(st.lists(_names, min_size=1, max_size=5), st.integers())
    def test_built_path_round_trips(self, parts: list[str], value: int) -> None:
        tree: dict = {}
        node = tree
        for part in parts[:-1]:
            node = node.setdefault(part, {})
        node[parts[-1]] = value
        assert extract_field(tree, ".".join(parts)) == value

    def test_get_path_substitutes_default_for_null(self) -> None:
        assert get_path({"spec": {"type": None}}, "spec.type", "ClusterIP") == "ClusterIP"

    def test_get_int_defaults_to_zero(self) -> None:
        assert get_int({"status": {}}, "status.readyReplicas") == 0
        assert get_int({"status": {"readyReplicas": 3}}, "status.readyReplicas") == 3

    def test_optional_int_keeps_absence(self) -> None:
        assert optional_int({"spec": {}}, "spec.replicas") is None
        assert optional_int({"spec": {"replicas": 0}}, "spec.replicas") == 0
        assert optional_int({"spec": {"replicas": True}}, "spec.replicas") is None


# ---------------------------------------------------------------------------
# Metadata
# ---------------------------------------------------------------------------


class TestMetadata:
    def test_object_meta_requires_name(self) -> None:
        with pytest.raises(MalformedObjectError):
            object_meta({"metadata": {"namespace": "default"}})
        with pytest.raises(MalformedObjectError):
            object_meta({})

    def test_created_timestamp_epoch_seconds(self) -> None:
        obj = {"metadata": {"name": "x", "creationTimestamp": "2024-01-15T10:30:00Z"}}
        assert created_timestamp(obj) == int(datetime(2024, 1, 15, 10, 30, tzinfo=UTC).timestamp())

    def test_created_timestamp_unknown_is_zero(self) -> None:
        assert created_timestamp({"metadata": {"name": "x"}}) == 0

    def test_parse_time_handles_naive_and_invalid(self) -> None:
        assert parse_time("2024-01-15T10:30:00") == datetime(2024, 1, 15, 10, 30, tzinfo=UTC)
        assert parse_time("not-a-time") is None
        assert parse_time("") is None

    def test_string_map_copies_and_keeps_none(self) -> None:
        assert string_map({"a": 1}) == {"a": "1"}
        assert string_map(None) is None


# ---------------------------------------------------------------------------
# Quantities
# ---------------------------------------------------------------------------


class TestQuantities:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("500m", Decimal("0.5")),
            ("2", Decimal(2)),
            ("1Ki", Decimal(1024)),
            ("1Gi", Decimal(2**30)),
            ("1k", Decimal(1000)),
            ("1e3", Decimal(1000)),
            (3, Decimal(3)),
        ],
    )
    def test_parse_quantity(self, raw: object, expected: Decimal) -> None:
        assert parse_quantity(raw) == expected

    def test_invalid_quantity_is_none(self) -> None:
        assert parse_quantity("lots") is None
        assert parse_quantity(None) is None

    def test_rounding_up(self) -> None:
        assert quantity_to_int("1500m") == 2
        assert quantity_to_millis("0.25") == 250

    def test_quantity_int_map_drops_unparseable(self) -> None:
        assert quantity_int_map({"pods": "10", "cpu": "4", "bogus": "x"}) == {"pods": 10, "cpu": 4}

    @pytest.mark.parametrize(("raw", "expected"), [(1, 1), ("25%", "25%"), ("3", 3), (None, None)])
    def test_int_or_string(self, raw: object, expected: object) -> None:
        assert int_or_string(raw) == expected
