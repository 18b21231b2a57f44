"""Stateless field-extraction helpers shared by every resource handler.

Objects are plain mappings in the Kubernetes API's camelCase JSON shape,
exactly as the informers store them.  Every helper takes all of its inputs
explicitly and tolerates absent sub-trees.
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable, Mapping, Sequence
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from kubestatelogs.errors import MalformedObjectError

CONDITION_TRUE = "True"

# ---------------------------------------------------------------------------
# Owner attribution
# ---------------------------------------------------------------------------


def owner_reference_info(owner_references: Sequence[Mapping[str, Any]] | None) -> tuple[str, str]:
    """Return ``(kind, name)`` of the first owner reference, or ``("", "")``.

    Always the first element in native order: no sorting and no preference
    for the ``controller: true`` entry.  Raises MalformedObjectError when the
    list or its first entry is not shaped like an owner reference.
    """
    if not owner_references:
        return "", ""
    if not isinstance(owner_references, Sequence) or isinstance(owner_references, str):
        raise MalformedObjectError("ownerReferences is not a list")
    first = owner_references[0]
    if not isinstance(first, Mapping):
        raise MalformedObjectError("ownerReferences entry is not a mapping")
    return str(first.get("kind") or ""), str(first.get("name") or "")


# ---------------------------------------------------------------------------
# Conditions
# ---------------------------------------------------------------------------


def _condition_pairs(conditions: Iterable[Any] | None) -> Iterable[tuple[str, str]]:
    for condition in conditions or ():
        if isinstance(condition, Mapping):
            yield str(condition.get("type", "")), str(condition.get("status", ""))
        elif isinstance(condition, (tuple, list)) and len(condition) == 2:
            yield str(condition[0]), str(condition[1])


def get_condition_status(conditions: Iterable[Any] | None, condition_type: str) -> bool | None:
    """Tri-state lookup of *condition_type*.

    True if present with status ``"True"``, False if present with any other
    status (``"False"``, ``"Unknown"``), None if the type is not reported.
    The first matching entry wins.
    """
    for ctype, status in _condition_pairs(conditions):
        if ctype == condition_type:
            return status == CONDITION_TRUE
    return None


def collect_conditions(
    conditions: Iterable[Any] | None,
    exclude: Iterable[str] = (),
) -> dict[str, bool | None]:
    """Map every reported condition type not in *exclude* to its tri-state value."""
    skip = set(exclude)
    result: dict[str, bool | None] = {}
    for ctype, status in _condition_pairs(conditions):
        if ctype in skip or ctype in result:
            continue
        result[ctype] = status == CONDITION_TRUE
    return result


# ---------------------------------------------------------------------------
# Namespace filtering
# ---------------------------------------------------------------------------


def should_include_namespace(namespaces: Sequence[str] | None, namespace: str) -> bool:
    """Empty filter includes everything; otherwise exact membership.

    Handlers for cluster-scoped kinds must not call this at all.
    """
    return not namespaces or namespace in namespaces


# ---------------------------------------------------------------------------
# Dotted-path lookup
# ---------------------------------------------------------------------------


def extract_field(tree: Mapping[str, Any] | None, path: str) -> Any:
    """Descend *tree* along ``a.b.c``; None if any segment is unresolvable."""
    if not tree or not path:
        return None
    current: Any = tree
    for part in path.split("."):
        if not isinstance(current, Mapping):
            return None
        if part not in current:
            return None
        current = current[part]
    return current


def get_path(tree: Mapping[str, Any] | None, path: str, default: Any = None) -> Any:
    """Like :func:`extract_field` but substitutes *default* for a missing or null value."""
    value = extract_field(tree, path)
    return default if value is None else value


def get_int(tree: Mapping[str, Any] | None, path: str, default: int = 0) -> int:
    """Integer at *path*; the API omits zero-valued counters, so absent means *default*."""
    value = extract_field(tree, path)
    try:
        return int(value) if value is not None else default
    except (TypeError, ValueError):
        return default


def optional_int(tree: Mapping[str, Any] | None, path: str) -> int | None:
    """Integer at *path*, or None for an unset optional field."""
    value = extract_field(tree, path)
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


# ---------------------------------------------------------------------------
# Metadata
# ---------------------------------------------------------------------------


def object_meta(obj: Mapping[str, Any]) -> Mapping[str, Any]:
    """Return ``obj.metadata``; raise MalformedObjectError without a name."""
    metadata = obj.get("metadata")
    if not isinstance(metadata, Mapping) or not metadata.get("name"):
        raise MalformedObjectError("object has no metadata.name")
    return metadata


def object_namespace(obj: Mapping[str, Any]) -> str:
    metadata = obj.get("metadata")
    if not isinstance(metadata, Mapping):
        return ""
    return str(metadata.get("namespace") or "")


def parse_time(value: Any) -> datetime | None:
    """Parse an RFC 3339 timestamp (or pass a datetime through)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def created_timestamp(obj: Mapping[str, Any]) -> int:
    """Creation instant in seconds since epoch, 0 when unknown."""
    created = parse_time(extract_field(obj, "metadata.creationTimestamp"))
    return int(created.timestamp()) if created else 0


def string_map(value: Any) -> dict[str, str] | None:
    """Copy a string-to-string mapping; None stays None."""
    if not isinstance(value, Mapping):
        return None
    return {str(k): str(v) for k, v in value.items()}


# ---------------------------------------------------------------------------
# Resource quantities
# ---------------------------------------------------------------------------

_QUANTITY_RE = re.compile(r"^([+-]?[0-9.]+)([eE][+-]?[0-9]+|[numkMGTPE]|[KMGTPE]i)?$")

_BINARY_SUFFIXES = {"Ki": 2**10, "Mi": 2**20, "Gi": 2**30, "Ti": 2**40, "Pi": 2**50, "Ei": 2**60}
_DECIMAL_SUFFIXES = {
    "n": Decimal("1e-9"),
    "u": Decimal("1e-6"),
    "m": Decimal("1e-3"),
    "": Decimal(1),
    "k": Decimal("1e3"),
    "M": Decimal("1e6"),
    "G": Decimal("1e9"),
    "T": Decimal("1e12"),
    "P": Decimal("1e15"),
    "E": Decimal("1e18"),
}


def parse_quantity(value: Any) -> Decimal | None:
    """Parse a Kubernetes resource quantity (``500m``, ``1Gi``, ``1e3``)."""
    if value is None:
        return None
    if isinstance(value, (int, float, Decimal)):
        return Decimal(str(value))
    match = _QUANTITY_RE.match(str(value).strip())
    if not match:
        return None
    number, suffix = match.group(1), match.group(2) or ""
    try:
        base = Decimal(number)
    except InvalidOperation:
        return None
    if suffix in _BINARY_SUFFIXES:
        return base * _BINARY_SUFFIXES[suffix]
    if suffix in _DECIMAL_SUFFIXES:
        return base * _DECIMAL_SUFFIXES[suffix]
    return base * (Decimal(10) ** int(suffix[1:]))


def quantity_to_int(value: Any) -> int | None:
    """Quantity rounded up to whole units (bytes, cores, counts)."""
    parsed = parse_quantity(value)
    return None if parsed is None else int(math.ceil(parsed))


def quantity_to_millis(value: Any) -> int | None:
    """Quantity in thousandths, rounded up (CPU millicores)."""
    parsed = parse_quantity(value)
    return None if parsed is None else int(math.ceil(parsed * 1000))


def quantity_map(resource_list: Any) -> dict[str, str] | None:
    """Copy a ResourceList as ``{name: quantity-string}``."""
    if not isinstance(resource_list, Mapping):
        return None
    return {str(name): str(quantity) for name, quantity in resource_list.items()}


def quantity_int_map(resource_list: Any) -> dict[str, int] | None:
    """ResourceList with every quantity converted by :func:`quantity_to_int`."""
    if not isinstance(resource_list, Mapping):
        return None
    result: dict[str, int] = {}
    for name, quantity in resource_list.items():
        converted = quantity_to_int(quantity)
        if converted is not None:
            result[str(name)] = converted
    return result


def int_or_string(value: Any) -> int | str | None:
    """Normalise an IntOrString field: ints stay ints, ``"25%"`` stays a string."""
    if value is None or isinstance(value, int):
        return value
    text = str(value)
    return int(text) if text.lstrip("-").isdigit() else text
