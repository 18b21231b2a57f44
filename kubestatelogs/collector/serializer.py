"""Declared-field serialization of per-kind records into a field bag.

Every per-kind record is a dataclass whose exported fields declare an
external name via :func:`json_field`::

    @dataclass
    class ConfigMapData:
        data_keys: list[str] = json_field("dataKeys", default_factory=list)
        _cache_key: str = ""                      # no external name -> skipped

:func:`to_field_bag` walks the fields in declaration order and emits
``{external_name: value}``.  A field with no external name, or declared
with ``"-"``, never reaches the bag.  ``None`` is kept as an explicit null
under its key.  Maps, lists and nested records are passed through as-is;
nested records are only rendered when the bag is JSON-encoded (see
:func:`encode_json_value`).
"""

from __future__ import annotations

import dataclasses
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

EXTERNAL_NAME = "json"
EXCLUDED = "-"

_MISSING: Any = dataclasses.MISSING


def json_field(
    name: str,
    *,
    default: Any = _MISSING,
    default_factory: Any = _MISSING,
) -> Any:
    """Declare a dataclass field exported under *name*."""
    if default is not _MISSING and default_factory is not _MISSING:
        raise ValueError("cannot specify both default and default_factory")
    metadata = {EXTERNAL_NAME: name}
    if default_factory is not _MISSING:
        return dataclasses.field(default_factory=default_factory, metadata=metadata)
    if default is not _MISSING:
        return dataclasses.field(default=default, metadata=metadata)
    return dataclasses.field(metadata=metadata)


def external_name(f: dataclasses.Field[Any]) -> str | None:
    """Return the field's external name, or None if it is not exported."""
    name = f.metadata.get(EXTERNAL_NAME)
    if not name or name == EXCLUDED:
        return None
    return str(name)


def to_field_bag(record: Any) -> dict[str, Any]:
    """Convert a declared-field dataclass instance into an open field bag."""
    if not dataclasses.is_dataclass(record) or isinstance(record, type):
        raise TypeError(f"expected a dataclass instance, got {type(record).__name__}")

    bag: dict[str, Any] = {}
    for f in dataclasses.fields(record):
        name = external_name(f)
        if name is None:
            continue
        bag[name] = getattr(record, f.name)
    return bag


def encode_json_value(value: Any) -> Any:
    """``json.dumps`` default hook for values a field bag may carry."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return to_field_bag(value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC).isoformat().replace("+00:00", "Z")
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")
