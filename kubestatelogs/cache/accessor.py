"""Nil-tolerant read access to an informer's local store."""

from __future__ import annotations

from typing import Any, Protocol


class CacheHandle(Protocol):
    """What the collection core needs from a per-kind cache."""

    def list_current(self) -> list[Any]: ...

    def has_synced(self) -> bool: ...


def list_current(handle: CacheHandle | None) -> list[Any]:
    """Return the handle's current objects, or ``[]``.

    An unbound handle, a handle with no store, and a handle whose initial
    list has not completed all yield an empty list.  Never blocks.
    """
    if handle is None:
        return []
    has_synced = getattr(handle, "has_synced", None)
    if has_synced is not None and not has_synced():
        return []
    lister = getattr(handle, "list_current", None)
    if lister is None:
        return []
    items = lister()
    return list(items) if items else []
