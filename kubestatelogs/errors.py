"""Error taxonomy for kube-state-logs.

Failures are isolated at the smallest scope that contains them:

    MalformedObjectError -- one object; skipped by the handler.
    HandlerError         -- one kind for one collection pass; reported in
                            the pass result.
    BindError            -- one kind for the lifetime of the process; the
                            kind is excluded from every pass.
"""

from __future__ import annotations


class KubeStateLogsError(Exception):
    """Base class for all kube-state-logs errors."""


class BindError(KubeStateLogsError):
    """Raised when a kind's cache handle cannot be constructed."""

    def __init__(self, kind: str, cause: Exception | str) -> None:
        super().__init__(f"Failed to bind handler for '{kind}': {cause}")
        self.kind = kind
        self.cause = cause


class HandlerError(KubeStateLogsError):
    """Raised (or recorded) when a kind's collect call fails."""

    def __init__(self, kind: str, cause: Exception | str) -> None:
        super().__init__(f"Collection failed for '{kind}': {cause}")
        self.kind = kind
        self.cause = cause


class MalformedObjectError(KubeStateLogsError):
    """Raised when a cached object lacks a required field."""
