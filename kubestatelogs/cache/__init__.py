"""Cache layer for kube-state-logs.

Provides per-kind local mirrors of cluster state, kept current by
kubernetes_asyncio list + watch loops.  The collection core only ever reads
these mirrors.

Submodules:
    accessor  -- list_current(): nil-tolerant, non-blocking store reads.
    informer  -- Informer: list + watch mirror of one kind, relist on 410.
    factory   -- InformerFactory: one shared informer per kind, BindError
                 for kinds the cluster or client cannot serve.
"""

from kubestatelogs.cache.accessor import list_current
from kubestatelogs.cache.factory import InformerFactory, KindSpec
from kubestatelogs.cache.informer import NOOP_EVENT_HANDLERS, EventHandlers, Informer

__all__ = [
    "NOOP_EVENT_HANDLERS",
    "EventHandlers",
    "Informer",
    "InformerFactory",
    "KindSpec",
    "list_current",
]
