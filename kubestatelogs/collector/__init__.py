"""Resource collection: handler contract, per-kind adapters, registry and scheduling."""

from kubestatelogs.collector.handler import BaseHandler, ResourceHandler
from kubestatelogs.collector.registry import Aggregator, HandlerRegistry

__all__ = ["Aggregator", "BaseHandler", "HandlerRegistry", "ResourceHandler"]
