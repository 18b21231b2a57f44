"""Record sinks: where collected records are handed to the log pipeline.

Only one sink ships: ``JsonLinesSink`` writes one JSON document per record
to a text stream (stdout by default), which is what node-level log agents
pick up from the container's output.
"""

from __future__ import annotations

import json
import sys
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import TextIO

import structlog

from kubestatelogs.collector.serializer import encode_json_value
from kubestatelogs.models.records import NormalizedRecord

_log = structlog.get_logger(component="observability.sink")


class RecordSink(ABC):
    """Abstract downstream consumer of collected records."""

    @abstractmethod
    def emit(self, records: Iterable[NormalizedRecord]) -> int:
        """Deliver *records*; return how many were written.

        Must not raise for a single bad record.
        """


class JsonLinesSink(RecordSink):
    """Writes each record as a single-line JSON document."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    @property
    def stream(self) -> TextIO:
        # Resolved lazily so pytest's capsys replacement of stdout is honoured.
        return self._stream or sys.stdout

    def emit(self, records: Iterable[NormalizedRecord]) -> int:
        written = 0
        stream = self.stream
        for record in records:
            try:
                line = json.dumps(record.to_dict(), default=encode_json_value, separators=(",", ":"))
                stream.write(line + "\n")
            except (TypeError, ValueError, OSError) as exc:
                _log.error(
                    "record_emit_failed",
                    resource_type=record.resource_type,
                    namespace=record.namespace,
                    name=record.name,
                    error=str(exc),
                )
                continue
            written += 1
        stream.flush()
        return written
