"""Result collection: wire protocol, TCP server and output files."""

from __future__ import annotations

from apc_harness.collector.output import OutputWriter
from apc_harness.collector.protocol import FrameAssembler, LineFramer, LineKind, classify_line
from apc_harness.collector.server import CollectionReport, ResultCollector

__all__ = [
    "CollectionReport",
    "FrameAssembler",
    "LineFramer",
    "LineKind",
    "OutputWriter",
    "ResultCollector",
    "classify_line",
]
