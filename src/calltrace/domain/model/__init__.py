"""Trace model: locations, source index, call graph."""

from calltrace.domain.model.call_graph import (
    Anomaly,
    Call,
    CallGraph,
    FrozenCallGraph,
    MethodDefinition,
    MismatchPolicy,
    current_context,
)
from calltrace.domain.model.location import Location, normalize_path
from calltrace.domain.model.source_index import TRACER_ROOT, FileNode, Line, SourceIndex

__all__ = [
    "TRACER_ROOT",
    "Anomaly",
    "Call",
    "CallGraph",
    "FileNode",
    "FrozenCallGraph",
    "Line",
    "Location",
    "MethodDefinition",
    "MismatchPolicy",
    "SourceIndex",
    "current_context",
    "normalize_path",
]
