"""calltrace - runtime call graph tracing with browsable cross-linked source reports."""

__version__ = "0.1.0"

from calltrace.application.config import ReportConfig, TraceConfig
from calltrace.application.reporters import (
    ConsoleReporter,
    HtmlReportGenerator,
    PlainTextReporter,
    ReportResult,
)
from calltrace.application.session import TraceHandle, TraceSession, trace, track
from calltrace.domain.exceptions import (
    CallTraceError,
    DuplicateDefinitionMismatchError,
    ReportIOError,
    StackMismatchError,
    UnterminatedCallsError,
)
from calltrace.domain.model import CallGraph, FrozenCallGraph, MismatchPolicy, SourceIndex

__all__ = [
    "CallGraph",
    "CallTraceError",
    "ConsoleReporter",
    "DuplicateDefinitionMismatchError",
    "FrozenCallGraph",
    "HtmlReportGenerator",
    "MismatchPolicy",
    "PlainTextReporter",
    "ReportConfig",
    "ReportIOError",
    "ReportResult",
    "SourceIndex",
    "StackMismatchError",
    "TraceConfig",
    "TraceHandle",
    "TraceSession",
    "UnterminatedCallsError",
    "__version__",
    "trace",
    "track",
]
