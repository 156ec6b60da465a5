"""Application layer for call tracing.

- collectors: sys.monitoring event source
- recorder: events → call graph
- session: enable/disable with guaranteed teardown
- reporters: text, rich console and HTML output
"""

from calltrace.application.config import ReportConfig, TraceConfig
from calltrace.application.recorder import TraceRecorder
from calltrace.application.session import TraceHandle, TraceSession, trace, track

__all__ = [
    "ReportConfig",
    "TraceConfig",
    "TraceHandle",
    "TraceRecorder",
    "TraceSession",
    "trace",
    "track",
]
