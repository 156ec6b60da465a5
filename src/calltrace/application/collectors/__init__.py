"""Runtime event sources.

sys.monitoring (PEP 669) collector and traced-file classification.
"""

from calltrace.application.collectors.constants import CALLTRACE_TOOL_ID, CALLTRACE_TOOL_NAME
from calltrace.application.collectors.monitor import MonitoringCollector
from calltrace.application.collectors.path_filter import STDLIB_ROOTS, PathFilter

__all__ = [
    "CALLTRACE_TOOL_ID",
    "CALLTRACE_TOOL_NAME",
    "STDLIB_ROOTS",
    "MonitoringCollector",
    "PathFilter",
]
