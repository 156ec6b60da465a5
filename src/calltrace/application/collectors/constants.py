"""Tool slot claimed by MonitoringCollector.

sys.monitoring keeps six tool slots, IDs 0 through 5. CPython reserves
0 (debugger), 1 (coverage), 2 (profiler) and 5 (optimizer) by convention,
so a session defaults to 3. TraceConfig accepts any slot in range, which lets
a caller move calltrace to 4 when another tool already holds 3.
"""

from typing import Final

CALLTRACE_TOOL_ID: Final = 3

# Shown by sys.monitoring.get_tool() while a session holds the slot
CALLTRACE_TOOL_NAME: Final = "calltrace"

MAX_TOOL_ID: Final = 5
