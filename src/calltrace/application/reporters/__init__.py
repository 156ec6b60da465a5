"""Reporters for finalized call graphs.

PlainTextReporter and ConsoleReporter return strings; HtmlReportGenerator
writes a browsable document tree.
"""

from calltrace.application.reporters.console import ConsoleReporter
from calltrace.application.reporters.html import (
    FileFailure,
    HtmlReportGenerator,
    ReportResult,
    read_source,
)
from calltrace.application.reporters.plain_text import PlainTextReporter
from calltrace.application.reporters.protocol import ReporterProtocol

__all__ = [
    "ConsoleReporter",
    "FileFailure",
    "HtmlReportGenerator",
    "PlainTextReporter",
    "ReportResult",
    "ReporterProtocol",
    "read_source",
]
