"""Tests for PlainTextReporter.

Tests:
- Files by path, lines by number, calls by sequence index
- Definition lines show the method, call sites list their calls
- show_values appends captured arguments and return values
"""

from calltrace.application.config import ReportConfig
from calltrace.application.reporters.plain_text import PlainTextReporter
from calltrace.domain.events import capture_value
from calltrace.domain.model.call_graph import FrozenCallGraph
from calltrace.domain.model.location import normalize_path
from tests.factories import CALL1_LINE, MAIN_FILE, X_FILE, define, make_graph, make_sample_graph


class TestPlainTextReporter:
    """Tests for PlainTextReporter.report()."""

    def test_empty_graph(self) -> None:
        assert PlainTextReporter().report(FrozenCallGraph.empty()) == ""

    def test_sample_graph(self) -> None:
        """Full listing of the sample ledger."""
        main = normalize_path(MAIN_FILE)
        x = normalize_path(X_FILE)
        expected = (
            f"{main}:\n"
            "  3:\n"
            f"  - [0] X#y ({x}:2)\n"
            "  4:\n"
            f"  - [3] X#call1 ({x}:5)\n"
            f"{x}:\n"
            "  2: X#y\n"
            "  3:\n"
            f"  - [1] X#call1 ({x}:5)\n"
            f"  - [2] X#call2 ({x}:8)\n"
            "  5: X#call1\n"
            "  8: X#call2\n"
        )
        assert PlainTextReporter().report(make_sample_graph()) == expected

    def test_values_hidden_by_default(self) -> None:
        output = PlainTextReporter().report(make_sample_graph())
        assert "=>" not in output

    def test_show_values(self) -> None:
        """Arguments in parentheses, return value after =>."""
        graph = make_graph()
        callee = define(graph, X_FILE, CALL1_LINE, "X", "call1")
        line = graph.line_for(MAIN_FILE, 1)
        assert line is not None
        graph.record_call(line, callee, arguments={"n": capture_value(2)}, context="main")
        graph.record_return("main", "X", "call1", capture_value("done"))

        output = PlainTextReporter(ReportConfig(show_values=True)).report(graph.finalize())

        assert f"  - [0] X#call1(n=2) => 'done' ({normalize_path(X_FILE)}:5)" in output
