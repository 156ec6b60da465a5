"""Plain text reporter: FrozenCallGraph → per-file, per-line summary.

Format:
    /abs/path/x.py:
      6: X#y
      7:
      - [0] X#call1 (/abs/path/x.py:11)
      - [1] X#call2 (/abs/path/x.py:14)

Files ordered by path, lines by number, calls by sequence index.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from calltrace.application.config import ReportConfig

if TYPE_CHECKING:
    from calltrace.domain.model.call_graph import Call, FrozenCallGraph


class PlainTextReporter:
    """Plain text reporter.

    Output is str, not print(). Caller decides destination.
    """

    def __init__(self, config: ReportConfig | None = None) -> None:
        """Initialize reporter.

        Args:
            config: Report configuration. Uses defaults if None.
        """
        self._config = config or ReportConfig()

    def report(self, graph: FrozenCallGraph) -> str:
        """Format finalized graph as plain text."""
        out: list[str] = []
        for node in graph.files:
            out.append(f"{node.path}:")
            for line in node.sorted_lines():
                definition = line.method_definition
                if definition is not None:
                    out.append(f"  {line.lineno}: {definition.display_name}")
                    continue
                out.append(f"  {line.lineno}:")
                out.extend(f"  - {self._format_call(call)}" for call in graph.calls_from(line))
        return "".join(f"{text}\n" for text in out)

    def _format_call(self, call: Call) -> str:
        callee = call.callee
        signature = callee.display_name
        if self._config.show_values:
            if call.arguments is not None:
                args = ", ".join(f"{name}={value}" for name, value in call.arguments.items())
                signature = f"{signature}({args})"
            if call.return_value is not None:
                signature = f"{signature} => {call.return_value}"
        return f"[{call.index}] {signature} ({callee.location})"
