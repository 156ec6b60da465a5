"""Console reporter: FrozenCallGraph → rich formatted call ledger."""

from __future__ import annotations

from io import StringIO
from pathlib import PurePath
from typing import TYPE_CHECKING

from rich.console import Console
from rich.table import Table
from rich.text import Text

from calltrace.application.config import ReportConfig

if TYPE_CHECKING:
    from calltrace.domain.model.call_graph import FrozenCallGraph
    from calltrace.domain.model.location import Location


def format_location_short(loc: Location) -> str:
    """Format location as short string: file name:line."""
    return f"{PurePath(loc.file).name}:{loc.line}"


class ConsoleReporter:
    """Console reporter: call ledger as a rich table, then anomalies.

    Output is str, not print(). Caller decides destination.
    """

    def __init__(self, config: ReportConfig | None = None) -> None:
        """Initialize reporter.

        Args:
            config: Report configuration. Uses defaults if None.
        """
        self._config = config or ReportConfig()

    def report(self, graph: FrozenCallGraph) -> str:
        """Format finalized graph as rich formatted string.

        Args:
            graph: Finalized call graph.

        Returns:
            Formatted string with colors and tables.
        """
        output = StringIO()
        console = Console(file=output, force_terminal=True, width=self._config.console_width)

        self._render_header(console, graph)
        if graph.calls:
            self._render_ledger(console, graph)
        if graph.anomalies:
            self._render_anomalies(console, graph)

        return output.getvalue()

    def _render_header(self, console: Console, graph: FrozenCallGraph) -> None:
        """Render header with summary."""
        console.print()
        console.rule("[bold]CALL TRACE[/bold]")
        console.print()
        console.print(f"[bold]Calls:[/bold] {graph.call_count}  [bold]Files:[/bold] {len(graph.files)}")
        console.print()

    def _render_ledger(self, console: Console, graph: FrozenCallGraph) -> None:
        """Render one row per call, ledger order."""
        table = Table(show_header=True, header_style="bold")
        table.add_column("#", justify="right", no_wrap=True)
        table.add_column("Call site", no_wrap=True)
        table.add_column("Callee", style="cyan", no_wrap=True)
        table.add_column("Definition", no_wrap=True)
        if self._config.show_values:
            table.add_column("Returned", style="dim")

        for call in graph.calls:
            row = [
                Text(str(call.index)),
                Text(format_location_short(call.caller.location)),
                Text(call.callee.display_name),
                Text(format_location_short(call.callee.location)),
            ]
            if self._config.show_values:
                row.append(Text(str(call.return_value) if call.return_value is not None else ""))
            table.add_row(*row)

        console.print(table)
        console.print()

    def _render_anomalies(self, console: Console, graph: FrozenCallGraph) -> None:
        """Render faults tolerated under the lenient policy."""
        console.print(f"[bold red]ANOMALIES[/bold red] ({len(graph.anomalies)})")
        console.print()
        for anomaly in graph.anomalies:
            console.print(f"  [{anomaly.kind}] {anomaly.message}", markup=False)
        console.print()
