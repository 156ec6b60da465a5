"""HTML reporter: FrozenCallGraph + source contents → browsable documents.

One document per traced file (annotated source listing) and one history
navigator stepping through the call ledger. Documents are jinja2 templates
shipped in calltrace/templates, rendered with autoescape. Rendering is pure:
same graph and same contents give byte-identical documents. Link sets are
deduplicated by location and sorted by (file, line), never emitted in arrival
order.

Failure isolation: a file whose source cannot be read, or whose document
cannot be written, is reported in ReportResult.failures; the remaining files
and the history document are still generated.
"""

from __future__ import annotations

import contextlib
import io
import logging
import os
import tokenize
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import TYPE_CHECKING

from jinja2 import Environment, PackageLoader

from calltrace.application.config import ReportConfig
from calltrace.application.reporters.paths import document_path, relative_href
from calltrace.domain.exceptions import ReportIOError

if TYPE_CHECKING:
    from collections.abc import Callable

    from calltrace.domain.model.call_graph import FrozenCallGraph, MethodDefinition
    from calltrace.domain.model.location import Location
    from calltrace.domain.model.source_index import FileNode, Line

    SourceReader = Callable[[str], str]

logger = logging.getLogger(__name__)


def _environment() -> Environment:
    """Template environment over the bundled templates."""
    return Environment(
        loader=PackageLoader("calltrace", "templates"),
        autoescape=True,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )


@dataclass(frozen=True, slots=True)
class LinkView:
    """One cross-reference in a line's link set."""

    href: str
    text: str


@dataclass(frozen=True, slots=True)
class LineView:
    """Template input for one source line.

    Attributes:
        lineno: Line number (anchor id).
        number: Right-aligned line number text.
        text: Raw source text, escaped by the template.
        kind: "definition", "call_site", or None for plain lines.
        links: Sorted, deduplicated links.
    """

    lineno: int
    number: str
    text: str
    kind: str | None = None
    links: tuple[LinkView, ...] = ()


def source_lines(content: str) -> list[str]:
    """Split content into source lines the way the interpreter numbers them.

    Only \\n, \\r\\n and \\r end a line; form feeds and Unicode line
    separators stay inside their line.
    """
    return [text.rstrip("\n") for text in io.StringIO(content, newline=None)]


@dataclass(frozen=True, slots=True)
class FileFailure:
    """Document that could not be generated.

    Attributes:
        path: Source path (or output path for history/asset documents).
        error: Cause.
    """

    path: str
    error: ReportIOError


@dataclass(frozen=True, slots=True)
class ReportResult:
    """Outcome of HtmlReportGenerator.generate().

    Attributes:
        written: Documents written, generation order.
        failures: Documents that failed, generation order.
    """

    written: tuple[Path, ...]
    failures: tuple[FileFailure, ...]

    @property
    def ok(self) -> bool:
        """No failures."""
        return not self.failures


def read_source(path: str) -> str:
    """Read a Python source file honoring its encoding declaration.

    Raises:
        ReportIOError: File unreadable or not decodable.
    """
    try:
        with tokenize.open(path) as source:
            return source.read()
    except (OSError, SyntaxError, UnicodeDecodeError) as e:
        raise ReportIOError(path=path, reason=f"cannot read source: {e}") from e


class HtmlReportGenerator:
    """Renders and writes per-file documents, history navigator, helper asset."""

    def __init__(self, config: ReportConfig | None = None) -> None:
        """Initialize generator.

        Args:
            config: Report configuration. Uses defaults if None.
        """
        self._config = config or ReportConfig()
        self._env = _environment()

    @property
    def config(self) -> ReportConfig:
        """Report configuration."""
        return self._config

    # =========================================================================
    # Writing
    # =========================================================================

    def generate(
        self,
        graph: FrozenCallGraph,
        output_dir: str | os.PathLike[str],
        read_source: SourceReader = read_source,
    ) -> ReportResult:
        """Write all documents below output_dir.

        Args:
            graph: Finalized graph.
            output_dir: Report root directory (created if missing).
            read_source: Supplier of raw file content by path.

        Returns:
            Written documents and isolated failures.
        """
        root = Path(output_dir)
        written: list[Path] = []
        failures: list[FileFailure] = []

        steps: list[tuple[str, Callable[[], Path]]] = [
            (str(root / self._config.asset_name), lambda: self.write_asset(root)),
        ]
        for node in graph.files:
            steps.append((node.path, lambda node=node: self.generate_file(graph, node, root, read_source)))
        steps.append((str(root / self._config.history_name), lambda: self.generate_history(graph, root)))

        for path, step in steps:
            try:
                written.append(step())
            except ReportIOError as e:
                logger.warning("report generation failed for %s: %s", path, e.reason)
                failures.append(FileFailure(path=path, error=e))

        logger.debug("report: %d document(s) written, %d failure(s)", len(written), len(failures))
        return ReportResult(written=tuple(written), failures=tuple(failures))

    def generate_file(
        self,
        graph: FrozenCallGraph,
        node: FileNode,
        output_dir: Path,
        read_source: SourceReader = read_source,
    ) -> Path:
        """Write the document of one file. Safe to retry after a failure.

        Raises:
            ReportIOError: Source unreadable or document unwritable.
        """
        try:
            content = read_source(node.path)
        except ReportIOError:
            raise
        except OSError as e:
            raise ReportIOError(path=node.path, reason=f"cannot read source: {e}") from e

        target = document_path(output_dir, node.path, self._config.suffix)
        _write_text(target, self.render_file(graph, node, content, output_dir))
        return target

    def generate_history(self, graph: FrozenCallGraph, output_dir: Path) -> Path:
        """Write the history navigator document.

        Raises:
            ReportIOError: Document unwritable.
        """
        target = output_dir / self._config.history_name
        _write_text(target, self.render_history(graph, output_dir))
        return target

    def write_asset(self, output_dir: Path) -> Path:
        """Copy the static helper script verbatim.

        Raises:
            ReportIOError: Asset unwritable.
        """
        target = output_dir / self._config.asset_name
        _write_text(target, helper_asset())
        return target

    # =========================================================================
    # Rendering (pure)
    # =========================================================================

    def render_file(self, graph: FrozenCallGraph, node: FileNode, content: str, output_dir: Path) -> str:
        """Annotated listing: one entry per source line, original order."""
        here = document_path(output_dir, node.path, self._config.suffix)
        texts = source_lines(content)
        width = len(str(len(texts)))
        lines = [
            self._line_view(graph, node.lines.get(lineno), lineno, text, width, here, output_dir)
            for lineno, text in enumerate(texts, start=1)
        ]
        return self._env.get_template("file.html.j2").render(
            title=node.path,
            lines=lines,
            asset=relative_href(here, output_dir / self._config.asset_name),
        )

    def history_entries(self, graph: FrozenCallGraph, output_dir: Path) -> list[dict[str, str]]:
        """Navigator entries: caller location then callee definition, per call."""
        here = output_dir / self._config.history_name
        entries: list[dict[str, str]] = []
        for call in graph.calls:
            caller = call.caller.location
            callee = call.callee.location
            entries.append(
                {
                    "displayName": f"[{call.index}] {caller}",
                    "href": self._href(here, caller, output_dir),
                },
            )
            entries.append(
                {
                    "displayName": f"[{call.index}] {call.callee.display_name} ({callee})",
                    "href": self._href(here, callee, output_dir),
                },
            )
        return entries

    def render_history(self, graph: FrozenCallGraph, output_dir: Path) -> str:
        """History navigator with the embedded entry array (tojson keeps it script-safe)."""
        here = output_dir / self._config.history_name
        return self._env.get_template("history.html.j2").render(
            title=self._config.title,
            entries=self.history_entries(graph, output_dir),
            asset=relative_href(here, output_dir / self._config.asset_name),
        )

    def _line_view(
        self,
        graph: FrozenCallGraph,
        line: Line | None,
        lineno: int,
        text: str,
        width: int,
        here: Path,
        output_dir: Path,
    ) -> LineView:
        number = str(lineno).rjust(width)
        if line is not None and line.method_definition is not None:
            links = self._caller_links(graph, line.method_definition, here, output_dir)
            return LineView(lineno, number, text, "definition", links)
        if line is not None and line.is_call_site:
            links = self._callee_links(graph, line, here, output_dir)
            return LineView(lineno, number, text, "call_site", links)
        return LineView(lineno, number, text)

    def _caller_links(
        self,
        graph: FrozenCallGraph,
        definition: MethodDefinition,
        here: Path,
        output_dir: Path,
    ) -> tuple[LinkView, ...]:
        """Links to every distinct caller location, sorted by (file, line)."""
        locations = {call.caller.location for call in graph.callers_of(definition)}
        return tuple(LinkView(self._href(here, loc, output_dir), str(loc)) for loc in sorted(locations))

    def _callee_links(self, graph: FrozenCallGraph, line: Line, here: Path, output_dir: Path) -> tuple[LinkView, ...]:
        """Links to every distinct callee definition, sorted by (file, line)."""
        callees = {call.callee.location: call.callee for call in graph.calls_from(line)}
        return tuple(
            LinkView(self._href(here, loc, output_dir), callees[loc].display_name) for loc in sorted(callees)
        )

    def _href(self, here: Path, target: Location, output_dir: Path) -> str:
        document = document_path(output_dir, target.file, self._config.suffix)
        return relative_href(here, document, target.line)


def helper_asset() -> str:
    """Content of the bundled helper script."""
    return resources.files("calltrace").joinpath("assets", "calltrace.js").read_text(encoding="utf-8")


def _write_text(target: Path, text: str) -> None:
    """Write text via a temporary sibling: a failed attempt leaves nothing behind.

    Raises:
        ReportIOError: Directory or file unwritable.
    """
    temporary = target.with_name(target.name + ".tmp")
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        with temporary.open("w", encoding="utf-8", newline="\n") as out:
            out.write(text)
        os.replace(temporary, target)
    except OSError as e:
        with contextlib.suppress(OSError):
            temporary.unlink(missing_ok=True)
        raise ReportIOError(path=str(target), reason=f"cannot write document: {e}") from e
