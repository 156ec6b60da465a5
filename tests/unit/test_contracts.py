"""Cross-cutting contract tests.

- FAIL-FIRST: invalid input raises immediately, no silent fallback
- Immutability: value objects and finalized views cannot be mutated
"""

from __future__ import annotations

import pytest

from calltrace.application.config import ReportConfig, TraceConfig
from calltrace.domain.events import CallEvent, CapturedValue, ReturnEvent, ValueKind
from calltrace.domain.model.call_graph import Anomaly, FrozenCallGraph
from calltrace.domain.model.location import Location
from tests.factories import make_sample_graph

# =============================================================================
# FAIL-FIRST Validation
# =============================================================================


class TestFailFirstValidation:
    """Invalid construction raises instead of defaulting."""

    def test_location_rejects_non_positive_line(self) -> None:
        with pytest.raises(ValueError, match="line"):
            Location(file="a.py", line=-3)

    def test_call_event_rejects_zero_line(self) -> None:
        with pytest.raises(ValueError, match="caller_line"):
            CallEvent("a.py", 0, "X", "y", "a.py", 1)

    def test_frozen_graph_rejects_out_of_order_ledger(self) -> None:
        """calls[i].index must equal i."""
        sample = make_sample_graph()
        with pytest.raises(ValueError, match="ledger out of order"):
            FrozenCallGraph(files=sample.files, calls=tuple(reversed(sample.calls)))

    def test_report_config_rejects_nested_history_name(self) -> None:
        with pytest.raises(ValueError, match="bare name"):
            ReportConfig(history_name="a/b.html")


# =============================================================================
# Immutability
# =============================================================================


class TestImmutability:
    """Frozen dataclasses reject assignment."""

    def test_location_frozen(self) -> None:
        loc = Location(file="a.py", line=1)
        with pytest.raises(AttributeError):
            loc.line = 2  # type: ignore[misc]

    def test_captured_value_frozen(self) -> None:
        value = CapturedValue(kind=ValueKind.TEXT, text="'a'")
        with pytest.raises(AttributeError):
            value.text = "'b'"  # type: ignore[misc]

    def test_return_event_frozen(self) -> None:
        event = ReturnEvent(owner="X", method="y")
        with pytest.raises(AttributeError):
            event.method = "z"  # type: ignore[misc]

    def test_anomaly_frozen(self) -> None:
        anomaly = Anomaly(kind="StackMismatchError", message="m")
        with pytest.raises(AttributeError):
            anomaly.message = "other"  # type: ignore[misc]

    def test_frozen_graph_frozen(self) -> None:
        graph = make_sample_graph()
        with pytest.raises(AttributeError):
            graph.calls = ()  # type: ignore[misc]

    def test_trace_config_frozen(self) -> None:
        with pytest.raises(AttributeError):
            TraceConfig().capture_returns = True  # type: ignore[misc]

    def test_file_node_lines_read_only(self) -> None:
        """FileNode exposes its lines as a read-only mapping."""
        node = make_sample_graph().files[0]
        with pytest.raises(TypeError):
            node.lines[99] = node.lines[3]  # type: ignore[index]
