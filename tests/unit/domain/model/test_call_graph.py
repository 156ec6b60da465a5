"""Tests for domain/model/call_graph.py."""

import threading

import pytest

from calltrace.domain.exceptions import (
    DuplicateDefinitionMismatchError,
    GraphFinalizedError,
    StackMismatchError,
    UnterminatedCallsError,
)
from calltrace.domain.model.call_graph import CallGraph, FrozenCallGraph, MismatchPolicy
from tests.factories import (
    CALL1_LINE,
    CALL2_LINE,
    MAIN_FILE,
    X_FILE,
    Y_CALL_SITE,
    Y_LINE,
    call,
    define,
    make_graph,
    make_sample_graph,
    ret,
)


class TestDefineMethod:
    """Tests for CallGraph.define_method()."""

    def test_first_binding_creates_definition(self) -> None:
        """First define on a line binds the definition to it."""
        graph = make_graph()
        definition = define(graph, X_FILE, Y_LINE, "X", "y")
        assert definition.line.method_definition is definition
        assert definition.display_name == "X#y"
        assert graph.definitions == (definition,)

    def test_same_identity_twice_returns_existing(self) -> None:
        """Rebinding the same (owner, name) is a no-op."""
        graph = make_graph()
        first = define(graph, X_FILE, Y_LINE, "X", "y")
        second = define(graph, X_FILE, Y_LINE, "X", "y")
        assert second is first
        assert len(graph.definitions) == 1

    def test_different_name_raises(self) -> None:
        """Binding another name to the same line faults."""
        graph = make_graph()
        define(graph, X_FILE, Y_LINE, "X", "y")
        with pytest.raises(DuplicateDefinitionMismatchError) as exc_info:
            define(graph, X_FILE, Y_LINE, "X", "z")
        assert exc_info.value.existing == "X#y"
        assert exc_info.value.observed == "X#z"

    def test_different_owner_raises(self) -> None:
        """Binding another owner to the same line faults."""
        graph = make_graph()
        define(graph, X_FILE, Y_LINE, "X", "y")
        with pytest.raises(DuplicateDefinitionMismatchError):
            define(graph, X_FILE, Y_LINE, "Other", "y")

    def test_lenient_keeps_existing_and_records_anomaly(self) -> None:
        """LENIENT: mismatch logged, first binding kept."""
        graph = make_graph(MismatchPolicy.LENIENT)
        first = define(graph, X_FILE, Y_LINE, "X", "y")
        result = define(graph, X_FILE, Y_LINE, "X", "z")
        assert result is first
        assert [anomaly.kind for anomaly in graph.anomalies] == ["DuplicateDefinitionMismatchError"]


class TestRecordCall:
    """Tests for CallGraph.record_call()."""

    def test_indices_contiguous_from_zero(self) -> None:
        """Sequence indices are 0, 1, 2, ... in arrival order."""
        graph = make_graph()
        callee = define(graph, X_FILE, CALL1_LINE, "X", "call1")
        indices = [call(graph, MAIN_FILE, n, callee).index for n in range(1, 6)]
        assert indices == [0, 1, 2, 3, 4]

    def test_back_references_are_indices(self) -> None:
        """Caller line and callee hold indices into the arena."""
        graph = make_graph()
        callee = define(graph, X_FILE, CALL1_LINE, "X", "call1")
        first = call(graph, X_FILE, Y_CALL_SITE, callee)
        second = call(graph, X_FILE, Y_CALL_SITE, callee)
        assert first.caller.call_indices == (0, 1)
        assert callee.caller_indices == (0, 1)
        assert second.caller is first.caller

    def test_opens_call_on_context_stack(self) -> None:
        """Recorded call is open until its return."""
        graph = make_graph()
        callee = define(graph, X_FILE, CALL1_LINE, "X", "call1")
        call(graph, MAIN_FILE, 1, callee, context="t1")
        assert graph.open_calls("t1") == (0,)
        assert graph.open_calls("t2") == ()

    def test_default_context_is_current_thread(self) -> None:
        """Without explicit context, the current thread's stack is used."""
        graph = make_graph()
        callee = define(graph, X_FILE, CALL1_LINE, "X", "call1")
        line = graph.line_for(MAIN_FILE, 1)
        assert line is not None
        graph.record_call(line, callee)
        assert graph.open_calls() == (0,)
        graph.record_return(None, "X", "call1")
        assert graph.open_calls() == ()


class TestRecordReturn:
    """Tests for CallGraph.record_return() stack discipline."""

    def test_nested_returns_pair_lifo(self) -> None:
        """Call(A) Call(B) Return(B) Return(A): B closes first with B's value."""
        graph = make_graph()
        a = define(graph, X_FILE, Y_LINE, "X", "y")
        b = define(graph, X_FILE, CALL1_LINE, "X", "call1")
        call_a = call(graph, MAIN_FILE, 3, a)
        call_b = call(graph, X_FILE, Y_CALL_SITE, b)

        closed_b = ret(graph, b, value="from-b")
        assert closed_b is call_b
        assert call_b.returned
        assert not call_a.returned
        assert str(call_b.return_value) == "'from-b'"

        closed_a = ret(graph, a, value="from-a")
        assert closed_a is call_a
        assert str(call_a.return_value) == "'from-a'"

    def test_return_skipping_open_call_raises(self) -> None:
        """Call(A) Call(B) Return(A): B never returned, fault."""
        graph = make_graph()
        a = define(graph, X_FILE, Y_LINE, "X", "y")
        b = define(graph, X_FILE, CALL1_LINE, "X", "call1")
        call(graph, MAIN_FILE, 3, a)
        call(graph, X_FILE, Y_CALL_SITE, b)
        with pytest.raises(StackMismatchError) as exc_info:
            ret(graph, a)
        assert exc_info.value.expected == "X#call1"
        assert exc_info.value.observed == "X#y"

    def test_return_on_empty_stack_raises(self) -> None:
        """Return with nothing open faults."""
        graph = make_graph()
        a = define(graph, X_FILE, Y_LINE, "X", "y")
        with pytest.raises(StackMismatchError, match="empty call stack"):
            ret(graph, a)

    def test_recursion_pairs_innermost_first(self) -> None:
        """Recursive calls of one method close innermost first."""
        graph = make_graph()
        rec = define(graph, X_FILE, Y_LINE, "X", "y")
        outer = call(graph, MAIN_FILE, 3, rec)
        inner = call(graph, X_FILE, Y_CALL_SITE, rec)
        assert ret(graph, rec, value="inner") is inner
        assert ret(graph, rec, value="outer") is outer
        assert str(inner.return_value) == "'inner'"

    def test_contexts_have_separate_stacks(self) -> None:
        """Interleaved contexts do not disturb each other's pairing."""
        graph = make_graph()
        a = define(graph, X_FILE, Y_LINE, "X", "y")
        b = define(graph, X_FILE, CALL1_LINE, "X", "call1")
        call_a = call(graph, MAIN_FILE, 3, a, context="t1")
        call_b = call(graph, MAIN_FILE, 4, b, context="t2")
        assert ret(graph, a, context="t1") is call_a
        assert ret(graph, b, context="t2") is call_b

    def test_lenient_unwinds_to_matching_call(self) -> None:
        """LENIENT: return of A closes A, discarding B above it."""
        graph = make_graph(MismatchPolicy.LENIENT)
        a = define(graph, X_FILE, Y_LINE, "X", "y")
        b = define(graph, X_FILE, CALL1_LINE, "X", "call1")
        call_a = call(graph, MAIN_FILE, 3, a)
        call_b = call(graph, X_FILE, Y_CALL_SITE, b)

        assert ret(graph, a) is call_a
        assert call_a.returned
        assert not call_b.returned
        assert graph.open_calls("main") == ()
        assert [anomaly.kind for anomaly in graph.anomalies] == ["StackMismatchError"]

    def test_lenient_drops_unmatched_return(self) -> None:
        """LENIENT: return with no matching open call is dropped."""
        graph = make_graph(MismatchPolicy.LENIENT)
        a = define(graph, X_FILE, Y_LINE, "X", "y")
        b = define(graph, X_FILE, CALL1_LINE, "X", "call1")
        call(graph, MAIN_FILE, 3, a)
        assert ret(graph, b) is None
        assert graph.open_calls("main") == (0,)


class TestFinalize:
    """Tests for CallGraph.finalize()."""

    def test_returns_frozen_graph(self) -> None:
        """finalize() returns FrozenCallGraph with ledger in index order."""
        frozen = make_sample_graph()
        assert isinstance(frozen, FrozenCallGraph)
        assert [c.index for c in frozen.calls] == [0, 1, 2, 3]

    def test_idempotent(self) -> None:
        """Repeated finalize() returns the same view."""
        graph = make_graph()
        assert graph.finalize() is graph.finalize()

    def test_unterminated_calls_raise(self) -> None:
        """Open call at session end faults under STRICT."""
        graph = make_graph()
        a = define(graph, X_FILE, Y_LINE, "X", "y")
        call(graph, MAIN_FILE, 3, a, context="t1")
        with pytest.raises(UnterminatedCallsError) as exc_info:
            graph.finalize()
        assert exc_info.value.open_calls == {"t1": (0,)}
        assert not graph.is_finalized

    def test_unterminated_calls_tolerated_when_lenient(self) -> None:
        """LENIENT: open calls recorded as anomaly, graph finalized."""
        graph = make_graph(MismatchPolicy.LENIENT)
        a = define(graph, X_FILE, Y_LINE, "X", "y")
        call(graph, MAIN_FILE, 3, a)
        frozen = graph.finalize()
        assert frozen.call_count == 1
        assert [anomaly.kind for anomaly in frozen.anomalies] == ["UnterminatedCallsError"]

    def test_mutation_after_finalize_raises(self) -> None:
        """Finalized graph rejects every mutation."""
        graph = make_graph()
        a = define(graph, X_FILE, Y_LINE, "X", "y")
        line = a.line
        graph.finalize()
        with pytest.raises(GraphFinalizedError):
            graph.define_method(line, "X", "y")
        with pytest.raises(GraphFinalizedError):
            graph.record_call(line, a)
        with pytest.raises(GraphFinalizedError):
            graph.line_for(X_FILE, 1)

    def test_frozen_lookups(self) -> None:
        """calls_from / callers_of resolve indices into calls."""
        frozen = make_sample_graph()
        x_node = frozen.file(frozen.calls[1].caller.file.path)
        assert x_node is not None
        site = x_node.lines[Y_CALL_SITE]
        assert [c.callee.name for c in frozen.calls_from(site)] == ["call1", "call2"]
        call1 = x_node.lines[CALL1_LINE].method_definition
        assert call1 is not None
        assert [c.index for c in frozen.callers_of(call1)] == [1, 3]
        assert x_node.lines[CALL2_LINE].is_definition

    def test_empty(self) -> None:
        """empty() has no files and no calls."""
        frozen = FrozenCallGraph.empty()
        assert frozen.files == ()
        assert frozen.call_count == 0


class TestConcurrency:
    """Tests for shared-structure append discipline across threads."""

    def test_threads_produce_unique_contiguous_indices(self) -> None:
        """Concurrent appends never duplicate or skip an index."""
        graph = CallGraph()
        callee = define(graph, X_FILE, CALL1_LINE, "X", "call1")
        line = graph.line_for(MAIN_FILE, 1)
        assert line is not None

        def worker() -> None:
            for _ in range(200):
                graph.record_call(line, callee)
                graph.record_return(None, "X", "call1")

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        frozen = graph.finalize()
        assert [c.index for c in frozen.calls] == list(range(800))
        assert all(c.returned for c in frozen.calls)
