"""
Unit tests for the pieces of the deferred-binding rewrite pass:
the scanner, the nested structure builder, the tail-return policy and the
block rewriter.
"""
import pytest

from defercore.codegen import to_source
from defercore.diagnostics import Diagnostics
from defercore.errors import EmptySequenceError
from defercore.nesting import build_nested_structure
from defercore.nodes import (
    Arrow, Assign, Block, Call, ExprStmt, Identifier, Labeled, Literal, Paren,
    Program, Return,
)
from defercore.parser import parse
from defercore.policy import WrapKind, decide_wrap, wrap
from defercore.rewriter import RewriteContext, rewrite_block
from defercore.scanner import DeferredBinding, SequenceScanner, as_deferred_binding, is_marker


def call(name, *args):
    return Call(Identifier(name), list(args))


def binding(target, callee, *args, line=None, label="defer"):
    """`label: target = callee(args...);` built by hand."""
    assignment = Assign(Identifier(target), call(callee, *args))
    return Labeled(label, ExprStmt(assignment), line=line)


def stmt(name, *args):
    return ExprStmt(call(name, *args))


@pytest.fixture
def diagnostics():
    return Diagnostics()


@pytest.fixture
def context(diagnostics):
    return RewriteContext(filename="test.js", marker="defer", diagnostics=diagnostics)


class TestBindingRecognition:
    """Tests for what counts as a deferred binding."""

    def test_is_marker(self):
        assert is_marker(binding("x", "F"), "defer")
        assert not is_marker(binding("x", "F"), "later")
        assert not is_marker(stmt("F"), "defer")

    def test_valid_binding(self):
        result = as_deferred_binding(binding("x", "F", Identifier("a"), line=4))
        assert result == DeferredBinding(target="x", callee=Identifier("F"), args=[Identifier("a")], line=4)

    def test_parenthesized_parts_are_unwrapped(self):
        assignment = Assign(Paren(Identifier("x")), Paren(call("F")))
        result = as_deferred_binding(Labeled("defer", ExprStmt(assignment)))
        assert result.target == "x"

    @pytest.mark.parametrize("body", [
        ExprStmt(Assign(Identifier("x"), Identifier("notACall"))),
        ExprStmt(Assign(Identifier("x"), call("F"), operator="+=")),
        ExprStmt(call("F")),
        ExprStmt(Assign(Literal("1"), call("F"))),
        ExprStmt(Assign(Identifier("x"), Call(Identifier("F"), [], optional=True))),
        Block([stmt("F")]),
    ])
    def test_malformed_bindings(self, body):
        assert as_deferred_binding(Labeled("defer", body)) is None


class TestSequenceScanner:
    """Tests for run detection and malformed-run reporting."""

    def test_collects_contiguous_run(self, diagnostics):
        body = [binding("x", "F"), binding("y", "G"), stmt("log")]
        sequence = SequenceScanner("defer", "test.js", diagnostics).scan(body, 0)
        assert [b.target for b in sequence.bindings] == ["x", "y"]
        assert sequence.final_body == [body[2]]
        assert sequence.region_size == 3
        assert len(diagnostics) == 0

    def test_final_body_may_be_empty(self, diagnostics):
        sequence = SequenceScanner("defer", "test.js", diagnostics).scan([binding("x", "F")], 0)
        assert sequence.final_body == []

    def test_malformed_element_discards_the_run(self, diagnostics):
        bad = Labeled("defer", ExprStmt(Assign(Identifier("y"), Literal("2"))), line=7)
        body = [binding("x", "F"), bad, stmt("log")]
        assert SequenceScanner("defer", "app.js", diagnostics).scan(body, 0) is None
        assert [w.message for w in diagnostics.warnings] == ["app.js:7: invalid deferred-binding structure"]

    def test_each_statement_is_reported_once(self, diagnostics):
        bad = Labeled("defer", stmt("F"), line=1)
        scanner = SequenceScanner("defer", "app.js", diagnostics)
        scanner.scan([bad], 0)
        scanner.scan([bad], 0)
        assert len(diagnostics.warnings) == 1

    def test_no_marker_at_start(self, diagnostics):
        assert SequenceScanner("defer", "t.js", diagnostics).scan([stmt("a")], 0) is None


class TestNestedStructure:
    """Tests for folding a run into one call."""

    def test_single_binding(self):
        bindings = [DeferredBinding("x", Identifier("F"), [Identifier("a"), Identifier("b")])]
        outer = build_nested_structure(bindings, [stmt("log", Identifier("x"))])
        assert outer.callee == Identifier("F")
        assert outer.args[:2] == [Identifier("a"), Identifier("b")]
        continuation = outer.args[-1]
        assert isinstance(continuation, Arrow)
        assert [p.name for p in continuation.params] == ["x"]
        assert continuation.body.body == [stmt("log", Identifier("x"))]

    def test_nests_in_source_order(self):
        bindings = [DeferredBinding("a", Identifier("f"), []), DeferredBinding("b", Identifier("g"), [])]
        outer = build_nested_structure(bindings, [stmt("use")])
        assert to_source(ExprStmt(outer)) == (
            "f((a) => {\n"
            "  g((b) => {\n"
            "    use();\n"
            "  });\n"
            "});"
        )

    def test_empty_final_body(self):
        outer = build_nested_structure([DeferredBinding("x", Identifier("F"), [])], [])
        assert to_source(outer) == "F((x) => {})"

    def test_empty_run_is_a_bug(self):
        with pytest.raises(EmptySequenceError):
            build_nested_structure([], [stmt("log")])


class TestWrapPolicy:
    """Tests for the tail-return policy."""

    def test_return_inside_function_body(self):
        assert decide_wrap(Return(Identifier("x")), is_top_level=False) is WrapKind.RETURN

    def test_return_at_top_level(self):
        assert decide_wrap(Return(Identifier("x")), is_top_level=True) is WrapKind.EXPRESSION

    def test_no_return(self):
        assert decide_wrap(stmt("log"), is_top_level=False) is WrapKind.EXPRESSION

    def test_wrap(self):
        c = call("F")
        assert wrap(c, WrapKind.RETURN, line=3) == Return(argument=c, line=3)
        assert wrap(c, WrapKind.EXPRESSION) == ExprStmt(expression=c)


class TestRewriteBlock:
    """Tests for the restart-based block rewriter."""

    def test_replaces_region_with_one_statement(self, context):
        first = stmt("A")
        block = Program([first, binding("x", "F", line=2), stmt("log", Identifier("x"))])
        assert rewrite_block(block, True, context) is True
        assert len(block.body) == 2
        assert block.body[0] is first
        assert isinstance(block.body[1], ExprStmt)
        assert block.body[1].line == 2

    def test_returns_false_when_nothing_to_do(self, context):
        block = Block([stmt("a"), stmt("b")])
        assert rewrite_block(block, False, context) is False
        assert block.body == [stmt("a"), stmt("b")]

    def test_wraps_in_return_inside_function(self, context):
        block = Block([binding("x", "F"), Return(Identifier("x"))])
        rewrite_block(block, False, context)
        assert isinstance(block.body[0], Return)

    def test_malformed_run_is_left_in_place(self, context, diagnostics):
        original = [Labeled("defer", ExprStmt(Assign(Identifier("x"), Identifier("y"))), line=1),
                    stmt("log")]
        block = Block(list(original))
        assert rewrite_block(block, False, context) is False
        assert block.body == original
        assert len(diagnostics.warnings) == 1

    def test_rewrite_after_malformed_run(self, context, diagnostics):
        bad = Labeled("defer", ExprStmt(Assign(Identifier("x"), Literal("1"))), line=1)
        block = Block([bad, binding("y", "F", line=2), stmt("log", Identifier("y"))])
        assert rewrite_block(block, False, context) is True
        assert block.body[0] is bad
        assert len(block.body) == 2
        # The restart rescans `bad` without reporting it again.
        assert len(diagnostics.warnings) == 1

    def test_records_debug_messages(self, context, diagnostics):
        block = Block([binding("x", "F"), Return(Identifier("x"))])
        rewrite_block(block, False, context)
        messages = [r.message for r in diagnostics.debug_records]
        assert ("Block ended with a return statement outside the program scope. "
                "Wrapping call in return.") in messages
        assert "Replacing 2 statement(s) starting at index 0 with new ReturnStatement." in messages

    def test_refreshes_bindings(self, context):
        block = Block([binding("x", "F"), stmt("log")])
        rewrite_block(block, False, context)
        assert block.scope is not None
        assert not block.scope.has_binding("x")

    def test_marks_block_modified(self, context):
        block = Block([stmt("a"), binding("x", "F"), stmt("log")])
        rewrite_block(block, False, context)
        assert block.modified

    def test_untouched_block_is_not_modified(self, context):
        block = Block([stmt("a")])
        rewrite_block(block, False, context)
        assert not block.modified

    def test_reports_shadowed_names(self, context, diagnostics):
        fn = parse('function f(user) {\n  const x = 1;\n  defer: x = F();\n  defer: user = G();\n  log(x);\n}').body[0]
        rewrite_block(fn.body, False, context)
        messages = [r.message for r in diagnostics.debug_records]
        assert "Continuation parameter 'x' shadows a const binding of the enclosing block." in messages
        assert "Continuation parameter 'user' shadows a param binding of the enclosing block." in messages

    def test_fresh_names_are_not_reported(self, context, diagnostics):
        rewrite_block(Block([binding("x", "F"), stmt("log")]), False, context)
        assert not any("shadows" in r.message for r in diagnostics.debug_records)

    def test_marker_comments_move_to_replacement(self, context):
        block = parse('function f() {\n  // first\n  defer: x = F();\n  // second\n  defer: y = G();\n  log();\n}').body[0].body
        rewrite_block(block, False, context)
        outer = block.body[0]
        assert [str(c) for c in outer.leading_comments] == ['// first']
        inner = outer.expression.args[-1].body.body[0]
        assert [str(c) for c in inner.leading_comments] == ['// second']
