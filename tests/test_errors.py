"""
Tests for compile errors and the diagnostics collector.
"""
import pytest

from defercore import diagnostics as diag
from defercore.diagnostics import Diagnostic, Diagnostics, Level
from defercore.errors import DeferCompileError, detect_common_error_patterns, get_line_context


class TestDeferCompileError:
    """Tests for error formatting."""

    def test_full_message(self):
        err = DeferCompileError("Syntax error", line_number=3, column=7, context="let = ;",
                                suggestion="Name the variable", filename="a.js")
        text = str(err)
        assert "Compilation Error in a.js at line 3, column 7" in text
        assert "> let = ;" in text
        assert "💡 Name the variable" in text

    def test_minimal_message(self):
        err = DeferCompileError("boom")
        assert err.message == "boom"
        assert err.line_number is None
        assert "boom" in str(err)


class TestLineContext:
    """Tests for extracting the offending line."""

    def test_returns_stripped_line(self):
        assert get_line_context("a();\n   b();\n", 2) == "b();"

    @pytest.mark.parametrize("line", [0, 5, None])
    def test_out_of_range(self, line):
        assert get_line_context("a();", line) is None


class TestErrorPatterns:
    """Tests for suggestion heuristics."""

    @pytest.mark.parametrize("source, kind", [
        ("function f() {", "unmatched_braces"),
        ("f(a;", "unmatched_parens"),
        ("x = [1, 2;", "unmatched_brackets"),
        ("defer: F();", "defer_not_assignment"),
        ("const a = 1\n", "missing_semicolon"),
        ("a();", None),
    ])
    def test_detects(self, source, kind):
        _, detected = detect_common_error_patterns(source)
        assert detected == kind

    def test_custom_marker(self):
        suggestion, kind = detect_common_error_patterns("later: F();", marker="later")
        assert kind == "defer_not_assignment"
        assert "'later:'" in suggestion


class TestDiagnostics:
    """Tests for the diagnostics collector."""

    def test_collects_records(self):
        diagnostics = Diagnostics()
        diagnostics.warning("w", filename="a.js", line=1)
        diagnostics.debug("d")
        assert len(diagnostics) == 2
        assert diagnostics.warnings == [Diagnostic(level=Level.WARNING, message="w", filename="a.js", line=1)]
        assert [r.message for r in diagnostics.debug_records] == ["d"]

    def test_records_are_not_written_until_flushed(self, capsys):
        diagnostics = Diagnostics()
        diagnostics.warning("careful")
        assert capsys.readouterr().err == ""
        diagnostics.flush()
        assert "careful" in capsys.readouterr().err
        assert len(diagnostics) == 0

    def test_echo_writes_immediately(self, capsys):
        Diagnostics(echo=True).warning("now")
        assert "WARNING:" in capsys.readouterr().err

    def test_debug_records_need_verbose(self, capsys, monkeypatch):
        monkeypatch.setattr(diag, "_VERBOSE", False)
        Diagnostics(echo=True).debug("quiet")
        assert capsys.readouterr().err == ""

        diag.set_verbose(True)
        assert diag.is_verbose()
        Diagnostics(echo=True).debug("loud")
        assert "DEBUG:" in capsys.readouterr().err

    def test_extend(self):
        source = Diagnostics()
        source.warning("one")
        target = Diagnostics()
        target.extend(source.records)
        assert [str(r) for r in target.records] == ["one"]
