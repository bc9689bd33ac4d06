"""
Error handling utilities for the deferc compiler.
"""
import re


class DeferCompileError(Exception):
    """Fatal per-file compilation error with location, context and a hint."""
    def __init__(self, message, line_number=None, column=None, context=None, suggestion=None, filename=None):
        self.message = message
        self.line_number = line_number
        self.column = column
        self.context = context  # The offending line
        self.suggestion = suggestion  # How to fix it
        self.filename = filename
        super().__init__(self._format_error())

    def _format_error(self):
        """Format the error message with context and suggestion."""
        lines = ["\n❌ Compilation Error"]
        if self.filename:
            lines.append(f" in {self.filename}")
        if self.line_number:
            lines.append(f" at line {self.line_number}")
            if self.column:
                lines.append(f", column {self.column}")
        lines.append(":\n")

        lines.append(f"   {self.message}\n")

        if self.context:
            lines.append(f"   > {self.context}\n")

        if self.suggestion:
            lines.append(f"   💡 {self.suggestion}\n")

        return "".join(lines)


class EmptySequenceError(RuntimeError):
    """Raised when a nested structure is requested for an empty deferred-binding run.

    The scanner never produces an empty run, so seeing this is a bug in deferc.
    """


def get_line_context(source_code, line_number):
    """Extract the line of code from source by line number (1-based)."""
    if not source_code or line_number is None:
        return None
    source_lines = source_code.split('\n')
    if 0 < line_number <= len(source_lines):
        return source_lines[line_number - 1].strip()
    return None


def detect_common_error_patterns(source_code, marker="defer"):
    """Detect common mistakes and return helpful suggestions."""
    # Unmatched braces
    open_braces = source_code.count('{')
    close_braces = source_code.count('}')
    if open_braces != close_braces:
        brace = '{'
        return f"Unmatched braces: found {open_braces} '{brace}' but {close_braces} " + "'}'", "unmatched_braces"

    # Unmatched parentheses
    open_parens = source_code.count('(')
    close_parens = source_code.count(')')
    if open_parens != close_parens:
        return f"Unmatched parentheses: found {open_parens} '(' but {close_parens} ')'", "unmatched_parens"

    # Unmatched brackets
    if source_code.count('[') != source_code.count(']'):
        return "Unmatched brackets: check '[' and ']' pairs", "unmatched_brackets"

    # A deferred binding that is not `name = call(...)`
    if re.search(rf'\b{re.escape(marker)}\s*:\s*(?!\w+\s*=[^=>])', source_code):
        return f"'{marker}:' must be followed by an assignment like 'name = call(args);'", "defer_not_assignment"

    # Missing semicolons after statements
    if re.search(r'^\s*(?:const|let|var|return|throw)\b[^\n]*[^;{}(\[,\s]\s*$', source_code, re.MULTILINE):
        return "Statements should end with ';'", "missing_semicolon"

    return None, None
