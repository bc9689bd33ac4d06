"""
Deferred-binding scanner.

Finds the run of marker-labeled statements that starts at a given index of a
block and checks that every one of them is `name = call(args...);`. A single
malformed statement discards the whole run: it is reported once and the
statements are left exactly as they were.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from defercore.nodes import Assign, Call, ExprStmt, Identifier, Labeled, Node, Paren

INVALID_STRUCTURE = "invalid deferred-binding structure"


@dataclass
class DeferredBinding:
    """`marker: target = callee(args...);`"""
    target: str
    callee: Node
    args: List[Node]
    line: Optional[int] = None
    # Comments written above or beside the marker statement.
    comments: list = field(default_factory=list)


@dataclass
class Sequence:
    """A validated run plus everything after it in the same block."""
    start: int
    bindings: List[DeferredBinding]
    final_body: List[Node]

    @property
    def region_size(self):
        return len(self.bindings) + len(self.final_body)


def is_marker(stmt, marker):
    return isinstance(stmt, Labeled) and stmt.label == marker


def _unwrap(expr):
    while isinstance(expr, Paren):
        expr = expr.expression
    return expr


def as_deferred_binding(stmt):
    """Return the DeferredBinding for a marker-labeled statement, or None if malformed."""
    body = stmt.body
    if not isinstance(body, ExprStmt):
        return None
    assignment = _unwrap(body.expression)
    if not isinstance(assignment, Assign) or assignment.operator != "=":
        return None
    target = _unwrap(assignment.target)
    call = _unwrap(assignment.value)
    if not isinstance(target, Identifier):
        return None
    if not isinstance(call, Call) or call.optional:
        return None
    return DeferredBinding(target=target.name, callee=call.callee, args=list(call.args), line=stmt.line,
                           comments=[*stmt.leading_comments, *stmt.trailing_comments])


class SequenceScanner:
    """
    Scans one block's statement list for deferred-binding runs.

    A scanner lives for one block traversal and reports each malformed
    statement only once, however many times the block is rescanned.
    """

    def __init__(self, marker, filename, diagnostics):
        self.marker = marker
        self.filename = filename
        self.diagnostics = diagnostics
        self._reported = set()

    def scan(self, body, start) -> Optional[Sequence]:
        bindings = []
        i = start
        while i < len(body) and is_marker(body[i], self.marker):
            binding = as_deferred_binding(body[i])
            if binding is None:
                self._report(body[i])
                return None
            bindings.append(binding)
            i += 1
        if not bindings:
            return None
        return Sequence(start=start, bindings=bindings, final_body=body[i:])

    def _report(self, stmt):
        if id(stmt) in self._reported:
            return
        self._reported.add(id(stmt))
        line = stmt.line if stmt.line is not None else "?"
        self.diagnostics.warning(f"{self.filename}:{line}: {INVALID_STRUCTURE}",
                                 filename=self.filename, line=stmt.line)
