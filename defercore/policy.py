"""
Tail-return policy.

When the rewritten block ended in `return` and is not the program itself, the
outermost call replaces the region as `return f(...)`; otherwise it becomes a
plain expression statement.

The original `return` is not moved or removed: it stays the last statement of
the innermost continuation and returns from that continuation.
"""
from enum import Enum

from defercore.nodes import ExprStmt, Return


class WrapKind(str, Enum):
    RETURN = "ReturnStatement"
    EXPRESSION = "ExpressionStatement"


def decide_wrap(last_statement, is_top_level):
    if isinstance(last_statement, Return) and not is_top_level:
        return WrapKind.RETURN
    return WrapKind.EXPRESSION


def wrap(call, kind, line=None):
    if kind is WrapKind.RETURN:
        return Return(argument=call, line=line)
    return ExprStmt(expression=call, line=line)
