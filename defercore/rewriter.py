"""
Block rewriter.

Walks a block's statement list with an explicit index. When a valid run of
deferred bindings is found, everything from the run's first statement to the
end of the block is replaced by one statement holding the nested call, and
the scan restarts from index 0 over the mutated list. A run always consumes
the rest of its block, so a block is rewritten at most once.
"""
from dataclasses import dataclass

from defercore.nesting import build_nested_structure
from defercore.nodes import Return
from defercore.policy import WrapKind, decide_wrap, wrap
from defercore.scanner import SequenceScanner, is_marker
from defercore.scope import refresh_bindings, scope_for


@dataclass
class RewriteContext:
    filename: str
    marker: str
    diagnostics: object


def _describe_wrap(last_statement, is_top_level, kind):
    if kind is WrapKind.RETURN:
        return "Block ended with a return statement outside the program scope. Wrapping call in return."
    if isinstance(last_statement, Return) and is_top_level:
        return "Block ended with a return statement but is the program scope. Using an expression statement."
    return "Block did not end with a return statement. Wrapping call in an expression statement."


def _report_shadowing(block, sequence, context):
    scope = scope_for(block)
    for binding in sequence.bindings:
        if scope.has_binding(binding.target):
            context.diagnostics.debug(
                f"Continuation parameter '{binding.target}' shadows a {scope.bindings[binding.target]} "
                f"binding of the enclosing block.",
                filename=context.filename, line=binding.line)


def rewrite_block(block, is_top_level, context: RewriteContext) -> bool:
    """
    Rewrite the deferred-binding run in `block`, if there is a valid one.

    Returns:
        True if the block's statements were replaced.
    """
    body = block.body
    scanner = SequenceScanner(context.marker, context.filename, context.diagnostics)
    transformed = False

    i = 0
    while i < len(body):
        if not is_marker(body[i], context.marker):
            i += 1
            continue

        start = i
        sequence = scanner.scan(body, start)
        if sequence is None:
            # Malformed run: leave it in place and keep scanning right after its start.
            i = start + 1
            continue

        call = build_nested_structure(sequence.bindings, sequence.final_body)
        last_statement = body[-1]
        kind = decide_wrap(last_statement, is_top_level)
        context.diagnostics.debug(_describe_wrap(last_statement, is_top_level, kind),
                                  filename=context.filename)

        _report_shadowing(block, sequence, context)
        context.diagnostics.debug(
            f"Replacing {sequence.region_size} statement(s) starting at index {start} with new {kind.value}.",
            filename=context.filename,
            line=sequence.bindings[0].line,
        )
        replacement = wrap(call, kind, line=sequence.bindings[0].line)
        replacement.leading_comments = sequence.bindings[0].comments
        replacement.blank_before = body[start].blank_before
        body[start:] = [replacement]
        block.modified = True
        transformed = True
        i = 0

    if transformed:
        scope = refresh_bindings(block)
        context.diagnostics.debug(f"Refreshed bindings: {sorted(scope.bindings)}", filename=context.filename)
    return transformed
