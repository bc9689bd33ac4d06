"""
Nested structure builder.

Folds a run of deferred bindings, innermost first, into a single call:

    defer: a = f(1);
    defer: b = g(a);
    use(a, b);

becomes

    f(1, (a) => {
      g(a, (b) => {
        use(a, b);
      });
    });
"""
from defercore.errors import EmptySequenceError
from defercore.nodes import Arrow, Block, Call, ExprStmt, Identifier, Param


def build_nested_structure(bindings, final_body):
    """
    Build the outermost call for `bindings` wrapping `final_body`.

    Each binding's callee and arguments are moved into the new call and a
    one-parameter continuation is appended as the last argument. Comments
    on a marker statement move to the statement that replaces it. The callers
    discard the original statements, so the moved nodes keep a single owner.

    Returns:
        The Call for the first binding in source order.

    Raises:
        EmptySequenceError: if `bindings` is empty.
    """
    current_body = Block(body=list(final_body))
    outermost = None

    for binding in reversed(bindings):
        continuation = Arrow(params=[Param(target=Identifier(binding.target))], body=current_body)
        call = Call(callee=binding.callee, args=[*binding.args, continuation])
        stmt = ExprStmt(expression=call, line=binding.line)
        stmt.leading_comments = binding.comments
        current_body = Block(body=[stmt])
        outermost = call

    if outermost is None:
        raise EmptySequenceError("build_nested_structure called with an empty deferred-binding run")
    return outermost
