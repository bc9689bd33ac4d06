"""
deferc Tree Builder - Converts Lark parse trees into deferc nodes.

This module contains the TreeBuilder transformer and the `parse()` entry point
used by the compile pipeline. Parse failures are reported as
DeferCompileError with the offending line and a suggestion.

Semicolons may be left out where JavaScript inserts them itself: when the
parser trips over a token that follows a line break, a `}`, or the end of
the input, and a `;` would have been accepted, one is fed in and parsing
resumes. The restricted productions (`return`, `break`, `continue`, `throw`
and postfix `++`/`--` followed by a line break) are not special-cased.
"""
import threading
from functools import lru_cache

from lark import Lark, Token, Transformer, Tree, v_args
from lark.exceptions import UnexpectedInput, UnexpectedToken, VisitError

from defercore.comments import attach_comments, comment_end
from defercore.errors import DeferCompileError, get_line_context, detect_common_error_patterns
from defercore.grammar import Dialect, build_grammar
from defercore.nodes import (
    ArrayExpr, ArrayPattern, Arrow, Assign, AsExpression, AssignPattern, Binary,
    Block, Break, Call, CatchClause, Class, Conditional, Continue, Debugger,
    Declarator, DoWhile, Empty, Export, ExportAll, ExportDefault, ExportNamed,
    ExprStmt, Field, For, ForIn, ForOf, FunctionDecl, FunctionExpr, Identifier,
    If, Import, ImportSpecifier, Labeled, Literal, Member, Method, New, Node,
    NonNull, ObjectExpr, ObjectPattern, Param, Paren, Program, Property, Return,
    Sequence, Spread, StaticBlock, Switch, SwitchCase, TaggedTemplate, Throw,
    Try, TypeAnnotation, Unary, Update, VarDecl, Verbatim, While, Yield,
)

_WHITESPACE = " \t\r\n\f\v\u00a0\ufeff\u2028\u2029"
_LINE_BREAKS = "\n\u2028\u2029"

# Comments and multi-line templates seen by the lexer during the current
# parse. Lexer callbacks are fixed when the parser is built, so they report
# into whatever log the parsing thread installed.
_current = threading.local()


class _SourceLog:
    def __init__(self):
        self.comments = {}
        self.templates = set()

    def comment_starts_by_end(self):
        return {comment_end(c): c.start_pos for c in self.comments.values()}


def _record_comment(token):
    _current.log.comments[token.start_pos] = token


def _record_template(token):
    if "\n" in token:
        _current.log.templates.add((token.start_pos, token.start_pos + len(token)))
    return token


def _position(error, attr):
    # UnexpectedEOF reports -1 for both line and column.
    value = getattr(error, attr, None)
    return value if isinstance(value, int) and value > 0 else None


def _with_span(f, data, children, meta):
    """Record where in the source each node came from."""
    node = f(children)
    if isinstance(node, Node) and node.span is None and not meta.empty:
        node.span = (meta.start_pos, meta.end_pos)
        if getattr(node, "line", 0) is None:
            node.line = meta.line
    return node


def _spanned(node, meta):
    node.span = (meta.start_pos, meta.end_pos)
    if getattr(node, "line", 0) is None:
        node.line = meta.line
    return node


def _embedded_nodes(children):
    for child in children:
        if isinstance(child, Node):
            yield child
        elif isinstance(child, Tree):
            yield from _embedded_nodes(child.children)
        elif isinstance(child, list):
            yield from _embedded_nodes(child)


def _to_pattern(node):
    """Reinterpret an expression read inside parentheses as a binding pattern."""
    if isinstance(node, Assign) and node.operator == "=":
        pattern = AssignPattern(target=_to_pattern(node.target), default=node.value)
    elif isinstance(node, ObjectExpr):
        pattern = ObjectPattern(properties=[_to_pattern(p) for p in node.properties])
    elif isinstance(node, ArrayExpr):
        pattern = ArrayPattern(elements=[_to_pattern(e) if e is not None else None
                                         for e in node.elements])
    elif isinstance(node, Spread):
        pattern = Spread(argument=_to_pattern(node.argument))
    elif isinstance(node, Property):
        if node.value is None or node.shorthand:
            return node
        pattern = Property(key=node.key, value=_to_pattern(node.value), computed=node.computed)
    elif isinstance(node, (Identifier, Member, AssignPattern)):
        return node
    else:
        raise ValueError("Invalid destructuring target")
    pattern.span = node.span
    return pattern


def _to_param(item):
    if isinstance(item, Param):
        return item
    if isinstance(item, Spread):
        param = Param(target=_to_pattern(item.argument), rest=True)
    elif isinstance(item, Assign) and item.operator == "=":
        param = Param(target=_to_pattern(item.target), default=item.value)
    elif isinstance(item, (Identifier, ObjectExpr, ArrayExpr)):
        param = Param(target=_to_pattern(item))
    else:
        raise ValueError("Invalid arrow function parameter")
    param.span = item.span
    return param


class _CoverList(list):
    """The items of `( ... )` before it is known to be parameters or an expression."""


def _first(children, kind):
    return next((c for c in children if isinstance(c, kind)), None)


@v_args(wrapper=_with_span)
class TreeBuilder(Transformer):
    """
    Transforms a deferc parse tree into Program/statement/expression nodes.

    Every node built from a rule records its source span, and statements
    also record the line they started on. TypeScript types are not modeled:
    their source text is kept as written.
    """

    def __init__(self, source=""):
        super().__init__()
        self.source = source

    def _text(self, item):
        if isinstance(item, Token):
            return self.source[item.start_pos:item.start_pos + len(item)]
        return self.source[item.meta.start_pos:item.meta.end_pos]

    def _type_params(self, children):
        tree = next((c for c in children if isinstance(c, Tree) and c.data == "type_params"), None)
        return self._text(tree) if tree is not None else None

    def _verbatim(self, meta, children):
        parts, cursor = [], meta.start_pos
        for node in _embedded_nodes(children):
            if node.span is None:
                continue
            if node.span[0] > cursor:
                parts.append(self.source[cursor:node.span[0]])
            parts.append(node)
            cursor = node.span[1]
        if meta.end_pos > cursor:
            parts.append(self.source[cursor:meta.end_pos])
        return _spanned(Verbatim(parts=parts), meta)

    def start(self, children):
        return Program(body=list(children))

    # --- Statements ---

    def block(self, children):
        return Block(body=list(children))

    def empty_stmt(self, children):
        return Empty()

    def labeled_stmt(self, children):
        label, body = children
        return Labeled(label=str(label), body=body)

    def expr_stmt(self, children):
        return ExprStmt(expression=children[0])

    def var_stmt(self, children):
        decl = children[0]
        # Widen the span to take in the semicolon.
        decl.span = None
        return decl

    def var_decl(self, children):
        kind, *declarators = children
        return VarDecl(kind=str(kind), declarators=declarators)

    def declarator(self, children):
        return Declarator(target=children[0], annotation=_first(children[1:], TypeAnnotation),
                          init=children[-1] if len(children) > 1 and not isinstance(children[-1], TypeAnnotation) else None)

    def function_decl(self, children):
        is_async, star, name, *rest = children
        body = rest[-1]
        return FunctionDecl(name=str(name), params=_first(rest, list) or [], body=body,
                            is_async=is_async is not None, generator=star is not None,
                            return_type=_first(rest, TypeAnnotation), type_params=self._type_params(rest))

    def class_decl(self, children):
        name, *rest = children
        return self._class(rest, name=str(name))

    def class_expr(self, children):
        name, *rest = children
        return self._class(rest, name=str(name) if name is not None else None)

    def _class(self, rest, name):
        members = rest[-1]
        heritage = _first(rest, tuple) or (None, None)
        return Class(members=members, name=name, superclass=heritage[0], implements=heritage[1],
                     type_params=self._type_params(rest))

    def return_stmt(self, children):
        return Return(argument=children[0])

    def if_stmt(self, children):
        test, consequent, alternate = children
        return If(test=test, consequent=consequent, alternate=alternate)

    def while_stmt(self, children):
        test, body = children
        return While(test=test, body=body)

    def do_while_stmt(self, children):
        body, test = children
        return DoWhile(body=body, test=test)

    def for_stmt(self, children):
        init, test, update, body = children
        return For(init=init, test=test, update=update, body=body)

    def for_binding(self, children):
        kind, target = children
        return VarDecl(kind=str(kind), declarators=[Declarator(target=target)])

    def for_in_stmt(self, children):
        left, _, right, body = children
        return ForIn(left=left, right=right, body=body)

    def for_of_stmt(self, children):
        is_await, left, right, body = children
        return ForOf(left=left, right=right, body=body, is_await=is_await is not None)

    def switch_stmt(self, children):
        discriminant, *cases = children
        return Switch(discriminant=discriminant, cases=cases)

    def case_clause(self, children):
        test, *consequent = children
        return SwitchCase(test=test, consequent=consequent)

    def default_clause(self, children):
        return SwitchCase(test=None, consequent=list(children))

    def throw_stmt(self, children):
        return Throw(argument=children[0])

    def break_stmt(self, children):
        label = children[0]
        return Break(label=str(label) if label is not None else None)

    def continue_stmt(self, children):
        label = children[0]
        return Continue(label=str(label) if label is not None else None)

    def debugger_stmt(self, children):
        return Debugger()

    def try_stmt(self, children):
        block, handler, finalizer = children
        return Try(block=block, handler=handler, finalizer=finalizer)

    def catch_clause(self, children):
        *head, body = children
        param = next((c for c in head if isinstance(c, Node) and not isinstance(c, TypeAnnotation)), None)
        return CatchClause(body=body, param=param, annotation=_first(head, TypeAnnotation))

    def finally_clause(self, children):
        return children[0]

    # --- Modules ---

    def import_decl(self, children):
        *specs, source = children
        node = Import(source=str(source))
        for kind, value in specs:
            if kind == "default":
                node.default = value
            elif kind == "namespace":
                node.namespace = value
            else:
                node.specifiers = value
        return node

    def import_type(self, children):
        node = self.import_decl(children[1:])
        node.type_only = True
        return node

    def import_bare(self, children):
        return Import(source=str(children[0]))

    def default_import(self, children):
        return ("default", str(children[0]))

    def namespace_import(self, children):
        return ("namespace", str(children[-1]))

    def named_imports(self, children):
        return ("named", list(children))

    def named_import(self, children):
        imported, local = children
        imported = str(imported)
        return ImportSpecifier(imported=imported, local=str(local) if local is not None else imported)

    def export_default_function(self, children):
        return ExportDefault(expression=children[0])

    def export_default(self, children):
        return ExportDefault(expression=children[0])

    def export_declaration(self, children):
        return Export(declaration=children[0])

    def export_named(self, children):
        *specifiers, source = children
        return ExportNamed(specifiers=specifiers, source=str(source) if source is not None else None)

    def export_all(self, children):
        _, alias, source = children
        return ExportAll(source=str(source), alias=str(alias) if alias is not None else None)

    def export_spec(self, children):
        local, exported = children
        local = str(local)
        # Rendered as `local as exported`, the same shape as an import specifier.
        return ImportSpecifier(imported=local, local=str(exported) if exported is not None else local)

    # --- Bindings ---

    def binding_name(self, children):
        return Identifier(str(children[0]))

    def object_pattern(self, children):
        return ObjectPattern(properties=list(children))

    def shorthand_pattern(self, children):
        name, default = children
        key = Identifier(str(name))
        if default is None:
            return Property(key=key, shorthand=True)
        return Property(key=key, value=AssignPattern(target=Identifier(str(name)), default=default),
                        shorthand=True)

    def pattern_prop(self, children):
        key, value = children
        return Property(key=key[0], value=value, computed=key[1])

    def binding_element(self, children):
        target, default = children
        if default is None:
            return target
        return AssignPattern(target=target, default=default)

    def array_pattern(self, children):
        elements = list(children)
        if elements and elements[-1] is None:
            elements.pop()
        return ArrayPattern(elements=elements)

    def pattern_slot(self, children):
        return children[0] if children else None

    def rest_element(self, children):
        return Spread(argument=children[-1])

    def param_list(self, children):
        return list(children)

    def param(self, children):
        rest, target, *tail = children
        default = tail[-1] if tail and not isinstance(tail[-1], TypeAnnotation) else None
        return Param(target=target, annotation=_first(tail, TypeAnnotation), default=default,
                     rest=rest is not None)

    # --- Functions and classes ---

    def arrow_fn(self, children):
        is_async, params, body = children
        return Arrow(params=params, body=body, is_async=is_async is not None)

    def single_param(self, children):
        return [Param(target=Identifier(str(children[0])))]

    def cover_params(self, children):
        return [_to_param(item) for item in children[0]]

    def cover_parens(self, children):
        return _CoverList(children)

    def paren(self, children):
        items = children[0]
        if not items:
            raise ValueError("Empty parentheses outside an arrow function")
        if any(isinstance(item, (Param, Spread)) for item in items):
            raise ValueError("Parameter syntax outside an arrow function")
        if len(items) == 1:
            return Paren(expression=items[0])
        sequence = Sequence(expressions=list(items))
        sequence.span = (items[0].span[0], items[-1].span[1])
        return Paren(expression=sequence)

    def typed_param(self, children):
        target, annotation, default = children
        if isinstance(target, Token):
            target = Identifier(str(target))
        else:
            target = _to_pattern(target)
        return Param(target=target, annotation=annotation, default=default)

    def optional_param(self, children):
        name, _, type_expr = children
        return Param(target=Identifier(str(name)),
                     annotation=TypeAnnotation(text=self._text(type_expr), optional=True))

    def function_expr(self, children):
        is_async, star, name, *rest = children
        return FunctionExpr(params=_first(rest, list) or [], body=rest[-1],
                            name=str(name) if name is not None else None,
                            is_async=is_async is not None, generator=star is not None,
                            return_type=_first(rest, TypeAnnotation), type_params=self._type_params(rest))

    def class_heritage(self, children):
        superclass = next((c for c in children if isinstance(c, Node)), None)
        implements = next((self._text(c) for c in children if isinstance(c, Tree)), None)
        return (superclass, implements)

    def class_body(self, children):
        return list(children)

    def class_member(self, children):
        *modifiers, member = children
        member.modifiers = [str(m) for m in modifiers]
        # Widen the span to take in the modifiers.
        member.span = None
        return member

    def static_block(self, children):
        return StaticBlock(body=children[-1])

    def field_def(self, children):
        key, *rest = children
        value = rest[-1] if rest and not isinstance(rest[-1], TypeAnnotation) else None
        return Field(key=key[0], value=value, computed=key[1], annotation=_first(rest, TypeAnnotation))

    def method_def(self, children):
        is_async, star, accessor, key, *rest = children
        return Method(key=key[0], params=_first(rest, list) or [], body=rest[-1],
                      kind=str(accessor) if accessor is not None else "method", computed=key[1],
                      is_async=is_async is not None, generator=star is not None,
                      return_type=_first(rest, TypeAnnotation), type_params=self._type_params(rest))

    def yield_expr(self, children):
        star, argument = children
        return Yield(argument=argument, delegate=star is not None)

    # --- Expressions ---

    def sequence(self, children):
        return Sequence(expressions=list(children))

    def assign(self, children):
        target, op, value = children
        return Assign(target=target, value=value, operator=str(op))

    def conditional(self, children):
        test, consequent, alternate = children
        return Conditional(test=test, consequent=consequent, alternate=alternate)

    def binary(self, children):
        left, op, right = children
        return Binary(operator=str(op), left=left, right=right)

    def unary(self, children):
        op, argument = children
        return Unary(operator=str(op), argument=argument)

    def update_prefix(self, children):
        op, argument = children
        return Update(operator=str(op), argument=argument, prefix=True)

    def update_postfix(self, children):
        argument, op = children
        return Update(operator=str(op), argument=argument)

    def as_expression(self, children):
        expression, type_expr = children
        return AsExpression(expression=expression, type_text=self._text(type_expr))

    def non_null(self, children):
        return NonNull(expression=children[0])

    def member(self, children):
        obj, name = children
        return Member(object=obj, property=Identifier(str(name)))

    def optional_member(self, children):
        obj, _, name = children
        return Member(object=obj, property=Identifier(str(name)), optional=True)

    def index(self, children):
        obj, key = children
        return Member(object=obj, property=key, computed=True)

    def optional_index(self, children):
        obj, _, key = children
        return Member(object=obj, property=key, computed=True, optional=True)

    def call(self, children):
        callee, args = children
        return Call(callee=callee, args=args)

    def optional_call(self, children):
        callee, _, args = children
        return Call(callee=callee, args=args, optional=True)

    def tagged_template(self, children):
        tag, quasi = children
        return TaggedTemplate(tag=tag, quasi=Literal(str(quasi)))

    def new_expr(self, children):
        callee, args = children
        return New(callee=callee, args=args)

    def import_meta(self, children):
        return Member(object=Identifier("import"), property=Identifier(str(children[0])))

    def dynamic_import(self, children):
        return Call(callee=Identifier("import"), args=children[0])

    def arguments(self, children):
        return list(children)

    def spread(self, children):
        return Spread(argument=children[-1])

    def identifier(self, children):
        return Identifier(str(children[0]))

    def literal(self, children):
        return Literal(str(children[0]))

    def array(self, children):
        elements = list(children)
        # `[a, b,]` has a trailing comma, not a trailing hole.
        if elements and elements[-1] is None:
            elements.pop()
        return ArrayExpr(elements=elements)

    def array_slot(self, children):
        return children[0] if children else None

    def object(self, children):
        return ObjectExpr(properties=list(children))

    def prop(self, children):
        key, value = children
        return Property(key=key[0], value=value, computed=key[1])

    def shorthand_prop(self, children):
        return Property(key=Identifier(str(children[0])))

    def shorthand_default(self, children):
        name, default = children
        return Property(key=Identifier(str(name)),
                        value=AssignPattern(target=Identifier(str(name)), default=default),
                        shorthand=True)

    # Property keys come back as (node, computed) pairs.

    def key_name(self, children):
        return (Identifier(str(children[0])), False)

    def key_literal(self, children):
        return (Literal(str(children[0])), False)

    def key_computed(self, children):
        return (children[0], True)

    # --- Types and JSX (kept as source text) ---

    def type_annotation(self, children):
        return TypeAnnotation(text=self._text(children[-1]))

    def optional_annotation(self, children):
        return TypeAnnotation(text=self._text(children[-1]), optional=True)

    @v_args(meta=True)
    def type_alias(self, meta, children):
        return self._verbatim(meta, [])

    @v_args(meta=True)
    def interface_decl(self, meta, children):
        return self._verbatim(meta, [])

    @v_args(meta=True)
    def enum_decl(self, meta, children):
        return self._verbatim(meta, [])

    @v_args(meta=True)
    def jsx_element(self, meta, children):
        return self._verbatim(meta, children)

    @v_args(meta=True)
    def jsx_fragment(self, meta, children):
        return self._verbatim(meta, children)


class _AutoSemicolon:
    """`on_error` handler that inserts the semicolons JavaScript lets you omit."""

    def __init__(self, source, log):
        self.source = source
        self.log = log
        self.inserted = set()

    def _previous_end(self, position):
        """Offset just past the code before `position`, and whether a line break lies between."""
        starts_by_end = self.log.comment_starts_by_end()
        line_break = False
        i = position
        while i > 0:
            ch = self.source[i - 1]
            if ch in _WHITESPACE:
                line_break = line_break or ch in _LINE_BREAKS
                i -= 1
            elif i in starts_by_end:
                start = starts_by_end[i]
                line_break = line_break or "\n" in self.source[start:i]
                i = start
            else:
                break
        return i, line_break

    def __call__(self, error):
        if not isinstance(error, UnexpectedToken) or "_SEMI" not in error.expected:
            return False
        token = error.token
        at_end = token.type == "$END"
        position = len(self.source) if at_end else token.start_pos
        end, line_break = self._previous_end(position)
        if not (at_end or line_break or token == "}") or position in self.inserted:
            return False
        self.inserted.add(position)

        line = self.source.count("\n", 0, end) + 1
        column = end - self.source.rfind("\n", 0, end)
        parser = error.interactive_parser
        parser.feed_token(Token("_SEMI", ";", start_pos=end, line=line, column=column,
                                end_line=line, end_column=column, end_pos=end))
        if not at_end:
            # Lex the offending token again in the parser's new state.
            counter = parser.lexer_thread.state.line_ctr
            counter.char_pos = token.start_pos
            counter.line = token.line
            counter.column = token.column
            counter.line_start_pos = token.start_pos - token.column + 1
        return True


@lru_cache(maxsize=None)
def get_parser(dialect=Dialect.PLAIN):
    """Build (once per dialect) the LALR parser for `dialect`."""
    callbacks = {
        "COMMENT": _record_comment,
        "BLOCK_COMMENT": _record_comment,
        "HASHBANG": _record_comment,
        "TEMPLATE": _record_template,
    }
    return Lark(build_grammar(dialect), parser='lalr', lexer='contextual',
                propagate_positions=True, maybe_placeholders=True, lexer_callbacks=callbacks)


def parse(source_code, dialect=Dialect.PLAIN, filename=None):
    """Parse `source_code` into a Program, raising DeferCompileError on bad input."""
    log = _SourceLog()
    _current.log = log
    try:
        tree = get_parser(Dialect(dialect)).parse(source_code, on_error=_AutoSemicolon(source_code, log))
    except UnexpectedInput as e:
        line_number = _position(e, "line")
        column = _position(e, "column")
        suggestion_text, _ = detect_common_error_patterns(source_code)
        raise DeferCompileError(
            message="Syntax error",
            line_number=line_number,
            column=column,
            context=get_line_context(source_code, line_number),
            suggestion=suggestion_text or "Check syntax around this line",
            filename=filename,
        ) from e
    finally:
        _current.log = None

    try:
        program = TreeBuilder(source_code).transform(tree)
    except VisitError as e:
        raise DeferCompileError(
            message=f"Could not build syntax tree: {e.orig_exc}",
            filename=filename,
            suggestion="Check syntax and types",
        ) from e

    program.span = (0, len(source_code))
    program.source = source_code
    program.comments = sorted(log.comments.values(), key=lambda c: c.start_pos)
    program.template_spans = sorted(log.templates)
    attach_comments(program)
    return program
