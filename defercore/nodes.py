"""
Syntax tree for the JavaScript, JSX and TypeScript that deferc reads.

Every construct the grammar accepts becomes one of the dataclasses below.
The rewrite pass only ever looks at a handful of them (Labeled, ExprStmt,
Assign, Identifier, Call, Return, Block and Program); the rest are carried
through and written back out by the code generator.

Nodes built by the parser remember the source span they came from, so the
generator copies untouched code verbatim, comments and layout included.
Each node can also write itself into a CodeWriter (see codegen.py); that is
how rewritten blocks and the nodes a rewrite synthesizes get printed.
Statements carry the 1-based line they started on in the original source,
or None when they were synthesized.
"""
from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Iterator, List, Optional, Union


class Node:
    """Base class for all tree nodes."""

    # (start, end) offsets into the parsed source. None for synthesized nodes.
    span = None
    # True once a rewrite has replaced the node's statement list.
    modified = False
    # Comment tokens attached by the parser (see comments.py).
    leading_comments = ()
    trailing_comments = ()
    inner_comments = ()
    blank_before = False

    def emit(self, w) -> None:
        raise NotImplementedError(f"{type(self).__name__} cannot be emitted")


# Fields that are bookkeeping, not children.
_NON_CHILD_FIELDS = frozenset({"line", "owner", "scope"})


def iter_child_nodes(node: Node) -> Iterator[Node]:
    """Yield the direct child nodes of `node` in field order."""
    for f in fields(node):
        if f.name in _NON_CHILD_FIELDS:
            continue
        value = getattr(node, f.name)
        if isinstance(value, Node):
            yield value
        elif isinstance(value, list):
            for item in value:
                if isinstance(item, Node):
                    yield item


def walk(node: Node) -> Iterator[Node]:
    """Yield `node` and all of its descendants, parents first."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(list(iter_child_nodes(current))))


def emit_statements(statements, w) -> None:
    """Write a statement list, one statement per line, with its comments."""
    for i, stmt in enumerate(statements):
        if i and stmt.blank_before:
            w.newline()
        for comment in stmt.leading_comments:
            w.comment(comment)
            w.newline()
        w.mark(getattr(stmt, "line", None))
        w.emit(stmt)
        for comment in stmt.trailing_comments:
            w.write(" ")
            w.comment(comment)
        w.newline()


def _emit_inner_comments(container, w) -> None:
    for comment in container.inner_comments:
        w.comment(comment)
        w.newline()


def _emit_list(items, w, separator=", ") -> None:
    for i, item in enumerate(items):
        if i:
            w.write(separator)
        if item is not None:
            w.emit(item)


def _emit_body(stmt, w) -> None:
    # Bodies of if/while/for: blocks stay on the header line, anything else
    # goes on its own indented line.
    if isinstance(stmt, Block):
        w.write(" ")
        w.emit(stmt)
    else:
        w.newline()
        w.indent()
        w.mark(getattr(stmt, "line", None))
        w.emit(stmt)
        w.dedent()


def _emit_modifiers(modifiers, w) -> None:
    for modifier in modifiers:
        w.write(f"{modifier} ")


def binding_names(target) -> List[str]:
    """Names bound by a declaration target: an identifier or a destructuring pattern."""
    if isinstance(target, Identifier):
        return [target.name]
    if isinstance(target, AssignPattern):
        return binding_names(target.target)
    if isinstance(target, Spread):
        return binding_names(target.argument)
    if isinstance(target, ObjectPattern):
        names = []
        for prop in target.properties:
            if isinstance(prop, Spread):
                names.extend(binding_names(prop))
            else:
                names.extend(binding_names(prop.value if prop.value is not None else prop.key))
        return names
    if isinstance(target, ArrayPattern):
        return [name for element in target.elements if element is not None
                for name in binding_names(element)]
    return []


# =============================================================================
# Expressions
# =============================================================================

@dataclass
class Identifier(Node):
    name: str

    def emit(self, w):
        w.write(self.name)


@dataclass
class Literal(Node):
    """Numbers, strings, templates, regular expressions and literal keywords, kept as written."""
    raw: str

    def emit(self, w):
        w.write(self.raw)


@dataclass
class Paren(Node):
    expression: Node

    def emit(self, w):
        w.write("(")
        w.emit(self.expression)
        w.write(")")


@dataclass
class Sequence(Node):
    expressions: List[Node]

    def emit(self, w):
        _emit_list(self.expressions, w)


@dataclass
class ArrayExpr(Node):
    # None marks a hole: `[a, , b]`
    elements: List[Optional[Node]] = field(default_factory=list)

    def emit(self, w):
        w.write("[")
        _emit_list(self.elements, w)
        if self.elements and self.elements[-1] is None:
            w.write(",")
        w.write("]")


@dataclass
class Property(Node):
    """`key: value`, or a shorthand `key` when value is None."""
    key: Node
    value: Optional[Node] = None
    computed: bool = False
    shorthand: bool = False

    def emit(self, w):
        if self.shorthand and self.value is not None:
            w.emit(self.value)
            return
        if self.computed:
            w.write("[")
            w.emit(self.key)
            w.write("]")
        else:
            w.emit(self.key)
        if self.value is not None:
            w.write(": ")
            w.emit(self.value)


@dataclass
class ObjectExpr(Node):
    properties: List[Node] = field(default_factory=list)

    def emit(self, w):
        if not self.properties:
            w.write("{}")
            return
        w.write("{ ")
        _emit_list(self.properties, w)
        w.write(" }")


@dataclass
class Spread(Node):
    """`...argument`: spread elements and rest elements alike."""
    argument: Node

    def emit(self, w):
        w.write("...")
        w.emit(self.argument)


@dataclass
class ObjectPattern(ObjectExpr):
    pass


@dataclass
class ArrayPattern(ArrayExpr):
    pass


@dataclass
class AssignPattern(Node):
    """A destructuring target with a default: `target = default`."""
    target: Node
    default: Node

    def emit(self, w):
        w.emit(self.target)
        w.write(" = ")
        w.emit(self.default)


@dataclass
class Member(Node):
    object: Node
    property: Node
    computed: bool = False
    optional: bool = False

    def emit(self, w):
        w.emit(self.object)
        if self.computed:
            w.write("?.[" if self.optional else "[")
            w.emit(self.property)
            w.write("]")
        else:
            w.write("?." if self.optional else ".")
            w.emit(self.property)


@dataclass
class Call(Node):
    callee: Node
    args: List[Node] = field(default_factory=list)
    optional: bool = False

    def emit(self, w):
        w.emit(self.callee)
        w.write("?.(" if self.optional else "(")
        _emit_list(self.args, w)
        w.write(")")


@dataclass
class New(Node):
    callee: Node
    # None for `new Foo` written without an argument list.
    args: Optional[List[Node]] = None

    def emit(self, w):
        w.write("new ")
        w.emit(self.callee)
        if self.args is not None:
            w.write("(")
            _emit_list(self.args, w)
            w.write(")")


@dataclass
class TaggedTemplate(Node):
    tag: Node
    quasi: Literal

    def emit(self, w):
        w.emit(self.tag)
        w.emit(self.quasi)


def _leading_operator(node) -> str:
    if isinstance(node, Unary) or (isinstance(node, Update) and node.prefix):
        return node.operator
    return ""


@dataclass
class Unary(Node):
    operator: str
    argument: Node

    def emit(self, w):
        w.write(self.operator)
        # `- -x` and `+ +x` must not collapse into `--x` and `++x`.
        if self.operator.isalpha() or (
                self.operator in ("+", "-") and _leading_operator(self.argument)[:1] == self.operator):
            w.write(" ")
        w.emit(self.argument)


@dataclass
class Update(Node):
    """`++x`, `x--` and friends."""
    operator: str
    argument: Node
    prefix: bool = False

    def emit(self, w):
        if self.prefix:
            w.write(self.operator)
            w.emit(self.argument)
        else:
            w.emit(self.argument)
            w.write(self.operator)


@dataclass
class Binary(Node):
    operator: str
    left: Node
    right: Node

    def emit(self, w):
        w.emit(self.left)
        w.write(f" {self.operator} ")
        w.emit(self.right)


@dataclass
class Conditional(Node):
    test: Node
    consequent: Node
    alternate: Node

    def emit(self, w):
        w.emit(self.test)
        w.write(" ? ")
        w.emit(self.consequent)
        w.write(" : ")
        w.emit(self.alternate)


@dataclass
class Assign(Node):
    target: Node
    value: Node
    operator: str = "="

    def emit(self, w):
        w.emit(self.target)
        w.write(f" {self.operator} ")
        w.emit(self.value)


@dataclass
class Yield(Node):
    argument: Optional[Node] = None
    delegate: bool = False

    def emit(self, w):
        w.write("yield*" if self.delegate else "yield")
        if self.argument is not None:
            w.write(" ")
            w.emit(self.argument)


@dataclass
class TypeAnnotation(Node):
    """A `: Type` (or `?: Type`) annotation, with the type kept as written."""
    text: str
    optional: bool = False

    def emit(self, w):
        w.write("?: " if self.optional else ": ")
        w.write(self.text)


@dataclass
class AsExpression(Node):
    expression: Node
    type_text: str

    def emit(self, w):
        w.emit(self.expression)
        w.write(f" as {self.type_text}")


@dataclass
class NonNull(Node):
    expression: Node

    def emit(self, w):
        w.emit(self.expression)
        w.write("!")


@dataclass
class Verbatim(Node):
    """
    Source text deferc does not model: JSX elements and TypeScript type
    declarations. Expressions embedded in it (JSX attribute values and
    children) are kept as nodes so blocks inside them are still rewritten.
    """
    parts: List[Union[str, Node]] = field(default_factory=list)
    line: Optional[int] = None

    def emit(self, w):
        for part in self.parts:
            if isinstance(part, Node):
                w.emit(part)
            else:
                w.write(part)


@dataclass
class Param(Node):
    target: Node
    annotation: Optional[TypeAnnotation] = None
    default: Optional[Node] = None
    rest: bool = False

    @property
    def name(self):
        return self.target.name if isinstance(self.target, Identifier) else None

    def emit(self, w):
        if self.rest:
            w.write("...")
        w.emit(self.target)
        if self.annotation is not None:
            w.emit(self.annotation)
        if self.default is not None:
            w.write(" = ")
            w.emit(self.default)


def _emit_params(params, w):
    w.write("(")
    _emit_list(params, w)
    w.write(")")


def _emit_function_head(node, w):
    if node.type_params:
        w.write(node.type_params)
    _emit_params(node.params, w)
    if node.return_type is not None:
        w.emit(node.return_type)


@dataclass
class Arrow(Node):
    """Arrow function. Continuations built by the rewrite pass are Arrows."""
    params: List[Param]
    body: Node
    is_async: bool = False

    def __post_init__(self):
        if isinstance(self.body, Block):
            self.body.owner = self

    def emit(self, w):
        if self.is_async:
            w.write("async ")
        _emit_params(self.params, w)
        w.write(" => ")
        w.emit(self.body)


@dataclass
class FunctionExpr(Node):
    params: List[Param]
    body: Block
    name: Optional[str] = None
    is_async: bool = False
    generator: bool = False
    return_type: Optional[TypeAnnotation] = None
    type_params: Optional[str] = None

    def __post_init__(self):
        self.body.owner = self

    def emit(self, w):
        if self.is_async:
            w.write("async ")
        w.write("function*" if self.generator else "function")
        if self.name:
            w.write(f" {self.name}")
        _emit_function_head(self, w)
        w.write(" ")
        w.emit(self.body)


@dataclass
class Method(Node):
    """A method of a class or an object literal, including getters and setters."""
    key: Node
    params: List[Param]
    body: Block
    kind: str = "method"
    computed: bool = False
    is_async: bool = False
    generator: bool = False
    modifiers: List[str] = field(default_factory=list)
    return_type: Optional[TypeAnnotation] = None
    type_params: Optional[str] = None

    def __post_init__(self):
        self.body.owner = self

    def emit(self, w):
        _emit_modifiers(self.modifiers, w)
        if self.is_async:
            w.write("async ")
        if self.generator:
            w.write("*")
        if self.kind in ("get", "set"):
            w.write(f"{self.kind} ")
        _emit_key(self.key, self.computed, w)
        _emit_function_head(self, w)
        w.write(" ")
        w.emit(self.body)


def _emit_key(key, computed, w):
    if computed:
        w.write("[")
        w.emit(key)
        w.write("]")
    else:
        w.emit(key)


@dataclass
class Field(Node):
    """A class field: `static count: number = 0;`"""
    key: Node
    value: Optional[Node] = None
    computed: bool = False
    modifiers: List[str] = field(default_factory=list)
    annotation: Optional[TypeAnnotation] = None

    def emit(self, w):
        _emit_modifiers(self.modifiers, w)
        _emit_key(self.key, self.computed, w)
        if self.annotation is not None:
            w.emit(self.annotation)
        if self.value is not None:
            w.write(" = ")
            w.emit(self.value)
        w.write(";")


@dataclass
class StaticBlock(Node):
    body: Block

    def emit(self, w):
        w.write("static ")
        w.emit(self.body)


@dataclass
class Class(Node):
    """A class declaration, or a class expression when used as a value."""
    members: List[Node]
    name: Optional[str] = None
    superclass: Optional[Node] = None
    implements: Optional[str] = None
    type_params: Optional[str] = None
    line: Optional[int] = None

    def emit(self, w):
        w.write("class")
        if self.name:
            w.write(f" {self.name}")
        if self.type_params:
            w.write(self.type_params)
        if self.superclass is not None:
            w.write(" extends ")
            w.emit(self.superclass)
        if self.implements:
            w.write(f" implements {self.implements}")
        if not self.members:
            w.write(" {}")
            return
        w.write(" {")
        w.newline()
        w.indent()
        emit_statements(self.members, w)
        w.dedent()
        w.write("}")


# =============================================================================
# Statements
# =============================================================================

@dataclass
class Block(Node):
    body: List[Node] = field(default_factory=list)
    line: Optional[int] = None
    # The function, arrow or catch clause whose body this is, if any.
    owner: Optional[Node] = field(default=None, repr=False, compare=False)
    # Lazily built binding table (see scope.py).
    scope: Optional[object] = field(default=None, repr=False, compare=False)

    def emit(self, w):
        if not self.body and not self.inner_comments:
            w.write("{}")
            return
        w.write("{")
        w.newline()
        w.indent()
        emit_statements(self.body, w)
        _emit_inner_comments(self, w)
        w.dedent()
        w.write("}")


@dataclass
class Program(Node):
    body: List[Node] = field(default_factory=list)
    scope: Optional[object] = field(default=None, repr=False, compare=False)

    # Set by the parser: the text the tree was read from, and where its
    # comments and multi-line template literals are.
    source = None
    comments = ()
    template_spans = ()

    def emit(self, w):
        emit_statements(self.body, w)
        _emit_inner_comments(self, w)


@dataclass
class ExprStmt(Node):
    expression: Node
    line: Optional[int] = None

    def emit(self, w):
        w.emit(self.expression)
        w.write(";")


@dataclass
class Empty(Node):
    line: Optional[int] = None

    def emit(self, w):
        w.write(";")


@dataclass
class Labeled(Node):
    label: str
    body: Node
    line: Optional[int] = None

    def emit(self, w):
        w.write(f"{self.label}: ")
        w.emit(self.body)


@dataclass
class Return(Node):
    argument: Optional[Node] = None
    line: Optional[int] = None

    def emit(self, w):
        if self.argument is None:
            w.write("return;")
            return
        w.write("return ")
        w.emit(self.argument)
        w.write(";")


@dataclass
class Declarator(Node):
    target: Node
    annotation: Optional[TypeAnnotation] = None
    init: Optional[Node] = None

    @property
    def name(self):
        return self.target.name if isinstance(self.target, Identifier) else None

    def emit(self, w):
        w.emit(self.target)
        if self.annotation is not None:
            w.emit(self.annotation)
        if self.init is not None:
            w.write(" = ")
            w.emit(self.init)


@dataclass
class VarDecl(Node):
    kind: str
    declarators: List[Declarator]
    line: Optional[int] = None

    def emit_head(self, w):
        """The declaration without its semicolon, as used in `for` headers."""
        w.write(f"{self.kind} ")
        _emit_list(self.declarators, w)

    def emit(self, w):
        self.emit_head(w)
        w.write(";")


@dataclass
class FunctionDecl(Node):
    name: str
    params: List[Param]
    body: Block
    is_async: bool = False
    generator: bool = False
    return_type: Optional[TypeAnnotation] = None
    type_params: Optional[str] = None
    line: Optional[int] = None

    def __post_init__(self):
        self.body.owner = self

    def emit(self, w):
        if self.is_async:
            w.write("async ")
        w.write("function* " if self.generator else "function ")
        w.write(self.name)
        _emit_function_head(self, w)
        w.write(" ")
        w.emit(self.body)


@dataclass
class If(Node):
    test: Node
    consequent: Node
    alternate: Optional[Node] = None
    line: Optional[int] = None

    def emit(self, w):
        w.write("if (")
        w.emit(self.test)
        w.write(")")
        _emit_body(self.consequent, w)
        if self.alternate is None:
            return
        if isinstance(self.consequent, Block):
            w.write(" else")
        else:
            w.newline()
            w.write("else")
        if isinstance(self.alternate, If):
            w.write(" ")
            w.emit(self.alternate)
        else:
            _emit_body(self.alternate, w)


@dataclass
class While(Node):
    test: Node
    body: Node
    line: Optional[int] = None

    def emit(self, w):
        w.write("while (")
        w.emit(self.test)
        w.write(")")
        _emit_body(self.body, w)


@dataclass
class DoWhile(Node):
    body: Node
    test: Node
    line: Optional[int] = None

    def emit(self, w):
        w.write("do")
        _emit_body(self.body, w)
        if isinstance(self.body, Block):
            w.write(" ")
        else:
            w.newline()
        w.write("while (")
        w.emit(self.test)
        w.write(");")


def _emit_for_left(left, w):
    if isinstance(left, VarDecl):
        left.emit_head(w)
    elif left is not None:
        w.emit(left)


@dataclass
class For(Node):
    init: Optional[Node]
    test: Optional[Node]
    update: Optional[Node]
    body: Node
    line: Optional[int] = None

    def emit(self, w):
        w.write("for (")
        _emit_for_left(self.init, w)
        w.write("; ")
        if self.test is not None:
            w.emit(self.test)
        w.write("; ")
        if self.update is not None:
            w.emit(self.update)
        w.write(")")
        _emit_body(self.body, w)


@dataclass
class ForIn(Node):
    # A VarDecl with a single declarator, or an assignment target.
    left: Node
    right: Node
    body: Node
    line: Optional[int] = None

    def emit(self, w):
        w.write("for (")
        _emit_for_left(self.left, w)
        w.write(" in ")
        w.emit(self.right)
        w.write(")")
        _emit_body(self.body, w)


@dataclass
class ForOf(Node):
    left: Node
    right: Node
    body: Node
    is_await: bool = False
    line: Optional[int] = None

    def emit(self, w):
        w.write("for await (" if self.is_await else "for (")
        _emit_for_left(self.left, w)
        w.write(" of ")
        w.emit(self.right)
        w.write(")")
        _emit_body(self.body, w)


@dataclass
class SwitchCase(Node):
    # None for `default:`
    test: Optional[Node]
    consequent: List[Node] = field(default_factory=list)

    def emit(self, w):
        if self.test is None:
            w.write("default:")
        else:
            w.write("case ")
            w.emit(self.test)
            w.write(":")
        w.newline()
        w.indent()
        emit_statements(self.consequent, w)
        w.dedent()


@dataclass
class Switch(Node):
    discriminant: Node
    cases: List[SwitchCase] = field(default_factory=list)
    line: Optional[int] = None

    def emit(self, w):
        w.write("switch (")
        w.emit(self.discriminant)
        w.write(") {")
        w.newline()
        w.indent()
        for case in self.cases:
            w.emit(case)
        w.dedent()
        w.write("}")


@dataclass
class Throw(Node):
    argument: Node
    line: Optional[int] = None

    def emit(self, w):
        w.write("throw ")
        w.emit(self.argument)
        w.write(";")


@dataclass
class Break(Node):
    label: Optional[str] = None
    line: Optional[int] = None

    def emit(self, w):
        w.write(f"break {self.label};" if self.label else "break;")


@dataclass
class Continue(Node):
    label: Optional[str] = None
    line: Optional[int] = None

    def emit(self, w):
        w.write(f"continue {self.label};" if self.label else "continue;")


@dataclass
class Debugger(Node):
    line: Optional[int] = None

    def emit(self, w):
        w.write("debugger;")


@dataclass
class CatchClause(Node):
    body: Block
    param: Optional[Node] = None
    annotation: Optional[TypeAnnotation] = None

    def __post_init__(self):
        self.body.owner = self

    def emit(self, w):
        w.write("catch ")
        if self.param is not None:
            w.write("(")
            w.emit(self.param)
            if self.annotation is not None:
                w.emit(self.annotation)
            w.write(") ")
        w.emit(self.body)


@dataclass
class Try(Node):
    block: Block
    handler: Optional[CatchClause] = None
    finalizer: Optional[Block] = None
    line: Optional[int] = None

    def emit(self, w):
        w.write("try ")
        w.emit(self.block)
        if self.handler is not None:
            w.write(" ")
            w.emit(self.handler)
        if self.finalizer is not None:
            w.write(" finally ")
            w.emit(self.finalizer)


# =============================================================================
# Modules
# =============================================================================

@dataclass
class ImportSpecifier(Node):
    imported: str
    local: str

    def emit(self, w):
        if self.imported == self.local:
            w.write(self.imported)
        else:
            w.write(f"{self.imported} as {self.local}")


@dataclass
class Import(Node):
    source: str
    default: Optional[str] = None
    namespace: Optional[str] = None
    specifiers: Optional[List[ImportSpecifier]] = None
    type_only: bool = False
    line: Optional[int] = None

    def local_names(self) -> List[str]:
        names = [name for name in (self.default, self.namespace) if name]
        names.extend(s.local for s in self.specifiers or ())
        return names

    def emit(self, w):
        w.write("import type " if self.type_only else "import ")
        clauses = []
        if self.default:
            clauses.append(self.default)
        if self.namespace:
            clauses.append(f"* as {self.namespace}")
        if self.specifiers is not None:
            names = ", ".join(
                s.imported if s.imported == s.local else f"{s.imported} as {s.local}"
                for s in self.specifiers)
            clauses.append("{ " + names + " }" if names else "{}")
        if clauses:
            w.write(", ".join(clauses) + " from ")
        w.write(f"{self.source};")


@dataclass
class Export(Node):
    declaration: Node
    line: Optional[int] = None

    def emit(self, w):
        w.write("export ")
        w.emit(self.declaration)


@dataclass
class ExportDefault(Node):
    expression: Node
    line: Optional[int] = None

    def emit(self, w):
        w.write("export default ")
        w.emit(self.expression)
        if not isinstance(self.expression, (FunctionExpr, Class)):
            w.write(";")


@dataclass
class ExportNamed(Node):
    specifiers: List[ImportSpecifier] = field(default_factory=list)
    source: Optional[str] = None
    line: Optional[int] = None

    def emit(self, w):
        w.write("export { ")
        _emit_list(self.specifiers, w)
        w.write(" }")
        if self.source:
            w.write(f" from {self.source}")
        w.write(";")


@dataclass
class ExportAll(Node):
    source: str
    alias: Optional[str] = None
    line: Optional[int] = None

    def emit(self, w):
        w.write(f"export * as {self.alias}" if self.alias else "export *")
        w.write(f" from {self.source};")
