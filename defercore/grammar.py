"""
deferc Grammar Definition.

This module contains the Lark grammar for the JavaScript deferc understands,
in four dialects: plain JavaScript, JavaScript with JSX, TypeScript, and
TypeScript with JSX. The grammar is LALR(1) and is meant for Lark's
contextual lexer, which is what lets `of`, `get`, `static`, `type` and
friends stay usable as ordinary names.

Expressions are written once as a template and instantiated four times.
JavaScript forbids some expressions in some places: a statement may not
start with `{`, `function` or `class`, an arrow body may not start with `{`,
and `export default` may not be followed by a function or class expression.
Each restricted position gets its own copy of the expression chain, with the
forbidden starts left out of its `primary`.

Known gaps: nested template literals inside `${}`, decorators, explicit type
arguments on calls, arrow function return types, and `<T>x` casts.
"""
from enum import Enum


class Dialect(str, Enum):
    PLAIN = "plain"
    JSX = "jsx"
    TYPED = "typed"
    TSX = "tsx"

    @property
    def typed(self):
        return self in (Dialect.TYPED, Dialect.TSX)

    @property
    def jsx(self):
        return self in (Dialect.JSX, Dialect.TSX)


defer_grammar = r"""
    start: statement*

    // --- Statements ---
    ?statement: block
        | empty_stmt
        | labeled_stmt
        | var_stmt
        | function_decl
        | class_decl
        | return_stmt
        | if_stmt
        | while_stmt
        | do_while_stmt
        | for_stmt
        | for_in_stmt
        | for_of_stmt
        | switch_stmt
        | throw_stmt
        | break_stmt
        | continue_stmt
        | try_stmt
        | debugger_stmt
        | import_decl
        | export_stmt
        | expr_stmt
        __TYPE_DECLARATIONS__

    block: "{" statement* "}"
    empty_stmt: _SEMI
    labeled_stmt: NAME ":" statement
    expr_stmt: expression_s _SEMI
    var_stmt: var_decl _SEMI
    var_decl: VAR_KIND declarator ("," declarator)*
    declarator: binding_target __ANNOTATION__ ["=" assign_expr]
    function_decl: [ASYNC] _FUNCTION [STAR] NAME __TYPE_PARAMS__ "(" [param_list] ")" __RETURN_TYPE__ block
    class_decl: _CLASS NAME __TYPE_PARAMS__ [class_heritage] class_body
    return_stmt: _RETURN [expression] _SEMI
    // `else` binds to the nearest `if`: LALR resolves the conflict as a shift.
    if_stmt: _IF "(" expression ")" statement [_ELSE statement]
    while_stmt: _WHILE "(" expression ")" statement
    do_while_stmt: _DO statement _WHILE "(" expression ")" _SEMI?
    for_stmt: _FOR "(" [for_init] _SEMI [expression] _SEMI [expression] ")" statement
    ?for_init: var_decl | expression
    for_in_stmt: _FOR "(" for_binding IN expression ")" statement
        | _FOR "(" postfix IN expression ")" statement
    for_of_stmt: _FOR [AWAIT] "(" for_binding _OF assign_expr ")" statement
        | _FOR [AWAIT] "(" postfix _OF assign_expr ")" statement
    for_binding: VAR_KIND binding_target
    switch_stmt: _SWITCH "(" expression ")" "{" switch_case* "}"
    switch_case: _CASE expression ":" statement* -> case_clause
        | _DEFAULT ":" statement* -> default_clause
    throw_stmt: _THROW expression _SEMI
    break_stmt: _BREAK [NAME] _SEMI
    continue_stmt: _CONTINUE [NAME] _SEMI
    try_stmt: _TRY block [catch_clause] [finally_clause]
    catch_clause: _CATCH ["(" binding_target __ANNOTATION__ ")"] block
    finally_clause: _FINALLY block
    debugger_stmt: _DEBUGGER _SEMI

    // --- Modules ---
    import_decl: _IMPORT import_spec ("," import_spec)* _FROM STRING _SEMI
        | _IMPORT STRING _SEMI -> import_bare
        __TYPE_IMPORTS__
    import_spec: NAME -> default_import
        | STAR _AS NAME -> namespace_import
        | "{" (named_import ("," named_import)* ","?)? "}" -> named_imports
    named_import: (NAME | STRING) [_AS NAME]

    export_stmt: _EXPORT _DEFAULT function_expr -> export_default_function
        | _EXPORT _DEFAULT class_expr -> export_default_function
        | _EXPORT _DEFAULT assign_expr_d _SEMI -> export_default
        | _EXPORT (var_stmt | function_decl | class_decl __TYPE_EXPORTS__) -> export_declaration
        | _EXPORT "{" (export_spec ("," export_spec)* ","?)? "}" [_FROM STRING] _SEMI -> export_named
        | _EXPORT STAR [_AS NAME] _FROM STRING _SEMI -> export_all
    export_spec: NAME [_AS NAME]

    // --- Bindings ---
    ?binding_target: NAME -> binding_name
        | object_pattern
        | array_pattern
    object_pattern: "{" (pattern_prop ("," pattern_prop)* ","?)? "}"
    ?pattern_prop: NAME ["=" assign_expr] -> shorthand_pattern
        | pattern_key ":" binding_element -> pattern_prop
        | rest_element
    pattern_key: NAME -> key_name
        | STRING -> key_literal
        | NUMBER -> key_literal
        | "[" assign_expr "]" -> key_computed
    binding_element: binding_target ["=" assign_expr]
    array_pattern: "[" pattern_slot ("," pattern_slot)* "]"
    pattern_slot: [binding_element | rest_element]
    rest_element: REST binding_target

    param_list: param ("," param)* ","?
    param: [REST] binding_target __PARAM_TYPE__ ["=" assign_expr]

    // --- Functions and classes ---
    arrow_fn: [ASYNC] arrow_params "=>" arrow_body
    arrow_params: NAME -> single_param
        | cover_parens -> cover_params
    ?arrow_body: block | assign_expr_a

    // Parenthesized expressions and arrow parameter lists share a prefix, so
    // both are read as a cover list and told apart once `=>` shows up.
    cover_parens: "(" ")"
        | "(" cover_item ("," cover_item)* ","? ")"
    ?cover_item: assign_expr
        | spread
        __TYPED_COVER__

    function_expr: [ASYNC] _FUNCTION [STAR] [NAME] __TYPE_PARAMS__ "(" [param_list] ")" __RETURN_TYPE__ block
    class_expr: _CLASS [NAME] __TYPE_PARAMS__ [class_heritage] class_body
    class_heritage: _EXTENDS postfix __IMPLEMENTS__
        __IMPLEMENTS_ONLY__
    class_body: "{" (class_member | _SEMI)* "}"
    class_member: MODIFIER* method_def
        | MODIFIER* field_def
        | MODIFIER block -> static_block
    field_def: prop_key __FIELD_TYPE__ ["=" assign_expr] _SEMI
    method_def: [ASYNC] [STAR] [ACCESSOR] prop_key __TYPE_PARAMS__ "(" [param_list] ")" __RETURN_TYPE__ block

    yield_expr: _YIELD [STAR] [assign_expr]

    // --- Shared expression pieces ---
    arguments: "(" (argument ("," argument)* ","?)? ")"
    ?argument: assign_expr | spread
    spread: REST assign_expr

    array: "[" array_slot ("," array_slot)* "]"
    array_slot: [assign_expr | spread]

    object: "{" (property ("," property)* ","?)? "}"
    ?property: prop_key ":" assign_expr -> prop
        | shorthand_name -> shorthand_prop
        | shorthand_name "=" assign_expr -> shorthand_default
        | method_def
        | spread
    prop_key: _word -> key_name
        | STRING -> key_literal
        | NUMBER -> key_literal
        | "[" assign_expr "]" -> key_computed
    _word: NAME | ASYNC | ACCESSOR | MODIFIER | PRIVATE_NAME
    ?shorthand_name: NAME | ASYNC | ACCESSOR | MODIFIER
    ?member_name: NAME | PRIVATE_NAME

    new_expr: _NEW new_callee [arguments]
    ?new_callee: primary
        | new_callee "." member_name -> member
        | new_callee "[" expression "]" -> index

    _prefix_op: NOT | TILDE | ADD_OP | TYPEOF | VOID | DELETE | AWAIT
    _relational_op: REL_OP | LT | GT | IN | INSTANCEOF

    __EXPRESSIONS__

    // --- Keywords ---
    // Only offered to the lexer where the parser can accept them.
    _FUNCTION.2: /function(?![\w$])/
    _CLASS.2: /class(?![\w$])/
    _EXTENDS.2: /extends(?![\w$])/
    _RETURN.2: /return(?![\w$])/
    _IF.2: /if(?![\w$])/
    _ELSE.2: /else(?![\w$])/
    _WHILE.2: /while(?![\w$])/
    _DO.2: /do(?![\w$])/
    _FOR.2: /for(?![\w$])/
    _OF.2: /of(?![\w$])/
    _SWITCH.2: /switch(?![\w$])/
    _CASE.2: /case(?![\w$])/
    _DEFAULT.2: /default(?![\w$])/
    _THROW.2: /throw(?![\w$])/
    _BREAK.2: /break(?![\w$])/
    _CONTINUE.2: /continue(?![\w$])/
    _TRY.2: /try(?![\w$])/
    _CATCH.2: /catch(?![\w$])/
    _FINALLY.2: /finally(?![\w$])/
    _DEBUGGER.2: /debugger(?![\w$])/
    _IMPORT.2: /import(?![\w$])/
    _EXPORT.2: /export(?![\w$])/
    _FROM.2: /from(?![\w$])/
    _AS.2: /as(?![\w$])/
    _NEW.2: /new(?![\w$])/
    _YIELD.2: /yield(?![\w$])/
    IN.2: /in(?![\w$])/
    INSTANCEOF.2: /instanceof(?![\w$])/
    TYPEOF.2: /typeof(?![\w$])/
    VOID.2: /void(?![\w$])/
    DELETE.2: /delete(?![\w$])/
    AWAIT.2: /await(?![\w$])/
    ASYNC.2: /async(?![\w$])/
    SUPER.2: /super(?![\w$])/
    ACCESSOR.2: /(?:get|set)(?![\w$])/
    MODIFIER.2: /(?:__MODIFIERS__)(?![\w$])/
    VAR_KIND.2: /(?:var|let|const)(?![\w$])/
    LITERAL_WORD.2: /(?:true|false|null|undefined|this)(?![\w$])/

    // --- Operators ---
    ASSIGN_OP: /(?:\*\*|>>>|<<|>>|\?\?|\|\||&&|[-+*\/%&|^])?=(?![=>])/
    NULLISH_OP: "??"
    OR_OP: "||"
    AND_OP: "&&"
    BIT_OR: "|"
    BIT_XOR: "^"
    BIT_AND: "&"
    EQ_OP: /===|!==|==|!=/
    REL_OP: /<=|>=/
    LT: "<"
    GT: ">"
    SHIFT_OP: />>>|<<|>>/
    ADD_OP: /\+(?![+=])|-(?![-=])/
    MUL_OP: /\*(?![*=])|\/(?![\/*=])|%(?!=)/
    POW_OP: /\*\*(?!=)/
    UPDATE_OP: /\+\+|--/
    NOT: /!(?!=)/
    TILDE: "~"
    OPT_DOT: /\?\.(?!\d)/
    STAR: "*"
    REST: "..."
    _SEMI: ";"

    // --- Terminals ---
    NAME: /(?:[^\W\d]|\$)[\w$]*/
    PRIVATE_NAME: /#(?:[^\W\d]|\$)[\w$]*/
    NUMBER: /0[xX][0-9a-fA-F_]+n?|0[oO][0-7_]+n?|0[bB][01_]+n?|(?:\d[\d_]*\.?[\d_]*|\.\d[\d_]*)(?:[eE][+-]?\d+)?n?/
    STRING: /"(?:[^"\\\n]|\\[\s\S])*"|'(?:[^'\\\n]|\\[\s\S])*'/
    // `${}` substitutions may hold strings and two levels of braces, but not
    // another template literal.
    TEMPLATE: /`(?:[^`\\$]|\\[\s\S]|\$(?!\{)|\$\{(?:[^{}`'"\\]|\\[\s\S]|"(?:[^"\\\n]|\\.)*"|'(?:[^'\\\n]|\\.)*'|\{(?:[^{}`]|\{[^{}`]*\})*\})*\})*`/
    REGEX: /\/(?![*\/])(?:[^\/\\\[\n]|\\.|\[(?:[^\]\\\n]|\\.)*\])+\/[a-zA-Z]*/

    COMMENT: /\/\/[^\n]*/
    BLOCK_COMMENT: /\/\*[\s\S]*?\*\//
    HASHBANG: /#![^\n]*/
    WS: /[ \t\f\r\n\v\u00a0\ufeff\u2028\u2029]+/

    %ignore WS
    %ignore COMMENT
    %ignore BLOCK_COMMENT
    %ignore HASHBANG
"""

# One level of the expression chain, lowest precedence first. `@` is replaced
# by the chain's suffix; operands on the right always use the full chain.
expression_chain = r"""
    ?expression@: assign_expr@
        | assign_expr@ ("," assign_expr)+ -> sequence
    ?assign_expr@: ternary@
        | postfix@ ASSIGN_OP assign_expr -> assign
        | arrow_fn
        | yield_expr
    ?ternary@: nullish@
        | nullish@ "?" assign_expr ":" assign_expr -> conditional
    ?nullish@: logical_or@
        | nullish@ NULLISH_OP logical_or -> binary
    ?logical_or@: logical_and@
        | logical_or@ OR_OP logical_and -> binary
    ?logical_and@: bit_or@
        | logical_and@ AND_OP bit_or -> binary
    ?bit_or@: bit_xor@
        | bit_or@ BIT_OR bit_xor -> binary
    ?bit_xor@: bit_and@
        | bit_xor@ BIT_XOR bit_and -> binary
    ?bit_and@: equality@
        | bit_and@ BIT_AND equality -> binary
    ?equality@: relational@
        | equality@ EQ_OP relational -> binary
    ?relational@: shift@
        | relational@ _relational_op shift -> binary
        __AS_EXPRESSION__
    ?shift@: additive@
        | shift@ SHIFT_OP additive -> binary
    ?additive@: multiplicative@
        | additive@ ADD_OP multiplicative -> binary
    ?multiplicative@: exponent@
        | multiplicative@ MUL_OP exponent -> binary
    ?exponent@: unary@
        | update@ POW_OP exponent -> binary
    ?unary@: update@
        | _prefix_op unary -> unary
    ?update@: postfix@
        | postfix@ UPDATE_OP -> update_postfix
        | UPDATE_OP unary -> update_prefix
    ?postfix@: primary@
        | postfix@ "." member_name -> member
        | postfix@ OPT_DOT member_name -> optional_member
        | postfix@ "[" expression "]" -> index
        | postfix@ OPT_DOT "[" expression "]" -> optional_index
        | postfix@ arguments -> call
        | postfix@ OPT_DOT arguments -> optional_call
        | postfix@ TEMPLATE -> tagged_template
        | new_expr
        __NON_NULL__
    ?primary@: NAME -> identifier
        | ASYNC -> identifier
        | SUPER -> identifier
        | NUMBER -> literal
        | STRING -> literal
        | TEMPLATE -> literal
        | REGEX -> literal
        | LITERAL_WORD -> literal
        | _IMPORT "." NAME -> import_meta
        | _IMPORT arguments -> dynamic_import
        | cover_parens -> paren
        | array
        __PRIMARY_EXTRA__
"""

# Expression starts each chain accepts beyond the common ones.
_CHAINS = {
    "": ["object", "function_expr", "class_expr"],
    "_s": [],
    "_a": ["function_expr", "class_expr"],
    "_d": ["object"],
}

typed_grammar_extension = r"""
    // --- TypeScript (typed dialects only) ---
    type_annotation: ":" type_expr
    optional_annotation: OPT_COLON type_expr
    ?param_annotation: type_annotation | optional_annotation
    type_params: LT type_param ("," type_param)* GT
    type_param: NAME [_EXTENDS type_expr] ["=" type_expr]
    type_list: type_expr ("," type_expr)*

    ?type_expr: union_type
        | function_type
    ?union_type: intersection_type
        | BIT_OR intersection_type
        | union_type BIT_OR intersection_type
    ?intersection_type: type_operator
        | intersection_type BIT_AND type_operator
    ?type_operator: array_type
        | KEYOF type_operator
    ?array_type: primary_type
        | array_type ARRAY_SUFFIX
        | array_type "[" type_expr "]"
    ?primary_type: type_name
        | type_name LT type_expr ("," type_expr)* GT
        | STRING | NUMBER | TEMPLATE | LITERAL_WORD | VOID
        | TYPEOF type_name
        | "(" type_expr ")"
        | object_type
        | "[" [type_expr ("," type_expr)*] "]"
    ?type_name: NAME
        | type_name "." NAME
    function_type: [_NEW] [type_params] "(" [fn_type_params] ")" "=>" type_expr
    fn_type_params: fn_type_param ("," fn_type_param)* ","?
    fn_type_param: [REST] NAME param_annotation
    object_type: "{" (type_member (_type_sep type_member)* _type_sep?)? "}"
    _type_sep: _SEMI | ","
    type_member: [MODIFIER] type_key param_annotation
        | [MODIFIER] type_key [QMARK] [type_params] "(" [fn_type_params] ")" type_annotation
        | "[" NAME ":" type_expr "]" type_annotation
        | [type_params] "(" [fn_type_params] ")" type_annotation
    ?type_key: NAME | STRING | NUMBER

    type_alias: TYPE NAME [type_params] "=" type_expr _SEMI
    interface_decl: _INTERFACE NAME [type_params] [_EXTENDS type_list] object_type
    enum_decl: _ENUM NAME "{" (enum_member ("," enum_member)* ","?)? "}"
    enum_member: (NAME | STRING) ["=" assign_expr]

    TYPE.2: /type(?![\w$])/
    _INTERFACE.2: /interface(?![\w$])/
    _ENUM.2: /enum(?![\w$])/
    _IMPLEMENTS.2: /implements(?![\w$])/
    KEYOF.2: /keyof(?![\w$])/
    OPT_COLON: /\?\s*:/
    QMARK: "?"
    ARRAY_SUFFIX: "[]"
"""

jsx_grammar_extension = r"""
    // --- JSX (jsx dialects only) ---
    jsx_element: LT jsx_name jsx_attribute* JSX_SELF_CLOSE
        | LT jsx_name jsx_attribute* GT jsx_child* JSX_CLOSE jsx_name GT
    jsx_fragment: LT GT jsx_child* JSX_CLOSE GT
    ?jsx_name: JSX_IDENT
        | jsx_name "." JSX_IDENT
        | JSX_IDENT ":" JSX_IDENT
    jsx_attribute: JSX_IDENT ["=" jsx_attr_value]
        | "{" REST assign_expr "}"
    ?jsx_attr_value: JSX_STRING | jsx_container | jsx_element | jsx_fragment
    jsx_container: "{" [assign_expr | REST assign_expr] "}"
    ?jsx_child: JSX_TEXT | jsx_container | jsx_element | jsx_fragment

    JSX_SELF_CLOSE: "/>"
    JSX_CLOSE: "</"
    JSX_IDENT: /(?:[^\W\d]|\$)[\w$]*(?:-[\w$]+)*/
    JSX_STRING: /"[^"]*"|'[^']*'/
    JSX_TEXT.1: /[^<>{}]+/
"""

_TYPED_SLOTS = {
    "__ANNOTATION__": "[type_annotation]",
    "__PARAM_TYPE__": "[param_annotation]",
    "__FIELD_TYPE__": "[param_annotation]",
    "__RETURN_TYPE__": "[type_annotation]",
    "__TYPE_PARAMS__": "[type_params]",
    "__IMPLEMENTS__": "[_IMPLEMENTS type_list]",
    "__IMPLEMENTS_ONLY__": "| _IMPLEMENTS type_list",
    "__TYPE_DECLARATIONS__": "| type_alias | interface_decl | enum_decl",
    "__TYPE_EXPORTS__": "| type_alias | interface_decl | enum_decl",
    "__TYPE_IMPORTS__": "| _IMPORT TYPE import_spec (\",\" import_spec)* _FROM STRING _SEMI -> import_type",
    "__TYPED_COVER__": ("| NAME type_annotation [\"=\" assign_expr] -> typed_param\n"
                        "        | NAME OPT_COLON type_expr -> optional_param\n"
                        "        | object type_annotation [\"=\" assign_expr] -> typed_param\n"
                        "        | array type_annotation [\"=\" assign_expr] -> typed_param"),
    "__MODIFIERS__": "static|public|private|protected|readonly|abstract|override|declare",
}

_PLAIN_MODIFIERS = "static"


def _expressions(dialect):
    chains = []
    for suffix, extra in _CHAINS.items():
        starts = list(extra)
        if dialect.jsx:
            starts += ["jsx_element", "jsx_fragment"]
        if dialect.typed and suffix == "_s":
            starts.append("TYPE -> identifier")
        text = expression_chain.replace(
            "__PRIMARY_EXTRA__", "\n".join(f"        | {start}" for start in starts))
        text = text.replace("__AS_EXPRESSION__",
                            "| relational@ _AS type_expr -> as_expression" if dialect.typed else "")
        text = text.replace("__NON_NULL__", "| postfix@ NOT -> non_null" if dialect.typed else "")
        chains.append(text.replace("@", suffix))
    return "\n".join(chains)


def build_grammar(dialect=Dialect.PLAIN):
    """Return the grammar text for `dialect`."""
    dialect = Dialect(dialect)
    grammar = defer_grammar.replace("__EXPRESSIONS__", _expressions(dialect))
    for slot, typed_text in _TYPED_SLOTS.items():
        if slot == "__MODIFIERS__":
            text = typed_text if dialect.typed else _PLAIN_MODIFIERS
        else:
            text = typed_text if dialect.typed else ""
        grammar = grammar.replace(slot, text)
    if dialect.typed:
        grammar += typed_grammar_extension
    if dialect.jsx:
        grammar += jsx_grammar_extension
    return grammar
