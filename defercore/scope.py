"""
Binding resolution for block-like scopes.

A Scope records the names declared directly in one Program or Block, plus the
parameters of the function, arrow or catch clause that owns the block. Scopes
are built lazily and recomputed with `crawl()` after the block is rewritten.
"""
from typing import Dict

from defercore.nodes import (
    Arrow, CatchClause, Class, Export, FunctionDecl, FunctionExpr, Import, Labeled, Method, VarDecl,
    binding_names,
)


class Scope:
    def __init__(self, block):
        self.block = block
        self.bindings: Dict[str, str] = {}

    def crawl(self):
        """Recompute the bindings from the block's current statements."""
        self.bindings = {}
        owner = getattr(self.block, "owner", None)
        if isinstance(owner, (Arrow, FunctionDecl, FunctionExpr, Method)):
            for param in owner.params:
                for name in binding_names(param.target):
                    self.bindings[name] = "param"
        elif isinstance(owner, CatchClause) and owner.param is not None:
            for name in binding_names(owner.param):
                self.bindings[name] = "catch"

        for stmt in self.block.body:
            self._collect(stmt)
        return self

    def _collect(self, stmt):
        while isinstance(stmt, (Labeled, Export)):
            stmt = stmt.body if isinstance(stmt, Labeled) else stmt.declaration
        if isinstance(stmt, VarDecl):
            for declarator in stmt.declarators:
                for name in binding_names(declarator.target):
                    self.bindings.setdefault(name, stmt.kind)
        elif isinstance(stmt, FunctionDecl):
            self.bindings.setdefault(stmt.name, "function")
        elif isinstance(stmt, Class) and stmt.name:
            self.bindings.setdefault(stmt.name, "class")
        elif isinstance(stmt, Import):
            for name in stmt.local_names():
                self.bindings.setdefault(name, "import")

    def has_binding(self, name):
        return name in self.bindings

    def __repr__(self):
        return f"Scope({sorted(self.bindings)})"


def scope_for(block):
    """Return the block's scope, building it on first use."""
    if block.scope is None:
        block.scope = Scope(block).crawl()
    return block.scope


def refresh_bindings(block):
    """Recompute the block's bindings after its statements changed."""
    if block.scope is None:
        block.scope = Scope(block)
    return block.scope.crawl()
