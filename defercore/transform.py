"""
Transform driver: applies the block rewriter to every block-like scope of a
program, depth first, each block before its children.
"""
from defercore.diagnostics import Diagnostics
from defercore.nodes import Block, Program, iter_child_nodes
from defercore.rewriter import RewriteContext, rewrite_block


class DeferTransform:
    """
    Rewrites deferred-binding runs throughout one program.

    Args:
        filename: Used in diagnostics only.
        marker: The reserved label that introduces a deferred binding.
        diagnostics: Collector that receives warnings and debug records.
    """

    def __init__(self, filename="unknown_file", marker="defer", diagnostics=None):
        self.context = RewriteContext(
            filename=filename,
            marker=marker,
            diagnostics=diagnostics if diagnostics is not None else Diagnostics(),
        )
        self.rewritten_blocks = 0

    @property
    def diagnostics(self):
        return self.context.diagnostics

    def run(self, program: Program) -> bool:
        """Rewrite `program` in place. Returns True if anything changed."""
        self._visit(program)
        return self.rewritten_blocks > 0

    def _visit(self, node):
        if isinstance(node, (Program, Block)):
            if rewrite_block(node, isinstance(node, Program), self.context):
                self.rewritten_blocks += 1
        # Children are read after the rewrite so new continuation bodies are visited too.
        for child in list(iter_child_nodes(node)):
            self._visit(child)
