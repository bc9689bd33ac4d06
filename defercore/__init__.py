# deferc - Core Compiler Components
"""
Core modules for the deferc compiler:
- grammar: Lark grammar for the JavaScript subset (plain and typed dialects)
- parser: parse tree to syntax tree conversion
- nodes: syntax tree node types
- scanner, nesting, policy, rewriter: the deferred-binding rewrite pass
- transform: applies the rewrite to every block of a program
- scope: binding resolution per block
- codegen, sourcemap: JavaScript output with source maps
- config, selection, diagnostics, errors: settings, file selection, reporting
"""

from .errors import DeferCompileError, EmptySequenceError
from .grammar import Dialect, defer_grammar, build_grammar
from .parser import TreeBuilder, parse
from .diagnostics import Diagnostic, Diagnostics
from .config import DeferConfig, load_config
from .transform import DeferTransform
from .codegen import generate

__all__ = [
    'DeferCompileError',
    'EmptySequenceError',
    'Dialect',
    'defer_grammar',
    'build_grammar',
    'TreeBuilder',
    'parse',
    'Diagnostic',
    'Diagnostics',
    'DeferConfig',
    'load_config',
    'DeferTransform',
    'generate',
]
