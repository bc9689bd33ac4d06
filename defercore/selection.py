"""
Which files deferc transforms, and with which dialect.
"""
from pathlib import PurePath

from defercore.grammar import Dialect

DIALECTS = {
    ".ts": Dialect.TYPED,
    ".mts": Dialect.TYPED,
    ".cts": Dialect.TYPED,
    ".jsx": Dialect.JSX,
    ".tsx": Dialect.TSX,
}


def is_eligible(path, config):
    """True when `path` has a configured extension and is outside excluded directories."""
    p = PurePath(path)
    if p.suffix not in config.extensions:
        return False
    return not any(part in config.exclude_dirs for part in p.parts[:-1])


def dialect_for(path):
    return DIALECTS.get(PurePath(path).suffix, Dialect.PLAIN)
