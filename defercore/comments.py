"""
Comment attachment.

The grammar skips comments like whitespace, but the lexer records them.
Comments that sit between the statements of a block are hung on those
statements, so a block the rewrite pass regenerates still prints them.
Comments inside untouched code need no help: that code is copied from the
source as it is.
"""
import re
from bisect import bisect_left

from defercore.nodes import Block, Program, walk

_BLANK_LINE = re.compile(r"\n[ \t\r]*\n")


def comment_end(token):
    return token.start_pos + len(token)


def attach_comments(program):
    """Fill in the comment and blank-line attributes of every statement list."""
    source = program.source
    comments = sorted(program.comments, key=lambda c: c.start_pos)
    starts = [c.start_pos for c in comments]
    for node in walk(program):
        if isinstance(node, (Program, Block)) and node.span is not None:
            _attach(node, source, comments, starts)


def _between(comments, starts, lo, hi):
    i = bisect_left(starts, lo)
    found = []
    while i < len(comments) and comment_end(comments[i]) <= hi:
        found.append(comments[i])
        i += 1
    return found


def _attach(container, source, comments, starts):
    start, end = container.span
    if isinstance(container, Block):
        # Inside the braces.
        start, end = start + 1, end - 1
    previous, cursor = None, start
    for stmt in container.body:
        if stmt.span is None:
            continue
        leading = []
        for comment in _between(comments, starts, cursor, stmt.span[0]):
            if previous is not None and "\n" not in source[previous.span[1]:comment.start_pos]:
                previous.trailing_comments = list(previous.trailing_comments) + [comment]
            else:
                leading.append(comment)
        if leading:
            stmt.leading_comments = leading
        first = leading[0].start_pos if leading else stmt.span[0]
        if previous is not None and _BLANK_LINE.search(source, previous.span[1], first):
            stmt.blank_before = True
        previous, cursor = stmt, stmt.span[1]

    inner = []
    for comment in _between(comments, starts, cursor, end):
        if previous is not None and "\n" not in source[previous.span[1]:comment.start_pos]:
            previous.trailing_comments = list(previous.trailing_comments) + [comment]
        else:
            inner.append(comment)
    if inner:
        container.inner_comments = inner
