"""
Code generation: serializes a (rewritten) tree back to JavaScript text and,
optionally, a source map.

Code the rewrite pass did not touch is copied from the original source, so
comments, blank lines and formatting survive. Only blocks whose statement
lists were replaced, and the nodes synthesized for them, are printed from
the tree. Copied text is re-indented when it lands at a different depth.
"""
from bisect import bisect_right

from defercore.nodes import iter_child_nodes, walk
from defercore.sourcemap import SourceMapBuilder


def find_dirty(root):
    """Ids of nodes that were modified or contain a modified node."""
    dirty = set()
    for node in reversed(list(walk(root))):
        if node.modified or any(id(child) in dirty for child in iter_child_nodes(node)):
            dirty.add(id(node))
    return dirty


def _leading_whitespace(text):
    return text[:len(text) - len(text.lstrip(" \t"))]


class CodeWriter:
    """
    Text buffer that tracks indentation and the current output position.

    With a `source`, nodes that carry a span are copied from it instead of
    being printed; nodes listed in `dirty` are copied piecewise around their
    dirty children.
    """

    def __init__(self, indent=2, source_map=None, source=None, dirty=None, template_spans=()):
        self.indent_width = indent
        self.source_map = source_map
        self.source = source
        self.base = ""
        self.level = 0
        self.line = 0
        self.column = 0
        self._dirty = dirty or set()
        self._templates = sorted(template_spans)
        self._template_starts = [start for start, _ in self._templates]
        self._line_starts = [0]
        if source is not None:
            self._line_starts += [i + 1 for i, ch in enumerate(source) if ch == "\n"]
        self._parts = []
        self._current = ""
        self._at_line_start = True
        # (original indentation, output indentation) for copied lines.
        self._shift = None

    def _pad(self):
        if self._at_line_start:
            prefix = self.base + " " * (self.indent_width * self.level)
            self._append(prefix)
            self._at_line_start = False

    def _append(self, text):
        if not text:
            return
        self._parts.append(text)
        newlines = text.count("\n")
        if newlines:
            # Template literals may span lines.
            self.line += newlines
            self._current = text[text.rfind("\n") + 1:]
            self.column = len(self._current)
        else:
            self._current += text
            self.column += len(text)

    def write(self, text):
        self._pad()
        self._append(text)

    def newline(self):
        self._parts.append("\n")
        self.line += 1
        self.column = 0
        self._current = ""
        self._at_line_start = True

    def indent(self):
        self.level += 1

    def dedent(self):
        self.level -= 1

    def mark(self, original_line):
        """Map the current output position to `original_line` (1-based)."""
        if self.source_map is None or original_line is None:
            return
        self._pad()
        self.source_map.add_mapping(self.line, self.column, original_line - 1, 0)

    def comment(self, token):
        """Write a comment token, copying it from the source when possible."""
        if self.source is None or token.start_pos is None:
            self.write(str(token))
            return
        self._pad()
        saved = self._shift
        self._shift = (self._source_indentation(token.start_pos), _leading_whitespace(self._current))
        self._copy(token.start_pos, token.start_pos + len(token))
        self._shift = saved

    def emit(self, node):
        """Write `node`: copied from the source when untouched, printed otherwise."""
        if self.source is None or node.span is None or node.modified:
            node.emit(self)
            return
        self._pad()
        saved = self._shift
        start, end = node.span
        self._shift = (self._source_indentation(start), _leading_whitespace(self._current))
        self._map_source(start)
        if id(node) in self._dirty:
            self._patch(node)
        else:
            self._copy(start, end)
        self._shift = saved

    def _patch(self, node):
        children = sorted((child for child in iter_child_nodes(node) if id(child) in self._dirty),
                          key=lambda child: child.span[0] if child.span else -1)
        if any(child.span is None for child in children):
            node.emit(self)
            return
        cursor = node.span[0]
        for child in children:
            self._copy(cursor, child.span[0])
            saved = self.base, self.level
            self.base, self.level = _leading_whitespace(self._current), 0
            self.emit(child)
            self.base, self.level = saved
            cursor = child.span[1]
        self._copy(cursor, node.span[1])

    def _copy(self, start, end):
        offset = start
        for i, piece in enumerate(self.source[start:end].split("\n")):
            if i:
                self.newline()
                self._map_source(offset)
            length = len(piece)
            if self._at_line_start and piece:
                piece = self._reindent(piece, offset)
                self._at_line_start = False
            self._append(piece)
            offset += length + 1

    def _reindent(self, text, offset):
        if self._shift is None or self._in_template(offset):
            return text
        original, target = self._shift
        if original != target and text.startswith(original):
            return target + text[len(original):]
        return text

    def _in_template(self, offset):
        i = bisect_right(self._template_starts, offset) - 1
        return i >= 0 and self._templates[i][0] < offset < self._templates[i][1]

    def _source_indentation(self, offset):
        line_start = self._line_starts[bisect_right(self._line_starts, offset) - 1]
        return _leading_whitespace(self.source[line_start:offset])

    def _map_source(self, offset):
        if self.source_map is None:
            return
        line = bisect_right(self._line_starts, offset) - 1
        self.source_map.add_mapping(self.line, self.column, line, offset - self._line_starts[line])

    def getvalue(self):
        return "".join(self._parts)


def to_source(node, indent=2):
    """Print any single node from the tree alone, without a source map."""
    w = CodeWriter(indent=indent)
    w.emit(node)
    return w.getvalue()


def generate(program, filename=None, source=None, indent=2, source_maps=True, output_name=None):
    """
    Serialize `program`, copying untouched code from the source it was parsed from.

    Returns:
        (code, source_map) where source_map is a Source Map v3 dict, or None
        when `source_maps` is False.
    """
    original = program.source
    source_map = None
    if source_maps:
        source_map = SourceMapBuilder(file=output_name, source=filename,
                                      source_content=source if source is not None else original)
    w = CodeWriter(indent=indent, source_map=source_map, source=original,
                   dirty=find_dirty(program), template_spans=program.template_spans)
    w.emit(program)
    return w.getvalue(), (source_map.to_dict() if source_map else None)
