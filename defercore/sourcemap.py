"""
Source Map v3 generation.

Mappings are collected as (generated line, generated column, original line,
original column) tuples, all 0-based, and encoded into the Base64-VLQ
`mappings` string when the map is serialized.
"""
import os

BASE64_CHARS = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
VLQ_SHIFT = 5
VLQ_CONTINUATION = 1 << VLQ_SHIFT
VLQ_MASK = VLQ_CONTINUATION - 1


def encode_vlq(value):
    """Encode one signed integer as a Base64 VLQ string."""
    vlq = (value << 1) if value >= 0 else ((-value) << 1) | 1
    chars = []
    while True:
        digit = vlq & VLQ_MASK
        vlq >>= VLQ_SHIFT
        if vlq:
            digit |= VLQ_CONTINUATION
        chars.append(BASE64_CHARS[digit])
        if not vlq:
            return "".join(chars)


class SourceMapBuilder:
    """Accumulates mappings for a single generated file with a single source."""

    def __init__(self, file=None, source=None, source_content=None):
        self.file = file
        self.source = source
        self.source_content = source_content
        self.mappings = []

    def add_mapping(self, generated_line, generated_column, original_line, original_column=0):
        if self.mappings and self.mappings[-1][:2] == (generated_line, generated_column):
            return
        self.mappings.append((generated_line, generated_column, original_line, original_column))

    def encode_mappings(self):
        if not self.mappings:
            return ""
        by_line = {}
        for mapping in sorted(self.mappings):
            by_line.setdefault(mapping[0], []).append(mapping)

        lines = []
        prev_original_line = prev_original_column = 0
        for line_no in range(max(by_line) + 1):
            prev_generated_column = 0
            segments = []
            for _, generated_column, original_line, original_column in by_line.get(line_no, []):
                # Fields: generated column, source index, original line, original column.
                segments.append(
                    encode_vlq(generated_column - prev_generated_column)
                    + encode_vlq(0)
                    + encode_vlq(original_line - prev_original_line)
                    + encode_vlq(original_column - prev_original_column)
                )
                prev_generated_column = generated_column
                prev_original_line = original_line
                prev_original_column = original_column
            lines.append(",".join(segments))
        return ";".join(lines)

    def to_dict(self):
        source = os.path.basename(self.source) if self.source else "unknown_file"
        return {
            "version": 3,
            "file": self.file or source,
            "sources": [source],
            "sourcesContent": [self.source_content],
            "names": [],
            "mappings": self.encode_mappings(),
        }
