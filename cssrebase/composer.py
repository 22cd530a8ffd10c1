"""
Builds the outgoing source map for rewritten text.

Every incoming mapping is carried over with its generated column moved by the length
changes of the payloads rewritten before it on the same line. Each rewritten token
also gets explicit anchor mappings, traced through the incoming map, at the columns
chosen by the granularity strategy.
"""

import enum
from collections import defaultdict
from typing import NamedTuple

from .scanner import Token
from .sourcemap import Mapping, SourceMap


class Granularity(enum.Enum):
    START = "start"
    START_AND_END = "start-and-end"


class Edit(NamedTuple):
    token: Token
    text: str

    @property
    def delta(self):
        return len(self.text) - len(self.token.raw)


class TokenStart:
    """Anchors each token at the start of its url( only."""

    def anchors(self, token):
        return (token.column,)


class TokenStartAndEnd:
    """Anchors each token at its start and just past its closing parenthesis."""

    def anchors(self, token):
        return (token.column, token.end_column)


STRATEGIES = {
    Granularity.START: TokenStart(),
    Granularity.START_AND_END: TokenStartAndEnd(),
}


class ColumnShifter:
    def __init__(self, edits):
        self.lines = defaultdict(list)
        for edit in edits:
            self.lines[edit.token.line].append(edit)
        for line_edits in self.lines.values():
            line_edits.sort(key=lambda e: e.token.column)

    def shift(self, line, column):
        """Maps a column of the original text to the same spot in the rewritten one."""
        shifted = column
        for edit in self.lines.get(line, ()):
            start = edit.token.payload_column
            if column >= edit.token.payload_end_column:
                shifted += edit.delta
            elif column > start:
                # Inside a payload; stay within the rewritten payload.
                offset = column - start
                return shifted - offset + min(offset, len(edit.text))
            else:
                break
        return shifted


def compose(text, edits, tracer, granularity=Granularity.START):
    """
    Returns the SourceMap for text after edits are applied. tracer wraps the incoming
    map (or none), and supplies the origin of every anchor.
    """
    strategy = STRATEGIES[granularity]
    shifter = ColumnShifter(edits)
    incoming = tracer.source_map
    if incoming is None:
        outgoing = SourceMap.identity(tracer.source, text)
        base = outgoing.mappings
    else:
        outgoing = SourceMap(
            sources=incoming.sources,
            names=incoming.names,
            file=incoming.file,
            source_root=incoming.source_root,
            sources_content=incoming.sources_content,
        )
        base = [
            m.moved(m.generated_line, shifter.shift(m.generated_line, m.generated_column))
            for m in incoming.mappings
        ]
    anchors = []
    for edit in edits:
        line = edit.token.line
        for column in strategy.anchors(edit.token):
            origin = tracer.trace(line, column)
            if origin.source_index is None:
                source = outgoing.add_source(origin.source)
            else:
                source = origin.source_index
            anchors.append(
                Mapping(
                    line,
                    shifter.shift(line, column),
                    source,
                    origin.line,
                    origin.column,
                    origin.name,
                )
            )
    # dict keeps the first of any exact duplicates, in order.
    merged = list(dict.fromkeys(base + anchors))
    outgoing.mappings = sorted(merged, key=lambda m: m.generated)
    return outgoing
