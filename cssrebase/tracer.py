import bisect
from typing import NamedTuple, Optional


class Origin(NamedTuple):
    """Where a generated position came from. mapped is False for fallbacks."""

    source: str
    line: int
    column: int
    source_index: Optional[int] = None
    name: Optional[int] = None
    mapped: bool = True


class Tracer:
    """
    Traces generated positions back through an incoming source map. Lookup picks the
    greatest mapping at or before the queried position, looking back across earlier
    lines when the queried line has no mapping before the column; among mappings at
    an identical generated position the later one in map order wins.

    Without a source map every position traces to itself in the document's own source.
    """

    def __init__(self, source_map, source):
        self.source_map = source_map
        self.source = source
        if source_map is not None:
            self.mappings = source_map.mappings
            self.keys = [m.generated for m in self.mappings]

    def identity(self, line, column, mapped=True):
        return Origin(self.source, line, column, mapped=mapped)

    def lookup(self, line, column):
        """Returns the nearest-preceding Mapping, or None."""
        if self.source_map is None:
            return None
        idx = bisect.bisect_right(self.keys, (line, column)) - 1
        if idx < 0:
            return None
        return self.mappings[idx]

    def trace(self, line, column) -> Origin:
        """
        Returns the Origin of (line, column). A position with no preceding mapping,
        or whose nearest mapping carries no source, falls back to the document's own
        location with mapped=False.
        """
        if self.source_map is None:
            return self.identity(line, column)
        mapping = self.lookup(line, column)
        if mapping is None or mapping.source is None:
            return self.identity(line, column, mapped=False)
        return Origin(
            self.source_map.sources[mapping.source],
            mapping.original_line,
            mapping.original_column,
            source_index=mapping.source,
            name=mapping.name,
        )
