"""
Source Map v3 reading and writing.

Mappings are held as a flat list of Mapping tuples, ordered by generated position,
with zero-based lines and columns. Only the parts of the format this package needs
are interpreted; index maps ("sections") are rejected as malformed.
"""

import json
from typing import List, NamedTuple, Optional

from .errors import MalformedSourceMap

BASE64 = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
BASE64_VALUES = {char: value for value, char in enumerate(BASE64)}
VLQ_SHIFT = 5
VLQ_CONTINUATION = 1 << VLQ_SHIFT
VLQ_MASK = VLQ_CONTINUATION - 1


class Mapping(NamedTuple):
    generated_line: int
    generated_column: int
    source: Optional[int] = None
    original_line: Optional[int] = None
    original_column: Optional[int] = None
    name: Optional[int] = None

    @property
    def generated(self):
        return (self.generated_line, self.generated_column)

    def moved(self, line, column):
        return self._replace(generated_line=line, generated_column=column)


def vlq_decode(segment):
    values = []
    value = shift = 0
    for char in segment:
        try:
            digit = BASE64_VALUES[char]
        except KeyError:
            raise MalformedSourceMap("Invalid base64 character: {!r}".format(char))
        value += (digit & VLQ_MASK) << shift
        if digit & VLQ_CONTINUATION:
            shift += VLQ_SHIFT
            continue
        values.append(-(value >> 1) if value & 1 else value >> 1)
        value = shift = 0
    if shift:
        raise MalformedSourceMap("Truncated VLQ segment: {!r}".format(segment))
    return values


def vlq_encode(*values):
    chars = []
    for value in values:
        value = (-value << 1) | 1 if value < 0 else value << 1
        while True:
            digit = value & VLQ_MASK
            value >>= VLQ_SHIFT
            if value:
                digit |= VLQ_CONTINUATION
            chars.append(BASE64[digit])
            if not value:
                break
    return "".join(chars)


def decode_mappings(mappings, source_count, name_count):
    decoded = []
    source = original_line = original_column = name = 0
    for line, group in enumerate(mappings.split(";")):
        column = 0
        for segment in group.split(","):
            if not segment:
                continue
            fields = vlq_decode(segment)
            if len(fields) not in (1, 4, 5):
                raise MalformedSourceMap(
                    "Segment {!r} has {} fields".format(segment, len(fields))
                )
            column += fields[0]
            if column < 0:
                raise MalformedSourceMap("Negative column on line {}".format(line))
            if len(fields) == 1:
                decoded.append(Mapping(line, column))
                continue
            source += fields[1]
            original_line += fields[2]
            original_column += fields[3]
            if not 0 <= source < source_count:
                raise MalformedSourceMap("Source index {} out of range".format(source))
            if original_line < 0 or original_column < 0:
                raise MalformedSourceMap("Negative original position")
            if len(fields) == 5:
                name += fields[4]
                if not 0 <= name < name_count:
                    raise MalformedSourceMap("Name index {} out of range".format(name))
                decoded.append(
                    Mapping(line, column, source, original_line, original_column, name)
                )
            else:
                decoded.append(
                    Mapping(line, column, source, original_line, original_column)
                )
    return decoded


def encode_mappings(mappings):
    lines = []
    previous = [0, 0, 0, 0]
    for mapping in sorted(mappings, key=lambda m: m.generated):
        while len(lines) <= mapping.generated_line:
            lines.append([])
            column = 0
        segment = vlq_encode(mapping.generated_column - column)
        column = mapping.generated_column
        if mapping.source is not None:
            fields = [mapping.source, mapping.original_line, mapping.original_column]
            segment += vlq_encode(*(v - p for v, p in zip(fields, previous)))
            previous[:3] = fields
            if mapping.name is not None:
                segment += vlq_encode(mapping.name - previous[3])
                previous[3] = mapping.name
        lines[-1].append(segment)
    return ";".join(",".join(segments) for segments in lines)


class SourceMap:
    def __init__(
        self,
        sources=None,
        mappings=None,
        names=None,
        file=None,
        source_root=None,
        sources_content=None,
    ):
        self.sources: List[str] = list(sources or [])
        self.mappings: List[Mapping] = sorted(mappings or [], key=lambda m: m.generated)
        self.names: List[str] = list(names or [])
        self.file = file
        self.source_root = source_root
        self.sources_content = list(sources_content) if sources_content else None

    def __repr__(self):
        return "<SourceMap sources={} mappings={}>".format(
            len(self.sources), len(self.mappings)
        )

    def __eq__(self, other):
        if not isinstance(other, SourceMap):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    @classmethod
    def from_json(cls, data):
        """
        Builds a SourceMap from a JSON string, bytes, or an already-decoded dict,
        validating its structure. Raises MalformedSourceMap on any inconsistency.
        """
        if isinstance(data, SourceMap):
            return data
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except ValueError as e:
                raise MalformedSourceMap("Invalid JSON: {}".format(e))
        if not isinstance(data, dict):
            raise MalformedSourceMap("Source map must be a JSON object")
        if "sections" in data:
            raise MalformedSourceMap("Indexed source maps are not supported")
        if data.get("version") != 3:
            raise MalformedSourceMap(
                "Unsupported source map version: {!r}".format(data.get("version"))
            )
        sources = data.get("sources")
        if not isinstance(sources, list):
            raise MalformedSourceMap("Source map has no sources list")
        names = data.get("names") or []
        mappings = data.get("mappings")
        if not isinstance(mappings, str):
            raise MalformedSourceMap("Source map mappings must be a string")
        if not isinstance(names, list):
            raise MalformedSourceMap("Source map names must be a list")
        sources_content = data.get("sourcesContent")
        if sources_content is not None and not isinstance(sources_content, list):
            raise MalformedSourceMap("Source map sourcesContent must be a list")
        return cls(
            sources=[str(s) if s is not None else "" for s in sources],
            mappings=decode_mappings(mappings, len(sources), len(names)),
            names=names,
            file=data.get("file"),
            source_root=data.get("sourceRoot") or None,
            sources_content=sources_content,
        )

    def to_dict(self):
        data = {"version": 3}
        if self.file:
            data["file"] = self.file
        if self.source_root:
            data["sourceRoot"] = self.source_root
        data["sources"] = list(self.sources)
        data["names"] = list(self.names)
        data["mappings"] = encode_mappings(self.mappings)
        if self.sources_content is not None:
            data["sourcesContent"] = list(self.sources_content)
        return data

    def to_json(self):
        return json.dumps(self.to_dict())

    def add_source(self, source, content=None):
        """Returns the index of source, appending it if necessary."""
        if source in self.sources:
            return self.sources.index(source)
        self.sources.append(source)
        if self.sources_content is not None:
            self.sources_content.append(content)
        return len(self.sources) - 1

    @classmethod
    def identity(cls, source, text, content=None):
        """A map sending the start of every line of text to itself in source."""
        line_count = text.count("\n") + 1
        return cls(
            sources=[source],
            mappings=[Mapping(line, 0, 0, line, 0) for line in range(line_count)],
            sources_content=[content] if content is not None else None,
        )

    @classmethod
    def concat(cls, parts, file=None):
        """
        Joins the maps of several texts concatenated in order. parts is a list of
        (line_count, source_map) pairs, where line_count is the number of line
        breaks the text and its trailing separator contribute and source_map may
        be None for text without a map.
        """
        combined = cls(file=file)
        has_content = any(m is not None and m.sources_content for _, m in parts)
        if has_content:
            combined.sources_content = []
        mappings = []
        offset = 0
        for line_count, source_map in parts:
            if source_map is not None:
                root = source_map.source_root
                contents = source_map.sources_content or []
                sources = []
                for idx, source in enumerate(source_map.sources):
                    if root:
                        source = root.rstrip("/") + "/" + source
                    content = contents[idx] if idx < len(contents) else None
                    sources.append(combined.add_source(source, content))
                names = [combined._add_name(n) for n in source_map.names]
                for m in source_map.mappings:
                    if m.source is None:
                        mappings.append(m.moved(m.generated_line + offset, m.generated_column))
                        continue
                    mappings.append(
                        Mapping(
                            m.generated_line + offset,
                            m.generated_column,
                            sources[m.source],
                            m.original_line,
                            m.original_column,
                            names[m.name] if m.name is not None else None,
                        )
                    )
            offset += line_count
        combined.mappings = sorted(mappings, key=lambda m: m.generated)
        return combined

    def _add_name(self, name):
        if name in self.names:
            return self.names.index(name)
        self.names.append(name)
        return len(self.names) - 1
