import bisect
import enum
import re
from dataclasses import dataclass
from typing import Iterator, NamedTuple, Optional

# A url( that is not the tail of a longer identifier, or the start of a comment or
# a string.
START_PATTERN = re.compile(r"/\*|[\"']|(?<![\w-])url\(", re.IGNORECASE)
ESCAPE_PATTERN = re.compile(r"\\(?:([0-9a-fA-F]{1,6})[ \t\n\f]?|(.))", re.S)

WHITESPACE = " \t\f"
NEWLINES = "\r\n"
HEX_DIGITS = "0123456789abcdefABCDEF"
# Characters that may not appear unescaped in an unquoted url() payload.
UNQUOTED_FORBIDDEN = "\"'("
# Characters escape() backslashes in an unquoted payload.
UNQUOTED_SPECIAL = " ()'\"\\"


class Quote(enum.Enum):
    NONE = ""
    SINGLE = "'"
    DOUBLE = '"'

    @property
    def char(self):
        return self.value


class Payload(NamedTuple):
    path: str
    query: str
    fragment: str

    def __str__(self):
        return self.path + self.query + self.fragment


@dataclass(frozen=True)
class Token:
    """
    A single url() occurrence. Lines and columns are zero-based; offsets index the
    scanned text. column/end_column span the whole url(...) construct, while
    payload_start/payload_end delimit the authored payload inside any quotes.
    """

    index: int
    line: int
    column: int
    end_column: int
    start: int
    end: int
    payload_start: int
    payload_end: int
    quote: Quote
    raw: str

    @property
    def payload(self):
        return split_payload(self.raw)

    @property
    def payload_column(self):
        return self.column + (self.payload_start - self.start)

    @property
    def payload_end_column(self):
        return self.column + (self.payload_end - self.start)


def split_payload(raw):
    """
    Splits a payload into (path, query, fragment). The query keeps its leading "?"
    and the fragment its leading "#", so that joining the three gives back raw.
    """
    path, hash_sep, fragment = raw.partition("#")
    path, query_sep, query = path.partition("?")
    return Payload(path, query_sep + query, hash_sep + fragment)


def unescape(value):
    """Decodes CSS backslash escapes (\\27 or \\' style)."""

    def _decode(match):
        hex_digits, char = match.groups()
        if hex_digits:
            codepoint = int(hex_digits, 16)
            if codepoint == 0 or codepoint > 0x10FFFF:
                return "�"
            return chr(codepoint)
        return char

    return ESCAPE_PATTERN.sub(_decode, value)


def escape(value, quote):
    """
    Escapes value for placement inside a url() payload with the given quote, so that
    scanning the result and unescaping its payload gives back value. Control
    characters become hex escapes (\\a for a newline).
    """
    special = UNQUOTED_SPECIAL if quote is Quote.NONE else "\\" + quote.char
    escaped = []
    for char in value:
        if ord(char) < 0x20 or char == "\x7f":
            escaped.append("\\{:x} ".format(ord(char)))
        elif char in special:
            escaped.append("\\" + char)
        else:
            escaped.append(char)
    return "".join(escaped)


class LineIndex:
    def __init__(self, text):
        self.starts = [0]
        for match in re.finditer("\n", text):
            self.starts.append(match.end())

    def locate(self, offset):
        line = bisect.bisect_right(self.starts, offset) - 1
        return line, offset - self.starts[line]

    def __len__(self):
        return len(self.starts)


def _skip_whitespace(text, pos):
    while pos < len(text) and text[pos] in WHITESPACE:
        pos += 1
    return pos


def _read_escape(text, pos):
    # Returns the position after a backslash escape, or None for an escaped newline
    # or a dangling backslash, neither of which is allowed in a single-line payload.
    if pos + 1 >= len(text) or text[pos + 1] in NEWLINES:
        return None
    pos += 1
    if text[pos] not in HEX_DIGITS:
        return pos + 1
    end = pos
    while end < len(text) and end - pos < 6 and text[end] in HEX_DIGITS:
        end += 1
    # A single whitespace character terminates a hex escape and belongs to it.
    if end < len(text) and text[end] in WHITESPACE:
        end += 1
    return end


def _skip_string(text, pos, quote):
    # Returns the position after the string that opened just before pos. A string
    # left unterminated ends at the newline.
    while pos < len(text):
        char = text[pos]
        if char == "\\":
            pos += 2
            continue
        if char == quote or char == "\n":
            return pos + 1
        pos += 1
    return len(text)


def _read_quoted(text, pos, quote):
    start = pos
    while pos < len(text):
        char = text[pos]
        if char == "\\":
            pos = _read_escape(text, pos)
            if pos is None:
                return None
            continue
        if char == quote:
            end = _skip_whitespace(text, pos + 1)
            if end < len(text) and text[end] == ")":
                return start, pos, end + 1
            return None
        if char in NEWLINES:
            return None
        pos += 1
    return None


def _read_unquoted(text, pos):
    start = pos
    while pos < len(text):
        char = text[pos]
        if char == ")":
            return start, pos, pos + 1
        if char == "\\":
            pos = _read_escape(text, pos)
            if pos is None:
                return None
            continue
        if char in WHITESPACE:
            end = _skip_whitespace(text, pos)
            if end < len(text) and text[end] == ")":
                return start, pos, end + 1
            return None
        if char in NEWLINES or char in UNQUOTED_FORBIDDEN:
            return None
        pos += 1
    return None


def read_url(text, start, pos) -> Optional[tuple]:
    """
    Reads a url() construct whose "url(" spans text[start:pos]. Returns
    (quote, payload_start, payload_end, end) or None when the construct is malformed.
    """
    pos = _skip_whitespace(text, pos)
    if pos >= len(text):
        return None
    if text[pos] in "'\"":
        quote = Quote(text[pos])
        found = _read_quoted(text, pos + 1, quote.char)
    else:
        quote = Quote.NONE
        found = _read_unquoted(text, pos)
    if not found:
        return None
    payload_start, payload_end, end = found
    if payload_start == payload_end:
        return None
    return quote, payload_start, payload_end, end


def scan(text) -> Iterator[Token]:
    """
    Lazily yields every url() token in text, in order of appearance. Comments and
    strings are skipped, and malformed or unterminated constructs are passed over
    without error.
    """
    lines = LineIndex(text)
    index = 0
    pos = 0
    while True:
        match = START_PATTERN.search(text, pos)
        if match is None:
            return
        if match.group(0) == "/*":
            close = text.find("*/", match.end())
            if close < 0:
                return
            pos = close + 2
            continue
        if match.group(0) in "'\"":
            pos = _skip_string(text, match.end(), match.group(0))
            continue
        found = read_url(text, match.start(), match.end())
        if found is None:
            pos = match.end()
            continue
        quote, payload_start, payload_end, end = found
        line, column = lines.locate(match.start())
        yield Token(
            index=index,
            line=line,
            column=column,
            end_column=column + (end - match.start()),
            start=match.start(),
            end=end,
            payload_start=payload_start,
            payload_end=payload_end,
            quote=quote,
            raw=text[payload_start:payload_end],
        )
        index += 1
        pos = end
