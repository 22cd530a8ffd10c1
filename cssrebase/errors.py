import enum
from dataclasses import dataclass
from typing import Optional


class MalformedSourceMap(ValueError):
    pass


class InvariantViolation(RuntimeError):
    """
    Raised when the engine's own bookkeeping is inconsistent, i.e. a bug rather than
    bad input.
    """


class DiagnosticKind(enum.Enum):
    ASSET_NOT_FOUND = "asset-not-found"
    MALFORMED_SOURCE_MAP = "malformed-source-map"
    # Never emitted: the scanner skips malformed url() constructs silently.
    MALFORMED_TOKEN = "malformed-token"
    RESOLUTION_AMBIGUOUS = "resolution-ambiguous"
    UNMAPPED_POSITION = "unmapped-position"


@dataclass(frozen=True)
class Diagnostic:
    kind: DiagnosticKind
    message: str
    line: Optional[int] = None
    column: Optional[int] = None

    @property
    def location(self):
        if self.line is None:
            return ""
        return "{}:{}".format(self.line + 1, (self.column or 0) + 1)

    def __str__(self):
        if self.line is None:
            return "{}: {}".format(self.kind.value, self.message)
        return "{} at {}: {}".format(self.kind.value, self.location, self.message)
