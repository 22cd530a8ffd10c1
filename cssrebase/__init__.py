__version__ = "0.4.0"

from .composer import Granularity  # noqa
from .engine import Document, Engine, Options, RewrittenDocument, rebase  # noqa
from .errors import Diagnostic, DiagnosticKind, InvariantViolation, MalformedSourceMap  # noqa
from .resolver import FileSystem, LocalFileSystem, Resolution, Resolver  # noqa
from .rewriter import Mode  # noqa
from .sourcemap import Mapping, SourceMap  # noqa
