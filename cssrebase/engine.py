import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .composer import Edit, Granularity, compose
from .errors import Diagnostic, DiagnosticKind, InvariantViolation, MalformedSourceMap
from .resolver import ContentIdentifier, LocalFileSystem, Resolver, Status, source_directory
from .rewriter import Mode, rewrite
from .scanner import scan
from .sourcemap import SourceMap
from .tracer import Tracer

logger = logging.getLogger("cssrebase")


def _choice(enum_class, value, option):
    if isinstance(value, enum_class):
        return value
    try:
        return enum_class(str(value).lower())
    except ValueError:
        raise ValueError(
            "Unknown {}: {} (expected one of {})".format(
                option, value, ", ".join(e.value for e in enum_class)
            )
        )


class Options:
    def __init__(
        self,
        mode=Mode.ABSOLUTE,
        keep_query=True,
        attempt_resolve=True,
        granularity=Granularity.START,
        modules=None,
        root=None,
        source_map=True,
        silent=False,
        debug=False,
        remove_cr=False,
    ):
        self.mode = _choice(Mode, mode, "mode")
        self.granularity = _choice(Granularity, granularity, "granularity")
        self.keep_query = bool(keep_query)
        self.attempt_resolve = bool(attempt_resolve)
        if isinstance(modules, str):
            modules = [modules]
        self.modules = list(modules or [])
        self.root = root
        self.source_map = bool(source_map)
        self.silent = bool(silent)
        self.debug = bool(debug)
        self.remove_cr = bool(remove_cr)

    def __repr__(self):
        return "<Options {}>".format(self.to_config())

    @classmethod
    def from_config(cls, config=None, **overrides):
        """
        Builds Options from a config dict (as loaded from YAML), where keys may use
        dashes or underscores. Keyword overrides win over the dict.
        """
        options = {}
        for key, value in (config or {}).items():
            options[key.replace("-", "_")] = value
        options.update(overrides)
        try:
            return cls(**options)
        except TypeError as e:
            raise ValueError("Invalid rebase options: {}".format(e))

    def to_config(self):
        return {
            "mode": self.mode.value,
            "keep_query": self.keep_query,
            "attempt_resolve": self.attempt_resolve,
            "granularity": self.granularity.value,
            "modules": list(self.modules),
            "root": self.root,
            "source_map": self.source_map,
            "silent": self.silent,
            "debug": self.debug,
            "remove_cr": self.remove_cr,
        }


@dataclass(frozen=True)
class Document:
    """
    One stylesheet to rewrite: its (generated) text, the path it is being processed
    as, and the source map of whatever produced the text, if anything did. The map
    may be a SourceMap, a decoded dict, or JSON text.
    """

    text: str
    path: str
    source_map: object = None
    source: Optional[str] = None

    @property
    def source_id(self):
        return self.source or self.path

    @property
    def directory(self):
        return os.path.dirname(os.path.abspath(self.path))


@dataclass
class RewrittenDocument:
    text: str
    source_map: Optional[SourceMap]
    assets: Tuple[str, ...] = ()
    diagnostics: List[Diagnostic] = field(default_factory=list)


def splice(text, edits):
    parts = []
    pos = 0
    for edit in edits:
        parts.append(text[pos : edit.token.payload_start])
        parts.append(edit.text)
        pos = edit.token.payload_end
    parts.append(text[pos:])
    return "".join(parts)


class Engine:
    def __init__(self, options=None, fs=None, identify=None, cache=None):
        self.options = options or Options()
        self.fs = fs or LocalFileSystem()
        self.resolver = Resolver(
            self.options.modules,
            root=self.options.root,
            fs=self.fs,
            cache=cache,
            debug=self.options.debug,
        )
        self.identify = identify or ContentIdentifier(self.fs)

    def load_map(self, document, diagnostics):
        if document.source_map is None:
            return None
        try:
            return SourceMap.from_json(document.source_map)
        except MalformedSourceMap as e:
            diagnostics.append(
                Diagnostic(
                    DiagnosticKind.MALFORMED_SOURCE_MAP,
                    "Ignoring incoming source map: {}".format(e),
                )
            )
            return None

    def directory_for(self, origin, tracer, document):
        if tracer.source_map is None or not origin.mapped:
            return document.directory
        return source_directory(
            origin.source, document.directory, tracer.source_map.source_root
        )

    def process_token(self, token, document, tracer, diagnostics, assets):
        """Returns the new payload text for token, recording diagnostics and assets."""
        origin = tracer.trace(token.line, token.column)
        if not origin.mapped:
            diagnostics.append(
                Diagnostic(
                    DiagnosticKind.UNMAPPED_POSITION,
                    "No source mapping for url({}); resolving from {}".format(
                        token.raw, document.path
                    ),
                    token.line,
                    token.column,
                )
            )
        if not self.options.attempt_resolve:
            return token.raw
        directory = self.directory_for(origin, tracer, document)
        resolution = self.resolver.resolve(directory, token.payload)
        if resolution.status is Status.IGNORED:
            return token.raw
        if not resolution.found:
            diagnostics.append(
                Diagnostic(
                    DiagnosticKind.ASSET_NOT_FOUND,
                    "Cannot resolve {} from {}; tried {}".format(
                        token.raw,
                        origin.source,
                        ", ".join(resolution.candidates) or "no module roots",
                    ),
                    token.line,
                    token.column,
                )
            )
            return token.raw
        if resolution.shadowed:
            diagnostics.append(
                Diagnostic(
                    DiagnosticKind.RESOLUTION_AMBIGUOUS,
                    "{} resolved to {}, shadowing {}".format(
                        token.raw, resolution.path, ", ".join(resolution.shadowed)
                    ),
                    token.line,
                    token.column,
                )
            )
        try:
            text = rewrite(
                token,
                resolution,
                self.options.mode,
                keep_query=self.options.keep_query,
                identify=self.identify,
            )
        except OSError as e:
            diagnostics.append(
                Diagnostic(
                    DiagnosticKind.ASSET_NOT_FOUND,
                    "Cannot read {}: {}".format(resolution.path, e),
                    token.line,
                    token.column,
                )
            )
            return token.raw
        assets.setdefault(resolution.path, None)
        return text

    def run(self, document) -> RewrittenDocument:
        text = document.text
        if self.options.remove_cr:
            text = text.replace("\r\n", "\n")
        diagnostics = []
        incoming = self.load_map(document, diagnostics)
        tracer = Tracer(incoming, document.source_id)
        assets = {}
        edits = [
            Edit(token, self.process_token(token, document, tracer, diagnostics, assets))
            for token in scan(text)
        ]
        output = splice(text, edits)
        # Every rewritten payload must still read back as exactly one url() token.
        rescanned = sum(1 for _ in scan(output))
        if rescanned != len(edits):
            raise InvariantViolation(
                "{}: {} url() tokens rewritten but {} found in the output".format(
                    document.path, len(edits), rescanned
                )
            )
        if not self.options.source_map:
            source_map = None
        elif not edits and incoming is not None:
            source_map = incoming
        else:
            source_map = compose(text, edits, tracer, self.options.granularity)
        if not self.options.silent:
            for diagnostic in diagnostics:
                logger.warning("{}: {}".format(document.path, diagnostic))
        return RewrittenDocument(output, source_map, tuple(assets), diagnostics)


def rebase(text, path, incoming=None, options=None, **kwargs):
    """
    Rewrites the url() references of one stylesheet, whose incoming source map (if
    any) is given as incoming. Keyword arguments are Options. See Engine.run.
    """
    if options is None:
        options = Options.from_config(kwargs)
    return Engine(options).run(Document(text, path, incoming))
