import enum
import hashlib
import logging
import os
import re
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Tuple
from urllib.parse import unquote, urlparse

from .scanner import Payload, split_payload, unescape

logger = logging.getLogger("cssrebase")

MODULE_MARKER = "~"
SCHEME_PATTERN = re.compile(r"^[a-z][a-z0-9+.\-]*:", re.IGNORECASE)
SOURCE_URL_PATTERN = re.compile(r"^[a-z][a-z0-9+.\-]*://", re.IGNORECASE)


class FileSystem:
    """
    The file access the resolver needs. Subclass to resolve against something other
    than the local disk.
    """

    def exists(self, path):
        raise NotImplementedError()

    def read(self, path):
        raise NotImplementedError()


class LocalFileSystem(FileSystem):
    # All local file systems are the same disk, so they share cache entries.
    def __eq__(self, other):
        return type(other) is type(self)

    def __hash__(self):
        return hash(type(self))

    def exists(self, path):
        return os.path.isfile(path)

    def read(self, path):
        with open(path, "rb") as f:
            return f.read()


class Status(enum.Enum):
    FOUND = "found"
    NOT_FOUND = "not-found"
    # External, data and (without a root) rooted URLs are not file system candidates.
    IGNORED = "ignored"


@dataclass(frozen=True)
class Resolution:
    status: Status
    path: str = None
    candidates: Tuple[str, ...] = ()
    shadowed: Tuple[str, ...] = ()

    @property
    def found(self):
        return self.status is Status.FOUND

    @classmethod
    def ignored(cls):
        return cls(Status.IGNORED)

    @classmethod
    def not_found(cls, candidates):
        return cls(Status.NOT_FOUND, candidates=tuple(candidates))


class SingleFlightCache:
    """
    Memoizes computations by key, running each at most once. Concurrent callers
    asking for a key that is still being computed wait on the same Future instead of
    computing it again. A computation that raises is forgotten, so it can be retried.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._entries = {}

    def __len__(self):
        with self._lock:
            return len(self._entries)

    def __contains__(self, key):
        with self._lock:
            return key in self._entries

    def get(self, key, compute):
        with self._lock:
            future = self._entries.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._entries[key] = future
        if owner:
            try:
                future.set_result(compute())
            except BaseException as e:
                with self._lock:
                    self._entries.pop(key, None)
                future.set_exception(e)
                raise
        return future.result()

    def discard(self, key):
        with self._lock:
            self._entries.pop(key, None)

    def clear(self):
        with self._lock:
            self._entries.clear()


# Process-wide caches, shared by every Resolver that isn't handed its own.
resolution_cache = SingleFlightCache()
identity_cache = SingleFlightCache()


def is_external(path, root=None):
    """
    Returns True for payload paths that are not file system candidates: URLs with a
    scheme (including data: URIs), protocol-relative URLs, fragment-only and empty
    references, and rooted paths when there is no root to resolve them against.
    """
    if not path or SCHEME_PATTERN.match(path) or path.startswith("//"):
        return True
    if path.startswith("/") and root is None:
        return True
    return False


def source_directory(source, document_directory, source_root=None):
    """
    Returns the directory of an original source identifier taken from a source map.
    Relative identifiers are taken relative to sourceRoot, then to the directory of
    the document the map belongs to.
    """
    if SOURCE_URL_PATTERN.match(source):
        parsed = urlparse(source)
        path = unquote(parsed.path)
        if parsed.scheme != "file":
            # webpack:///./src/a.scss and friends: the path is project-relative.
            path = path.lstrip("/")
    else:
        path = source
    if source_root and not os.path.isabs(path):
        path = os.path.join(source_root, path)
    path = os.path.join(document_directory, path)
    return os.path.dirname(os.path.abspath(path))


def content_name(data, path):
    """An opaque name for a file: the MD5 of its contents plus its extension."""
    return hashlib.md5(data).hexdigest() + os.path.splitext(path)[1].lower()


class Resolver:
    def __init__(self, modules=(), root=None, fs=None, cache=None, debug=False):
        self.modules = tuple(os.path.abspath(m) for m in modules)
        self.root = os.path.abspath(root) if root else None
        self.fs = fs or LocalFileSystem()
        self.cache = resolution_cache if cache is None else cache
        self.debug = debug

    def candidates(self, directory, path):
        """Yields the absolute paths the given payload path may refer to, in order."""
        path = unquote(unescape(path))
        if path.startswith(MODULE_MARKER):
            relative = path[len(MODULE_MARKER) :].lstrip("/")
            for module_root in self.modules:
                yield os.path.abspath(os.path.join(module_root, relative))
        elif path.startswith("/"):
            yield os.path.abspath(os.path.join(self.root, path.lstrip("/")))
        else:
            yield os.path.abspath(os.path.join(directory, path))

    def resolve(self, directory, payload) -> Resolution:
        """
        Resolves a payload (raw string or Payload) found in a source living in
        directory. The query and fragment never take part in the lookup.
        """
        if not isinstance(payload, Payload):
            payload = split_payload(payload)
        if is_external(payload.path, self.root):
            return Resolution.ignored()
        # Module-relative and rooted lookups don't depend on the source directory.
        scope = None if payload.path.startswith((MODULE_MARKER, "/")) else directory
        key = (self.fs, scope, payload.path, self.modules, self.root)
        return self.cache.get(key, lambda: self._resolve(directory, payload.path))

    def _resolve(self, directory, path):
        candidates = list(self.candidates(directory, path))
        found = [c for c in candidates if self.fs.exists(c)]
        if found:
            result = Resolution(
                Status.FOUND, found[0], tuple(candidates), tuple(found[1:])
            )
        else:
            result = Resolution.not_found(candidates)
        if self.debug:
            logger.debug(
                "Resolving {} from {}: tried {} -> {}".format(
                    path, directory, ", ".join(candidates) or "nothing", result.path
                )
            )
        return result


class ContentIdentifier:
    """
    Callable producing the content-derived name of a file, computing each file's hash
    at most once per file system and path.
    """

    def __init__(self, fs=None, cache=None):
        self.fs = fs or LocalFileSystem()
        self.cache = identity_cache if cache is None else cache

    def __call__(self, path):
        return self.cache.get(
            (self.fs, path), lambda: content_name(self.fs.read(path), path)
        )
