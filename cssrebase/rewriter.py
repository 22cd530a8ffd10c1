import enum
import os

from .errors import InvariantViolation
from .scanner import escape


class Mode(enum.Enum):
    ABSOLUTE = "absolute"
    CONTENT_DERIVED = "content-derived"
    KEEP = "keep"


def strip_query(payload):
    # A bare "?" ahead of a fragment (font.eot?#iefix) is the old IE font hack, and
    # has to survive for the fragment to keep working there.
    if payload.query == "?" and payload.fragment:
        return payload.query
    return ""


def rewrite(token, resolution, mode, keep_query=True, identify=None):
    """
    Returns the new payload text for token (without quotes). Unresolved and ignored
    tokens, and every token in KEEP mode, come back exactly as authored.
    """
    if mode is Mode.KEEP or not resolution.found:
        return token.raw
    payload = token.payload
    if mode is Mode.ABSOLUTE:
        path = resolution.path.replace(os.sep, "/")
    elif mode is Mode.CONTENT_DERIVED:
        path = identify(resolution.path)
    else:
        raise InvariantViolation("Unhandled rewrite mode: {}".format(mode))
    query = payload.query if keep_query else strip_query(payload)
    return escape(path, token.quote) + query + payload.fragment
