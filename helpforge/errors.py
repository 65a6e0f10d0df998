"""Typed error taxonomy.

Depth truncation is not an error: it is carried as `SubcommandNode.truncated`.
"""

from __future__ import annotations

__all__ = [
    "HelpforgeError",
    "SourceUnavailable",
    "MalformedJson",
    "CacheCorrupt",
    "UnsupportedFormat",
    "format_error",
]


class HelpforgeError(Exception):
    """Base class for all operator-facing errors."""


class SourceUnavailable(HelpforgeError):
    """The help/man collaborator (or a file read) produced no usable text."""


class MalformedJson(HelpforgeError):
    """A structured input document failed decoding or schema validation."""


class CacheCorrupt(HelpforgeError):
    """A stored cache entry could not be read or decoded."""


class UnsupportedFormat(HelpforgeError):
    """Unknown generator target."""


def format_error(e: BaseException) -> str:
    """Return a short operator-facing message like 'MalformedJson: detail'."""
    name = e.__class__.__name__
    msg = str(e).strip()
    return f"{name}: {msg}" if msg else name
