"""Turn --help output and man pages into shell completion scripts."""

from .core import Extractor, extract, list_subcommands, render, render_request
from .errors import (
    CacheCorrupt,
    HelpforgeError,
    MalformedJson,
    SourceUnavailable,
    UnsupportedFormat,
)
from .models import (
    CommandModel,
    CommandOrigin,
    FileOrigin,
    GenerationOptions,
    GenerationRequest,
    JsonOrigin,
    OptionEntry,
    PositionalArg,
    SubcommandNode,
)

__version__ = "0.1.0"

__all__ = [
    "CacheCorrupt",
    "CommandModel",
    "CommandOrigin",
    "Extractor",
    "FileOrigin",
    "GenerationOptions",
    "GenerationRequest",
    "HelpforgeError",
    "JsonOrigin",
    "MalformedJson",
    "OptionEntry",
    "PositionalArg",
    "SourceUnavailable",
    "SubcommandNode",
    "UnsupportedFormat",
    "extract",
    "list_subcommands",
    "render",
    "render_request",
]
