"""Value objects shared by the extraction pipeline and the generators.

Everything here is immutable once created. The builder and the orchestrator
create new nodes with `dataclasses.replace` instead of mutating existing ones,
and generators only read.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, Union

SourceKind = Literal["man", "help", "file", "json"]
SubcommandPath = tuple[str, ...]
CacheKey = str


@dataclass(frozen=True, slots=True)
class CommandOrigin:
    """An executable plus an optional subcommand path (`path[0]` is the binary)."""

    path: SubcommandPath
    args: tuple[str, ...] = ()

    @property
    def command(self) -> str:
        return self.path[0]

    @property
    def subcommand(self) -> SubcommandPath:
        return self.path[1:]


@dataclass(frozen=True, slots=True)
class FileOrigin:
    path: Path


@dataclass(frozen=True, slots=True)
class JsonOrigin:
    path: Path


Origin = Union[CommandOrigin, FileOrigin, JsonOrigin]


@dataclass(frozen=True, slots=True)
class RawDocument:
    origin: Origin
    text: bytes
    kind: SourceKind


@dataclass(frozen=True, slots=True)
class OptionEntry:
    """One option as declared by a command.

    `short` and `long` hold the bare names ("v", "verbose"). The prefixes keep
    old-style single-dash long options (`-name`) and slash options (`/A`)
    representable.
    """

    short: str | None = None
    long: str | None = None
    value_placeholder: str | None = None
    description: str = ""
    takes_value: bool = False
    repeatable: bool = False
    short_prefix: str = "-"
    long_prefix: str = "--"

    @property
    def short_flag(self) -> str | None:
        if not self.short:
            return None
        return f"{self.short_prefix}{self.short}"

    @property
    def long_flag(self) -> str | None:
        if not self.long:
            return None
        return f"{self.long_prefix}{self.long}"

    @property
    def flags(self) -> tuple[str, ...]:
        return tuple(f for f in (self.short_flag, self.long_flag) if f)


@dataclass(frozen=True, slots=True)
class PositionalArg:
    name: str
    description: str = ""
    required: bool = True
    variadic: bool = False


@dataclass(frozen=True, slots=True)
class CommandModel:
    """A command's own declared surface.

    `subcommands` maps names to nodes in first-discovery order and is never
    mutated after construction.
    """

    name: str
    summary: str | None = None
    usage: str | None = None
    aliases: tuple[str, ...] = ()
    options: tuple[OptionEntry, ...] = ()
    positionals: tuple[PositionalArg, ...] = ()
    subcommands: dict[str, "SubcommandNode"] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class SubcommandNode:
    """A command model placed in the subcommand tree.

    `resolved` is true once extraction was attempted for the node. `truncated`
    marks nodes whose own subcommands were dropped by the depth bound.
    """

    model: CommandModel
    depth_remaining: int = 0
    resolved: bool = False
    truncated: bool = False
    warning: str | None = None

    @property
    def name(self) -> str:
        return self.model.name


@dataclass(frozen=True, slots=True)
class CacheEntry:
    key: CacheKey
    value: SubcommandNode
    created_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now > self.created_at + self.ttl


@dataclass(frozen=True, slots=True)
class GenerationOptions:
    bash_compat: bool = False



@dataclass(frozen=True, slots=True)
class GenerationRequest:
    model: CommandModel | SubcommandNode
    format: str
    options: GenerationOptions = GenerationOptions()
