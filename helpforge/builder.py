"""Assemble recognized records into a `CommandModel`."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Final, Iterable

from .models import CommandModel, OptionEntry, PositionalArg, RawDocument, SubcommandNode
from .normalize import normalize
from .recognize import (
    DescriptionContinuation,
    OptionCandidate,
    PositionalCandidate,
    RawRecord,
    SubcommandCandidate,
    SummaryCandidate,
    UsageCandidate,
    recognize,
)

# Case-insensitive substrings that mark an option as repeatable. This is a
# heuristic: descriptions that say "multiple times" about something other than
# the option itself are false positives, unusual phrasings are false negatives.
REPEATABLE_MARKERS: Final[tuple[str, ...]] = (
    "may be specified multiple times",
    "can be specified multiple times",
    "may be given multiple times",
    "can be given multiple times",
    "may be used multiple times",
    "can be used multiple times",
    "may be used more than once",
    "can be used more than once",
    "may be repeated",
    "can be repeated",
    "multiple times",
    "repeatable",
)


def is_repeatable(description: str, placeholder: str | None = None) -> bool:
    if placeholder and placeholder.endswith("..."):
        return True
    lowered = description.lower()
    return any(marker in lowered for marker in REPEATABLE_MARKERS)


@dataclass(slots=True)
class _Pending:
    record: RawRecord
    parts: list[str] = field(default_factory=list)

    def description(self, first: str) -> str:
        return " ".join(p for p in [first, *self.parts] if p).strip()


def _option_entry(cand: OptionCandidate, description: str) -> OptionEntry:
    return OptionEntry(
        short=cand.short,
        long=cand.long,
        value_placeholder=cand.placeholder,
        description=description,
        takes_value=bool(cand.placeholder),
        repeatable=cand.repeated or is_repeatable(description, cand.placeholder),
        short_prefix=cand.short_prefix,
        long_prefix=cand.long_prefix,
    )


def _dedupe_options(entries: Iterable[OptionEntry]) -> tuple[OptionEntry, ...]:
    """Keep the first entry per long form and the first owner of each short form."""
    seen_long: set[str] = set()
    seen_short: set[str] = set()
    out: list[OptionEntry] = []
    for entry in entries:
        if entry.long and entry.long in seen_long:
            continue
        if entry.short and entry.short in seen_short:
            entry = replace(entry, short=None)
        if not entry.short and not entry.long:
            continue
        if entry.long:
            seen_long.add(entry.long)
        if entry.short:
            seen_short.add(entry.short)
        out.append(entry)
    return tuple(out)


def _dedupe_positionals(
    declared: list[PositionalArg], from_usage: list[PositionalArg]
) -> tuple[PositionalArg, ...]:
    out: list[PositionalArg] = []
    seen: set[str] = set()
    for arg in [*declared, *from_usage]:
        key = arg.name.lower()
        if key in seen:
            continue
        seen.add(key)
        out.append(arg)
    return tuple(out)


def placeholder_node(
    name: str, *, summary: str | None = None, aliases: tuple[str, ...] = ()
) -> SubcommandNode:
    return SubcommandNode(
        model=CommandModel(name=name, summary=summary or None, aliases=aliases),
        depth_remaining=0,
        resolved=False,
    )


def build(command_name: str, records: Iterable[RawRecord]) -> CommandModel:
    """Group records into option entries, positionals and placeholder subcommands."""
    options: list[OptionEntry] = []
    declared: list[PositionalArg] = []
    from_usage: list[PositionalArg] = []
    subcommands: dict[str, SubcommandNode] = {}
    alias_of: dict[str, str] = {}
    summary: str | None = None
    usage: str | None = None
    pending: _Pending | None = None

    def flush() -> None:
        if pending is None:
            return
        rec = pending.record
        if isinstance(rec, OptionCandidate):
            options.append(_option_entry(rec, pending.description(rec.description)))
        elif isinstance(rec, PositionalCandidate):
            arg = PositionalArg(
                name=rec.name,
                description=pending.description(rec.description),
                required=rec.required,
                variadic=rec.variadic,
            )
            (from_usage if rec.from_usage else declared).append(arg)
        elif isinstance(rec, SubcommandCandidate):
            _add_subcommand(rec, pending.description(rec.description))

    def _add_subcommand(rec: SubcommandCandidate, description: str) -> None:
        owner = alias_of.get(rec.name, rec.name)
        if owner in subcommands:
            node = subcommands[owner]
            extra = tuple(
                a for a in rec.aliases if a not in node.model.aliases and a not in subcommands
            )
            if extra:
                model = replace(node.model, aliases=node.model.aliases + extra)
                subcommands[owner] = replace(node, model=model)
                for alias in extra:
                    alias_of[alias] = owner
            return
        aliases = tuple(a for a in rec.aliases if a != rec.name and a not in subcommands)
        subcommands[rec.name] = placeholder_node(
            rec.name, summary=description, aliases=aliases
        )
        for alias in aliases:
            alias_of.setdefault(alias, rec.name)

    for record in records:
        if isinstance(record, DescriptionContinuation):
            if pending is not None:
                pending.parts.append(record.text)
            continue
        flush()
        pending = None
        if isinstance(record, SummaryCandidate):
            summary = record.text
        elif isinstance(record, UsageCandidate):
            if usage is None:
                usage = record.text
        elif isinstance(record, PositionalCandidate) and record.from_usage:
            from_usage.append(
                PositionalArg(
                    name=record.name, required=record.required, variadic=record.variadic
                )
            )
        else:
            pending = _Pending(record=record)
    flush()

    return CommandModel(
        name=command_name,
        summary=summary,
        usage=usage,
        options=_dedupe_options(options),
        positionals=_dedupe_positionals(declared, from_usage),
        subcommands=subcommands,
    )


def build_from_document(raw: RawDocument, *, name: str) -> CommandModel:
    """Normalize, recognize and build in one step."""
    return build(name, recognize(normalize(raw).sections, kind=raw.kind))
