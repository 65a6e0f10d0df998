"""Option-line recognition over normalized sections.

Each section has a baseline indent (its shallowest non-blank line). A line at
the baseline (give or take `FLAG_INDENT_SLACK` columns) that starts with a flag
prefix opens an option; deeper lines continue the latest entry's description.
In COMMANDS sections baseline lines name subcommands, in ARGUMENTS sections
they name positionals. A line starting with a flag is always an option, even
inside a COMMANDS section.
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass
from typing import Final, Iterable, Union

from .normalize import PREAMBLE, USAGE, Section

# Flag lines may sit this many columns deeper than the section baseline
# (clap aligns long-only flags under the long column of `-s, --long` rows).
FLAG_INDENT_SLACK: Final[int] = 4

OPTION_SECTION_KEYWORDS: Final[tuple[str, ...]] = ("OPTION", "FLAG", "SWITCH")
COMMAND_SECTION_KEYWORDS: Final[tuple[str, ...]] = ("COMMAND",)
ARGUMENT_SECTION_KEYWORDS: Final[tuple[str, ...]] = ("ARGUMENT", "POSITIONAL", "ARGS")

USAGE_KEYWORDS: Final[frozenset[str]] = frozenset(
    {
        "option", "options", "flag", "flags", "switches",
        "command", "commands", "subcommand", "subcommands",
        "arg", "args", "argument", "arguments",
    }
)


@dataclass(frozen=True, slots=True)
class OptionCandidate:
    short: str | None
    long: str | None
    placeholder: str | None = None
    description: str = ""
    short_prefix: str = "-"
    long_prefix: str = "--"
    # Set by clap-style `--verbose...` notation.
    repeated: bool = False


@dataclass(frozen=True, slots=True)
class PositionalCandidate:
    name: str
    description: str = ""
    required: bool = True
    variadic: bool = False
    from_usage: bool = False


@dataclass(frozen=True, slots=True)
class SubcommandCandidate:
    name: str
    aliases: tuple[str, ...] = ()
    description: str = ""


@dataclass(frozen=True, slots=True)
class DescriptionContinuation:
    text: str


@dataclass(frozen=True, slots=True)
class UsageCandidate:
    text: str


@dataclass(frozen=True, slots=True)
class SummaryCandidate:
    text: str


RawRecord = Union[
    OptionCandidate,
    PositionalCandidate,
    SubcommandCandidate,
    DescriptionContinuation,
    UsageCandidate,
    SummaryCandidate,
]


@dataclass(frozen=True, slots=True)
class Flavor:
    """One help-text convention: which prefix tokens introduce a flag."""

    name: str
    # Alternation over the prefix tokens, longest first, anchored on a flag name.
    matcher: re.Pattern[str]

    def match(self, token: str) -> tuple[str, str, str] | None:
        """Split `token` into `(prefix, name, rest)` when it is a flag."""
        m = self.matcher.match(token)
        if m is None:
            return None
        name = m.group(2)
        rest = token[m.end():]
        if m.group(1) == "/" and "/" in rest:
            return None
        if name.endswith("..."):
            # `--verbose...` marks a repeatable flag, not part of its name.
            name = name[:-3].rstrip(".")
            rest = "..." + rest
        return m.group(1), name, rest


DASH: Final[Flavor] = Flavor(
    name="dash",
    matcher=re.compile(r"(--|-)([A-Za-z0-9?#@][A-Za-z0-9_.?#@-]*)"),
)
SLASH: Final[Flavor] = Flavor(
    name="slash",
    matcher=re.compile(r"(/)([A-Za-z?][A-Za-z0-9_?-]*)"),
)
# Fallback order when two flavors score the same.
FLAVORS: Final[tuple[Flavor, ...]] = (DASH, SLASH)

_TOKEN_RE = re.compile(r"(?:\[[^\]]*\]|<[^>]*>|\{[^}]*\}|[^\s,|\[<{])+")
_SPLIT_RE = re.compile(r"\s{2,}")
_PLACEHOLDER_RE = re.compile(
    r"^(?:[A-Z][A-Z0-9_-]*|<[^>]+>|\[[^\]]+\]|\{[^}]+\}|=\S+)(?:\.\.\.)?$"
)
_SUBCOMMAND_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._:-]*$")
_POSITIONAL_NAME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_-]*$")
_MAN_NAME_SPLIT_RE = re.compile(r"\s+\\?[-–—]\s+")


def section_class(heading: str) -> str:
    if heading in (USAGE, "SYNOPSIS"):
        return "usage"
    if heading == "NAME":
        return "name"
    if heading == PREAMBLE:
        return "preamble"
    if any(k in heading for k in OPTION_SECTION_KEYWORDS):
        return "options"
    if any(k in heading for k in COMMAND_SECTION_KEYWORDS):
        return "commands"
    if any(k in heading for k in ARGUMENT_SECTION_KEYWORDS):
        return "arguments"
    return "other"


def baseline(section: Section, *, klass: str = "other") -> int:
    """Shallowest indent, or the most common one in COMMANDS sections.

    Command listings are sometimes grouped under shallower prose lines (git),
    while their entries rarely wrap, so the mode is the entry column there.
    """
    indents = [indent for indent, body in section.lines if body]
    if not indents:
        return 0
    if klass == "commands":
        counts = Counter(indents)
        return max(sorted(counts), key=lambda i: counts[i])
    return min(indents)


def choose_flavor(sections: Iterable[Section], *, kind: str | None = None) -> Flavor:
    """Pick the flavor that recognizes the most flag lines.

    Man pages are always dash-style.
    """
    if kind == "man":
        return DASH
    sections = list(sections)
    best = FLAVORS[0]
    best_score = -1
    for flavor in FLAVORS:
        score = 0
        for section in sections:
            for _, body in section.lines:
                first = body.split(maxsplit=1)[0] if body else ""
                if first and flavor.match(first.rstrip(",")) is not None:
                    score += 1
        if score > best_score:
            best, best_score = flavor, score
    return best


def _clean_placeholder(raw: str) -> tuple[str | None, bool]:
    """Return `(placeholder, optional)` for the text following a flag name."""
    value = raw.strip()
    optional = False
    if value.startswith("[") and value.endswith("]"):
        optional = True
        value = value[1:-1].strip()
    if value.startswith("="):
        value = value[1:].strip()
    if value.startswith("<") and value.endswith(">"):
        value = value[1:-1].strip()
    elif value.startswith("<") and value.endswith(">..."):
        value = value[1:-4].strip() + "..."
    return (value or None), optional


def _is_placeholder(token: str) -> bool:
    return bool(_PLACEHOLDER_RE.match(token))


def _split_flag_tokens(flavor: Flavor, token: str) -> list[str]:
    # "-v/--verbose" style pairs
    if flavor is DASH and "/-" in token:
        return [part for part in token.split("/") if part]
    return [token]


def parse_option_line(flavor: Flavor, body: str) -> list[OptionCandidate]:
    """Parse one option line (already stripped) into candidates.

    The first short and first long form merge into one candidate; extra forms
    become siblings sharing the placeholder and the description.
    """
    if flavor.match(body) is None:
        return []

    parts = _SPLIT_RE.split(body, maxsplit=1)
    delimited = len(parts) == 2
    head = parts[0]
    description = parts[1].strip() if delimited else ""
    # Rich/Typer tables give the short form and the metavar their own columns.
    while description:
        more = _SPLIT_RE.split(description, maxsplit=1)
        words = more[0].split()
        is_flags = all(flavor.match(w.rstrip(",")) for w in words)
        is_metavar = len(more) == 2 and len(words) == 1 and _is_placeholder(words[0])
        if not (is_flags or is_metavar):
            break
        head = f"{head} {more[0]}"
        description = more[1].strip() if len(more) == 2 else ""

    flags: list[list] = []  # [prefix, name, placeholder]
    repeated = False
    consumed = 0
    for m in _TOKEN_RE.finditer(head):
        token = m.group(0)
        matched = False
        for piece in _split_flag_tokens(flavor, token):
            found = flavor.match(piece)
            if found is None:
                continue
            prefix, name, rest = found
            if rest.startswith("..."):
                repeated = True
                rest = rest[3:]
            placeholder, _ = _clean_placeholder(rest) if rest else (None, False)
            flags.append([prefix, name, placeholder])
            matched = True
        if matched:
            consumed = m.end()
            continue
        if flags and (delimited or _is_placeholder(token)):
            if flags[-1][2] is None:
                flags[-1][2] = _clean_placeholder(token)[0]
            consumed = m.end()
            continue
        break

    if not flags:
        return []
    if not delimited:
        description = head[consumed:].strip(" ,")

    shared = next((f[2] for f in flags if f[2]), None)
    shorts = []
    longs = []
    for prefix, name, placeholder in flags:
        if prefix == "--" or len(name) > 1:
            longs.append((prefix, name, placeholder))
        else:
            shorts.append((prefix, name, placeholder))

    candidates: list[OptionCandidate] = []
    first_short = shorts.pop(0) if shorts else None
    first_long = longs.pop(0) if longs else None
    candidates.append(
        OptionCandidate(
            short=first_short[1] if first_short else None,
            long=first_long[1] if first_long else None,
            placeholder=shared,
            description=description,
            short_prefix=first_short[0] if first_short else "-",
            long_prefix=first_long[0] if first_long else "--",
            repeated=repeated,
        )
    )
    for prefix, name, placeholder in shorts:
        candidates.append(
            OptionCandidate(
                short=name,
                long=None,
                placeholder=placeholder or shared,
                description=description,
                short_prefix=prefix,
                repeated=repeated,
            )
        )
    for prefix, name, placeholder in longs:
        candidates.append(
            OptionCandidate(
                short=None,
                long=name,
                placeholder=placeholder or shared,
                description=description,
                long_prefix=prefix,
                repeated=repeated,
            )
        )
    return candidates


def parse_subcommand_line(body: str) -> list[SubcommandCandidate]:
    parts = _SPLIT_RE.split(body, maxsplit=1)
    if len(parts) == 2:
        names = [n.strip() for n in parts[0].split(",") if n.strip()]
        if names and all(_SUBCOMMAND_NAME_RE.match(n) for n in names):
            return [
                SubcommandCandidate(
                    name=names[0], aliases=tuple(names[1:]), description=parts[1].strip()
                )
            ]
        return []

    # "access, adduser, audit, ..." name lists without descriptions
    if "," in body:
        names = [n.strip() for n in body.split(",") if n.strip()]
        if all(_SUBCOMMAND_NAME_RE.match(n) for n in names):
            return [SubcommandCandidate(name=n) for n in names]

    first, _, rest = body.partition(" ")
    first = first.rstrip(",:")
    if not _SUBCOMMAND_NAME_RE.match(first):
        return []
    return [SubcommandCandidate(name=first, description=rest.strip())]


def _positional_from_token(token: str, *, from_usage: bool) -> PositionalCandidate | None:
    optional = token.startswith("[")
    variadic = "..." in token
    inner = token.replace("...", "")
    inner = inner.strip("[]<>{}() ")
    inner = inner.replace("[", " ").replace("]", " ").replace("<", " ").replace(">", " ")
    words = inner.split()
    if not words:
        return None
    name = words[-1]
    if any(w.startswith("-") for w in words) or "|" in name or name.lower() in USAGE_KEYWORDS:
        return None
    if not _POSITIONAL_NAME_RE.match(name):
        return None
    bracketed = any(ch in token for ch in "<[")
    if from_usage and not bracketed and not name.isupper():
        # Bare lowercase words in usage lines are subcommand path or literals.
        return None
    return PositionalCandidate(
        name=name,
        required=not optional,
        variadic=variadic,
        from_usage=from_usage,
    )


def usage_tokens(text: str) -> list[str]:
    """Split a usage line on whitespace outside brackets."""
    tokens: list[str] = []
    depth = 0
    current: list[str] = []
    for ch in text:
        if ch in "[<{(":
            depth += 1
        elif ch in "]>})":
            depth = max(0, depth - 1)
        if ch.isspace() and depth == 0:
            if current:
                tokens.append("".join(current))
                current = []
            continue
        current.append(ch)
    if current:
        tokens.append("".join(current))
    return tokens


def positionals_from_usage(text: str) -> list[PositionalCandidate]:
    out: list[PositionalCandidate] = []
    for token in usage_tokens(text)[1:]:
        found = _positional_from_token(token, from_usage=True)
        if found is not None:
            out.append(found)
    return out


def _summary_from_name_line(body: str) -> str | None:
    parts = _MAN_NAME_SPLIT_RE.split(body, maxsplit=1)
    if len(parts) == 2 and parts[1].strip():
        return parts[1].strip()
    return None


def _usage_block(lines: tuple[tuple[int, str], ...]) -> tuple[str | None, list[tuple[int, str]]]:
    """Join the first usage line with its wrapped continuation lines."""
    rest = list(lines)
    while rest and not rest[0][1]:
        rest.pop(0)
    if not rest:
        return None, []
    first_indent, text = rest.pop(0)
    parts = [text]
    while rest and rest[0][1] and rest[0][0] > first_indent:
        parts.append(rest.pop(0)[1])
    return " ".join(parts), rest


class _Recognizer:
    def __init__(self, flavor: Flavor) -> None:
        self.flavor = flavor
        self.records: list[RawRecord] = []
        self.have_summary = False
        self.program: str | None = None

    def summary(self, text: str) -> None:
        if not self.have_summary:
            self.records.append(SummaryCandidate(text=text))
            self.have_summary = True

    def usage(self, text: str) -> None:
        self.records.append(UsageCandidate(text=text))
        self.records.extend(positionals_from_usage(text))
        if self.program is None:
            self.program = text.split(maxsplit=1)[0]

    def lines(self, lines: list[tuple[int, str]], *, klass: str, base: int) -> None:
        open_entry = False
        for indent, body in lines:
            if not body:
                continue
            starts_with_flag = self.flavor.match(body) is not None
            if starts_with_flag and base <= indent <= base + FLAG_INDENT_SLACK:
                options = parse_option_line(self.flavor, body)
                if options:
                    self.records.extend(options)
                    open_entry = True
                    continue
            if indent > base:
                if open_entry:
                    self.records.append(DescriptionContinuation(text=body))
                continue

            open_entry = False
            if indent < base:
                continue
            if klass == "commands":
                found = parse_subcommand_line(body)
                self.records.extend(found)
                open_entry = bool(found)
            elif klass == "arguments":
                head = _SPLIT_RE.split(body, maxsplit=1)
                positional = _positional_from_token(head[0], from_usage=False)
                if positional is not None:
                    self.records.append(
                        PositionalCandidate(
                            name=positional.name,
                            description=head[1].strip() if len(head) == 2 else "",
                            required=positional.required,
                            variadic=positional.variadic,
                        )
                    )
                    open_entry = True
            elif klass in ("preamble", "usage"):
                first = body.split(maxsplit=1)[0]
                if body.lower().startswith("or:") or first == self.program:
                    continue
                self.summary(body)

    def section(self, section: Section) -> None:
        klass = section_class(section.heading)
        if klass == "name":
            for _, body in section.lines:
                found = _summary_from_name_line(body) if body else None
                if found:
                    # NAME lines beat preamble guesses; the builder keeps the last summary.
                    self.records.append(SummaryCandidate(text=found))
                    self.have_summary = True
                    break
            return

        lines = list(section.lines)
        if klass == "usage":
            text, lines = _usage_block(section.lines)
            if text:
                self.usage(text)
        base = baseline(Section(heading=section.heading, lines=tuple(lines)), klass=klass)
        self.lines(lines, klass=klass, base=base)


def recognize(sections: Iterable[Section], *, kind: str | None = None) -> list[RawRecord]:
    """Turn normalized sections into an ordered list of raw records."""
    sections = list(sections)
    recognizer = _Recognizer(choose_flavor(sections, kind=kind))
    for section in sections:
        recognizer.section(section)
    return recognizer.records
