"""Text normalization: raw help/man bytes to labeled sections.

`normalize` never fails. Input without any recognizable heading comes back as
a single PREAMBLE section holding every line.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Final

from .models import RawDocument

PREAMBLE: Final[str] = "PREAMBLE"
USAGE: Final[str] = "USAGE"
TAB_WIDTH: Final[int] = 8
# Headings may be indented by at most this many columns.
HEADING_MAX_INDENT: Final[int] = 1

Line = tuple[int, str]


@dataclass(frozen=True, slots=True)
class Section:
    heading: str
    lines: tuple[Line, ...]

    def text(self) -> str:
        return "\n".join(" " * indent + body for indent, body in self.lines)


@dataclass(frozen=True, slots=True)
class NormalizedText:
    sections: tuple[Section, ...]

    def headings(self) -> list[str]:
        return [s.heading for s in self.sections]

    def find(self, *keywords: str) -> Section | None:
        """First section whose heading contains any of `keywords`."""
        for section in self.sections:
            if any(k in section.heading for k in keywords):
                return section
        return None


_ANSI_RE = re.compile(
    r"\x1b\[[0-?]*[ -/]*[@-~]"  # CSI
    r"|\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)"  # OSC
    r"|\x1b[@-Z\\-_]"  # two-byte sequences
)
_OVERSTRIKE_RE = re.compile(r"[^\n]\x08")
_CONTROL_RE = re.compile(r"[\x00-\x08\x0b-\x1f\x7f]")
_BULLET_RE = re.compile(r"^(\s*)(?:[*•●◦]|-(?=\s))\s+")

_MAN_HEADING_RE = re.compile(r"^[A-Z][A-Z0-9]*(?:[ _/&-]+[A-Z0-9]+){0,3}$")
_HELP_HEADING_RE = re.compile(r"^[A-Za-z][A-Za-z0-9 _/&()'-]*:$")
_USAGE_INLINE_RE = re.compile(r"^usage\s*:\s*(\S.*)$", re.IGNORECASE)
_COMMANDS_HEADING_RE = re.compile(r"^[A-Za-z].*\bcommands?\b.*:$", re.IGNORECASE)
# Rich/Typer panels after `to_ascii`: `+- Options ---+`, `| row |`, `+-----+`.
_PANEL_TITLE_RE = re.compile(r"^\+[-=]+ (\S.*?) [-=]+\+$")
_PANEL_BORDER_RE = re.compile(r"^\+[-=+]*\+$")
_PANEL_ROW_RE = re.compile(r"^\|(.*)\|$")

_UNICODE_SPACES: Final[dict[int, str]] = {
    0x00A0: " ",  # NBSP
    0x202F: " ",  # narrow NBSP
    0x2009: " ",  # thin space
    0x2002: "  ",  # en space
    0x2003: "   ",  # em space
}

_BOX_HORIZONTAL: Final[frozenset[int]] = frozenset(
    {0x2500, 0x2501, 0x2504, 0x2505, 0x2508, 0x2509, 0x254C, 0x254D,
     0x2574, 0x2576, 0x2578, 0x257A, 0x257C, 0x257E}
)
_BOX_VERTICAL: Final[frozenset[int]] = frozenset(
    {0x2502, 0x2503, 0x2506, 0x2507, 0x250A, 0x250B, 0x254E, 0x254F,
     0x2551, 0x2575, 0x2577, 0x2579, 0x257B, 0x257D, 0x257F}
)


def _box_drawing_table() -> dict[int, str]:
    table: dict[int, str] = {}
    for cp in range(0x2500, 0x2580):
        if cp in _BOX_HORIZONTAL:
            table[cp] = "-"
        elif cp in _BOX_VERTICAL:
            table[cp] = "|"
        elif cp == 0x2550:
            table[cp] = "="
        elif cp == 0x2571:
            table[cp] = "/"
        elif cp == 0x2572:
            table[cp] = "\\"
        elif cp == 0x2573:
            table[cp] = "X"
        else:
            table[cp] = "+"
    table.update(_UNICODE_SPACES)
    return table


_TRANSLATION: Final[dict[int, str]] = _box_drawing_table()


def decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def strip_escapes(text: str) -> str:
    """Drop terminal escape sequences, overstrike pairs and control characters."""
    text = _ANSI_RE.sub("", text)
    while "\x08" in text:
        stripped = _OVERSTRIKE_RE.sub("", text)
        if stripped == text:
            break
        text = stripped
    text = text.replace("\r\n", "\n")
    return _CONTROL_RE.sub("", text)


def to_ascii(text: str) -> str:
    """Map box-drawing characters and Unicode spaces to ASCII."""
    return text.translate(_TRANSLATION)


def remove_bullets(line: str) -> str:
    return _BULLET_RE.sub(r"\1", line, count=1)


def unframe(line: str) -> str:
    """Open up one line of a boxed panel.

    A panel title becomes a `Title:` heading and a border becomes a blank line.
    Rows lose their frame and move two columns in, below heading depth.
    """
    body = line.strip()
    title = _PANEL_TITLE_RE.match(body)
    if title:
        return f"{title.group(1)}:"
    if _PANEL_BORDER_RE.match(body):
        return ""
    row = _PANEL_ROW_RE.match(body)
    if row:
        return "  " + row.group(1).removeprefix(" ")
    return line


def clean_lines(text: str) -> list[str]:
    lines = []
    for raw in text.split("\n"):
        line = remove_bullets(unframe(raw.expandtabs(TAB_WIDTH))).rstrip()
        lines.append(line)
    return lines


def indent_of(line: str) -> int:
    return len(line) - len(line.lstrip(" "))


def detect_heading(line: str) -> tuple[str, str | None] | None:
    """Return `(heading, inline_remainder)` when `line` opens a section."""
    if not line.strip() or indent_of(line) > HEADING_MAX_INDENT:
        return None
    body = line.strip()
    usage = _USAGE_INLINE_RE.match(body)
    if usage:
        return USAGE, usage.group(1)
    if len(body) >= 2 and _MAN_HEADING_RE.match(body):
        return _canonical(body), None
    if _HELP_HEADING_RE.match(body) and len(body.split()) <= 4:
        return _canonical(body[:-1]), None
    if _COMMANDS_HEADING_RE.match(body) and len(body.split()) <= 12:
        return _canonical(body[:-1]), None
    return None


def _canonical(heading: str) -> str:
    return " ".join(heading.replace("_", " ").split()).upper()


def split_sections(lines: list[str]) -> tuple[Section, ...]:
    sections: list[Section] = []
    heading = PREAMBLE
    current: list[tuple[int, str]] = []

    def flush() -> None:
        while current and not current[-1][1]:
            current.pop()
        if current or heading != PREAMBLE:
            sections.append(Section(heading=heading, lines=tuple(current)))

    for line in lines:
        found = detect_heading(line)
        if found is None:
            if line or current:
                current.append((indent_of(line), line.strip()))
            continue
        flush()
        heading, inline = found
        current = []
        if inline:
            current.append((len(line) - len(inline), inline))

    flush()
    if not sections:
        return (Section(heading=PREAMBLE, lines=()),)
    return tuple(sections)


def normalize_text(text: str) -> NormalizedText:
    cleaned = to_ascii(strip_escapes(text))
    return NormalizedText(sections=split_sections(clean_lines(cleaned)))


def normalize(raw: RawDocument) -> NormalizedText:
    return normalize_text(decode(raw.text))
