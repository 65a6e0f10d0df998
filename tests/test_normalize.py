from __future__ import annotations

from helpforge.models import FileOrigin, RawDocument
from helpforge.normalize import (
    PREAMBLE,
    USAGE,
    detect_heading,
    normalize,
    normalize_text,
    remove_bullets,
    strip_escapes,
    to_ascii,
    unframe,
)


def test_strip_escapes_removes_ansi_and_overstrike():
    text = "\x1b[1m-v\x1b[0m, N\x08NA\x08AM\x08ME\x08E _\x08f_\x08i_\x08l_\x08e"
    assert strip_escapes(text) == "-v, NAME file"


def test_to_ascii_maps_box_drawing_and_unicode_spaces():
    assert to_ascii("┌──┐") == "+--+"
    assert to_ascii("│ a b │") == "| a b |"
    assert to_ascii("═") == "="


def test_remove_bullets_keeps_indentation():
    assert remove_bullets("  * item") == "  item"
    assert remove_bullets("  • item") == "  item"
    assert remove_bullets("  - item") == "  item"
    assert remove_bullets("  -v, --verbose") == "  -v, --verbose"


def test_detect_heading_styles():
    assert detect_heading("OPTIONS") == ("OPTIONS", None)
    assert detect_heading("SEE ALSO") == ("SEE ALSO", None)
    assert detect_heading("Options:") == ("OPTIONS", None)
    assert detect_heading("Available Commands:") == ("AVAILABLE COMMANDS", None)
    assert detect_heading("Usage: demo [OPTIONS]") == (USAGE, "demo [OPTIONS]")
    assert detect_heading("   OPTIONS") is None
    assert detect_heading("This is a sentence.") is None


def test_split_into_labeled_sections():
    text = (
        "Usage: demo [OPTIONS] <FILE>\n"
        "\n"
        "A demo tool.\n"
        "\n"
        "Options:\n"
        "  -v, --verbose  Enable verbose output\n"
        "\tTabbed line\n"
        "\n"
        "Commands:\n"
        "  build  Build the project\n"
    )
    result = normalize_text(text)

    assert result.headings() == [USAGE, "OPTIONS", "COMMANDS"]
    usage = result.sections[0]
    assert usage.lines[0] == (7, "demo [OPTIONS] <FILE>")
    options = result.find("OPTION")
    assert options is not None
    assert options.lines == ((2, "-v, --verbose  Enable verbose output"), (8, "Tabbed line"))


def test_leading_text_goes_to_preamble():
    result = normalize_text("demo 1.0\nDoes demo things\n\nOPTIONS\n  -a  All\n")
    assert result.headings() == [PREAMBLE, "OPTIONS"]
    assert result.sections[0].lines == ((0, "demo 1.0"), (0, "Does demo things"))


def test_unparseable_input_degrades_to_single_preamble():
    raw = RawDocument(origin=FileOrigin(path="x"), text=b"\xff\xfejust some words\n", kind="file")
    result = normalize(raw)
    assert result.headings() == [PREAMBLE]
    assert "just some words" in result.sections[0].text()


def test_empty_input():
    assert normalize_text("").headings() == [PREAMBLE]


def test_unframe_panel_lines():
    assert unframe("+- Options ----------+") == "Options:"
    assert unframe("+====================+") == ""
    assert unframe("| --verbose  -v  Enable |") == "  --verbose  -v  Enable "
    assert unframe("  -v, --verbose  Enable") == "  -v, --verbose  Enable"


def test_boxed_panels_become_sections():
    text = (
        "Usage: app [OPTIONS] COMMAND\n"
        "\n"
        "╭─ Options ───────────────────────────╮\n"
        "│ --verbose  -v  Enable verbose output │\n"
        "│                more detail           │\n"
        "╰──────────────────────────────────────╯\n"
        "╭─ Commands ──────────────────────────╮\n"
        "│ serve  Start the server              │\n"
        "╰──────────────────────────────────────╯\n"
    )
    result = normalize_text(text)

    assert result.headings() == [USAGE, "OPTIONS", "COMMANDS"]
    options = result.find("OPTION")
    assert options is not None
    assert options.lines == (
        (2, "--verbose  -v  Enable verbose output"),
        (17, "more detail"),
    )
    commands = result.find("COMMAND")
    assert commands is not None
    assert commands.lines == ((2, "serve  Start the server"),)
