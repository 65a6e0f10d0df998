import subprocess
from pathlib import Path

import pytest

import helpforge.sources as sources
from helpforge.errors import SourceUnavailable
from helpforge.models import CommandOrigin, FileOrigin, JsonOrigin
from helpforge.sources import (
    NOT_FOUND_STATUS,
    CapturedText,
    DefaultHelpProvider,
    capture_document,
    read_document,
)

HELP_TEXT = b"Usage: demo [OPTIONS]\n\nOptions:\n  -v, --verbose  Enable verbose output\n"
MAN_TEXT = b"NAME\n       demo - a demo tool\n\nOPTIONS\n       -v     verbose\n"


@pytest.fixture()
def calls(monkeypatch: pytest.MonkeyPatch) -> list[list[str]]:
    monkeypatch.setattr(sources, "command_exists", lambda *, command: command != "missing")
    return []


def _install_run(monkeypatch: pytest.MonkeyPatch, calls: list, responses):
    def fake_run(cmd, **kwargs):
        calls.append(cmd)
        for match, status, stdout in responses:
            if match(cmd):
                return subprocess.CompletedProcess(cmd, status, stdout=stdout, stderr=b"")
        return subprocess.CompletedProcess(cmd, 1, stdout=b"", stderr=b"")

    monkeypatch.setattr(sources.subprocess, "run", fake_run)


def _capture(command="demo", subcommand=(), args=(), skip_man=False) -> CapturedText:
    return DefaultHelpProvider().capture(
        command=command, subcommand=subcommand, args=args, skip_man=skip_man
    )


def test_man_page_is_preferred(monkeypatch, calls):
    _install_run(
        monkeypatch,
        calls,
        [
            (lambda cmd: cmd[0] == "sh", 0, MAN_TEXT),
            (lambda cmd: "--help" in cmd, 0, HELP_TEXT),
        ],
    )
    captured = _capture()
    assert captured == CapturedText(text=MAN_TEXT, exit_status=0, kind="man")
    assert calls == [["sh", "-c", "man demo 2>/dev/null | col -b"]]


def test_man_error_output_falls_back_to_help(monkeypatch, calls):
    _install_run(
        monkeypatch,
        calls,
        [
            (lambda cmd: cmd[0] in {"sh", "man"}, 0, b"No manual entry for demo\n"),
            (lambda cmd: "--help" in cmd, 0, HELP_TEXT),
        ],
    )
    captured = _capture()
    assert captured.kind == "help"
    assert captured.text == HELP_TEXT
    assert calls[-1] == ["demo", "--help"]


def test_skip_man_and_subcommand_pages(monkeypatch, calls):
    _install_run(monkeypatch, calls, [(lambda cmd: cmd[-1] == "-h", 0, HELP_TEXT)])
    captured = _capture(command="git", subcommand=("stash",), skip_man=True)
    assert captured.text == HELP_TEXT
    assert calls == [["git", "stash", "-h"]]


def test_explicit_args_replace_help_variants(monkeypatch, calls):
    _install_run(monkeypatch, calls, [(lambda cmd: True, 0, HELP_TEXT)])
    _capture(args=("help", "all"))
    assert calls == [["demo", "help", "all"]]


def test_short_output_is_kept_when_nothing_looks_like_help(monkeypatch, calls):
    _install_run(monkeypatch, calls, [(lambda cmd: cmd[-1] == "-h", 2, b"demo: oops")])
    captured = _capture(skip_man=True)
    assert captured.text == b"demo: oops"
    assert captured.exit_status == 2


def test_missing_command(monkeypatch, calls):
    _install_run(monkeypatch, calls, [])
    captured = _capture(command="missing")
    assert captured.exit_status == NOT_FOUND_STATUS
    assert calls == []


def test_timeouts_are_skipped(monkeypatch, calls):
    def fake_run(cmd, **kwargs):
        calls.append(cmd)
        if "--help" in cmd:
            raise subprocess.TimeoutExpired(cmd, 15)
        if cmd[-1] == "-h":
            return subprocess.CompletedProcess(cmd, 0, stdout=HELP_TEXT, stderr=b"")
        return subprocess.CompletedProcess(cmd, 1, stdout=b"", stderr=b"")

    monkeypatch.setattr(sources.subprocess, "run", fake_run)
    assert _capture(skip_man=True).text == HELP_TEXT


class _Fixed:
    def __init__(self, captured: CapturedText) -> None:
        self.captured = captured

    def capture(self, *, command, subcommand, args, skip_man) -> CapturedText:
        return self.captured


@pytest.mark.parametrize(
    "captured, message",
    [
        (CapturedText(b"", NOT_FOUND_STATUS, "help"), "demo stash: command not found"),
        (CapturedText(b"  \n", 2, "help"), "exited with status 2 and produced no help text"),
        (CapturedText(b"", 0, "help"), "demo stash: no help text"),
    ],
)
def test_capture_document_errors(captured, message):
    origin = CommandOrigin(path=("demo", "stash"))
    with pytest.raises(SourceUnavailable, match=message):
        capture_document(_Fixed(captured), origin)


def test_capture_document_keeps_kind():
    raw = capture_document(
        _Fixed(CapturedText(MAN_TEXT, 0, "man")), CommandOrigin(path=("demo",))
    )
    assert raw.kind == "man"
    assert raw.text == MAN_TEXT


def test_read_document(tmp_path: Path):
    help_file = tmp_path / "demo.txt"
    help_file.write_bytes(HELP_TEXT)
    assert read_document(FileOrigin(path=help_file)).kind == "file"
    assert read_document(JsonOrigin(path=help_file)).kind == "json"
    with pytest.raises(SourceUnavailable):
        read_document(FileOrigin(path=tmp_path / "missing.txt"))
