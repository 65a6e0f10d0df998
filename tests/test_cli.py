import json
from pathlib import Path

import pytest

from helpforge.cli import main

DEMO_HELP = """\
Usage: demo [OPTIONS] <FILE>

A demo tool.

Options:
  -v, --verbose         Enable verbose output
  -o, --output <FILE>   Write output to FILE

Commands:
  build, b   Build the project
  log        Show commit logs
"""


@pytest.fixture()
def helpforge_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    home = tmp_path / "helpforge-home"
    monkeypatch.setenv("HELPFORGE_HOME", str(home))
    return home


@pytest.fixture()
def help_file(tmp_path: Path) -> Path:
    path = tmp_path / "demo.txt"
    path.write_text(DEMO_HELP)
    return path


def test_file_to_fish(helpforge_home: Path, help_file: Path, capsys: pytest.CaptureFixture):
    assert main(["-f", str(help_file), "-o", "fish"]) == 0
    out = capsys.readouterr().out
    assert (
        "complete -c demo -n __fish_use_subcommand -s v -l verbose -d 'Enable verbose output'"
        in out
    )
    assert "complete -c demo -n __fish_use_subcommand -f -a build -d 'Build the project'" in out


def test_completions_flag_overrides_format(helpforge_home: Path, help_file: Path, capsys):
    assert main(["-f", str(help_file), "-o", "fish", "-C", "zsh"]) == 0
    assert capsys.readouterr().out.startswith("#compdef demo\n")


def test_json_export_then_load(
    helpforge_home: Path, help_file: Path, tmp_path: Path, capsys: pytest.CaptureFixture
):
    assert main(["-f", str(help_file), "-j"]) == 0
    exported = capsys.readouterr().out
    assert json.loads(exported)["root"]["command"]["name"] == "demo"

    json_path = tmp_path / "demo.json"
    json_path.write_text(exported)
    assert main(["-l", str(json_path), "-o", "bash"]) == 0
    out = capsys.readouterr().out
    assert out.endswith("complete -o bashdefault -o default -F _demo demo\n")


def test_missing_file_reports_error(helpforge_home: Path, tmp_path: Path, capsys):
    assert main(["-f", str(tmp_path / "missing.txt")]) == 1
    assert capsys.readouterr().err.startswith("SourceUnavailable: ")


def test_malformed_json_reports_error(helpforge_home: Path, tmp_path: Path, capsys):
    path = tmp_path / "bad.json"
    path.write_text("[1, 2]")
    assert main(["-l", str(path)]) == 1
    assert capsys.readouterr().err.startswith("MalformedJson: ")


def test_list_subcommands(helpforge_home: Path, help_file: Path, capsys):
    assert main(["-f", str(help_file), "-L"]) == 0
    assert capsys.readouterr().out.splitlines() == ["build", "log"]


def test_debug_prints_sections(helpforge_home: Path, help_file: Path, capsys):
    assert main(["-f", str(help_file), "-d"]) == 0
    out = capsys.readouterr().out
    assert "== OPTIONS" in out
    assert "== RECORDS" in out


def test_write_output(helpforge_home: Path, help_file: Path, capsys):
    assert main(["-f", str(help_file), "-o", "nushell", "-w"]) == 0
    written = helpforge_home / "out" / "demo.nushell"
    assert capsys.readouterr().out.strip() == str(written)
    assert 'export extern "demo" [' in written.read_text()


def test_cache_stats_and_clear(helpforge_home: Path, capsys):
    assert main(["--cache-stats"]) == 0
    out = capsys.readouterr().out
    assert f"Cache directory: {helpforge_home / 'cache'}" in out
    assert "Entries: 0" in out

    assert main(["--cache-clear"]) == 0
    assert capsys.readouterr().out == "Cleared 0 cache entries\n"


def test_bad_subcommand_origin(helpforge_home: Path):
    with pytest.raises(SystemExit) as exc:
        main(["-s", "git"])
    assert exc.value.code == 2


def test_no_source_is_a_usage_error(helpforge_home: Path):
    with pytest.raises(SystemExit) as exc:
        main(["-o", "fish"])
    assert exc.value.code == 2
