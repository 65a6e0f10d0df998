import json

import pytest

from helpforge.errors import UnsupportedFormat
from helpforge.generators import (
    FORMATS,
    first_sentence,
    fish_escape,
    generate,
    is_path_like,
)
from helpforge.models import (
    CommandModel,
    GenerationOptions,
    OptionEntry,
    PositionalArg,
    SubcommandNode,
)
from helpforge.schema import node_from_payload


def _tree() -> SubcommandNode:
    build = SubcommandNode(
        model=CommandModel(
            name="build",
            summary="Build the project. Uses cargo.",
            aliases=("b",),
            options=(OptionEntry(long="release", description="Release mode"),),
        ),
        resolved=True,
    )
    log = SubcommandNode(
        model=CommandModel(name="log", summary="Show commit logs"),
        resolved=True,
        warning="demo log: exited with status 1 and produced no help text",
    )
    model = CommandModel(
        name="demo",
        summary="A demo tool",
        usage="demo [OPTIONS] <FILE>",
        options=(
            OptionEntry(
                short="v", long="verbose", description="Enable verbose output. Twice for more."
            ),
            OptionEntry(
                short="o",
                long="output",
                value_placeholder="FILE",
                description="Write output to FILE",
                takes_value=True,
            ),
            OptionEntry(
                long="level",
                value_placeholder="N",
                description="Set level",
                takes_value=True,
                repeatable=True,
            ),
            OptionEntry(short="A", short_prefix="/", description="Show all"),
        ),
        positionals=(PositionalArg(name="FILE"),),
        subcommands={"build": build, "log": log},
    )
    return SubcommandNode(model=model, depth_remaining=2, resolved=True)


def test_first_sentence():
    assert first_sentence("Enable verbose output. Twice for more.") == "Enable verbose output"
    assert first_sentence("Use v1.2 format") == "Use v1.2 format"
    assert first_sentence("  spread\n  over lines  ") == "spread over lines"


def test_is_path_like():
    assert is_path_like(OptionEntry(long="output", value_placeholder="FILE", takes_value=True))
    assert is_path_like(
        OptionEntry(long="in", value_placeholder="X", description="Input dir", takes_value=True)
    )
    assert not is_path_like(OptionEntry(long="level", value_placeholder="N", takes_value=True))
    assert not is_path_like(OptionEntry(long="files", description="List files"))


def test_fish_escape():
    assert fish_escape("verbose") == "verbose"
    assert fish_escape("Write output") == "'Write output'"
    assert fish_escape("it's") == "'it\\'s'"
    assert fish_escape("") == "''"


@pytest.mark.parametrize("format", FORMATS)
def test_generation_is_deterministic(format: str):
    out = generate(_tree(), format)
    assert out == generate(_tree(), format)
    assert out.endswith("\n")


def test_bash():
    out = generate(_tree(), "bash")
    assert out.startswith("_demo()\n")
    assert '      opts="-v --verbose -o --output --level /A build b log"' in out
    assert "      demo,build) cmd=demo__build ;;" in out
    assert "      demo,b) cmd=demo__build ;;" in out
    assert '      opts="--release"' in out
    assert out.endswith("complete -o bashdefault -o default -F _demo demo\n")
    assert "__ltrim_colon_completions" not in out


def test_bash_compat_words():
    out = generate(_tree(), "bash", GenerationOptions(bash_compat=True))
    assert "-v:Enable_verbose_output" in out
    assert "--output:Write_output_to_FILE" in out
    assert '__ltrim_colon_completions "$cur"' in out


def test_zsh():
    out = generate(_tree(), "zsh")
    lines = out.splitlines()
    assert lines[0] == "#compdef demo"
    assert lines[-1] == '_demo "$@"'
    assert "    '-v[Enable verbose output]' \\" in lines
    assert "    '--output=[Write output to FILE]:FILE:_files' \\" in lines
    assert "    '*--level=[Set level]:N: ' \\" in lines
    assert "        'build:Build the project'" in lines
    assert "        'b:Build the project'" in lines
    assert "        build|b) _demo__build ;;" in lines
    assert "_demo__log() {" in lines
    assert "/A" not in out


def _colliding_tree() -> SubcommandNode:
    model = CommandModel(
        name="demo",
        subcommands={
            "a-b": SubcommandNode(
                model=CommandModel(
                    name="a-b", options=(OptionEntry(long="dash", description="Dashed"),)
                ),
                resolved=True,
            ),
            "a_b": SubcommandNode(
                model=CommandModel(
                    name="a_b", options=(OptionEntry(long="under", description="Underscored"),)
                ),
                resolved=True,
            ),
        },
    )
    return SubcommandNode(model=model, resolved=True)


def test_sanitized_sibling_names_get_distinct_identifiers():
    bash = generate(_colliding_tree(), "bash")
    assert "      demo,a-b) cmd=demo__a_b ;;" in bash
    assert "      demo,a_b) cmd=demo__a_b_2 ;;" in bash
    assert '    demo__a_b)\n      opts="--dash"' in bash
    assert '    demo__a_b_2)\n      opts="--under"' in bash

    zsh = generate(_colliding_tree(), "zsh").splitlines()
    assert "        a-b) _demo__a_b ;;" in zsh
    assert "        a_b) _demo__a_b_2 ;;" in zsh
    assert "_demo__a_b() {" in zsh
    assert "_demo__a_b_2() {" in zsh


def test_fish():
    out = generate(_tree(), "fish")
    lines = out.splitlines()
    assert (
        "complete -c demo -n __fish_use_subcommand -s v -l verbose -d 'Enable verbose output'"
        in lines
    )
    assert (
        "complete -c demo -n __fish_use_subcommand -s o -l output -r -d 'Write output to FILE'"
        in lines
    )
    assert "complete -c demo -n __fish_use_subcommand -l level -x -d 'Set level'" in lines
    assert (
        "complete -c demo -n __fish_use_subcommand -f -a build -d 'Build the project'" in lines
    )
    assert "complete -c demo -n __fish_use_subcommand -f -a b -d 'Build the project'" in lines
    assert (
        "complete -c demo -n '__fish_seen_subcommand_from build b' -l release -d 'Release mode'"
        in lines
    )
    assert "# demo build" in lines
    assert "/A" not in out
    assert out.index("-l verbose") < out.index("-l output") < out.index("-l level")


def test_powershell():
    out = generate(_tree(), "powershell")
    assert "Register-ArgumentCompleter -Native -CommandName 'demo' -ScriptBlock {" in out
    assert "        'demo;build' {" in out
    assert "        'demo;b' {" in out
    assert (
        "[CompletionResult]::new('-v', '-v', [CompletionResultType]::ParameterName, "
        "'Enable verbose output')" in out
    )
    assert (
        "[CompletionResult]::new('log', 'log', [CompletionResultType]::ParameterValue, "
        "'Show commit logs')" in out
    )


def test_elvish():
    out = generate(_tree(), "elvish")
    assert "set edit:completion:arg-completer['demo'] = {|@words|" in out
    assert "        &'demo;build'= {" in out
    assert "            cand '--release' 'Release mode'" in out
    assert "    if (has-key $completions $command) {" in out


def test_nushell():
    out = generate(_tree(), "nushell")
    lines = out.splitlines()
    assert '  export extern "demo" [' in lines
    assert '  export extern "demo build" [' in lines
    assert "    --verbose(-v)  # Enable verbose output" in lines
    assert "    --output(-o): path  # Write output to FILE" in lines
    assert "    --level: string  # Set level" in lines
    assert "  # Build the project" in lines
    assert lines[-1] == "export use completions *"
    assert "/A" not in out


def test_json_round_trip_and_warnings():
    tree = _tree()
    payload = json.loads(generate(tree, "json"))
    assert payload["protocol_version"] == 1
    assert payload["warnings"] == [
        "demo log: demo log: exited with status 1 and produced no help text"
    ]
    assert node_from_payload(payload["root"]) == tree
    names = [n["command"]["name"] for n in payload["root"]["command"]["subcommands"]]
    assert names == ["build", "log"]


def test_native():
    out = generate(_tree(), "native")
    assert out.startswith("Name:  demo\n\nDesc:  A demo tool\n\nUsage:\ndemo [OPTIONS] <FILE>\n")
    assert "  -v, --verbose ()" in out
    assert "  -o, --output (FILE)" in out
    assert out.endswith("Subcommand: build\n\nSubcommand: log\n")


def test_model_input_is_accepted():
    assert generate(_tree().model, "fish") == generate(_tree(), "fish")


def test_unknown_format():
    with pytest.raises(UnsupportedFormat, match="unknown format 'tcsh'"):
        generate(_tree(), "tcsh")
