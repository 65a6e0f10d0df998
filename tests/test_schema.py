import pytest

from helpforge.errors import MalformedJson
from helpforge.models import OptionEntry
from helpforge.schema import (
    PROTOCOL_VERSION,
    command_model_json_schema,
    load_json_document,
    option_from_payload,
)

LEGACY_GIT = {
    "name": "git",
    "description": "the stupid content tracker",
    "usage": "",
    "options": [
        {"names": ["-C"], "argument": "path", "description": "Run as if started in path"},
        {"names": ["--version"], "argument": "", "description": "Print version"},
        {"names": [{"raw": "-p"}, {"raw": "--paginate"}], "argument": "", "description": ""},
        {"names": [], "argument": "", "description": "no usable names"},
    ],
    "subcommands": [
        {"name": "stash", "description": "Stash changes", "options": [], "subcommands": []},
    ],
}


def test_load_legacy_command_layout():
    node = load_json_document(LEGACY_GIT)
    model = node.model

    assert node.resolved and node.depth_remaining == 0
    assert model.name == "git"
    assert model.summary == "the stupid content tracker"
    assert model.usage is None
    assert model.options == (
        OptionEntry(
            short="C",
            value_placeholder="path",
            description="Run as if started in path",
            takes_value=True,
        ),
        OptionEntry(long="version", description="Print version"),
        OptionEntry(short="p", long="paginate"),
    )
    stash = model.subcommands["stash"]
    assert stash.resolved
    assert stash.model.summary == "Stash changes"


def test_old_style_long_keeps_single_dash():
    entry = option_from_payload({"names": ["-name"], "argument": "pattern"})
    assert entry == OptionEntry(
        long="name", long_prefix="-", value_placeholder="pattern", takes_value=True
    )


def test_bare_model_takes_name_from_caller():
    node = load_json_document({"options": [{"long": "all"}]}, name="ls")
    assert node.model.name == "ls"
    assert node.model.options == (OptionEntry(long="all"),)


def test_protocol_version_mismatch():
    payload = {"protocol_version": PROTOCOL_VERSION + 1, "root": {"command": {"name": "x"}}}
    with pytest.raises(MalformedJson, match="protocol_version"):
        load_json_document(payload)


@pytest.mark.parametrize(
    "payload",
    [
        [],
        {"name": ""},
        {"name": "x", "options": {}},
        {"name": "x", "options": [{"description": "no names"}]},
        {"name": "x", "options": [{"long": 3}]},
        {"name": "x", "options": [{"long": "a", "takes_value": "yes"}]},
        {"name": "x", "aliases": ["ok", 1]},
        {"name": "x", "positionals": [{"name": ""}]},
        {"name": "x", "subcommands": [{"name": "a"}, {"name": "a"}]},
        {"name": "x", "options": [{"short": "v", "long": "verbose"}, {"long": "verbose"}]},
        {"name": "x", "options": [{"short": "v", "long": "verbose"}, {"short": "v"}]},
        {"command": {"name": "x"}, "depth_remaining": -1},
    ],
)
def test_malformed_payloads(payload):
    with pytest.raises(MalformedJson):
        load_json_document(payload)


def test_duplicate_option_names_the_flag():
    payload = {"name": "x", "options": [{"long": "color"}, {"short": "c", "long": "color"}]}
    with pytest.raises(MalformedJson, match="duplicate option: --color"):
        load_json_document(payload)


def test_json_schema_shape():
    schema = command_model_json_schema()
    assert schema["required"] == ["protocol_version", "root"]
    assert set(schema["$defs"]) == {"option", "positional", "model", "node"}
    node = schema["$defs"]["node"]
    assert node["properties"]["command"] == {"$ref": "#/$defs/model"}
