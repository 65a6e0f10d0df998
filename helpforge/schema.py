"""JSON payloads for command trees.

Payload layout (`render(tree, "json")` output):

    {
      "protocol_version": 1,
      "warnings": ["git stash: ..."],
      "root": <node>
    }

where a node is `{"command": <model>, "depth_remaining", "resolved",
"truncated", "warning"}` and a model carries `name`, `summary`, `usage`,
`aliases`, `options`, `positionals` and `subcommands` (a list of nodes, in
discovery order). Loading also accepts a bare node, a bare model, and the
legacy Command layout where options are `{"names": [...], "argument",
"description"}` and subcommands are nested commands.
"""

from __future__ import annotations

from typing import Final, TypedDict

from .errors import MalformedJson
from .models import CommandModel, OptionEntry, PositionalArg, SubcommandNode

PROTOCOL_VERSION: Final[int] = 1


class OptionPayload(TypedDict):
    short: str | None
    long: str | None
    short_prefix: str
    long_prefix: str
    value_placeholder: str | None
    description: str
    takes_value: bool
    repeatable: bool


class PositionalPayload(TypedDict):
    name: str
    description: str
    required: bool
    variadic: bool


class ModelPayload(TypedDict):
    name: str
    summary: str | None
    usage: str | None
    aliases: list[str]
    options: list[OptionPayload]
    positionals: list[PositionalPayload]
    subcommands: list["NodePayload"]


class NodePayload(TypedDict):
    command: ModelPayload
    depth_remaining: int
    resolved: bool
    truncated: bool
    warning: str | None


class DocumentPayload(TypedDict):
    protocol_version: int
    warnings: list[str]
    root: NodePayload


def _nullable_string() -> dict:
    return {"type": ["string", "null"]}


def command_model_json_schema() -> dict:
    """JSON Schema for rendered documents."""
    option = {
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "short": _nullable_string(),
            "long": _nullable_string(),
            "short_prefix": {"type": "string"},
            "long_prefix": {"type": "string"},
            "value_placeholder": _nullable_string(),
            "description": {"type": "string"},
            "takes_value": {"type": "boolean"},
            "repeatable": {"type": "boolean"},
        },
        "required": ["short", "long", "description", "takes_value", "repeatable"],
    }
    positional = {
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "name": {"type": "string", "minLength": 1},
            "description": {"type": "string"},
            "required": {"type": "boolean"},
            "variadic": {"type": "boolean"},
        },
        "required": ["name", "description", "required", "variadic"],
    }
    model = {
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "name": {"type": "string", "minLength": 1},
            "summary": _nullable_string(),
            "usage": _nullable_string(),
            "aliases": {"type": "array", "items": {"type": "string"}},
            "options": {"type": "array", "items": {"$ref": "#/$defs/option"}},
            "positionals": {"type": "array", "items": {"$ref": "#/$defs/positional"}},
            "subcommands": {"type": "array", "items": {"$ref": "#/$defs/node"}},
        },
        "required": ["name", "options", "subcommands"],
    }
    node = {
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "command": {"$ref": "#/$defs/model"},
            "depth_remaining": {"type": "integer", "minimum": 0},
            "resolved": {"type": "boolean"},
            "truncated": {"type": "boolean"},
            "warning": _nullable_string(),
        },
        "required": ["command", "depth_remaining", "resolved"],
    }
    return {
        "$schema": "https://json-schema.org/draft/2020-12/schema",
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "protocol_version": {"type": "integer"},
            "warnings": {"type": "array", "items": {"type": "string"}},
            "root": {"$ref": "#/$defs/node"},
        },
        "required": ["protocol_version", "root"],
        "$defs": {
            "option": option,
            "positional": positional,
            "model": model,
            "node": node,
        },
    }


def option_to_payload(entry: OptionEntry) -> OptionPayload:
    return {
        "short": entry.short,
        "long": entry.long,
        "short_prefix": entry.short_prefix,
        "long_prefix": entry.long_prefix,
        "value_placeholder": entry.value_placeholder,
        "description": entry.description,
        "takes_value": entry.takes_value,
        "repeatable": entry.repeatable,
    }


def model_to_payload(model: CommandModel) -> ModelPayload:
    return {
        "name": model.name,
        "summary": model.summary,
        "usage": model.usage,
        "aliases": list(model.aliases),
        "options": [option_to_payload(o) for o in model.options],
        "positionals": [
            {
                "name": p.name,
                "description": p.description,
                "required": p.required,
                "variadic": p.variadic,
            }
            for p in model.positionals
        ],
        "subcommands": [node_to_payload(n) for n in model.subcommands.values()],
    }


def node_to_payload(node: SubcommandNode) -> NodePayload:
    return {
        "command": model_to_payload(node.model),
        "depth_remaining": node.depth_remaining,
        "resolved": node.resolved,
        "truncated": node.truncated,
        "warning": node.warning,
    }


def document_payload(node: SubcommandNode, *, warnings: list[str]) -> DocumentPayload:
    return {
        "protocol_version": PROTOCOL_VERSION,
        "warnings": warnings,
        "root": node_to_payload(node),
    }


def _opt_str(payload: dict, key: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise MalformedJson(f"{key} must be a string or null")
    return value


def _str(payload: dict, key: str, default: str = "") -> str:
    value = payload.get(key, default)
    if not isinstance(value, str):
        raise MalformedJson(f"{key} must be a string")
    return value


def _bool(payload: dict, key: str, default: bool = False) -> bool:
    value = payload.get(key, default)
    if not isinstance(value, bool):
        raise MalformedJson(f"{key} must be a boolean")
    return value


def _legacy_option(payload: dict) -> OptionEntry | None:
    names = payload.get("names")
    if not isinstance(names, list):
        raise MalformedJson("option names must be an array")
    short: tuple[str, str] | None = None
    long: tuple[str, str] | None = None
    for raw in names:
        if isinstance(raw, dict):
            raw = raw.get("raw")
        if not isinstance(raw, str):
            raise MalformedJson("option names must be strings")
        bare = raw.lstrip("-")
        if not bare or not raw.startswith("-"):
            continue
        prefix = raw[: len(raw) - len(bare)]
        if prefix == "-" and len(bare) == 1:
            short = short or (prefix, bare)
        else:
            long = long or (prefix, bare)
    if short is None and long is None:
        return None
    argument = _str(payload, "argument") or None
    return OptionEntry(
        short=short[1] if short else None,
        long=long[1] if long else None,
        value_placeholder=argument,
        description=_str(payload, "description"),
        takes_value=argument is not None,
        repeatable=bool(argument and argument.endswith("...")),
        short_prefix=short[0] if short else "-",
        long_prefix=long[0] if long else "--",
    )


def option_from_payload(payload: object) -> OptionEntry | None:
    if not isinstance(payload, dict):
        raise MalformedJson("option must be an object")
    if "names" in payload:
        return _legacy_option(payload)
    short = _opt_str(payload, "short")
    long = _opt_str(payload, "long")
    if not short and not long:
        raise MalformedJson("option needs a short or long form")
    placeholder = _opt_str(payload, "value_placeholder")
    return OptionEntry(
        short=short,
        long=long,
        value_placeholder=placeholder,
        description=_str(payload, "description"),
        takes_value=_bool(payload, "takes_value", placeholder is not None),
        repeatable=_bool(payload, "repeatable"),
        short_prefix=_str(payload, "short_prefix", "-"),
        long_prefix=_str(payload, "long_prefix", "--"),
    )


def positional_from_payload(payload: object) -> PositionalArg:
    if not isinstance(payload, dict):
        raise MalformedJson("positional must be an object")
    name = payload.get("name")
    if not isinstance(name, str) or not name:
        raise MalformedJson("positional name must be a non-empty string")
    return PositionalArg(
        name=name,
        description=_str(payload, "description"),
        required=_bool(payload, "required", True),
        variadic=_bool(payload, "variadic"),
    )


def model_from_payload(payload: object) -> CommandModel:
    if not isinstance(payload, dict):
        raise MalformedJson("command must be an object")
    name = payload.get("name")
    if not isinstance(name, str) or not name:
        raise MalformedJson("command name must be a non-empty string")

    raw_options = payload.get("options", [])
    if not isinstance(raw_options, list):
        raise MalformedJson("options must be an array")
    options = tuple(o for o in (option_from_payload(item) for item in raw_options) if o)
    seen_flags: set[str] = set()
    for entry in options:
        for flag in entry.flags:
            if flag in seen_flags:
                raise MalformedJson(f"duplicate option: {flag}")
            seen_flags.add(flag)

    raw_positionals = payload.get("positionals", [])
    if not isinstance(raw_positionals, list):
        raise MalformedJson("positionals must be an array")

    raw_aliases = payload.get("aliases", [])
    if not isinstance(raw_aliases, list) or not all(isinstance(a, str) for a in raw_aliases):
        raise MalformedJson("aliases must be an array of strings")

    raw_subcommands = payload.get("subcommands") or []
    if not isinstance(raw_subcommands, list):
        raise MalformedJson("subcommands must be an array")
    subcommands: dict[str, SubcommandNode] = {}
    for item in raw_subcommands:
        node = _child_from_payload(item)
        if node.name in subcommands:
            raise MalformedJson(f"duplicate subcommand: {node.name}")
        subcommands[node.name] = node

    summary = _opt_str(payload, "summary")
    if summary is None and "description" in payload:
        # legacy layout
        summary = _str(payload, "description") or None
    usage = _opt_str(payload, "usage") or None

    return CommandModel(
        name=name,
        summary=summary,
        usage=usage,
        aliases=tuple(raw_aliases),
        options=options,
        positionals=tuple(positional_from_payload(p) for p in raw_positionals),
        subcommands=subcommands,
    )


def _child_from_payload(payload: object) -> SubcommandNode:
    if isinstance(payload, dict) and isinstance(payload.get("command"), dict):
        return node_from_payload(payload)
    # Legacy nested commands carry no node state.
    return SubcommandNode(model=model_from_payload(payload), depth_remaining=0, resolved=True)


def node_from_payload(payload: object) -> SubcommandNode:
    if not isinstance(payload, dict):
        raise MalformedJson("node must be an object")
    depth = payload.get("depth_remaining", 0)
    if not isinstance(depth, int) or isinstance(depth, bool) or depth < 0:
        raise MalformedJson("depth_remaining must be a non-negative integer")
    return SubcommandNode(
        model=model_from_payload(payload.get("command")),
        depth_remaining=depth,
        resolved=_bool(payload, "resolved"),
        truncated=_bool(payload, "truncated"),
        warning=_opt_str(payload, "warning"),
    )


def load_json_document(payload: object, *, name: str | None = None) -> SubcommandNode:
    """Accept a rendered document, a bare node, a bare model or a legacy command.

    `name` fills in the root command name when a bare model omits it.
    """
    if not isinstance(payload, dict):
        raise MalformedJson("document must be an object")
    if name and "root" not in payload and "command" not in payload and not payload.get("name"):
        payload = {**payload, "name": name}
    if "root" in payload:
        version = payload.get("protocol_version")
        if version != PROTOCOL_VERSION:
            raise MalformedJson(f"protocol_version mismatch: {version!r}")
        return node_from_payload(payload["root"])
    if isinstance(payload.get("command"), dict):
        return node_from_payload(payload)
    return SubcommandNode(model=model_from_payload(payload), depth_remaining=0, resolved=True)
