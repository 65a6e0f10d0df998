"""Completion script and JSON generators.

Each generator is a pure function of a command tree. Options come out in the
order the help text declared them and subcommands in discovery order, so the
same tree always renders to the same bytes.
"""

from __future__ import annotations

import json
import re
import shlex
from typing import Callable, Final, Iterator

from .errors import UnsupportedFormat
from .models import CommandModel, GenerationOptions, OptionEntry, SubcommandNode, SubcommandPath
from .orchestrator import iter_nodes
from .schema import document_payload

Generator = Callable[[SubcommandNode, GenerationOptions], str]

_SENTENCE_END_RE = re.compile(r"\.(?:\s|$)")
_PATH_LIKE_RE = re.compile(r"file|dir|path|archive", re.IGNORECASE)
_IDENT_RE = re.compile(r"[^A-Za-z0-9_]")
_NU_FLAG_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]*$")
_BASH_SAFE_RE = re.compile(r"[^\w.,+/=-]")

# Characters that need no quoting in fish
_FISH_SAFE_CHARS: Final[frozenset[str]] = frozenset(
    "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789_-/.,+=:@%"
)


def first_sentence(text: str) -> str:
    """Collapse whitespace and cut after the first sentence."""
    text = " ".join(text.split())
    match = _SENTENCE_END_RE.search(text)
    if match:
        return text[: match.start()]
    return text


def is_path_like(entry: OptionEntry) -> bool:
    if not entry.takes_value:
        return False
    if entry.value_placeholder and _PATH_LIKE_RE.search(entry.value_placeholder):
        return True
    return bool(_PATH_LIKE_RE.search(entry.description))


def _as_node(tree: CommandModel | SubcommandNode) -> SubcommandNode:
    if isinstance(tree, SubcommandNode):
        return tree
    return SubcommandNode(model=tree, resolved=True)


def _ident(path: SubcommandPath) -> str:
    return "__".join(_IDENT_RE.sub("_", part) for part in path)


def _idents(root: CommandModel) -> dict[SubcommandPath, str]:
    """Shell identifier per command path, suffixed `_2`, `_3`... on collisions.

    Sibling names such as `a-b` and `a_b` sanitize to the same identifier.
    """
    out: dict[SubcommandPath, str] = {}
    used: set[str] = set()
    for path, _ in _walk(root):
        base = ident = _ident(path)
        n = 2
        while ident in used:
            ident = f"{base}_{n}"
            n += 1
        used.add(ident)
        out[path] = ident
    return out


def _walk(model: CommandModel, path: SubcommandPath = ()) -> Iterator[tuple[SubcommandPath, CommandModel]]:
    path = path + (model.name,)
    yield path, model
    for child in model.subcommands.values():
        yield from _walk(child.model, path)


def _subcommand_names(model: CommandModel) -> Iterator[tuple[str, SubcommandNode]]:
    """Subcommand names followed by their aliases, in discovery order."""
    for name, child in model.subcommands.items():
        yield name, child
        for alias in child.model.aliases:
            yield alias, child


def _unique(items: Iterator[str] | list[str]) -> list[str]:
    seen: set[str] = set()
    out = []
    for item in items:
        if item in seen:
            continue
        seen.add(item)
        out.append(item)
    return out


def _dash_flags(entry: OptionEntry) -> list[str]:
    # Shells that only understand dash options drop slash forms.
    return [f for f in entry.flags if f.startswith("-")]


# bash


def _bash_word(word: str) -> str:
    return word.replace("\\", "\\\\").replace('"', '\\"').replace("$", "\\$").replace("`", "\\`")


def _bash_compat_word(flag: str, description: str) -> str:
    desc = "_".join(first_sentence(description).split()).replace(":", "_")
    desc = _BASH_SAFE_RE.sub("", desc)
    return f"{flag}:{desc}" if desc else flag


def generate_bash(tree: CommandModel | SubcommandNode, options: GenerationOptions) -> str:
    root = _as_node(tree).model
    ids = _idents(root)
    fn = f"_{ids[(root.name,)]}"
    lines = [
        f"{fn}()",
        "{",
        "  local cur prev cmd i opts",
        "  COMPREPLY=()",
        '  cur="${COMP_WORDS[COMP_CWORD]}"',
        '  prev="${COMP_WORDS[COMP_CWORD-1]}"',
        f"  cmd={ids[(root.name,)]}",
        "",
    ]

    transitions = []
    for path, model in _walk(root):
        for name, child in _subcommand_names(model):
            pattern = shlex.quote(f"{ids[path]},{name}")
            transitions.append(f"      {pattern}) cmd={ids[path + (child.name,)]} ;;")
    if transitions:
        lines += [
            "  for ((i = 1; i < COMP_CWORD; i++)); do",
            '    case "${cmd},${COMP_WORDS[i]}" in',
            *transitions,
            "    esac",
            "  done",
            "",
        ]

    lines.append('  case "${cmd}" in')
    for path, model in _walk(root):
        words: list[str] = []
        for entry in model.options:
            for flag in entry.flags:
                if options.bash_compat:
                    words.append(_bash_compat_word(flag, entry.description))
                else:
                    words.append(flag)
        words.extend(name for name, _ in _subcommand_names(model))
        opts = " ".join(_bash_word(w) for w in _unique(words))
        lines += [
            f"    {ids[path]})",
            f'      opts="{opts}"',
            "      ;;",
        ]
    lines += [
        "    *)",
        '      opts=""',
        "      ;;",
        "  esac",
        "",
        '  COMPREPLY=($(compgen -W "${opts}" -- "${cur}"))',
    ]
    if options.bash_compat:
        lines += [
            "  if type __ltrim_colon_completions &>/dev/null; then",
            '    __ltrim_colon_completions "$cur"',
            "  fi",
        ]
    lines += [
        "  return 0",
        "}",
        "",
        f"complete -o bashdefault -o default -F {fn} {shlex.quote(root.name)}",
    ]
    return "\n".join(lines) + "\n"


# zsh


def _zsh_quote(text: str) -> str:
    return "'" + text.replace("'", "'\\''") + "'"


def _zsh_bracket(text: str) -> str:
    return text.replace("\\", "\\\\").replace("[", "\\[").replace("]", "\\]")


def _zsh_option_specs(entry: OptionEntry) -> list[str]:
    desc = _zsh_bracket(first_sentence(entry.description))
    repeat = "*" if entry.repeatable else ""
    specs = []
    for flag in _dash_flags(entry):
        spec = f"{repeat}{flag}"
        if entry.takes_value and flag.startswith("--"):
            spec += "="
        spec += f"[{desc}]"
        if entry.takes_value:
            message = (entry.value_placeholder or "value").replace(":", "\\:")
            action = "_files" if is_path_like(entry) else " "
            spec += f":{message}:{action}"
        specs.append(_zsh_quote(spec))
    return specs


def _zsh_function(
    path: SubcommandPath, model: CommandModel, ids: dict[SubcommandPath, str]
) -> list[str]:
    fn = f"_{ids[path]}"
    specs = [s for entry in model.options for s in _zsh_option_specs(entry)]
    lines = [f"{fn}() {{"]
    if not model.subcommands:
        if specs:
            lines.append("  _arguments -s -S \\")
            lines += [f"    {s} \\" for s in specs[:-1]]
            lines.append(f"    {specs[-1]}")
        else:
            lines.append("  _default")
        lines.append("}")
        return lines

    lines += [
        "  local context curcontext=\"$curcontext\" state line",
        "  _arguments -C -s -S \\",
        *(f"    {s} \\" for s in specs),
        "    '1: :->cmds' \\",
        "    '*::arg:->args'",
        "",
        "  case $state in",
        "    cmds)",
        "      local -a commands",
        "      commands=(",
    ]
    for name, child in _subcommand_names(model):
        entry = name.replace(":", "\\:")
        summary = first_sentence(child.model.summary or "")
        lines.append(f"        {_zsh_quote(f'{entry}:{summary}' if summary else entry)}")
    lines += [
        "      )",
        f"      _describe -t commands {_zsh_quote(' '.join(path) + ' commands')} commands",
        "      ;;",
        "    args)",
        "      case $line[1] in",
    ]
    for name, child in model.subcommands.items():
        labels = "|".join(shlex.quote(n) for n in (name, *child.model.aliases))
        lines.append(f"        {labels}) _{ids[path + (child.name,)]} ;;")
    lines += [
        "      esac",
        "      ;;",
        "  esac",
        "}",
    ]
    return lines


def generate_zsh(tree: CommandModel | SubcommandNode, options: GenerationOptions) -> str:
    root = _as_node(tree).model
    ids = _idents(root)
    lines = [f"#compdef {root.name}", ""]
    for path, model in _walk(root):
        lines += _zsh_function(path, model, ids)
        lines.append("")
    lines.append(f'_{ids[(root.name,)]} "$@"')
    return "\n".join(lines) + "\n"


# fish


def fish_escape(text: str) -> str:
    # Quote only when the string has unsafe characters.
    if text and _FISH_SAFE_CHARS.issuperset(text):
        return text
    text = text.replace("\\", "\\\\").replace("'", "\\'")
    return "'" + text + "'"


def _fish_walk(
    model: CommandModel, selectors: tuple[tuple[str, ...], ...] = ()
) -> Iterator[tuple[tuple[tuple[str, ...], ...], CommandModel]]:
    # Each selector holds a subcommand's name followed by its aliases.
    yield selectors, model
    for name, child in model.subcommands.items():
        yield from _fish_walk(child.model, selectors + ((name, *child.model.aliases),))


def _fish_condition(selectors: tuple[tuple[str, ...], ...], model: CommandModel) -> str | None:
    """Condition that holds while completing directly below the selected subcommand."""
    parts = [
        "__fish_seen_subcommand_from " + " ".join(fish_escape(n) for n in names)
        for names in selectors
    ]
    children = [n for n, _ in _subcommand_names(model)]
    if children:
        if not selectors:
            parts.append("__fish_use_subcommand")
        else:
            parts.append("not __fish_seen_subcommand_from " + " ".join(fish_escape(c) for c in children))
    if not parts:
        return None
    return "; and ".join(parts)


def _fish_option_line(command: str, condition: str | None, entry: OptionEntry) -> str | None:
    parts = ["complete", "-c", fish_escape(command)]
    if condition:
        parts += ["-n", fish_escape(condition)]
    names = []
    if entry.short and entry.short_prefix == "-":
        names += ["-s", fish_escape(entry.short)]
    if entry.long and entry.long_prefix == "--":
        names += ["-l", fish_escape(entry.long)]
    elif entry.long and entry.long_prefix == "-":
        names += ["-o", fish_escape(entry.long)]
    if not names:
        return None
    parts += names
    if entry.takes_value:
        parts.append("-r" if is_path_like(entry) else "-x")
    desc = first_sentence(entry.description)
    if desc:
        parts += ["-d", fish_escape(desc)]
    return " ".join(parts)


def generate_fish(tree: CommandModel | SubcommandNode, options: GenerationOptions) -> str:
    root = _as_node(tree).model
    command = root.name
    lines: list[str] = []
    for selectors, model in _fish_walk(root):
        condition = _fish_condition(selectors, model)
        lines.append(f"# {' '.join([command, *(names[0] for names in selectors)])}")
        for entry in model.options:
            line = _fish_option_line(command, condition, entry)
            if line:
                lines.append(line)
        for name, child in _subcommand_names(model):
            parts = ["complete", "-c", fish_escape(command)]
            if condition:
                parts += ["-n", fish_escape(condition)]
            parts += ["-f", "-a", fish_escape(name)]
            summary = first_sentence(child.model.summary or "")
            if summary:
                parts += ["-d", fish_escape(summary)]
            lines.append(" ".join(parts))
    return "\n".join(lines) + "\n"


# powershell


def _ps_quote(text: str) -> str:
    return "'" + text.replace("'", "''") + "'"


def _ps_result(text: str, kind: str, tooltip: str) -> str:
    return (
        f"[CompletionResult]::new({_ps_quote(text)}, {_ps_quote(text)}, "
        f"[CompletionResultType]::{kind}, {_ps_quote(tooltip or text)})"
    )


def _path_keys(path: SubcommandPath, aliases: tuple[str, ...]) -> list[str]:
    keys = [";".join(path)]
    keys += [";".join(path[:-1] + (alias,)) for alias in aliases]
    return keys


def _walk_with_aliases(
    root: CommandModel,
) -> Iterator[tuple[SubcommandPath, CommandModel, list[str]]]:
    for path, model in _walk(root):
        aliases = model.aliases if len(path) > 1 else ()
        yield path, model, _path_keys(path, aliases)


def generate_powershell(tree: CommandModel | SubcommandNode, options: GenerationOptions) -> str:
    root = _as_node(tree).model
    lines = [
        "using namespace System.Management.Automation",
        "using namespace System.Management.Automation.Language",
        "",
        f"Register-ArgumentCompleter -Native -CommandName {_ps_quote(root.name)} -ScriptBlock {{",
        "    param($wordToComplete, $commandAst, $cursorPosition)",
        "",
        "    $commandElements = $commandAst.CommandElements",
        "    $command = @(",
        f"        {_ps_quote(root.name)}",
        "        for ($i = 1; $i -lt $commandElements.Count; $i++) {",
        "            $element = $commandElements[$i]",
        "            if ($element -isnot [StringConstantExpressionAst] -or",
        "                $element.StringConstantType -ne [StringConstantType]::BareWord -or",
        "                $element.Value.StartsWith('-') -or",
        "                $element.Value -eq $wordToComplete) {",
        "                break",
        "            }",
        "            $element.Value",
        "        }) -join ';'",
        "",
        "    $completions = @(switch ($command) {",
    ]
    for path, model, keys in _walk_with_aliases(root):
        body = []
        for entry in model.options:
            desc = first_sentence(entry.description)
            for flag in entry.flags:
                body.append(_ps_result(flag, "ParameterName", desc))
        for name, child in _subcommand_names(model):
            body.append(_ps_result(name, "ParameterValue", first_sentence(child.model.summary or "")))
        for key in keys:
            lines.append(f"        {_ps_quote(key)} {{")
            lines += [f"            {b}" for b in body]
            lines += ["            break", "        }"]
    lines += [
        "    })",
        "",
        "    $completions.Where{ $_.CompletionText -like \"$wordToComplete*\" }",
        "}",
    ]
    return "\n".join(lines) + "\n"


# elvish


def _elvish_quote(text: str) -> str:
    return "'" + text.replace("'", "''") + "'"


def generate_elvish(tree: CommandModel | SubcommandNode, options: GenerationOptions) -> str:
    root = _as_node(tree).model
    lines = [
        "use builtin;",
        "use str;",
        "",
        f"set edit:completion:arg-completer[{_elvish_quote(root.name)}] = {{|@words|",
        "    fn spaces {|n|",
        "        builtin:repeat $n ' ' | str:join ''",
        "    }",
        "    fn cand {|text desc|",
        "        edit:complex-candidate $text &display=$text' '(spaces (- 14 (wcswidth $text)))$desc",
        "    }",
        f"    var command = {_elvish_quote(root.name)}",
        "    for word $words[1..-1] {",
        "        if (str:has-prefix $word '-') {",
        "            break",
        "        }",
        "        set command = $command';'$word",
        "    }",
        "    var completions = [",
    ]
    for path, model, keys in _walk_with_aliases(root):
        body = []
        for entry in model.options:
            desc = _elvish_quote(first_sentence(entry.description))
            for flag in entry.flags:
                body.append(f"            cand {_elvish_quote(flag)} {desc}")
        for name, child in _subcommand_names(model):
            summary = _elvish_quote(first_sentence(child.model.summary or ""))
            body.append(f"            cand {_elvish_quote(name)} {summary}")
        for key in keys:
            lines.append(f"        &{_elvish_quote(key)}= {{")
            lines += body
            lines.append("        }")
    lines += [
        "    ]",
        "    if (has-key $completions $command) {",
        "        $completions[$command]",
        "    }",
        "}",
    ]
    return "\n".join(lines) + "\n"


# nushell


def _nu_comment(text: str) -> str:
    return first_sentence(text).replace("\n", " ")


def _nu_flag(entry: OptionEntry) -> str | None:
    short = entry.short if entry.short and entry.short_prefix == "-" else None
    long = entry.long if entry.long and entry.long_prefix == "--" else None
    if long and not _NU_FLAG_RE.match(long):
        long = None
    if short and not _NU_FLAG_RE.match(short):
        short = None
    if long and short:
        flag = f"--{long}(-{short})"
    elif long:
        flag = f"--{long}"
    elif short:
        flag = f"-{short}"
    else:
        return None
    if entry.takes_value:
        flag += ": path" if is_path_like(entry) else ": string"
    desc = _nu_comment(entry.description)
    return f"{flag}  # {desc}" if desc else flag


def generate_nushell(tree: CommandModel | SubcommandNode, options: GenerationOptions) -> str:
    root = _as_node(tree).model
    lines = ["module completions {", ""]
    for path, model in _walk(root):
        if model.summary:
            lines.append(f"  # {_nu_comment(model.summary)}")
        lines.append(f"  export extern {json.dumps(' '.join(path))} [")
        for entry in model.options:
            flag = _nu_flag(entry)
            if flag:
                lines.append(f"    {flag}")
        lines += ["  ]", ""]
    lines += ["}", "", "export use completions *"]
    return "\n".join(lines) + "\n"


# json / native


def tree_warnings(node: SubcommandNode) -> list[str]:
    return [f"{' '.join(path)}: {n.warning}" for path, n in iter_nodes(node) if n.warning]


def generate_json(tree: CommandModel | SubcommandNode, options: GenerationOptions) -> str:
    node = _as_node(tree)
    payload = document_payload(node, warnings=tree_warnings(node))
    return json.dumps(payload, indent=2, sort_keys=True) + "\n"


def generate_native(tree: CommandModel | SubcommandNode, options: GenerationOptions) -> str:
    model = _as_node(tree).model
    blocks = [
        f"Name:  {model.name}",
        f"Desc:  {model.summary or ''}",
        f"Usage:\n{model.usage or ''}",
    ]
    for entry in model.options:
        blocks.append(f"  {', '.join(entry.flags)} ({entry.value_placeholder or ''})")
    for name in model.subcommands:
        blocks.append(f"Subcommand: {name}")
    return "\n\n".join(blocks) + "\n"


GENERATORS: Final[dict[str, Generator]] = {
    "bash": generate_bash,
    "zsh": generate_zsh,
    "fish": generate_fish,
    "powershell": generate_powershell,
    "elvish": generate_elvish,
    "nushell": generate_nushell,
    "json": generate_json,
    "native": generate_native,
}
FORMATS: Final[tuple[str, ...]] = tuple(GENERATORS)


def generate(
    tree: CommandModel | SubcommandNode,
    format: str,
    options: GenerationOptions | None = None,
) -> str:
    try:
        generator = GENERATORS[format]
    except KeyError:
        raise UnsupportedFormat(
            f"unknown format {format!r} (expected one of: {', '.join(FORMATS)})"
        ) from None
    return generator(_as_node(tree), options or GenerationOptions())
