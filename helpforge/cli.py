"""helpforge - shell completions from --help and man pages.

Usage:
    helpforge -c git -o fish                 # Complete `git` for fish
    helpforge -s git-stash -o json           # Only the `git stash` subtree
    helpforge -f help.txt -o zsh             # Help text saved in a file
    helpforge -l git.json -o bash -b         # Previously exported JSON
    helpforge -c docker -L                   # List discovered subcommands
    helpforge --cache-stats
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from . import config
from .builder import build_from_document
from .cache import CommandCache
from .core import Extractor, list_subcommands, origin_name, render_request
from .errors import HelpforgeError, format_error
from .generators import FORMATS
from .models import (
    CommandOrigin,
    FileOrigin,
    GenerationOptions,
    GenerationRequest,
    JsonOrigin,
    Origin,
    RawDocument,
    SubcommandNode,
)
from .normalize import normalize
from .recognize import recognize
from .sources import DefaultHelpProvider, capture_document, read_document

logger = logging.getLogger(__name__)

SHELLS = ("bash", "zsh", "fish", "powershell", "elvish", "nushell")


def _configure_logging(verbose: int) -> None:
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose >= 2:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="[helpforge] %(levelname)s: %(message)s",
        stream=sys.stderr,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="helpforge",
        description="Generate shell completions from help text and man pages",
        epilog=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    source = parser.add_mutually_exclusive_group()
    source.add_argument("-c", "--command", help="Extract options from a command's help/man page")
    source.add_argument("-f", "--file", help="Extract options from a help text file")
    source.add_argument(
        "-s",
        "--subcommand",
        metavar="CMD-SUB",
        help="Extract options from a subcommand (e.g. git-log)",
    )
    source.add_argument("-l", "--loadjson", help="Load a previously exported JSON document")

    parser.add_argument(
        "-o",
        "--format",
        default="native",
        choices=FORMATS,
        help="Output format (default: native)",
    )
    parser.add_argument(
        "-C",
        "--completions",
        metavar="SHELL",
        choices=SHELLS,
        help="Generate a completion script for SHELL (overrides --format)",
    )
    parser.add_argument("-j", "--json", action="store_true", help="Same as --format json")
    parser.add_argument(
        "-m",
        "--skip-man",
        action="store_true",
        default=None,
        help="Only use --help output, never man pages",
    )
    parser.add_argument(
        "-L", "--list-subcommands", action="store_true", help="List discovered subcommands"
    )
    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Print normalized sections and recognized records instead of output",
    )
    parser.add_argument(
        "-D",
        "--depth",
        type=int,
        default=config.max_depth(),
        help="Limit subcommand depth (default from config)",
    )
    parser.add_argument(
        "-b",
        "--bash-completion-compat",
        action="store_true",
        help="Use bash-completion's name:Description format for bash output",
    )
    parser.add_argument("--no-cache", action="store_true", help="Bypass the cache")
    parser.add_argument(
        "--cache-ttl",
        type=float,
        metavar="HOURS",
        default=config.cache_ttl_hours(),
        help="Cache entry lifetime in hours (default from config)",
    )
    parser.add_argument("--cache-clear", action="store_true", help="Remove all cache entries")
    parser.add_argument("--cache-stats", action="store_true", help="Show cache statistics")
    parser.add_argument(
        "-w",
        "--write",
        action="store_true",
        help="Write output under the helpforge home directory and print its path",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=config.verbose_level(),
        help="More logging (-v info, -vv debug)",
    )
    return parser


def _origin(args: argparse.Namespace, parser: argparse.ArgumentParser) -> Origin:
    if args.loadjson:
        return JsonOrigin(path=Path(args.loadjson))
    if args.file:
        return FileOrigin(path=Path(args.file))
    if args.subcommand:
        command, sep, sub = args.subcommand.partition("-")
        if not sep or not command or not sub:
            parser.error("subcommand format should be command-subcommand (e.g. git-log)")
        return CommandOrigin(path=(command, sub))
    if not args.command:
        parser.error("no input source: use --command, --file, --subcommand or --loadjson")
    return CommandOrigin(path=(args.command,))


def _raw_document(origin: Origin, *, skip_man: bool) -> RawDocument:
    if isinstance(origin, CommandOrigin):
        return capture_document(DefaultHelpProvider(), origin, skip_man=skip_man)
    return read_document(origin)


def _print_debug(origin: Origin, *, skip_man: bool) -> None:
    raw = _raw_document(origin, skip_man=skip_man)
    text = normalize(raw)
    for section in text.sections:
        print(f"== {section.heading}")
        print(section.text())
    print("== RECORDS")
    for record in recognize(text.sections, kind=raw.kind):
        print(record)


def _root_only(origin: Origin, *, skip_man: bool) -> SubcommandNode:
    raw = _raw_document(origin, skip_man=skip_man)
    model = build_from_document(raw, name=origin_name(origin))
    return SubcommandNode(model=model, resolved=True)


def _cache_command(args: argparse.Namespace, cache: CommandCache) -> int:
    if args.cache_clear:
        print(f"Cleared {cache.clear()} cache entries")
    if args.cache_stats:
        stats = cache.stats()
        print(f"Cache directory: {stats.directory}")
        print(f"Entries: {stats.entries}")
        print(f"Expired: {stats.expired}")
        print(f"Size: {stats.total_bytes} bytes")
    return 0


def _write_output(*, name: str, format: str, output: str) -> Path:
    out_dir = config.output_dir()
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / f"{name}.{format}"
    path.write_text(output)
    return path


def run(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    ttl_s = max(0.0, args.cache_ttl) * 3600.0
    cache = CommandCache(config.cache_dir(), default_ttl=ttl_s)
    if args.cache_clear or args.cache_stats:
        return _cache_command(args, cache)

    origin = _origin(args, parser)
    skip_man = config.skip_man() if args.skip_man is None else args.skip_man
    format = "json" if args.json else (args.completions or args.format)

    if args.debug:
        if isinstance(origin, JsonOrigin):
            parser.error("--debug cannot be used with --loadjson")
        _print_debug(origin, skip_man=skip_man)
        return 0

    if args.list_subcommands:
        if isinstance(origin, JsonOrigin):
            parser.error("--list-subcommands cannot be used with --loadjson")
        for name in list_subcommands(_root_only(origin, skip_man=skip_man)):
            print(name)
        return 0

    extractor = Extractor(cache=None if args.no_cache else cache, ttl=ttl_s)
    tree = extractor.extract(origin, args.depth, skip_man)
    request = GenerationRequest(
        model=tree,
        format=format,
        options=GenerationOptions(bash_compat=args.bash_completion_compat),
    )
    output = render_request(request)

    if args.write:
        path = _write_output(name=tree.name, format=format, output=output)
        print(path)
    else:
        sys.stdout.write(output)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    try:
        return run(args, parser)
    except HelpforgeError as e:
        print(format_error(e), file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
