"""Where raw help text comes from.

Commands are run through a `HelpProvider`. The default provider shells out:
the man page first (rendered through `col -b`), then `--help`, `-h` and
`help`. Files and JSON documents are read straight from disk.
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Final, Protocol

from .errors import SourceUnavailable
from .models import (
    CommandOrigin,
    FileOrigin,
    JsonOrigin,
    Origin,
    RawDocument,
    SourceKind,
    SubcommandPath,
)

logger = logging.getLogger(__name__)

HELP_TIMEOUT_S: Final[int] = 15
MAN_TIMEOUT_S: Final[int] = 10
# Exit status reported when the executable cannot be started at all.
NOT_FOUND_STATUS: Final[int] = 127

# Some commands need special help invocations to show all flags
HELP_SOURCE_OVERRIDES: Final[dict[str, object]] = {
    "curl": lambda subcmds: ["curl", *subcmds, "--help", "all"],
    "git": lambda subcmds: (["git", *subcmds, "-h"] if subcmds else ["git", "-h"]),
    "docker": lambda subcmds: ["docker", *subcmds, "--help"],
    "kubectl": lambda subcmds: ["kubectl", *subcmds, "--help"],
    "npm": lambda subcmds: ["npm", *subcmds, "--help"],
}


@dataclass(frozen=True, slots=True)
class CapturedText:
    text: bytes
    exit_status: int
    kind: SourceKind


class HelpProvider(Protocol):
    def capture(
        self,
        *,
        command: str,
        subcommand: SubcommandPath,
        args: tuple[str, ...],
        skip_man: bool,
    ) -> CapturedText: ...


def command_exists(*, command: str) -> bool:
    if not command:
        return False
    if "/" in command or "\\" in command:
        path = Path(command).expanduser()
        return path.is_file() and os.access(path, os.X_OK)
    return shutil.which(command) is not None


def _looks_like_help(output: bytes) -> bool:
    # Short outputs without any dash are usually error messages.
    return len(output) > 50 and b"-" in output


def _is_man_error_output(*, text: bytes) -> bool:
    # Some man implementations write "No manual entry for ..." to stdout.
    if not text or not text.strip():
        return True
    if len(text) > 300:
        return False
    lowered = text.strip().lower()
    patterns = [
        b"no manual entry",
        b"no entry for",
        b"nothing appropriate",
        b"man: no entry",
        b"not found",
    ]
    return any(pat in lowered for pat in patterns)


def _help_variants(
    command: str, subcommand: SubcommandPath, args: tuple[str, ...]
) -> list[list[str]]:
    base_cmd = [command, *subcommand]
    if args:
        return [base_cmd + list(args)]
    variants: list[list[str]] = []
    override = HELP_SOURCE_OVERRIDES.get(command)
    if callable(override):
        variants.append(override(tuple(subcommand)))
    variants.append(base_cmd + ["--help"])
    variants.append(base_cmd + ["-h"])
    # For some commands, help is a subcommand
    variants.append([command, "help", *subcommand])
    return variants


def get_help_text(
    *,
    command: str,
    subcommand: SubcommandPath = (),
    args: tuple[str, ...] = (),
) -> CapturedText:
    """
    Run the command's help invocations until one looks like help output.

    Explicit `args` replace the built-in variants. When nothing looks like
    help, the first non-empty output is returned as-is.
    """
    fallback: CapturedText | None = None
    status = NOT_FOUND_STATUS
    for cmd in _help_variants(command, subcommand, args):
        logger.debug("running %s", shlex.join(cmd))
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                timeout=HELP_TIMEOUT_S,  # Some commands need time to initialize
                stdin=subprocess.DEVNULL,
            )
        except subprocess.TimeoutExpired:
            logger.info("%s timed out after %ss", shlex.join(cmd), HELP_TIMEOUT_S)
            continue
        except (FileNotFoundError, PermissionError):
            status = NOT_FOUND_STATUS
            continue
        status = result.returncode
        output = result.stdout or result.stderr
        if output and _looks_like_help(output):
            return CapturedText(text=output, exit_status=result.returncode, kind="help")
        if output and fallback is None:
            fallback = CapturedText(text=output, exit_status=result.returncode, kind="help")
    if fallback is not None:
        return fallback
    return CapturedText(text=b"", exit_status=status, kind="help")


def get_man_text(*, command: str, subcommand: SubcommandPath = ()) -> bytes | None:
    """
    Get man page text for a command.

    Subcommands map to hyphenated pages (`git commit` -> `git-commit`).
    Uses col -b to strip formatting for cleaner output.
    """
    man_page = "-".join([command, *subcommand])
    env = {**os.environ, "MANPAGER": "cat", "PAGER": "cat", "MAN_KEEP_FORMATTING": ""}
    attempts = [
        ["sh", "-c", f"man {shlex.quote(man_page)} 2>/dev/null | col -b"],
        ["man", man_page],
    ]
    for cmd in attempts:
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                timeout=MAN_TIMEOUT_S,
                env=env,
                stdin=subprocess.DEVNULL,
            )
        except (subprocess.TimeoutExpired, FileNotFoundError):
            continue
        if result.returncode == 0 and not _is_man_error_output(text=result.stdout):
            return result.stdout
    return None


class DefaultHelpProvider:
    def capture(
        self,
        *,
        command: str,
        subcommand: SubcommandPath,
        args: tuple[str, ...],
        skip_man: bool,
    ) -> CapturedText:
        if not command_exists(command=command):
            return CapturedText(text=b"", exit_status=NOT_FOUND_STATUS, kind="help")
        if not skip_man and not args:
            man = get_man_text(command=command, subcommand=subcommand)
            if man:
                return CapturedText(text=man, exit_status=0, kind="man")
        return get_help_text(command=command, subcommand=subcommand, args=args)


def origin_label(origin: Origin) -> str:
    if isinstance(origin, CommandOrigin):
        return " ".join(origin.path)
    return str(origin.path)


def capture_document(
    provider: HelpProvider, origin: CommandOrigin, *, skip_man: bool = False
) -> RawDocument:
    captured = provider.capture(
        command=origin.command,
        subcommand=origin.subcommand,
        args=origin.args,
        skip_man=skip_man,
    )
    if not captured.text.strip():
        label = origin_label(origin)
        if captured.exit_status == NOT_FOUND_STATUS:
            raise SourceUnavailable(f"{label}: command not found")
        if captured.exit_status != 0:
            raise SourceUnavailable(
                f"{label}: exited with status {captured.exit_status} and produced no help text"
            )
        raise SourceUnavailable(f"{label}: no help text")
    return RawDocument(origin=origin, text=captured.text, kind=captured.kind)


def read_document(origin: FileOrigin | JsonOrigin) -> RawDocument:
    try:
        data = Path(origin.path).expanduser().read_bytes()
    except OSError as e:
        raise SourceUnavailable(f"{origin.path}: {e.strerror or e}") from e
    kind: SourceKind = "json" if isinstance(origin, JsonOrigin) else "file"
    return RawDocument(origin=origin, text=data, kind=kind)
