"""Public entry points: extract a command tree, render it, list subcommands."""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Callable

from . import config
from .builder import build_from_document
from .cache import CommandCache, fingerprint
from .errors import MalformedJson
from .generators import generate
from .models import (
    CommandOrigin,
    FileOrigin,
    GenerationOptions,
    GenerationRequest,
    JsonOrigin,
    Origin,
    SubcommandNode,
)
from .orchestrator import DEADLINE_WARNING, SubcommandOrchestrator, iter_nodes, truncate_tree
from .schema import load_json_document
from .sources import DefaultHelpProvider, HelpProvider, capture_document, read_document

logger = logging.getLogger(__name__)


def origin_name(origin: Origin) -> str:
    if isinstance(origin, CommandOrigin):
        return origin.path[-1]
    return Path(origin.path).stem or str(origin.path)


class Extractor:
    """Cache-checked extraction of a full subcommand tree.

    Only command origins are cached; files are re-read on every call.
    """

    def __init__(
        self,
        provider: HelpProvider | None = None,
        cache: CommandCache | None = None,
        *,
        max_workers: int | None = None,
        timeout_s: float | None = None,
        ttl: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.provider = provider or DefaultHelpProvider()
        self.cache = cache
        self.max_workers = max_workers if max_workers is not None else config.max_workers()
        self.timeout_s = timeout_s if timeout_s is not None else config.expansion_timeout_s()
        self.ttl = ttl
        self._clock = clock

    def extract(
        self,
        origin: Origin,
        depth: int,
        skip_man: bool = False,
        *,
        name: str | None = None,
    ) -> SubcommandNode:
        depth = max(0, depth)
        if isinstance(origin, JsonOrigin):
            return self._from_json(origin, depth, name=name)
        if isinstance(origin, FileOrigin):
            return self._from_file(origin, depth, name=name)
        return self._from_command(origin, depth, skip_man)

    def _from_command(self, origin: CommandOrigin, depth: int, skip_man: bool) -> SubcommandNode:
        key = fingerprint(origin.path, origin.args, "help" if skip_man else "man", depth)
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        raw = capture_document(self.provider, origin, skip_man=skip_man)
        root = build_from_document(raw, name=origin_name(origin))
        orchestrator = SubcommandOrchestrator(
            self.provider,
            max_workers=self.max_workers,
            timeout_s=self.timeout_s,
            skip_man=skip_man,
            clock=self._clock,
        )
        tree = orchestrator.expand(root, depth, command_path=origin.path)

        if any(node.warning == DEADLINE_WARNING for _, node in iter_nodes(tree)):
            logger.info("not caching %s: expansion hit the deadline", " ".join(origin.path))
        elif self.cache is not None:
            try:
                self.cache.put(key, tree, ttl=self.ttl)
            except OSError as e:
                logger.warning("could not write cache entry: %s", e)
        return tree

    def _from_file(self, origin: FileOrigin, depth: int, *, name: str | None) -> SubcommandNode:
        raw = read_document(origin)
        model = build_from_document(raw, name=name or origin_name(origin))
        # Subcommands listed in a file cannot be run, so they stay placeholders.
        return truncate_tree(SubcommandNode(model=model, resolved=True), depth)

    def _from_json(self, origin: JsonOrigin, depth: int, *, name: str | None) -> SubcommandNode:
        raw = read_document(origin)
        try:
            payload = json.loads(raw.text)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MalformedJson(f"{origin.path}: {e}") from e
        node = load_json_document(payload, name=name or origin_name(origin))
        return truncate_tree(node, depth)


def render_request(request: GenerationRequest) -> str:
    return generate(request.model, request.format, request.options)


def render(
    tree: SubcommandNode, format: str, options: GenerationOptions | None = None
) -> str:
    return render_request(
        GenerationRequest(model=tree, format=format, options=options or GenerationOptions())
    )


def list_subcommands(tree: SubcommandNode) -> list[str]:
    """Names of the root's direct subcommands, in discovery order."""
    return list(tree.model.subcommands)


def default_cache(*, ttl_hours: float | None = None) -> CommandCache:
    hours = config.cache_ttl_hours() if ttl_hours is None else ttl_hours
    return CommandCache(config.cache_dir(), default_ttl=hours * 3600.0)


def extract(
    origin: Origin,
    depth: int | None = None,
    skip_man: bool | None = None,
    *,
    use_cache: bool = True,
) -> SubcommandNode:
    """Extract with settings from `config.json` / `HELPFORGE_*` variables."""
    extractor = Extractor(cache=default_cache() if use_cache else None)
    return extractor.extract(
        origin,
        config.max_depth() if depth is None else depth,
        config.skip_man() if skip_man is None else skip_man,
    )
