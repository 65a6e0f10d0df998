"""Breadth-first, bounded-concurrency expansion of the subcommand tree."""

from __future__ import annotations

import concurrent.futures
import logging
import time
from dataclasses import dataclass, replace
from typing import Callable, Final, Iterator

from .builder import build_from_document
from .config import DEFAULT_MAX_WORKERS
from .models import CommandModel, CommandOrigin, SubcommandNode, SubcommandPath
from .sources import HelpProvider, capture_document

logger = logging.getLogger(__name__)

DEADLINE_WARNING: Final[str] = "not resolved before the expansion deadline"


@dataclass(slots=True)
class _Slot:
    model: CommandModel
    depth_remaining: int
    resolved: bool
    warning: str | None = None


def _label(path: SubcommandPath) -> str:
    return " ".join(path)


class SubcommandOrchestrator:
    """Resolve subcommand placeholders level by level.

    Every node of one depth level is submitted to a thread pool and the level
    is joined before the next one is scheduled. Results are kept in an arena
    keyed by full command path, so each path is extracted at most once.
    """

    def __init__(
        self,
        provider: HelpProvider,
        *,
        max_workers: int = DEFAULT_MAX_WORKERS,
        timeout_s: float | None = None,
        skip_man: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._provider = provider
        self._max_workers = max(1, max_workers)
        self._timeout_s = timeout_s
        self._skip_man = skip_man
        self._clock = clock

    def extract_model(self, path: SubcommandPath) -> CommandModel:
        raw = capture_document(self._provider, CommandOrigin(path=path), skip_man=self._skip_man)
        return build_from_document(raw, name=path[-1])

    def expand(
        self, root: CommandModel, max_depth: int, *, command_path: SubcommandPath
    ) -> SubcommandNode:
        max_depth = max(0, max_depth)
        root_path = tuple(command_path)
        deadline = None if self._timeout_s is None else self._clock() + self._timeout_s
        arena: dict[SubcommandPath, _Slot] = {
            root_path: _Slot(model=root, depth_remaining=max_depth, resolved=True)
        }

        level = [root_path]
        with concurrent.futures.ThreadPoolExecutor(max_workers=self._max_workers) as executor:
            while level:
                frontier = self._frontier(arena, level)
                if not frontier:
                    break
                if deadline is not None and self._clock() >= deadline:
                    logger.warning(
                        "expansion deadline reached, %d subcommand(s) left unresolved",
                        len(frontier),
                    )
                    for path in frontier:
                        arena[path].warning = DEADLINE_WARNING
                    break
                logger.debug("scheduling %d subcommand(s)", len(frontier))
                level = self._run_level(executor, arena, frontier, deadline)

        return self._assemble(arena, root_path)

    def _frontier(
        self, arena: dict[SubcommandPath, _Slot], level: list[SubcommandPath]
    ) -> list[SubcommandPath]:
        frontier: list[SubcommandPath] = []
        for parent in level:
            slot = arena[parent]
            if slot.depth_remaining <= 0:
                continue
            for name, child in slot.model.subcommands.items():
                path = parent + (name,)
                if path in arena:
                    continue
                arena[path] = _Slot(
                    model=child.model,
                    depth_remaining=slot.depth_remaining - 1,
                    resolved=False,
                )
                frontier.append(path)
        return frontier

    def _run_level(
        self,
        executor: concurrent.futures.ThreadPoolExecutor,
        arena: dict[SubcommandPath, _Slot],
        frontier: list[SubcommandPath],
        deadline: float | None,
    ) -> list[SubcommandPath]:
        futures = {executor.submit(self.extract_model, path): path for path in frontier}
        timeout = None if deadline is None else max(0.0, deadline - self._clock())
        done, pending = concurrent.futures.wait(futures, timeout=timeout)

        if pending:
            running = [f for f in pending if not f.cancel()]
            for future in pending:
                if future.cancelled():
                    arena[futures[future]].warning = DEADLINE_WARNING
            logger.warning(
                "expansion deadline reached, cancelled %d pending subcommand(s)",
                len(pending) - len(running),
            )
            # Calls already in flight are allowed to finish.
            finished, _ = concurrent.futures.wait(running)
            done |= finished

        resolved: set[SubcommandPath] = set()
        for future in done:
            path = futures[future]
            slot = arena[path]
            slot.resolved = True
            try:
                model = future.result()
            except Exception as e:
                slot.warning = str(e) or e.__class__.__name__
                logger.warning("%s: %s", _label(path), slot.warning)
                continue
            slot.model = replace(
                model,
                name=slot.model.name,
                summary=model.summary or slot.model.summary,
                aliases=slot.model.aliases or model.aliases,
            )
            resolved.add(path)

        # Keep discovery order for the next level.
        return [p for p in frontier if p in resolved]

    def _assemble(self, arena: dict[SubcommandPath, _Slot], path: SubcommandPath) -> SubcommandNode:
        slot = arena[path]
        model = slot.model
        truncated = False
        if slot.resolved and model.subcommands:
            if slot.depth_remaining == 0:
                model = replace(model, subcommands={})
                truncated = True
            else:
                children = {
                    name: self._assemble(arena, path + (name,))
                    for name in model.subcommands
                    if path + (name,) in arena
                }
                model = replace(model, subcommands=children)
        return SubcommandNode(
            model=model,
            depth_remaining=slot.depth_remaining,
            resolved=slot.resolved,
            truncated=truncated,
            warning=slot.warning,
        )


def truncate_tree(node: SubcommandNode, max_depth: int) -> SubcommandNode:
    """Bound an already built tree to `max_depth` levels below `node`."""
    max_depth = max(0, max_depth)
    if max_depth == 0:
        if node.model.subcommands:
            return replace(
                node,
                model=replace(node.model, subcommands={}),
                depth_remaining=0,
                truncated=True,
            )
        return replace(node, depth_remaining=0)
    children = {
        name: truncate_tree(child, max_depth - 1)
        for name, child in node.model.subcommands.items()
    }
    return replace(node, model=replace(node.model, subcommands=children), depth_remaining=max_depth)


def iter_nodes(
    node: SubcommandNode, prefix: SubcommandPath = ()
) -> Iterator[tuple[SubcommandPath, SubcommandNode]]:
    """Depth-first walk yielding `(path, node)`; `path` ends with the node's name."""
    path = prefix + (node.name,)
    yield path, node
    for child in node.model.subcommands.values():
        yield from iter_nodes(child, path)
